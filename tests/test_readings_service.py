"""Tests for the storage query operations."""

from __future__ import annotations

import math
from datetime import datetime, timezone

import pytest

from app.schemas import RawReading
from datastore.reading_store import ReadingStore
from models.errors import DuplicateIdError, NotFoundError, RangeError, SchemaError
from services.aggregator import Aggregator
from services.enrichment import enrich_reading
from services.readings import ReadingService, parse_date_bound

NOW = 1_700_000_000


def _service() -> ReadingService:
    return ReadingService(store=ReadingStore(), aggregator=Aggregator(), clock=lambda: NOW)


def _insert(service: ReadingService, city: str, temperature: float, timestamp: int) -> str:
    raw = RawReading(city=city, temperature=temperature, timestamp_utc=timestamp, unit="°C")
    reading = enrich_reading(raw, "test", datetime.now(timezone.utc))
    service.insert(reading.to_wire())
    return reading.id


def test_insert_rejects_duplicate_id() -> None:
    service = _service()
    raw = RawReading(city="Berlin", temperature=12.3, timestamp_utc=NOW, unit="°C")
    reading = enrich_reading(raw, "test", datetime.now(timezone.utc))

    service.insert(reading.to_wire())
    with pytest.raises(DuplicateIdError):
        service.insert(reading.to_wire())

    assert len(service.store) == 1


def test_insert_rejects_out_of_range_payload() -> None:
    service = _service()
    raw = RawReading(city="Berlin", temperature=12.3, timestamp_utc=NOW, unit="°C")
    payload = enrich_reading(raw, "test", datetime.now(timezone.utc)).to_wire()
    payload["temperature"] = 75.0

    with pytest.raises(RangeError):
        service.insert(payload)
    assert len(service.store) == 0


def test_range_query_bounds_are_inclusive_and_newest_first() -> None:
    service = _service()
    t = NOW
    older = _insert(service, "Berlin", 5.0, t - 100)
    newer = _insert(service, "Berlin", 6.0, t + 100)
    _insert(service, "Shanghai", 20.0, t)

    assert service.range_query(t - 50, t + 50, "Berlin") == []

    found = service.range_query(t - 150, t + 150, "Berlin")
    assert [reading.id for reading in found] == [newer, older]

    edges = service.range_query(t - 100, t + 100, "Berlin")
    assert len(edges) == 2

    everything = service.range_query(t - 150, t + 150)
    assert len(everything) == 3


def test_pagination_pages_do_not_overlap() -> None:
    service = _service()
    for offset in range(25):
        _insert(service, "Rio de Janeiro", 25.0, NOW - offset)

    first = service.list_readings(limit=10, page=1)
    second = service.list_readings(limit=10, page=2)
    third = service.list_readings(limit=10, page=3)

    first_ids = {reading.id for reading in first.items}
    second_ids = {reading.id for reading in second.items}
    assert len(first_ids) == 10
    assert len(second_ids) == 10
    assert first_ids.isdisjoint(second_ids)
    assert len(third.items) == 5
    assert first.total == 25
    assert first.pages == math.ceil(25 / 10) == 3
    assert first.items[0].timestamp_utc == NOW


def test_pagination_with_equal_timestamps_is_stable() -> None:
    service = _service()
    for _ in range(6):
        _insert(service, "Berlin", 1.0, NOW)

    pages = [service.list_readings(limit=2, page=page).items for page in (1, 2, 3)]
    ids = [reading.id for page in pages for reading in page]
    assert len(ids) == len(set(ids)) == 6


def test_list_filters_by_city_and_rejects_bad_paging() -> None:
    service = _service()
    _insert(service, "Berlin", 1.0, NOW)
    _insert(service, "Shanghai", 21.0, NOW)

    result = service.list_readings(city="Shanghai")
    assert [reading.city for reading in result.items] == ["Shanghai"]
    assert result.total == 1

    with pytest.raises(RangeError):
        service.list_readings(limit=0)
    with pytest.raises(RangeError):
        service.list_readings(page=0)


def test_stats_by_city_zeroed_when_no_matches() -> None:
    stats = _service().stats_by_city("Berlin")

    assert stats.count == 0
    assert stats.avg_temp == 0.0
    assert stats.latest_timestamp == 0


def test_stats_by_city_rejects_unknown_city() -> None:
    with pytest.raises(RangeError):
        _service().stats_by_city("Atlantis")


def test_stats_by_city_applies_window_only_when_both_bounds_given() -> None:
    service = _service()
    _insert(service, "Berlin", 10.0, NOW - 1000)
    _insert(service, "Berlin", 20.0, NOW)

    windowed = service.stats_by_city("Berlin", NOW - 10, NOW + 10)
    assert windowed.count == 1
    assert windowed.avg_temp == 20.0

    half_open = service.stats_by_city("Berlin", NOW - 10, None)
    assert half_open.count == 2
    assert half_open.avg_temp == 15.0
    assert half_open.latest_temp == 20.0
    assert half_open.latest_timestamp == NOW


def test_latest_defaults_to_three_records() -> None:
    service = _service()
    for offset in range(5):
        _insert(service, "Berlin", float(offset), NOW - offset)

    latest = service.latest()
    assert [reading.timestamp_utc for reading in latest] == [NOW, NOW - 1, NOW - 2]
    assert service.latest(city="Shanghai") == []


def test_analytics_on_empty_store() -> None:
    analytics = _service().analytics(7)

    assert analytics.total_records == 0
    assert analytics.records_in_range == 0
    assert analytics.per_city_stats == []
    assert analytics.per_category_stats == []


def test_analytics_counts_only_records_in_window() -> None:
    service = _service()
    _insert(service, "Berlin", -3.0, NOW - 100)
    _insert(service, "Shanghai", 25.0, NOW - 3600)
    _insert(service, "Shanghai", 26.0, NOW - 10 * 86400)

    analytics = service.analytics(7)

    assert analytics.total_records == 3
    assert analytics.records_in_range == 2
    assert {stats.city for stats in analytics.per_city_stats} == {"Berlin", "Shanghai"}
    shanghai = next(stats for stats in analytics.per_city_stats if stats.city == "Shanghai")
    assert shanghai.count == 1
    categories = {entry.category.value: entry.count for entry in analytics.per_category_stats}
    assert categories == {"freezing": 1, "warm": 1}


def test_get_and_delete() -> None:
    service = _service()
    reading_id = _insert(service, "Berlin", 1.0, NOW)

    assert service.get(reading_id).id == reading_id
    service.delete(reading_id)
    with pytest.raises(NotFoundError):
        service.get(reading_id)
    with pytest.raises(NotFoundError):
        service.delete(reading_id)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("1700000000", 1700000000),
        ("2023-11-14T22:13:20Z", 1700000000),
        ("2023-11-14T22:13:20", 1700000000),
        ("2023-11-14T23:13:20+01:00", 1700000000),
        ("2023-11-14T22:13:20.900Z", 1700000000),
    ],
)
def test_parse_date_bound(value, expected) -> None:
    assert parse_date_bound(value) == expected


@pytest.mark.parametrize("value", ["", "yesterday", "2023-13-45"])
def test_parse_date_bound_rejects_garbage(value) -> None:
    with pytest.raises(SchemaError):
        parse_date_bound(value)
