"""Storage and query operations over persisted enriched readings."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Callable, Iterable, List, Optional

from app.schemas import EnrichedReading
from datastore.reading_store import ReadingStore, build_default_store
from models.cities import CITY_REGISTRY, city_names
from models.errors import NotFoundError, RangeError, SchemaError
from services.aggregator import Aggregator, CategoryStats, CityStats
from services.validation import parse_enriched_reading

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass
class ReadingPage:
    items: List[EnrichedReading]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


@dataclass
class Analytics:
    days: int
    total_records: int
    records_in_range: int
    per_city_stats: List[CityStats] = field(default_factory=list)
    per_category_stats: List[CategoryStats] = field(default_factory=list)


def parse_date_bound(value: str) -> int:
    """Convert a query-string date bound to epoch seconds.

    Integer strings are taken as epoch seconds already; anything else must be
    ISO-8601. A trailing ``Z`` is accepted and naive values are treated as UTC.
    """
    candidate = value.strip()
    if not candidate:
        raise SchemaError("Date bound is empty.")

    try:
        return int(candidate)
    except ValueError:
        pass

    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise SchemaError(f"Invalid date bound {value!r}.") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return math.floor(parsed.timestamp())


def _newest_first(readings: Iterable[EnrichedReading]) -> list[EnrichedReading]:
    return sorted(
        readings,
        key=lambda reading: (reading.timestamp_utc, reading.id),
        reverse=True,
    )


def _within(reading: EnrichedReading, start: Optional[int], end: Optional[int]) -> bool:
    if start is not None and reading.timestamp_utc < start:
        return False
    if end is not None and reading.timestamp_utc > end:
        return False
    return True


class ReadingService:
    """Validates inserts and answers queries straight from the store."""

    def __init__(
        self,
        store: ReadingStore,
        aggregator: Aggregator,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.aggregator = aggregator
        self._clock = clock

    def insert(self, payload: Any) -> EnrichedReading:
        reading = parse_enriched_reading(payload)
        self.store.insert(reading)
        logger.info(
            "Stored reading",
            extra={"reading_id": reading.id, "city": reading.city},
        )
        return reading

    def get(self, reading_id: str) -> EnrichedReading:
        reading = self.store.get(reading_id)
        if reading is None:
            raise NotFoundError(f"Reading with id {reading_id!r} not found.")
        return reading

    def delete(self, reading_id: str) -> None:
        self.store.delete(reading_id)
        logger.info("Deleted reading", extra={"reading_id": reading_id})

    def list_readings(
        self,
        city: Optional[str] = None,
        limit: int = 100,
        page: int = 1,
    ) -> ReadingPage:
        if limit < 1:
            raise RangeError("limit must be at least 1.")
        if page < 1:
            raise RangeError("page must be at least 1.")

        matching = _newest_first(
            reading for reading in self.store.scan() if city is None or reading.city == city
        )
        offset = (page - 1) * limit
        return ReadingPage(
            items=matching[offset : offset + limit],
            page=page,
            limit=limit,
            total=len(matching),
        )

    def stats_by_city(
        self,
        city: str,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> CityStats:
        if city not in CITY_REGISTRY:
            raise RangeError(
                f"Unknown city {city!r}; expected one of {', '.join(city_names())}."
            )
        # A half-open window is ignored; bounds only apply as a pair.
        if start is None or end is None:
            start = end = None
        return self.aggregator.city_stats(
            city,
            (
                reading
                for reading in self.store.scan()
                if reading.city == city and _within(reading, start, end)
            ),
        )

    def range_query(
        self,
        start: int,
        end: int,
        city: Optional[str] = None,
    ) -> list[EnrichedReading]:
        return _newest_first(
            reading
            for reading in self.store.scan()
            if _within(reading, start, end) and (city is None or reading.city == city)
        )

    def latest(self, city: Optional[str] = None, limit: int = 3) -> list[EnrichedReading]:
        return self.list_readings(city=city, limit=limit, page=1).items

    def analytics(self, days: int = 7) -> Analytics:
        if days < 1:
            raise RangeError("days must be at least 1.")

        since = math.floor(self._clock()) - days * SECONDS_PER_DAY
        readings = self.store.scan()
        in_range = [reading for reading in readings if reading.timestamp_utc >= since]

        per_city = [
            self.aggregator.city_stats(
                city, (reading for reading in in_range if reading.city == city)
            )
            for city in city_names()
        ]
        return Analytics(
            days=days,
            total_records=len(readings),
            records_in_range=len(in_range),
            per_city_stats=[stats for stats in per_city if stats.count],
            per_category_stats=self.aggregator.category_stats(in_range),
        )


@lru_cache
def build_default_reading_service() -> ReadingService:
    """Factory that wires the service with the configured store."""
    return ReadingService(store=build_default_store(), aggregator=Aggregator())
