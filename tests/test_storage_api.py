"""HTTP-level tests for the storage and query API."""

from __future__ import annotations

import inspect
import math
import time
from datetime import datetime, timezone
from typing import Dict, Iterator

import pytest
from fastapi.testclient import TestClient

from app.auth import issue_token
from app.main import create_storage_app
from app.schemas import RawReading
from datastore.reading_store import ReadingStore
from services.aggregator import Aggregator
from services.enrichment import enrich_reading
from services.readings import ReadingService


@pytest.fixture
def service() -> ReadingService:
    return ReadingService(store=ReadingStore(), aggregator=Aggregator())


@pytest.fixture
def api_client(service: ReadingService) -> Iterator[TestClient]:
    with TestClient(create_storage_app(service)) as client:
        yield client


def _auth(role: str = "user") -> Dict[str, str]:
    return {"Authorization": f"Bearer {issue_token('tester', role=role)}"}


def _enriched(city: str = "Berlin", temperature: float = 12.3, timestamp: int = 1700000000) -> dict:
    raw = RawReading(city=city, temperature=temperature, timestamp_utc=timestamp, unit="°C")
    return enrich_reading(raw, "test", datetime.now(timezone.utc)).to_wire()


def test_insert_is_anonymous_and_returns_summary(api_client: TestClient) -> None:
    payload = _enriched()

    response = api_client.post("/api/temperature", json=payload)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"] == {
        "id": payload["id"],
        "city": "Berlin",
        "temperature": 12.3,
        "timestampUtc": 1700000000,
    }


def test_insert_validation_and_duplicate_errors(api_client: TestClient) -> None:
    payload = _enriched()
    assert api_client.post("/api/temperature", json=payload).status_code == 201

    duplicate = api_client.post("/api/temperature", json=payload)
    assert duplicate.status_code == 409
    assert duplicate.json()["kind"] == "duplicate_id"

    missing = dict(_enriched())
    del missing["city"]
    invalid = api_client.post("/api/temperature", json=missing)
    assert invalid.status_code == 400
    assert invalid.json()["kind"] == "schema_error"

    out_of_range = _enriched(temperature=10.0)
    out_of_range["temperature"] = 61
    response = api_client.post("/api/temperature", json=out_of_range)
    assert response.status_code == 400
    assert response.json()["kind"] == "range_error"


def test_queries_require_bearer_token(api_client: TestClient) -> None:
    missing = api_client.get("/api/temperature")
    assert missing.status_code == 401
    assert missing.json()["kind"] == "auth_error"

    garbage = api_client.get("/api/temperature", headers={"Authorization": "Bearer nope"})
    assert garbage.status_code == 403

    expired = issue_token("tester", now=time.time() - 10 * 24 * 3600)
    response = api_client.get("/api/temperature", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 403


def test_list_paginates_newest_first(api_client: TestClient) -> None:
    for offset in range(12):
        api_client.post("/api/temperature", json=_enriched(timestamp=1700000000 + offset))

    first = api_client.get("/api/temperature?limit=10&page=1", headers=_auth()).json()
    second = api_client.get("/api/temperature?limit=10&page=2", headers=_auth()).json()

    assert first["pagination"] == {"page": 1, "limit": 10, "total": 12, "pages": math.ceil(12 / 10)}
    assert first["data"][0]["timestampUtc"] == 1700000011
    first_ids = {item["id"] for item in first["data"]}
    second_ids = {item["id"] for item in second["data"]}
    assert len(second_ids) == 2
    assert first_ids.isdisjoint(second_ids)


def test_stats_for_city(api_client: TestClient) -> None:
    api_client.post("/api/temperature", json=_enriched(temperature=10.0, timestamp=1700000000))
    api_client.post("/api/temperature", json=_enriched(temperature=14.0, timestamp=1700000100))

    response = api_client.get("/api/temperature/stats/Berlin", headers=_auth())
    assert response.status_code == 200
    stats = response.json()["stats"]
    assert stats["count"] == 2
    assert stats["avgTemp"] == pytest.approx(12.0)
    assert stats["latestTemp"] == 14.0
    assert stats["latestTimestamp"] == 1700000100

    windowed = api_client.get(
        "/api/temperature/stats/Berlin",
        params={"startDate": "2023-11-14T22:13:00Z", "endDate": "2023-11-14T22:14:00Z"},
        headers=_auth(),
    ).json()["stats"]
    assert windowed["count"] == 1

    empty = api_client.get("/api/temperature/stats/Shanghai", headers=_auth()).json()
    assert empty["stats"]["count"] == 0
    assert empty["stats"]["avgTemp"] == 0

    unknown = api_client.get("/api/temperature/stats/Atlantis", headers=_auth())
    assert unknown.status_code == 400


def test_range_query(api_client: TestClient) -> None:
    t = 1700000000
    api_client.post("/api/temperature", json=_enriched(timestamp=t - 100))
    api_client.post("/api/temperature", json=_enriched(timestamp=t + 100))

    narrow = api_client.get(
        "/api/temperature/range",
        params={"startDate": t - 50, "endDate": t + 50, "city": "Berlin"},
        headers=_auth(),
    ).json()
    wide = api_client.get(
        "/api/temperature/range",
        params={"startDate": t - 150, "endDate": t + 150},
        headers=_auth(),
    ).json()

    assert narrow["count"] == 0
    assert wide["count"] == 2
    assert [item["timestampUtc"] for item in wide["data"]] == [t + 100, t - 100]
    assert wide["range"]["city"] == "all"

    missing = api_client.get("/api/temperature/range", params={"startDate": t}, headers=_auth())
    assert missing.status_code == 400
    assert missing.json()["kind"] == "schema_error"
    assert "endDate" in missing.json()["message"]

    garbage = api_client.get(
        "/api/temperature/range",
        params={"startDate": "soon", "endDate": t},
        headers=_auth(),
    )
    assert garbage.status_code == 400
    assert garbage.json()["kind"] == "schema_error"


def test_latest_and_point_lookup(api_client: TestClient) -> None:
    ids = []
    for offset in range(4):
        payload = _enriched(city="Shanghai", temperature=20.0, timestamp=1700000000 + offset)
        api_client.post("/api/temperature", json=payload)
        ids.append(payload["id"])

    latest = api_client.get("/api/temperature/latest", headers=_auth()).json()["data"]
    assert [item["id"] for item in latest] == list(reversed(ids))[:3]

    found = api_client.get(f"/api/temperature/{ids[0]}", headers=_auth())
    assert found.status_code == 200
    assert found.json()["cityInfo"]["country"] == "China"

    missing = api_client.get("/api/temperature/does-not-exist", headers=_auth())
    assert missing.status_code == 404
    assert missing.json()["kind"] == "not_found"


def test_analytics_requires_admin_and_handles_empty_store(api_client: TestClient) -> None:
    forbidden = api_client.get("/api/temperature/analytics", headers=_auth("user"))
    assert forbidden.status_code == 403

    response = api_client.get("/api/temperature/analytics?days=7", headers=_auth("admin"))
    assert response.status_code == 200
    analytics = response.json()["analytics"]
    assert analytics["totalRecords"] == 0
    assert analytics["recordsInRange"] == 0
    assert analytics["perCityStats"] == []
    assert analytics["perCategoryStats"] == []


def test_analytics_with_recent_readings(api_client: TestClient) -> None:
    now = int(time.time())
    api_client.post("/api/temperature", json=_enriched(temperature=-2.0, timestamp=now - 60))
    api_client.post("/api/temperature", json=_enriched(temperature=3.0, timestamp=now - 30 * 86400))

    analytics = api_client.get(
        "/api/temperature/analytics", headers=_auth("admin")
    ).json()["analytics"]

    assert analytics["totalRecords"] == 2
    assert analytics["recordsInRange"] == 1
    assert analytics["perCityStats"][0]["city"] == "Berlin"
    assert analytics["perCategoryStats"] == [
        {"category": "freezing", "count": 1, "avgTemp": -2.0}
    ]


def test_delete_requires_admin(api_client: TestClient, service: ReadingService) -> None:
    payload = _enriched()
    api_client.post("/api/temperature", json=payload)

    assert api_client.delete(f"/api/temperature/{payload['id']}", headers=_auth()).status_code == 403
    assert api_client.delete(f"/api/temperature/{payload['id']}").status_code == 401

    deleted = api_client.delete(f"/api/temperature/{payload['id']}", headers=_auth("admin"))
    assert deleted.status_code == 200
    assert len(service.store) == 0

    again = api_client.delete(f"/api/temperature/{payload['id']}", headers=_auth("admin"))
    assert again.status_code == 404


def test_health_reports_record_count(api_client: TestClient) -> None:
    api_client.post("/api/temperature", json=_enriched())

    health = api_client.get("/health").json()

    assert health["status"] == "healthy"
    assert health["records"] == 1
    assert "uptime" in health


def test_malformed_json_body_is_schema_error(
    api_client: TestClient, service: ReadingService
) -> None:
    response = api_client.post(
        "/api/temperature",
        content="{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["kind"] == "schema_error"
    assert body["message"]
    assert len(service.store) == 0


def test_store_backed_routes_run_off_the_event_loop(service: ReadingService) -> None:
    app = create_storage_app(service)
    store_routes = [
        route
        for route in app.routes
        if getattr(route, "path", "").startswith("/api/temperature")
        or getattr(route, "path", "") == "/health"
    ]

    assert len(store_routes) == 9
    for route in store_routes:
        assert not inspect.iscoroutinefunction(route.endpoint), route.path
