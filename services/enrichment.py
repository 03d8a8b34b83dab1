"""Enrichment hop: derive fields from a raw reading and forward it to storage."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Protocol
from uuid import uuid4

from app.schemas import CityInfo, Coordinates, EnrichedReading, RawReading
from models.cities import CITY_REGISTRY, CityProfile
from models.errors import PipelineError
from models.records import categorize_temperature
from services.validation import parse_raw_reading

logger = logging.getLogger(__name__)


class ReadingSink(Protocol):
    async def insert(self, reading: EnrichedReading) -> Dict[str, Any]: ...


@dataclass
class RelayCounters:
    """Process-lifetime outcome counters, mutated only from the event loop."""

    processed_count: int = 0
    error_count: int = 0

    def record_success(self) -> None:
        self.processed_count += 1

    def record_error(self) -> None:
        self.error_count += 1

    @property
    def success_rate(self) -> float:
        attempts = self.processed_count + self.error_count
        return self.processed_count / attempts if attempts else 0.0

    def snapshot(self) -> Dict[str, Any]:
        return {
            "processedCount": self.processed_count,
            "errorCount": self.error_count,
            "successRate": self.success_rate,
        }


@dataclass(frozen=True)
class IngestOutcome:
    reading: EnrichedReading
    api_response: Dict[str, Any]


def generate_reading_id(now: float | None = None) -> str:
    """Millisecond time prefix plus a random suffix."""
    millis = int((time.time() if now is None else now) * 1000)
    return f"{millis:x}-{uuid4().hex[:16]}"


def city_info_for(profile: CityProfile) -> CityInfo:
    return CityInfo(
        country=profile.country,
        timezone=profile.timezone,
        coordinates=Coordinates(lat=profile.lat, lng=profile.lng),
    )


def iso_date(timestamp_utc: int) -> str:
    rendered = datetime.fromtimestamp(timestamp_utc, tz=timezone.utc).isoformat()
    return rendered.replace("+00:00", "Z")


def enrich_reading(
    raw: RawReading,
    source: str,
    processed_at: datetime,
    registry: Mapping[str, CityProfile] = CITY_REGISTRY,
) -> EnrichedReading:
    return EnrichedReading(
        city=raw.city,
        temperature=raw.temperature,
        timestamp_utc=raw.timestamp_utc,
        unit=raw.unit,
        id=generate_reading_id(processed_at.timestamp()),
        processed_at=processed_at,
        source=source,
        city_info=city_info_for(registry[raw.city]),
        iso_date=iso_date(raw.timestamp_utc),
        temperature_category=categorize_temperature(raw.temperature),
    )


class EnrichmentService:
    def __init__(
        self,
        sink: ReadingSink,
        source: str = "enrichment-relay",
        registry: Mapping[str, CityProfile] = CITY_REGISTRY,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.sink = sink
        self.source = source
        self.registry = registry
        self.counters = RelayCounters()
        self._clock = clock

    def enrich(self, raw: RawReading) -> EnrichedReading:
        return enrich_reading(raw, self.source, self._clock(), self.registry)

    async def ingest(self, payload: Any) -> IngestOutcome:
        """Validate, enrich and store one reading; count the outcome either way."""
        try:
            raw = parse_raw_reading(payload)
            enriched = self.enrich(raw)
            api_response = await self.sink.insert(enriched)
        except PipelineError as exc:
            self.counters.record_error()
            logger.warning(
                "Reading not stored: %s",
                exc.message,
                extra={"kind": exc.kind, "count": self.counters.error_count},
            )
            raise

        self.counters.record_success()
        logger.info(
            "Reading enriched and stored",
            extra={
                "reading_id": enriched.id,
                "city": enriched.city,
                "count": self.counters.processed_count,
            },
        )
        return IngestOutcome(reading=enriched, api_response=api_response)

    def status(self) -> Dict[str, Any]:
        return self.counters.snapshot()
