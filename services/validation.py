"""Two-phase validation of readings: shape first, then domain."""

from __future__ import annotations

from typing import Any, Mapping, TypeVar

from pydantic import ValidationError

from app.schemas import EnrichedReading, RawReading
from models.cities import CITY_REGISTRY, city_names
from models.errors import RangeError, SchemaError
from models.records import (
    MAX_TEMPERATURE,
    MAX_TIMESTAMP,
    MIN_TEMPERATURE,
    categorize_temperature,
)

_ReadingT = TypeVar("_ReadingT", bound=RawReading)


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "payload"
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)


def _parse(model: type[_ReadingT], payload: Any) -> _ReadingT:
    if isinstance(payload, RawReading):
        payload = payload.model_dump(by_alias=True)
    if not isinstance(payload, Mapping):
        raise SchemaError("Reading payload must be a JSON object.")
    try:
        return model.model_validate(dict(payload))
    except ValidationError as exc:
        raise SchemaError(f"Invalid reading: {_describe(exc)}") from exc


def check_reading_domain(reading: RawReading) -> None:
    """Raise ``RangeError`` when a well-typed reading is outside its domain."""
    if reading.city not in CITY_REGISTRY:
        raise RangeError(
            f"Unknown city {reading.city!r}; expected one of {', '.join(city_names())}."
        )
    if not MIN_TEMPERATURE <= reading.temperature <= MAX_TEMPERATURE:
        raise RangeError(
            f"Temperature {reading.temperature} outside "
            f"[{MIN_TEMPERATURE:g}, {MAX_TEMPERATURE:g}]."
        )
    if reading.timestamp_utc <= 0:
        raise RangeError("timestampUtc must be a positive number of epoch seconds.")
    if reading.timestamp_utc > MAX_TIMESTAMP:
        raise RangeError(
            f"timestampUtc {reading.timestamp_utc} is beyond the supported range (max {MAX_TIMESTAMP})."
        )


def parse_raw_reading(payload: Any) -> RawReading:
    reading = _parse(RawReading, payload)
    check_reading_domain(reading)
    return reading


def parse_enriched_reading(payload: Any) -> EnrichedReading:
    reading = _parse(EnrichedReading, payload)
    check_reading_domain(reading)
    expected = categorize_temperature(reading.temperature)
    if reading.temperature_category is not expected:
        raise RangeError(
            f"temperatureCategory {reading.temperature_category.value!r} does not match "
            f"temperature {reading.temperature} (expected {expected.value!r})."
        )
    return reading
