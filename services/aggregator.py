"""Aggregation logic for temperature readings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List

from app.schemas import EnrichedReading
from models.records import TemperatureCategory


@dataclass
class CityStats:
    """Summary statistics for one city; all zero when nothing matched."""

    city: str
    count: int = 0
    avg_temp: float = 0.0
    min_temp: float = 0.0
    max_temp: float = 0.0
    latest_temp: float = 0.0
    latest_timestamp: int = 0


@dataclass
class CategoryStats:
    category: TemperatureCategory
    count: int
    avg_temp: float


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def city_stats(self, city: str, readings: Iterable[EnrichedReading]) -> CityStats:
        stats = CityStats(city=city)
        total = 0.0
        latest: EnrichedReading | None = None

        for reading in readings:
            value = reading.temperature
            total += value
            if stats.count == 0 or value < stats.min_temp:
                stats.min_temp = value
            if stats.count == 0 or value > stats.max_temp:
                stats.max_temp = value
            stats.count += 1

            if latest is None or reading.timestamp_utc >= latest.timestamp_utc:
                latest = reading

        if stats.count:
            stats.avg_temp = total / stats.count
        if latest is not None:
            stats.latest_temp = latest.temperature
            stats.latest_timestamp = latest.timestamp_utc

        return stats

    def category_stats(self, readings: Iterable[EnrichedReading]) -> List[CategoryStats]:
        counts: Dict[TemperatureCategory, int] = {}
        totals: Dict[TemperatureCategory, float] = {}

        for reading in readings:
            category = reading.temperature_category
            counts[category] = counts.get(category, 0) + 1
            totals[category] = totals.get(category, 0.0) + reading.temperature

        # Enum declaration order, coldest first.
        return [
            CategoryStats(
                category=category,
                count=counts[category],
                avg_temp=totals[category] / counts[category],
            )
            for category in TemperatureCategory
            if category in counts
        ]
