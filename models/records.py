"""Domain constants and pure helpers shared across services."""

from __future__ import annotations

from enum import Enum

TEMPERATURE_UNIT = "°C"
MIN_TEMPERATURE = -50.0
MAX_TEMPERATURE = 60.0
# 9999-12-31T23:59:59Z, the last second datetime can render.
MAX_TIMESTAMP = 253_402_300_799


class TemperatureCategory(str, Enum):
    """Coarse temperature buckets; each lower edge belongs to its bucket."""

    freezing = "freezing"
    cold = "cold"
    cool = "cool"
    warm = "warm"
    hot = "hot"


def categorize_temperature(temperature: float) -> TemperatureCategory:
    if temperature < 0:
        return TemperatureCategory.freezing
    if temperature < 10:
        return TemperatureCategory.cold
    if temperature < 20:
        return TemperatureCategory.cool
    if temperature < 30:
        return TemperatureCategory.warm
    return TemperatureCategory.hot
