"""Static city registry used to synthesize and enrich readings."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True, slots=True)
class CityProfile:
    """Baseline climate and geo metadata for one registered city."""

    name: str
    baseline: float
    variation: float
    country: str
    timezone: str
    lat: float
    lng: float


CITY_REGISTRY: Mapping[str, CityProfile] = MappingProxyType(
    {
        profile.name: profile
        for profile in (
            CityProfile(
                name="Shanghai",
                baseline=20.0,
                variation=15.0,
                country="China",
                timezone="Asia/Shanghai",
                lat=31.2304,
                lng=121.4737,
            ),
            CityProfile(
                name="Berlin",
                baseline=10.0,
                variation=20.0,
                country="Germany",
                timezone="Europe/Berlin",
                lat=52.52,
                lng=13.405,
            ),
            CityProfile(
                name="Rio de Janeiro",
                baseline=25.0,
                variation=10.0,
                country="Brazil",
                timezone="America/Sao_Paulo",
                lat=-22.9068,
                lng=-43.1729,
            ),
        )
    }
)


def city_names() -> tuple[str, ...]:
    return tuple(CITY_REGISTRY)
