from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_LOG_LEVEL_ENV = "LOG_LEVEL"
_STORAGE_URL_ENV = "STORAGE_URL"
_ENRICHMENT_URL_ENV = "ENRICHMENT_URL"
_INGRESS_URL_ENV = "INGRESS_URL"
_PERSISTENCE_PATH_ENV = "READINGS_PERSISTENCE_PATH"
_JWT_SECRET_ENV = "JWT_SECRET"
_JWT_TTL_ENV = "JWT_TTL_SECONDS"
_ENRICHMENT_TIMEOUT_ENV = "ENRICHMENT_TIMEOUT"
_STORAGE_TIMEOUT_ENV = "STORAGE_TIMEOUT"
_GENERATOR_INTERVAL_ENV = "GENERATOR_INTERVAL"
_GENERATOR_RETRY_ENV = "GENERATOR_RETRY_DELAY"
_ENRICHMENT_SOURCE_ENV = "ENRICHMENT_SOURCE"

_DEFAULT_JWT_SECRET = "city-temperature-relay-dev-secret"
_LOG_LEVELS = frozenset({"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"})


@dataclass(frozen=True)
class Settings:
    log_level: str
    storage_url: str
    enrichment_url: str
    ingress_url: str
    persistence_path: Optional[str]
    jwt_secret: str
    jwt_ttl_seconds: int
    enrichment_timeout: float
    storage_timeout: float
    generator_interval: float
    generator_retry_delay: float
    enrichment_source: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    level = candidate.upper()
    return level if level in _LOG_LEVELS else default


@lru_cache
def get_settings() -> Settings:
    return Settings(
        log_level=_read_log_level("INFO"),
        storage_url=_read_str_env(_STORAGE_URL_ENV, "http://localhost:3004").rstrip("/"),
        enrichment_url=_read_str_env(_ENRICHMENT_URL_ENV, "http://localhost:3003").rstrip("/"),
        ingress_url=_read_str_env(_INGRESS_URL_ENV, "ws://localhost:3002"),
        persistence_path=_read_optional_env(_PERSISTENCE_PATH_ENV, "./tmp/readings.json"),
        jwt_secret=_read_str_env(_JWT_SECRET_ENV, _DEFAULT_JWT_SECRET),
        jwt_ttl_seconds=_read_positive_int(_JWT_TTL_ENV, 24 * 60 * 60),
        enrichment_timeout=_read_positive_float(_ENRICHMENT_TIMEOUT_ENV, 5.0),
        storage_timeout=_read_positive_float(_STORAGE_TIMEOUT_ENV, 10.0),
        generator_interval=_read_positive_float(_GENERATOR_INTERVAL_ENV, 10.0),
        generator_retry_delay=_read_positive_float(_GENERATOR_RETRY_ENV, 5.0),
        enrichment_source=_read_str_env(_ENRICHMENT_SOURCE_ENV, "enrichment-relay"),
    )
