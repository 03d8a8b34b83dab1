from __future__ import annotations

import logging
import time
from logging.config import dictConfig
from typing import Iterable, Optional, Sequence

from settings import get_settings

RELAY_EXTRA_KEYS = (
    "reading_id",
    "city",
    "connection_id",
    "status",
    "kind",
    "state",
    "delay",
    "url",
    "connections",
    "count",
)

_LOG_FORMAT = "%(asctime)sZ | %(levelname)s | %(hop)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_configured = False


class HopFilter(logging.Filter):
    """Stamp every record with the name of the pipeline hop running this process."""

    def __init__(self, hop: str = "relay") -> None:
        super().__init__()
        self.hop = hop

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "hop"):
            record.hop = self.hop
        return True


_hop_filter = HopFilter()


def _shared_hop_filter() -> HopFilter:
    return _hop_filter


class ContextualFormatter(logging.Formatter):
    """Append known ``extra`` fields as key=value pairs after the message."""

    converter = time.gmtime

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        extra_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self._extra_keys: Sequence[str] = tuple(extra_keys or RELAY_EXTRA_KEYS)

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "hop"):
            record.hop = _hop_filter.hop
        message = super().format(record)
        pairs = [
            f"{key}={getattr(record, key)}"
            for key in self._extra_keys
            if getattr(record, key, None) is not None
        ]
        return f"{message} | {' '.join(pairs)}" if pairs else message


def configure_logging(level: str | int | None = None, hop: Optional[str] = None) -> None:
    """Install the relay logging setup once per process.

    ``hop`` may be given on any call; the latest value names the process in
    subsequent log lines.
    """
    global _configured
    if hop:
        _hop_filter.hop = hop
    if _configured:
        return

    log_level = level if level is not None else get_settings().log_level
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"hop": {"()": "logging_config._shared_hop_filter"}},
            "formatters": {
                "contextual": {
                    "()": "logging_config.ContextualFormatter",
                    "fmt": _LOG_FORMAT,
                    "datefmt": _DATE_FORMAT,
                    "extra_keys": list(RELAY_EXTRA_KEYS),
                }
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "level": log_level,
                    "formatter": "contextual",
                    "filters": ["hop"],
                }
            },
            "loggers": {
                "uvicorn": {"handlers": ["default"], "level": log_level, "propagate": False},
                "httpx": {"level": "WARNING"},
            },
            "root": {"handlers": ["default"], "level": log_level},
        }
    )
    _configured = True
