from __future__ import annotations
import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

from pydantic import ValidationError

from app.schemas import EnrichedReading
from models.errors import DuplicateIdError, NotFoundError
from settings import get_settings

logger = logging.getLogger(__name__)


class ReadingStore:
    """Enriched readings keyed by ``id``, optionally mirrored to a JSON file."""

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self._items: Dict[str, EnrichedReading] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def insert(self, item: EnrichedReading) -> None:
        """Store a new reading; the id check and the write happen under one lock."""
        with self._lock:
            if item.id in self._items:
                raise DuplicateIdError(f"Reading with id {item.id!r} already exists.")
            self._items[item.id] = item.model_copy(deep=True)
            self._persist()

    def get(self, reading_id: str) -> Optional[EnrichedReading]:
        with self._lock:
            item = self._items.get(reading_id)
            if item is None:
                return None
            return item.model_copy(deep=True)

    def delete(self, reading_id: str) -> EnrichedReading:
        with self._lock:
            item = self._items.pop(reading_id, None)
            if item is None:
                raise NotFoundError(f"Reading with id {reading_id!r} not found.")
            self._persist()
            return item

    def scan(self) -> list[EnrichedReading]:
        """Return deep copies of all stored readings."""

        with self._lock:
            return [item.model_copy(deep=True) for item in self._items.values()]

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            reading_id: item.model_dump(mode="json", by_alias=True)
            for reading_id, item in self._items.items()
        }
        self.persistence_path.write_text(
            json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False),
            encoding="utf-8",
        )

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text(encoding="utf-8") or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            logger.warning(
                "Ignoring unreadable readings file %s", self.persistence_path
            )
            data = {}

        if not isinstance(data, dict):
            logger.warning(
                "Ignoring readings file %s without a top-level object", self.persistence_path
            )
            data = {}

        for reading_id, payload in data.items():
            try:
                self._items[reading_id] = EnrichedReading.model_validate(payload)
            except ValidationError:
                logger.warning(
                    "Skipping invalid persisted reading",
                    extra={"reading_id": reading_id},
                )
        logger.info(
            "Loaded persisted readings", extra={"count": len(self._items)}
        )


@lru_cache
def build_default_store(path: Optional[str] = None) -> ReadingStore:
    settings = get_settings()
    store_path = settings.persistence_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return ReadingStore(persistence_path=persistence)
