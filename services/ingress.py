"""Ingress hop: validate readings from persistent connections and relay them."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from itertools import count
from typing import Any, Dict, Protocol

from app.schemas import Ack, AckStatus, RawReading
from models.errors import PipelineError
from services.validation import parse_raw_reading

logger = logging.getLogger(__name__)


class ConnectionHandle(Protocol):
    async def send_json(self, data: Any) -> None: ...


class ReadingForwarder(Protocol):
    async def ingest(self, reading: RawReading) -> Dict[str, Any]: ...


class ConnectionRegistry:
    """Open connections keyed by a generated id."""

    def __init__(self) -> None:
        self._connections: Dict[str, ConnectionHandle] = {}
        self._ids = count(1)

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    def register(self, handle: ConnectionHandle) -> str:
        connection_id = f"conn-{next(self._ids)}"
        self._connections[connection_id] = handle
        logger.info(
            "Connection opened",
            extra={"connection_id": connection_id, "connections": len(self)},
        )
        return connection_id

    def unregister(self, connection_id: str) -> None:
        if self._connections.pop(connection_id, None) is not None:
            logger.info(
                "Connection closed",
                extra={"connection_id": connection_id, "connections": len(self)},
            )

    async def broadcast(self, message: Dict[str, Any]) -> int:
        """Send ``message`` to every open connection; return the delivery count.

        Iterates a snapshot so sends may (un)register connections freely.
        Connections whose send fails are dropped.
        """
        delivered = 0
        for connection_id, handle in list(self._connections.items()):
            try:
                await handle.send_json(message)
            except Exception as exc:  # noqa: BLE001 - any transport failure drops the peer
                logger.warning(
                    "Broadcast failed, dropping connection: %s",
                    exc,
                    extra={"connection_id": connection_id},
                )
                self.unregister(connection_id)
                continue
            delivered += 1
        return delivered


@dataclass
class IngressCounters:
    forwarded: int = 0
    rejected: int = 0
    failed: int = 0

    def snapshot(self) -> Dict[str, int]:
        return {
            "forwarded": self.forwarded,
            "rejected": self.rejected,
            "failed": self.failed,
        }


def _now() -> datetime:
    return datetime.now(timezone.utc)


def make_ack(status: AckStatus, message: str, **fields: Any) -> Ack:
    return Ack(status=status, message=message, timestamp=_now(), **fields)


class IngressRelay:
    """Turns each inbound frame into exactly one acknowledgment."""

    def __init__(self, forwarder: ReadingForwarder) -> None:
        self.forwarder = forwarder
        self.connections = ConnectionRegistry()
        self.counters = IngressCounters()

    def welcome(self) -> Ack:
        return make_ack(AckStatus.connected, "Connected to ingress relay.")

    async def handle_message(
        self, text: str | bytes, connection_id: str | None = None
    ) -> Ack:
        """Binary frames are accepted when they hold UTF-8 encoded JSON."""
        try:
            if isinstance(text, bytes):
                text = text.decode("utf-8")
            payload = json.loads(text)
        except (TypeError, ValueError):
            self.counters.rejected += 1
            logger.warning("Malformed frame", extra={"connection_id": connection_id})
            return make_ack(
                AckStatus.error, "Payload is not valid JSON.", kind="schema_error"
            )

        try:
            reading = parse_raw_reading(payload)
        except PipelineError as exc:
            self.counters.rejected += 1
            logger.warning(
                "Rejected reading: %s",
                exc.message,
                extra={"connection_id": connection_id, "kind": exc.kind},
            )
            return make_ack(AckStatus.error, exc.message, kind=exc.kind)

        try:
            result = await self.forwarder.ingest(reading)
        except PipelineError as exc:
            self.counters.failed += 1
            logger.warning(
                "Forwarding failed: %s",
                exc.message,
                extra={"connection_id": connection_id, "kind": exc.kind, "city": reading.city},
            )
            return make_ack(AckStatus.error, exc.message, kind=exc.kind)

        self.counters.forwarded += 1
        data = result.get("data") if isinstance(result, dict) else None
        reading_id = data.get("id") if isinstance(data, dict) else None
        logger.info(
            "Reading relayed",
            extra={"connection_id": connection_id, "city": reading.city, "reading_id": reading_id},
        )
        return make_ack(AckStatus.success, "Reading processed.", id=reading_id)

    def status(self) -> Dict[str, Any]:
        return {"connections": len(self.connections), **self.counters.snapshot()}
