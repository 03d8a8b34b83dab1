"""Synthetic reading generator that pushes readings to the ingress relay."""

from __future__ import annotations

import asyncio
import json
import logging
import random
import time
from enum import Enum
from typing import Any, AsyncContextManager, Awaitable, Callable, Iterator, Mapping, Optional

import websockets

from app.schemas import RawReading
from models.cities import CITY_REGISTRY, CityProfile
from models.records import TEMPERATURE_UNIT

logger = logging.getLogger(__name__)

Connector = Callable[[str], AsyncContextManager[Any]]
Sleeper = Callable[[float], Awaitable[None]]


class ConnectionState(str, Enum):
    disconnected = "disconnected"
    connecting = "connecting"
    connected = "connected"


_ALLOWED_TRANSITIONS = {
    ConnectionState.disconnected: {ConnectionState.connecting},
    ConnectionState.connecting: {ConnectionState.connected, ConnectionState.disconnected},
    ConnectionState.connected: {ConnectionState.disconnected},
}


def synthesize_temperature(profile: CityProfile, rng: random.Random) -> float:
    half = profile.variation / 2
    return round(profile.baseline + rng.uniform(-half, half), 1)


def backfill_readings(
    start: int,
    end: int,
    step: int,
    registry: Mapping[str, CityProfile] = CITY_REGISTRY,
    rng: Optional[random.Random] = None,
) -> Iterator[RawReading]:
    """Yield one reading per ``step`` seconds in ``[start, end)``."""
    if step <= 0:
        raise ValueError("step must be positive.")
    rng = rng or random.Random()
    cities = list(registry.values())
    for timestamp in range(start, end, step):
        profile = rng.choice(cities)
        yield RawReading(
            city=profile.name,
            temperature=synthesize_temperature(profile, rng),
            timestamp_utc=timestamp,
            unit=TEMPERATURE_UNIT,
        )


class ReadingGenerator:
    """Emits readings on a fixed interval over a reconnecting WebSocket.

    States move ``disconnected -> connecting -> connected -> disconnected``.
    Every entry into ``disconnected`` waits ``retry_delay`` before the next
    attempt. Readings are only produced while connected and nothing is
    buffered across a disconnect.
    """

    def __init__(
        self,
        url: str,
        interval: float = 10.0,
        retry_delay: float = 5.0,
        registry: Mapping[str, CityProfile] = CITY_REGISTRY,
        connector: Connector = websockets.connect,
        sleep: Sleeper = asyncio.sleep,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.url = url
        self.interval = interval
        self.retry_delay = retry_delay
        self.registry = registry
        self._connect = connector
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._clock = clock
        self._state = ConnectionState.disconnected
        self._stop = asyncio.Event()
        self.sent_count = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    def _transition(self, new_state: ConnectionState) -> None:
        if new_state not in _ALLOWED_TRANSITIONS[self._state]:
            raise RuntimeError(f"Illegal transition {self._state.value} -> {new_state.value}")
        self._state = new_state
        logger.info("Generator state changed", extra={"state": new_state.value, "url": self.url})

    def generate_reading(self) -> RawReading:
        profile = self._rng.choice(list(self.registry.values()))
        return RawReading(
            city=profile.name,
            temperature=synthesize_temperature(profile, self._rng),
            timestamp_utc=int(self._clock()),
            unit=TEMPERATURE_UNIT,
        )

    def stop(self) -> None:
        self._stop.set()

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        if stop_event is not None:
            self._stop = stop_event

        while not self._stop.is_set():
            self._transition(ConnectionState.connecting)
            try:
                async with self._connect(self.url) as connection:
                    self._transition(ConnectionState.connected)
                    await self._pump(connection)
            except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as exc:
                logger.warning("Connection lost: %s", exc, extra={"url": self.url})
            self._transition(ConnectionState.disconnected)

            if self._stop.is_set():
                break
            logger.info("Reconnecting after delay", extra={"delay": self.retry_delay})
            await self._sleep(self.retry_delay)

    async def _pump(self, connection: Any) -> None:
        sender = asyncio.create_task(self._send_loop(connection))
        receiver = asyncio.create_task(self._receive_loop(connection))
        done, pending = await asyncio.wait(
            {sender, receiver}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            exc = task.exception()
            if exc is not None:
                raise exc

    async def _send_loop(self, connection: Any) -> None:
        while not self._stop.is_set() and self._state is ConnectionState.connected:
            reading = self.generate_reading()
            await connection.send(json.dumps(reading.to_wire(), ensure_ascii=False))
            self.sent_count += 1
            logger.info(
                "Sent reading %.1f%s",
                reading.temperature,
                reading.unit,
                extra={"city": reading.city, "count": self.sent_count},
            )
            await self._sleep(self.interval)

    async def _receive_loop(self, connection: Any) -> None:
        async for frame in connection:
            try:
                ack = json.loads(frame)
            except ValueError:
                logger.warning("Unreadable acknowledgment: %r", frame)
                continue
            if not isinstance(ack, dict):
                logger.warning("Unexpected acknowledgment: %r", ack)
                continue
            status = ack.get("status")
            if status == "error":
                logger.warning(
                    "Relay rejected reading: %s",
                    ack.get("message"),
                    extra={"status": status, "kind": ack.get("kind")},
                )
            else:
                logger.info(
                    "Relay acknowledged: %s",
                    ack.get("message"),
                    extra={"status": status, "reading_id": ack.get("id")},
                )
