"""WebSocket and HTTP routes for the ingress relay."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect

from app.schemas import AckStatus, BroadcastRequest, BroadcastResponse
from services.ingress import IngressRelay, make_ack

logger = logging.getLogger(__name__)

router = APIRouter()


def get_relay(request: Request) -> IngressRelay:
    return request.app.state.relay


@router.websocket("/")
@router.websocket("/ws")
async def readings_channel(websocket: WebSocket) -> None:
    relay: IngressRelay = websocket.app.state.relay
    await websocket.accept()
    connection_id = relay.connections.register(websocket)
    try:
        await websocket.send_json(relay.welcome().to_wire())
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            frame = message.get("text")
            if frame is None:
                frame = message.get("bytes") or b""
            ack = await relay.handle_message(frame, connection_id=connection_id)
            await websocket.send_json(ack.to_wire())
    except WebSocketDisconnect:
        pass
    except RuntimeError as exc:
        # Starlette raises RuntimeError when the peer vanished mid-send.
        logger.warning("Connection error: %s", exc, extra={"connection_id": connection_id})
    finally:
        relay.connections.unregister(connection_id)


@router.get("/health", summary="Liveness with connection count and counters.")
async def healthcheck(
    request: Request,
    relay: IngressRelay = Depends(get_relay),
) -> dict[str, Any]:
    return {
        "status": "healthy",
        "uptime": request.app.state.uptime(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **relay.status(),
    }


@router.get("/stats", summary="Relay statistics.")
async def stats(
    request: Request,
    relay: IngressRelay = Depends(get_relay),
) -> dict[str, Any]:
    return {
        "connectedClients": len(relay.connections),
        "enrichmentUrl": request.app.state.enrichment_url,
        "uptime": request.app.state.uptime(),
        **relay.counters.snapshot(),
    }


@router.post(
    "/broadcast",
    response_model=BroadcastResponse,
    summary="Push a status message to every open connection.",
)
async def broadcast(
    body: BroadcastRequest,
    relay: IngressRelay = Depends(get_relay),
) -> BroadcastResponse:
    delivered = await relay.connections.broadcast(
        make_ack(AckStatus.status, body.message).to_wire()
    )
    return BroadcastResponse(delivered=delivered)
