"""HTTP routes for the enrichment relay."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, Depends, Request

from app.schemas import WebhookResponse
from services.enrichment import EnrichmentService

router = APIRouter()


def get_enrichment_service(request: Request) -> EnrichmentService:
    return request.app.state.enrichment


@router.post(
    "/webhook",
    response_model=WebhookResponse,
    summary="Validate, enrich and store one raw reading.",
)
async def webhook(
    payload: Any = Body(...),
    service: EnrichmentService = Depends(get_enrichment_service),
) -> WebhookResponse:
    outcome = await service.ingest(payload)
    return WebhookResponse(data=outcome.reading, api_response=outcome.api_response)


@router.get("/health", summary="Liveness with processing counters.")
async def healthcheck(
    request: Request,
    service: EnrichmentService = Depends(get_enrichment_service),
) -> dict[str, Any]:
    counters = service.status()
    return {
        "status": "healthy",
        "processedCount": counters["processedCount"],
        "errorCount": counters["errorCount"],
        "uptime": request.app.state.uptime(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/stats", summary="Processing counters and success rate.")
async def stats(
    request: Request,
    service: EnrichmentService = Depends(get_enrichment_service),
) -> dict[str, Any]:
    return {
        **service.status(),
        "uptime": request.app.state.uptime(),
        "storageUrl": request.app.state.storage_url,
    }
