"""Application factories, one per pipeline hop."""

from __future__ import annotations
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Optional

from fastapi import FastAPI, Request, status

from app.enrichment_api import router as enrichment_router
from app.errors import install_error_handlers
from app.ingress_api import router as ingress_router
from app.storage_api import router as storage_router
from logging_config import configure_logging
from services.enrichment import EnrichmentService
from services.forwarding import EnrichmentForwarder, StorageForwarder
from services.ingress import IngressRelay
from services.readings import ReadingService, build_default_reading_service
from settings import get_settings


def _uptime_clock() -> Callable[[], float]:
    started = time.monotonic()
    return lambda: round(time.monotonic() - started, 3)


def _close_on_shutdown(resource: Any) -> Callable[[FastAPI], Any]:
    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            aclose = getattr(resource, "aclose", None)
            if aclose is not None:
                await aclose()

    return lifespan


def create_storage_app(service: Optional[ReadingService] = None) -> FastAPI:
    configure_logging(hop="storage")
    app = FastAPI(
        title="Temperature Storage API",
        description="Persists enriched readings and answers time-series queries.",
        version="0.1.0",
    )
    app.state.readings = service if service is not None else build_default_reading_service()
    app.state.uptime = _uptime_clock()
    install_error_handlers(app)
    app.include_router(storage_router)

    @app.get("/health", status_code=status.HTTP_200_OK, summary="Health check endpoint.")
    def healthcheck(request: Request) -> dict[str, Any]:
        return {
            "status": "healthy",
            "uptime": request.app.state.uptime(),
            "records": len(request.app.state.readings.store),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/", status_code=status.HTTP_200_OK, summary="Service information.")
    async def root() -> dict[str, Any]:
        return {
            "message": "Temperature storage and query API",
            "endpoints": {"temperature": "/api/temperature", "health": "/health"},
        }

    return app


def create_enrichment_app(service: Optional[EnrichmentService] = None) -> FastAPI:
    configure_logging(hop="enrichment")
    settings = get_settings()
    if service is None:
        service = EnrichmentService(
            sink=StorageForwarder(
                settings.storage_url,
                timeout=settings.storage_timeout,
                source=settings.enrichment_source,
            ),
            source=settings.enrichment_source,
        )
    app = FastAPI(
        title="Enrichment Relay",
        description="Enriches raw readings and forwards them to storage.",
        version="0.1.0",
        lifespan=_close_on_shutdown(service.sink),
    )
    app.state.enrichment = service
    app.state.storage_url = getattr(service.sink, "url", settings.storage_url)
    app.state.uptime = _uptime_clock()
    install_error_handlers(app)
    app.include_router(enrichment_router)
    return app


def create_ingress_app(relay: Optional[IngressRelay] = None) -> FastAPI:
    configure_logging(hop="ingress")
    settings = get_settings()
    if relay is None:
        relay = IngressRelay(
            EnrichmentForwarder(settings.enrichment_url, timeout=settings.enrichment_timeout)
        )
    app = FastAPI(
        title="Ingress Relay",
        description="Accepts readings over WebSocket and relays them for enrichment.",
        version="0.1.0",
        lifespan=_close_on_shutdown(relay.forwarder),
    )
    app.state.relay = relay
    app.state.enrichment_url = getattr(relay.forwarder, "url", settings.enrichment_url)
    app.state.uptime = _uptime_clock()
    install_error_handlers(app)
    app.include_router(ingress_router)
    return app
