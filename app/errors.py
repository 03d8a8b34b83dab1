from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from models.errors import PipelineError, SchemaError

logger = logging.getLogger(__name__)


async def _pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    logger.info(
        "%s %s failed: %s",
        request.method,
        request.url.path,
        exc.message,
        extra={"kind": exc.kind, "status": exc.status_code},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def _describe_validation(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "request"
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts) or "invalid request."


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return await _pipeline_error_handler(
        request, SchemaError(f"Invalid request: {_describe_validation(exc)}")
    )


def install_error_handlers(app: FastAPI) -> None:
    """Render every ``PipelineError`` as ``{success: false, kind, message}``.

    FastAPI's own request validation failures are reported as ``schema_error``.
    """
    app.add_exception_handler(PipelineError, _pipeline_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
