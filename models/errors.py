"""Error taxonomy shared by every hop of the pipeline."""

from __future__ import annotations

from typing import Dict, Type


class PipelineError(Exception):
    """Base class carrying a stable machine-readable ``kind``."""

    kind = "pipeline_error"
    status_code = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_payload(self) -> dict[str, object]:
        return {"success": False, "kind": self.kind, "message": self.message}


class SchemaError(PipelineError):
    """A field is missing or has the wrong type."""

    kind = "schema_error"
    status_code = 400


class RangeError(PipelineError):
    """A field is well-typed but outside its allowed domain."""

    kind = "range_error"
    status_code = 400


class DuplicateIdError(PipelineError):
    kind = "duplicate_id"
    status_code = 409


class NotFoundError(PipelineError):
    kind = "not_found"
    status_code = 404


class UpstreamUnavailableError(PipelineError):
    """The next hop could not be reached, timed out, or failed internally."""

    kind = "upstream_unavailable"
    status_code = 502


class AuthError(PipelineError):
    kind = "auth_error"
    status_code = 401


_ERRORS_BY_KIND: Dict[str, Type[PipelineError]] = {
    cls.kind: cls
    for cls in (
        SchemaError,
        RangeError,
        DuplicateIdError,
        NotFoundError,
        UpstreamUnavailableError,
        AuthError,
    )
}


def error_for_kind(kind: object) -> Type[PipelineError]:
    """Map a reported ``kind`` back to its exception class."""
    if isinstance(kind, str):
        return _ERRORS_BY_KIND.get(kind, UpstreamUnavailableError)
    return UpstreamUnavailableError
