"""HTTP clients for the Ingress -> Enrichment and Enrichment -> Storage hops."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from app.schemas import EnrichedReading, RawReading
from models.errors import PipelineError, UpstreamUnavailableError, error_for_kind

logger = logging.getLogger(__name__)


class HttpForwarder:
    """POSTs JSON to one downstream endpoint and normalizes its failures.

    Transport errors, timeouts and 5xx responses surface as
    ``UpstreamUnavailableError``. A 4xx response carrying a known ``kind`` is
    re-raised as that error so the caller sees the downstream verdict.
    """

    def __init__(
        self,
        base_url: str,
        path: str,
        timeout: float,
        source: str,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.path = path
        self.source = source
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.path}"

    async def aclose(self) -> None:
        await self._client.aclose()

    async def post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._client.post(
                self.path,
                json=payload,
                headers={"X-Source": self.source},
            )
        except httpx.TimeoutException as exc:
            logger.warning("Downstream call timed out", extra={"url": self.url})
            raise UpstreamUnavailableError(f"Timed out calling {self.url}.") from exc
        except httpx.TransportError as exc:
            logger.warning("Downstream unreachable: %s", exc, extra={"url": self.url})
            raise UpstreamUnavailableError(f"Could not reach {self.url}: {exc}") from exc

        body = self._decode(response)
        if response.is_success:
            return body
        raise self._error_from(response, body)

    @staticmethod
    def _decode(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {"message": response.text.strip()}
        return data if isinstance(data, dict) else {"data": data}

    def _error_from(self, response: httpx.Response, body: Dict[str, Any]) -> PipelineError:
        message = body.get("message") or body.get("detail") or "no detail provided."
        if response.status_code >= 500:
            error_cls: type[PipelineError] = UpstreamUnavailableError
        else:
            error_cls = error_for_kind(body.get("kind"))
        logger.warning(
            "Downstream rejected request with status %s",
            response.status_code,
            extra={"url": self.url, "kind": error_cls.kind},
        )
        return error_cls(f"{self.url} responded {response.status_code}: {message}")


class StorageForwarder(HttpForwarder):
    def __init__(
        self,
        base_url: str,
        timeout: float,
        client: Optional[httpx.AsyncClient] = None,
        source: str = "enrichment-relay",
    ) -> None:
        super().__init__(
            base_url,
            "/api/temperature",
            timeout=timeout,
            source=source,
            client=client,
        )

    async def insert(self, reading: EnrichedReading) -> Dict[str, Any]:
        return await self.post(reading.to_wire())


class EnrichmentForwarder(HttpForwarder):
    def __init__(
        self,
        base_url: str,
        timeout: float,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(
            base_url,
            "/webhook",
            timeout=timeout,
            source="ingress-relay",
            client=client,
        )

    async def ingest(self, reading: RawReading) -> Dict[str, Any]:
        return await self.post(reading.to_wire())
