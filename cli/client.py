from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the storage API and the hops' health endpoints."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        headers = {"Authorization": f"Bearer {config.token}"} if config.token else {}
        self._client = httpx.Client(
            base_url=config.base_url, timeout=config.timeout, headers=headers
        )

    def close(self) -> None:
        self._client.close()

    def insert_reading(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/api/temperature", json=payload)

    def latest(self, city: Optional[str] = None, limit: int = 3) -> Dict[str, Any]:
        params: Dict[str, Any] = {"limit": limit}
        if city:
            params["city"] = city
        return self._request("GET", "/api/temperature/latest", params=params)

    def city_stats(
        self,
        city: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Dict[str, Any]:
        params = {
            key: value
            for key, value in (("startDate", start_date), ("endDate", end_date))
            if value
        }
        return self._request("GET", f"/api/temperature/stats/{city}", params=params)

    def health(self, url: str) -> Dict[str, Any]:
        """Fetch ``{url}/health``; never raises, reports failures in the payload."""
        try:
            response = self._client.get(f"{url.rstrip('/')}/health")
        except httpx.HTTPError as exc:
            return {"status": "unreachable", "error": str(exc)}
        try:
            payload = response.json()
        except ValueError:
            payload = {"body": response.text.strip()}
        if not response.is_success:
            return {"status": f"http {response.status_code}", **payload}
        return payload

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(f"Could not reach {self._config.base_url}: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1) from exc
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("message") or data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
