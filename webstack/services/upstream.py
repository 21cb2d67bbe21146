from __future__ import annotations

import logging
from typing import Any

import httpx

from webstack.config import settings
from webstack.errors import UpstreamApiError

logger = logging.getLogger(__name__)


def error_detail_from_response(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return text or response.reason_phrase

    if isinstance(body, dict):
        for key in ("error_description", "error", "message", "detail"):
            detail = body.get(key)
            if isinstance(detail, str) and detail:
                return detail
            if isinstance(detail, dict) and isinstance(detail.get("message"), str):
                return detail["message"]
    return str(body)


def parse_body(response: httpx.Response) -> Any:
    """Decode JSON, wrapping non-JSON payloads as `{"raw": text, "parsed": False}`."""
    text = response.text
    try:
        return response.json()
    except ValueError:
        return {"raw": text, "parsed": False}


class UpstreamClient:
    """Base for the outbound JSON integrations. `transport` exists so tests can mount httpx.MockTransport."""

    service_name = "upstream"
    status_label = "API"

    def __init__(self, *, timeout: float | None = None, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._timeout = timeout or settings.UPSTREAM_TIMEOUT_SECONDS
        self._transport = transport

    def _client(self, **kwargs: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport, **kwargs)

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            async with self._client() as client:
                return await client.request(method, url, **kwargs)
        except httpx.RequestError as exc:
            logger.warning(
                "Upstream request failed",
                extra={"service": self.service_name, "url": url, "error": str(exc)},
            )
            raise UpstreamApiError(
                message=f"Network error while calling {self.service_name}: {exc}",
                status_code=500,
            ) from exc

    async def _passthrough(self, method: str, url: str, **kwargs: Any) -> Any:
        """Forward a request and return its decoded body, keeping the upstream status on failure."""
        response = await self._send(method, url, **kwargs)
        if response.status_code >= 400:
            logger.warning(
                "Upstream returned an error status",
                extra={"service": self.service_name, "status_code": response.status_code},
            )
            raise UpstreamApiError(
                message=f"{self.status_label} returned {response.status_code}",
                status_code=response.status_code,
                details=response.text,
                upstream_status=response.status_code,
            )
        return parse_body(response)

    async def _json_object(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._send(method, url, **kwargs)
        if response.status_code >= 400:
            raise UpstreamApiError(
                message=error_detail_from_response(response),
                status_code=response.status_code,
                details=parse_body(response),
                upstream_status=response.status_code,
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamApiError(message=f"{self.service_name} returned invalid JSON", status_code=500) from exc
        if not isinstance(body, dict):
            raise UpstreamApiError(message=f"{self.service_name} response must be a JSON object", status_code=500)
        return body
