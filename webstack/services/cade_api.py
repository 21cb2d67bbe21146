from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote

from webstack.config import settings
from webstack.errors import FunctionError
from webstack.services.upstream import UpstreamClient

logger = logging.getLogger(__name__)

_STATIC_ACTIONS = {
    "health": "/health",
    "subscription": "/api/subscription",
    "workers": "/api/workers",
    "queues": "/api/queues",
}
# action -> (path suffix under /api/domains/<domain>, HTTP method)
_DOMAIN_ACTIONS = {
    "domain-profile": ("profile", "GET"),
    "get-faqs": ("faqs", "GET"),
    "get-articles": ("articles", "GET"),
    "get-content": ("content", "GET"),
    "get-tasks": ("tasks", "GET"),
    "start-crawl": ("crawl", "POST"),
    "generate-content": ("generate", "POST"),
}


@dataclass
class CadeRequest:
    path: str
    method: str = "GET"
    body: Optional[dict[str, Any]] = None


def _domain_path(domain: str, suffix: str) -> str:
    return f"/api/domains/{quote(domain, safe='')}/{suffix}"


def resolve_action(action: str, domain: Optional[str], params: Optional[dict[str, Any]]) -> CadeRequest:
    params = params or {}
    if action in _STATIC_ACTIONS:
        return CadeRequest(path=_STATIC_ACTIONS[action])
    if action in _DOMAIN_ACTIONS:
        if not domain:
            raise FunctionError(message=f"Domain is required for {action}", status_code=400)
        suffix, method = _DOMAIN_ACTIONS[action]
        body = {"domain": domain, **params} if method == "POST" else None
        return CadeRequest(path=_domain_path(domain, suffix), method=method, body=body)
    if action == "login":
        return CadeRequest(
            path="/auth/login",
            method="POST",
            body={"redirect_uri": params.get("redirect_uri"), "domain": domain},
        )
    if action == "verify-session":
        return CadeRequest(path="/auth/verify", method="POST", body={"token": params.get("token")})
    if domain:
        return CadeRequest(path=_domain_path(domain, action))
    return CadeRequest(path=f"/api/{action}")


class CadeApiClient(UpstreamClient):
    service_name = "CADE API"
    status_label = "CADE API"

    async def call(
        self,
        *,
        action: str,
        secret: str,
        domain: Optional[str] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        request = resolve_action(action, domain, params)
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {secret}",
            "X-CADE-Secret": secret,
        }
        url = f"{settings.CADE_API_BASE_URL.rstrip('/')}{request.path}"
        logger.info("Calling CADE", extra={"action": action, "method": request.method, "path": request.path})
        kwargs: dict[str, Any] = {"headers": headers}
        if request.body is not None and request.method != "GET":
            kwargs["json"] = request.body
        return await self._passthrough(request.method, url, **kwargs)
