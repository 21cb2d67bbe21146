"""Async visitor tracker for headless clients (pre-renderers, kiosks, tests).

Sends the same calls the browser makes: ``init`` plus a first ``page_view`` on
start, a ``touch`` every 30 seconds until stopped, and a ``page_view`` per route
change. Tracking never raises; failures are logged and dropped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from webstack.services.session_ids import generate_session_id

logger = logging.getLogger(__name__)

TOUCH_INTERVAL_SECONDS = 30.0
TRACK_PATH = "/functions/visitor-session-track"


class VisitorTracker:
    def __init__(
        self,
        base_url: str,
        *,
        session_id: Optional[str] = None,
        first_page: str = "/",
        page_title: Optional[str] = None,
        referrer: Optional[str] = None,
        domain: Optional[str] = None,
        access_token: Optional[str] = None,
        touch_interval: float = TOUCH_INTERVAL_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.session_id = session_id or generate_session_id()
        self.first_page = first_page
        self.page_title = page_title
        self.referrer = referrer
        self.domain = domain
        self.touch_interval = touch_interval
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else None
        self._client = httpx.AsyncClient(base_url=base_url, headers=headers, transport=transport, timeout=10.0)
        self._stopped = asyncio.Event()
        self._touch_task: Optional[asyncio.Task] = None

    async def _post(self, path: str, payload: dict[str, Any]) -> bool:
        try:
            response = await self._client.post(path, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Visitor tracking call failed", extra={"path": path, "error": str(exc)})
            return False
        return True

    async def _track(self, action: str, **fields: Any) -> bool:
        return await self._post(TRACK_PATH, {"action": action, "session_id": self.session_id, **fields})

    async def start(self) -> None:
        await self._track(
            "init",
            first_page=self.first_page,
            referrer=self.referrer,
            domain=self.domain,
        )
        await self.track_page_view(self.first_page, self.page_title)
        self._stopped.clear()
        self._touch_task = asyncio.create_task(self._touch_loop())

    async def _touch_loop(self) -> None:
        while not self._stopped.is_set():
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.touch_interval)
            except asyncio.TimeoutError:
                await self._track("touch")

    async def track_page_view(self, page_path: str, page_title: Optional[str] = None) -> bool:
        return await self._track("page_view", page_path=page_path, page_title=page_title)

    async def track_tool_interaction(
        self,
        tool_name: str,
        tool_type: Optional[str] = None,
        *,
        page_path: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> bool:
        return await self._post(
            "/tracking/tool-interactions",
            {
                "session_id": self.session_id,
                "tool_name": tool_name,
                "tool_type": tool_type,
                "page_path": page_path,
                "metadata": metadata or {},
            },
        )

    async def track_form_submission(
        self,
        form_name: str,
        form_data: Optional[dict[str, Any]] = None,
        *,
        page_path: Optional[str] = None,
    ) -> bool:
        return await self._post(
            "/tracking/form-submissions",
            {
                "session_id": self.session_id,
                "form_name": form_name,
                "form_data": form_data or {},
                "page_path": page_path,
            },
        )

    async def save_lead(
        self,
        email: str,
        *,
        phone: Optional[str] = None,
        domain: Optional[str] = None,
        metric_type: Optional[str] = None,
        source_page: Optional[str] = None,
    ) -> bool:
        return await self._post(
            "/tracking/leads",
            {
                "email": email,
                "phone": phone,
                "domain": domain,
                "metric_type": metric_type,
                "source_page": source_page,
            },
        )

    async def stop(self) -> None:
        self._stopped.set()
        if self._touch_task is not None:
            await self._touch_task
            self._touch_task = None
        await self._client.aclose()

    async def __aenter__(self) -> "VisitorTracker":
        await self.start()
        return self

    async def __aexit__(self, *_exc: Any) -> None:
        await self.stop()
