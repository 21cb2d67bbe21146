from __future__ import annotations

import logging
from typing import Any

from webstack.config import settings
from webstack.errors import ConfigurationError
from webstack.services.upstream import UpstreamClient

logger = logging.getLogger(__name__)

BRON_FEED_FILES: dict[str, str] = {
    "articles": "Article",
    "backlinks": "Backlink",
    "rankings": "Ranking",
    "keywords": "Keyword",
    "clusters": "Cluster",
    "deeplinks": "DeepLink",
    "authority": "Authority",
    "profile": "Profile",
    "stats": "Stats",
    "campaigns": "Campaign",
    "reports": "Report",
    "links": "Link",
    "all": "All",
}

_HEADERS = {"Accept": "application/json", "User-Agent": "WebStack-SEO-Dashboard/1.0"}


def feed_file_for(endpoint: str) -> str:
    # Unknown endpoints are treated as a feed file name.
    return f"{BRON_FEED_FILES.get(endpoint, endpoint)}.php"


class BronApiClient(UpstreamClient):
    service_name = "BRON API"

    def _credentials(self) -> dict[str, str]:
        if not (settings.BRON_API_ID and settings.BRON_API_KEY and settings.BRON_API_SECRET):
            raise ConfigurationError("BRON API not configured")
        return {
            "apiid": settings.BRON_API_ID,
            "apikey": settings.BRON_API_KEY,
            "kkyy": settings.BRON_API_SECRET,
        }

    def build_request(self, *, domain: str, endpoint: str) -> tuple[str, dict[str, str]]:
        params: dict[str, str] = {}
        if endpoint == "articles":
            params["feedit"] = "1"
        params["domain"] = domain
        params.update(self._credentials())
        url = f"{settings.BRON_FEED_BASE_URL.rstrip('/')}/{feed_file_for(endpoint)}"
        return url, params

    async def fetch(self, *, domain: str, endpoint: str) -> Any:
        url, params = self.build_request(domain=domain, endpoint=endpoint)
        logger.info("Calling BRON feed", extra={"endpoint": endpoint, "domain": domain})
        return await self._passthrough("GET", url, params=params, headers=_HEADERS)
