from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from webstack.schemas.bron import BronDashboardData, BronDashboardResponse
from webstack.services import bron_normalize as normalize
from webstack.services.bron_api import BronApiClient

logger = logging.getLogger(__name__)

# endpoint -> (dashboard field, normalizer taking (payload, domain))
DASHBOARD_ENDPOINTS: dict[str, tuple[str, Callable[[Any, str], Any]]] = {
    "articles": ("articles", normalize.process_articles),
    "backlinks": ("backlinks", lambda data, _domain: normalize.process_backlinks(data)),
    "rankings": ("rankings", lambda data, _domain: normalize.process_rankings(data)),
    "keywords": ("keywords", lambda data, _domain: normalize.process_keywords(data)),
    "clusters": ("clusters", lambda data, _domain: normalize.process_clusters(data)),
    "deeplinks": ("deepLinks", lambda data, _domain: normalize.process_deep_links(data)),
    "authority": ("authority", lambda data, _domain: normalize.process_authority(data)),
    "profile": ("profile", normalize.process_profile),
    "stats": ("stats", lambda data, _domain: normalize.process_stats(data)),
    "campaigns": ("campaigns", lambda data, _domain: normalize.process_campaigns(data)),
}


async def load_dashboard(client: BronApiClient, domain: str) -> BronDashboardResponse:
    """Fetch every dashboard feed concurrently; one failing feed never blocks the others."""
    endpoints = list(DASHBOARD_ENDPOINTS)
    results = await asyncio.gather(
        *(client.fetch(domain=domain, endpoint=endpoint) for endpoint in endpoints),
        return_exceptions=True,
    )

    data = BronDashboardData()
    errors: dict[str, Optional[str]] = {}
    last_updated: Optional[str] = None
    for endpoint, result in zip(endpoints, results):
        field_name, processor = DASHBOARD_ENDPOINTS[endpoint]
        if isinstance(result, Exception):
            logger.warning(
                "BRON feed failed",
                extra={"endpoint": endpoint, "domain": domain, "error": str(result)},
            )
            errors[endpoint] = str(result) or "Failed to fetch"
            continue
        try:
            setattr(data, field_name, processor(result, domain))
        except (TypeError, ValueError) as exc:
            logger.warning("BRON payload could not be normalized", extra={"endpoint": endpoint, "error": str(exc)})
            errors[endpoint] = str(exc)
            continue
        errors[endpoint] = None
        last_updated = datetime.now(timezone.utc).isoformat()

    return BronDashboardResponse(
        domain=domain,
        data=data,
        errors=errors,
        hasAnyData=data.has_any_data,
        lastUpdated=last_updated,
    )
