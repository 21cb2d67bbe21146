"""Normalize loosely shaped BRON feed payloads into the dashboard models.

Feed rows arrive with inconsistent field names depending on the feed version, so
every output field is resolved through an ordered list of candidate keys. A key
counts as present only when its value is truthy in the JSON sense (0, "" and
null fall through to the next candidate).
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlparse

from webstack.schemas.bron import (
    BronArticle,
    BronAuthority,
    BronBacklink,
    BronCampaign,
    BronCluster,
    BronDeepLink,
    BronKeyword,
    BronProfile,
    BronRanking,
    BronStats,
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _truthy(value: Any) -> bool:
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return True


def first(item: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = item.get(key)
        if _truthy(value):
            return value
    return default


def _text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def parse_number(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return None if math.isnan(value) else value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return 0
        try:
            number = float(stripped)
        except ValueError:
            return None
        if math.isnan(number):
            return None
        return int(number) if number.is_integer() else number
    return None


def parse_keywords(keywords: Any) -> list[str]:
    if not keywords:
        return []
    if isinstance(keywords, list):
        return [str(keyword) for keyword in keywords]
    if isinstance(keywords, str):
        return [keyword.strip() for keyword in keywords.split(",") if keyword.strip()]
    return []


def extract_domain(url: Optional[str]) -> str:
    if not url:
        return ""
    parsed = urlparse(url)
    if parsed.scheme and parsed.hostname:
        return parsed.hostname
    parts = url.split("/")
    return parts[2] if len(parts) > 2 and parts[2] else url


def map_status(status: Any) -> str:
    value = str(status).lower()
    if "publish" in value:
        return "published"
    if "schedul" in value:
        return "scheduled"
    return "pending"


def map_backlink_status(status: Any) -> str:
    value = str(status).lower()
    if any(marker in value for marker in ("lost", "dead", "removed")):
        return "lost"
    if "pending" in value or "wait" in value:
        return "pending"
    return "active"


def map_campaign_status(status: Any) -> str:
    value = str(status).lower()
    if any(marker in value for marker in ("complete", "done", "finish")):
        return "completed"
    if "pause" in value or "stop" in value:
        return "paused"
    return "active"


def map_intent(intent: Any) -> Optional[str]:
    if not intent:
        return None
    value = str(intent).lower()
    if "info" in value:
        return "informational"
    if "trans" in value or "buy" in value:
        return "transactional"
    if "nav" in value:
        return "navigational"
    if "comm" in value:
        return "commercial"
    return None


def _rows(data: Any, *keys: str) -> list[dict[str, Any]]:
    if not data:
        return []
    if isinstance(data, list):
        rows = data
    elif isinstance(data, dict):
        rows = first(data, *keys, "data", default=[])
    else:
        return []
    if not isinstance(rows, list):
        return []
    return [row if isinstance(row, dict) else {} for row in rows]


def _section(data: Any, *keys: str) -> Optional[dict[str, Any]]:
    if not data or not isinstance(data, dict):
        return None
    section = first(data, *keys, default=data)
    return section if isinstance(section, dict) else data


def process_articles(data: Any, domain: str) -> list[BronArticle]:
    return [
        BronArticle(
            id=str(first(item, "id", "article_id", default=f"article-{i}")),
            title=str(first(item, "title", "name", default=f"Article {i + 1}")),
            url=str(first(item, "url", "link", "article_url", default="")),
            domain=str(first(item, "domain", "site_domain", default=domain)),
            publishedAt=str(first(item, "published_at", "created_at", "date", default=_now_iso())),
            status=map_status(item.get("status")),
            keywords=parse_keywords(item.get("keywords")),
            anchorText=_text(first(item, "anchor_text", "anchor")),
            targetUrl=_text(first(item, "target_url", "target")),
            daScore=parse_number(first(item, "da", "da_score", "domain_authority")),
            drScore=parse_number(first(item, "dr", "dr_score", "domain_rating")),
        )
        for i, item in enumerate(_rows(data, "articles"))
    ]


def process_backlinks(data: Any) -> list[BronBacklink]:
    backlinks = []
    for i, item in enumerate(_rows(data, "backlinks", "links")):
        source_url = first(item, "source_url", "source")
        backlinks.append(
            BronBacklink(
                id=str(first(item, "id", "backlink_id", default=f"bl-{i}")),
                sourceUrl=str(first(item, "source_url", "source", "from_url", default="")),
                sourceDomain=str(first(item, "source_domain", default=None) or extract_domain(_text(source_url))),
                targetUrl=str(first(item, "target_url", "target", "to_url", default="")),
                anchorText=str(first(item, "anchor_text", "anchor", default="Link")),
                daScore=parse_number(first(item, "da", "da_score", "domain_authority")) or 0,
                drScore=parse_number(first(item, "dr", "dr_score", "domain_rating")) or 0,
                createdAt=str(first(item, "created_at", "date", "discovered_at", default=_now_iso())),
                status=map_backlink_status(item.get("status")),
                dofollow=item.get("dofollow") is not False and item.get("nofollow") is not True,
            )
        )
    return backlinks


def process_rankings(data: Any) -> list[BronRanking]:
    return [
        BronRanking(
            id=str(first(item, "id", "ranking_id", default=f"rank-{i}")),
            keyword=str(first(item, "keyword", "query", "term", default="")),
            position=parse_number(first(item, "position", "rank")) or 0,
            previousPosition=parse_number(first(item, "previous_position", "prev_rank", "last_position")),
            url=str(first(item, "url", "page", "landing_page", default="")),
            searchVolume=parse_number(first(item, "search_volume", "volume")),
            difficulty=parse_number(first(item, "difficulty", "kd", "keyword_difficulty")),
            updatedAt=str(first(item, "updated_at", "date", "checked_at", default=_now_iso())),
        )
        for i, item in enumerate(_rows(data, "rankings", "positions"))
    ]


def process_keywords(data: Any) -> list[BronKeyword]:
    return [
        BronKeyword(
            id=str(first(item, "id", "keyword_id", default=f"kw-{i}")),
            keyword=str(first(item, "keyword", "term", "query", default="")),
            cluster=_text(first(item, "cluster", "group", "category")),
            volume=parse_number(first(item, "volume", "search_volume")),
            difficulty=parse_number(first(item, "difficulty", "kd")),
            intent=map_intent(item.get("intent")),
            articles=parse_number(first(item, "articles", "article_count")) or 0,
        )
        for i, item in enumerate(_rows(data, "keywords", "terms"))
    ]


def process_clusters(data: Any) -> list[BronCluster]:
    return [
        BronCluster(
            id=str(first(item, "id", "cluster_id", default=f"cluster-{i}")),
            name=str(first(item, "name", "cluster_name", "title", default=f"Cluster {i + 1}")),
            keywords=parse_keywords(item.get("keywords")),
            articles=parse_number(first(item, "articles", "article_count")) or 0,
            avgPosition=parse_number(first(item, "avg_position", "average_position")),
        )
        for i, item in enumerate(_rows(data, "clusters", "groups"))
    ]


def process_deep_links(data: Any) -> list[BronDeepLink]:
    return [
        BronDeepLink(
            id=str(first(item, "id", "link_id", default=f"dl-{i}")),
            sourceUrl=str(first(item, "source_url", "from", "source", default="")),
            targetUrl=str(first(item, "target_url", "to", "target", default="")),
            anchorText=str(first(item, "anchor_text", "anchor", default="Link")),
            createdAt=str(first(item, "created_at", "date", default=_now_iso())),
            clicks=parse_number(item.get("clicks")),
        )
        for i, item in enumerate(_rows(data, "deeplinks", "internal_links"))
    ]


def process_authority(data: Any) -> Optional[BronAuthority]:
    auth = _section(data, "authority", "metrics")
    if auth is None:
        return None
    return BronAuthority(
        domainAuthority=parse_number(first(auth, "da", "domain_authority")) or 0,
        domainRating=parse_number(first(auth, "dr", "domain_rating")) or 0,
        trustFlow=parse_number(first(auth, "tf", "trust_flow")),
        citationFlow=parse_number(first(auth, "cf", "citation_flow")),
        referringDomains=parse_number(first(auth, "referring_domains", "rd", "ref_domains")) or 0,
        totalBacklinks=parse_number(first(auth, "total_backlinks", "backlinks", "total_links")) or 0,
        organicKeywords=parse_number(first(auth, "organic_keywords", "keywords")),
        organicTraffic=parse_number(first(auth, "organic_traffic", "traffic")),
        updatedAt=str(first(auth, "updated_at", "last_update", default=_now_iso())),
    )


def process_profile(data: Any, domain: str) -> Optional[BronProfile]:
    profile = _section(data, "profile", "domain")
    if profile is None:
        return None
    return BronProfile(
        domain=str(first(profile, "domain", default=domain)),
        category=_text(first(profile, "category", "niche", "industry")),
        language=_text(first(profile, "language", "lang")),
        country=_text(first(profile, "country", "geo")),
        description=_text(first(profile, "description", "about")),
        lastCrawled=_text(first(profile, "last_crawled", "crawled_at")),
        pagesIndexed=parse_number(first(profile, "pages_indexed", "indexed_pages")),
    )


def process_stats(data: Any) -> Optional[BronStats]:
    stats = _section(data, "stats", "summary")
    if stats is None:
        return None
    return BronStats(
        totalArticles=parse_number(first(stats, "total_articles", "articles")) or 0,
        publishedArticles=parse_number(first(stats, "published_articles", "published")) or 0,
        pendingArticles=parse_number(first(stats, "pending_articles", "pending")) or 0,
        totalBacklinks=parse_number(first(stats, "total_backlinks", "backlinks")) or 0,
        activeBacklinks=parse_number(first(stats, "active_backlinks", "active")) or 0,
        totalKeywords=parse_number(first(stats, "total_keywords", "keywords")) or 0,
        avgDa=parse_number(first(stats, "avg_da", "average_da")) or 0,
        avgDr=parse_number(first(stats, "avg_dr", "average_dr")) or 0,
    )


def process_campaigns(data: Any) -> list[BronCampaign]:
    return [
        BronCampaign(
            id=str(first(item, "id", "campaign_id", default=f"campaign-{i}")),
            name=str(first(item, "name", "campaign_name", default=f"Campaign {i + 1}")),
            status=map_campaign_status(item.get("status")),
            startDate=str(first(item, "start_date", "started_at", "created_at", default=_now_iso())),
            endDate=_text(first(item, "end_date", "ended_at")),
            articlesCreated=parse_number(first(item, "articles_created", "articles")) or 0,
            backlinksBuilt=parse_number(first(item, "backlinks_built", "backlinks")) or 0,
        )
        for i, item in enumerate(_rows(data, "campaigns"))
    ]
