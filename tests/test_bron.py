import asyncio

import httpx
import pytest

from webstack.errors import ConfigurationError
from webstack.routers import bron as bron_router
from webstack.services import bron_normalize as normalize
from webstack.services.bron_api import BronApiClient, feed_file_for
from webstack.services.bron_dashboard import DASHBOARD_ENDPOINTS, load_dashboard


def test_first_skips_falsy_candidates():
    item = {"id": 0, "article_id": "", "alt": "a-7"}
    assert normalize.first(item, "id", "article_id", "alt") == "a-7"
    assert normalize.first(item, "id", "article_id", default="fallback") == "fallback"


def test_parse_number():
    assert normalize.parse_number("42") == 42
    assert normalize.parse_number("3.5") == 3.5
    assert normalize.parse_number("") == 0
    assert normalize.parse_number("n/a") is None
    assert normalize.parse_number(None) is None
    assert normalize.parse_number(7) == 7


def test_parse_keywords():
    assert normalize.parse_keywords("seo, links ,, content") == ["seo", "links", "content"]
    assert normalize.parse_keywords(["a", 2]) == ["a", "2"]
    assert normalize.parse_keywords(None) == []
    assert normalize.parse_keywords({"k": 1}) == []


def test_extract_domain():
    assert normalize.extract_domain("https://blog.example.com/post") == "blog.example.com"
    assert normalize.extract_domain("not a url") == "not a url"
    assert normalize.extract_domain(None) == ""


def test_status_mappers():
    assert normalize.map_status("Published") == "published"
    assert normalize.map_status("scheduled-later") == "scheduled"
    assert normalize.map_status(None) == "pending"
    assert normalize.map_backlink_status("DEAD") == "lost"
    assert normalize.map_backlink_status("waiting") == "pending"
    assert normalize.map_backlink_status("live") == "active"
    assert normalize.map_campaign_status("finished") == "completed"
    assert normalize.map_campaign_status("stopped") == "paused"
    assert normalize.map_campaign_status("running") == "active"
    assert normalize.map_intent("Transactional") == "transactional"
    assert normalize.map_intent("commercial investigation") == "commercial"
    assert normalize.map_intent("other") is None


def test_process_articles_from_wrapped_payload():
    articles = normalize.process_articles(
        {
            "articles": [
                {
                    "article_id": 12,
                    "name": "Ten SEO tips",
                    "link": "https://example.com/tips",
                    "status": "published",
                    "keywords": "seo, tips",
                    "da": "35",
                },
                "garbage",
            ]
        },
        "example.com",
    )

    assert len(articles) == 2
    assert articles[0].id == "12"
    assert articles[0].title == "Ten SEO tips"
    assert articles[0].domain == "example.com"
    assert articles[0].keywords == ["seo", "tips"]
    assert articles[0].daScore == 35
    assert articles[1].id == "article-1"
    assert articles[1].title == "Article 2"
    assert articles[1].status == "pending"


def test_process_backlinks_derives_source_domain():
    [backlink] = normalize.process_backlinks([{"source": "https://ref.example.org/a", "nofollow": True}])
    assert backlink.sourceDomain == "ref.example.org"
    assert backlink.anchorText == "Link"
    assert backlink.dofollow is False
    assert backlink.daScore == 0


def test_process_authority_and_stats_sections():
    authority = normalize.process_authority({"metrics": {"da": 40, "rd": "120"}})
    assert authority.domainAuthority == 40
    assert authority.referringDomains == 120
    assert authority.totalBacklinks == 0

    stats = normalize.process_stats({"total_articles": 5, "published": 3})
    assert stats.totalArticles == 5
    assert stats.publishedArticles == 3
    assert normalize.process_stats([]) is None


def test_feed_file_mapping():
    assert feed_file_for("deeplinks") == "DeepLink.php"
    assert feed_file_for("Custom") == "Custom.php"


def test_build_request_adds_credentials_and_feedit():
    url, params = BronApiClient().build_request(domain="example.com", endpoint="articles")
    assert url.endswith("/Article.php")
    assert params == {
        "feedit": "1",
        "domain": "example.com",
        "apiid": "bron-id",
        "apikey": "bron-key",
        "kkyy": "bron-secret",
    }

    _url, params = BronApiClient().build_request(domain="example.com", endpoint="rankings")
    assert "feedit" not in params


def test_build_request_requires_credentials(monkeypatch):
    monkeypatch.setattr("webstack.services.bron_api.settings.BRON_API_KEY", None)
    with pytest.raises(ConfigurationError):
        BronApiClient().build_request(domain="example.com", endpoint="articles")


def _dashboard_handler(request: httpx.Request) -> httpx.Response:
    feed = request.url.path.rsplit("/", 1)[-1]
    if feed == "Article.php":
        return httpx.Response(200, json=[{"id": "a1", "title": "Hello", "status": "published"}])
    if feed == "Backlink.php":
        return httpx.Response(500, text="boom")
    if feed == "Authority.php":
        return httpx.Response(200, json={"authority": {"domain_authority": 22}})
    if feed == "Profile.php":
        return httpx.Response(200, text="<html>not json</html>")
    return httpx.Response(200, json=[])


def test_load_dashboard_isolates_failures():
    client = BronApiClient(transport=httpx.MockTransport(_dashboard_handler))
    result = asyncio.run(load_dashboard(client, "example.com"))

    assert set(result.errors) == set(DASHBOARD_ENDPOINTS)
    assert result.errors["backlinks"] == "API returned 500"
    assert result.errors["articles"] is None
    assert [article.id for article in result.data.articles] == ["a1"]
    assert result.data.backlinks == []
    assert result.data.authority.domainAuthority == 22
    assert result.hasAnyData is True
    assert result.lastUpdated is not None


def test_bron_api_route_wraps_non_json(api_client, monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="plain text feed")

    monkeypatch.setattr(bron_router, "bron_client", BronApiClient(transport=httpx.MockTransport(handler)))
    resp = api_client.post("/functions/bron-api", json={"domain": "example.com", "endpoint": "stats"})
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "data": {"raw": "plain text feed", "parsed": False},
        "endpoint": "stats",
    }


def test_bron_api_route_requires_domain(api_client):
    resp = api_client.post("/functions/bron-api", json={"endpoint": "stats"})
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Domain is required"}


def test_bron_api_route_forwards_upstream_status(api_client, monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, text="forbidden")

    monkeypatch.setattr(bron_router, "bron_client", BronApiClient(transport=httpx.MockTransport(handler)))
    resp = api_client.post("/functions/bron-api", json={"domain": "example.com", "endpoint": "keywords"})
    assert resp.status_code == 403
    assert resp.json() == {
        "success": False,
        "error": "API returned 403",
        "details": "forbidden",
        "endpoint": "keywords",
    }


def test_bron_feed_route(api_client, monkeypatch):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["feedit"] = request.url.params.get("feedit")
        return httpx.Response(200, json=[{"id": 1}])

    monkeypatch.setattr(bron_router, "bron_client", BronApiClient(transport=httpx.MockTransport(handler)))
    resp = api_client.post("/functions/bron-feed", json={"domain": "example.com"})
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "data": [{"id": 1}]}
    assert seen["path"].endswith("/Article.php")
    assert seen["feedit"] == "1"


def test_dashboard_route(api_client, monkeypatch):
    monkeypatch.setattr(
        bron_router, "bron_client", BronApiClient(transport=httpx.MockTransport(_dashboard_handler))
    )
    resp = api_client.post("/bron/dashboard", json={"domain": "example.com"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["domain"] == "example.com"
    assert body["data"]["articles"][0]["title"] == "Hello"
    assert body["errors"]["backlinks"] == "API returned 500"


def test_dashboard_route_without_credentials(api_client, monkeypatch):
    monkeypatch.setattr("webstack.services.bron_api.settings.BRON_API_ID", None)
    resp = api_client.post("/bron/dashboard", json={"domain": "example.com"})
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "BRON API not configured"}
