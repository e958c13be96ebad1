# tests/test_api_server.py
# HTTP surface of the crawler API with crawler, providers and detectors faked

import importlib

import pytest
from fastapi.testclient import TestClient

import api.api_server as server
import core.crawl_monitor as cm
from api.api_server import app, get_crawler, get_provider_manager
from config.settings import AIConfig
from conftest import build_good_content
from core.duplicate_checker import DuplicateCheckResult
from integrations.llm_interface import AIProviderManager
from scrapers.simple_scraper import PageNotFoundError
from scrapers.web_scraper import ArticleContent
from seo.ranking_detector import RankingResult, RankingStats


class FakeCrawler:
    is_running = False
    is_crawling = False

    def __init__(self):
        self.crawls = []

    async def perform_crawl(self, parallel=None, concurrent_limit=None):
        self.crawls.append((parallel, concurrent_limit))
        return []

    def get_crawl_stats(self):
        return {"is_running": False, "results": []}


class FakeDetector:
    domain = "drcarcold.com"

    def check_multiple_keywords(self, keywords):
        return [
            RankingResult(keyword=k, position=i + 1, url="https://drcarcold.com/a", found=i == 0)
            for i, k in enumerate(keywords)
        ]

    def get_ranking_history(self, keyword, days):
        return [{"keyword": keyword, "position": 5, "days": days}]

    def get_ranking_stats(self):
        return RankingStats(total_keywords=2, ranked_keywords=1, average_position=5.0)

    def get_suggested_keywords(self):
        return ["汽車冷媒 推薦"]


FAKE_CRAWLER = FakeCrawler()
MANAGER = AIProviderManager(AIConfig(deepseek_api_key="k", groq_api_key="k", failover_retries=1, provider_delay=0))


@pytest.fixture(scope="module")
def client():
    app.dependency_overrides[get_crawler] = lambda: FAKE_CRAWLER
    app.dependency_overrides[get_provider_manager] = lambda: MANAGER
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def no_database(monkeypatch):
    monkeypatch.setattr(server, "check_connection", lambda: False)
    monkeypatch.setattr(server, "create_seo_ranking_detector", lambda domain=None: FakeDetector())
    monkeypatch.setattr(cm, "get_crawl_logs_since", lambda days: [])
    monkeypatch.setattr(cm, "get_crawl_logs", lambda limit: [{"id": 1, "status": "success"}])


def test_status(client):
    resp = client.get("/status")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "degraded"
    assert data["ai_providers"] == ["deepseek", "groq"]
    assert data["crawler_running"] is False


def test_api_key_required_when_configured(client, monkeypatch):
    monkeypatch.setattr(server, "API_KEY", "secret")
    assert client.post("/convert", json={"text": "车"}).status_code == 401
    resp = client.post("/convert", json={"text": "车"}, headers={"X-API-Key": "secret"})
    assert resp.status_code == 200
    assert client.get("/status").status_code == 200


def test_scrape(client, monkeypatch):
    article = ArticleContent(title="冷媒", content="內容", excerpt="內容...", url="https://example.com/a")
    monkeypatch.setattr(server, "simple_scrape_article", lambda url: article)

    resp = client.post("/scrape", json={"url": "https://example.com/a"})
    assert resp.status_code == 200
    assert resp.json()["article"]["title"] == "冷媒"


def test_scrape_errors(client, monkeypatch):
    def not_found(url):
        raise PageNotFoundError(url)

    def broken(url):
        raise RuntimeError("爬取失敗")

    assert client.post("/scrape", json={"url": "ftp://example.com"}).status_code == 422

    monkeypatch.setattr(server, "simple_scrape_article", not_found)
    assert client.post("/scrape", json={"url": "https://example.com/gone"}).status_code == 404

    monkeypatch.setattr(server, "simple_scrape_article", broken)
    resp = client.post("/scrape", json={"url": "https://example.com/a"})
    assert resp.status_code == 502
    assert resp.json()["detail"] == "爬取失敗"


def test_quality_check(client):
    payload = {
        "title": "汽車冷媒保養指南：夏季冷氣檢查重點",
        "content": build_good_content(),
        "author": "車冷博士",
        "publish_date": "2024-06-01",
        "tags": ["冷媒", "保養", "冷氣"],
        "cover_image": "https://example.com/a.jpg",
        "seo_keywords": ["汽車冷媒"],
    }
    resp = client.post("/quality-check", json=payload)
    assert resp.status_code == 200
    assert resp.json()["score"]["overall"] >= 90
    assert "fixed_article" not in resp.json()


def test_quality_check_auto_fix(client):
    resp = client.post("/quality-check", json={"title": "汽车冷气", "content": "<p>冷气</p>", "auto_fix": True})
    data = resp.json()
    assert data["fixed_article"]["title"] == "汽車冷氣"
    assert data["fixed_article"]["content"] == "冷氣"
    assert data["fixed_score"]["is_traditional_chinese"] is True


def test_duplicate_check(client, monkeypatch):
    class Checker:
        def check_duplicate(self, url, title, content, source_id=None):
            return DuplicateCheckResult(is_duplicate=True, confidence=1.0, duplicate_type="url", existing_article_id=3)

    monkeypatch.setattr(server, "get_duplicate_checker", lambda: Checker())
    resp = client.post("/duplicate-check", json={"url": "https://example.com/a"})
    assert resp.json()["duplicate_type"] == "url"
    assert resp.json()["existing_article_id"] == 3


def test_convert(client):
    resp = client.post("/convert", json={"text": "汽车冷气"})
    assert resp.json()["converted_text"] == "汽車冷氣"


def test_trigger_crawl(client):
    FAKE_CRAWLER.crawls.clear()
    resp = client.post("/crawl", json={"parallel": False, "concurrent_limit": 2})
    assert resp.status_code == 202
    assert resp.json()["status"] == "started"
    assert FAKE_CRAWLER.crawls == [(False, 2)]
    assert client.post("/crawl", json={"concurrent_limit": 50}).status_code == 422


def test_trigger_crawl_while_crawling(client, monkeypatch):
    FAKE_CRAWLER.crawls.clear()
    monkeypatch.setattr(FAKE_CRAWLER, "is_crawling", True, raising=False)
    resp = client.post("/crawl", json={})
    assert resp.status_code == 409
    assert FAKE_CRAWLER.crawls == []


def test_crawl_stats_and_history(client):
    stats = client.get("/crawl/stats?days=3").json()
    assert stats["summary"]["days"] == 3
    assert stats["crawler"]["is_running"] is False

    history = client.get("/crawl/history?limit=1").json()
    assert history["history"] == [{"id": 1, "status": "success"}]


def test_seo_rankings(client):
    resp = client.post("/seo/rankings", json={"keywords": ["汽車冷媒", "冷媒價格"]})
    data = resp.json()
    assert data["domain"] == "drcarcold.com"
    assert data["checked"] == 2
    assert data["found"] == 1
    assert client.post("/seo/rankings", json={"keywords": []}).status_code == 422


def test_seo_history_stats_and_suggestions(client):
    history = client.get("/seo/rankings/history", params={"keyword": "汽車冷媒", "days": 7}).json()
    assert history["history"][0]["days"] == 7
    assert client.get("/seo/rankings/stats").json()["ranked_keywords"] == 1
    assert client.get("/seo/suggested-keywords").json()["keywords"] == ["汽車冷媒 推薦"]


def test_ai_providers_and_reset(client):
    MANAGER.providers[0].failure_count = 2
    providers = client.get("/ai/providers").json()
    assert providers["recommended_order"] == ["deepseek", "groq"]

    resp = client.post("/ai/providers/reset", json={"name": "deepseek"})
    assert resp.status_code == 200
    assert MANAGER.providers[0].failure_count == 0
    assert client.post("/ai/providers/reset", json={"name": "openai"}).status_code == 404
    assert client.post("/ai/providers/reset", json={}).json()["reset"] == "all"


def test_unhandled_errors_become_json(monkeypatch):
    class Broken(FakeDetector):
        def get_ranking_stats(self):
            raise KeyError("boom")

    monkeypatch.setattr(server, "create_seo_ranking_detector", lambda domain=None: Broken())
    resp = TestClient(app, raise_server_exceptions=False).get("/seo/rankings/stats")
    assert resp.status_code == 500
    assert resp.json()["path"] == "/seo/rankings/stats"


@pytest.fixture
def reloaded_with_key(monkeypatch):
    monkeypatch.setenv("NEWS_API_KEY", "from-env")
    yield importlib.reload(server)
    monkeypatch.delenv("NEWS_API_KEY")
    importlib.reload(server)


def test_api_key_read_from_environment(reloaded_with_key):
    assert reloaded_with_key.API_KEY == "from-env"
    fresh = TestClient(reloaded_with_key.app)
    assert fresh.post("/convert", json={"text": "车"}).status_code == 401
    assert fresh.post("/convert", json={"text": "车"}, headers={"X-API-Key": "from-env"}).status_code == 200
