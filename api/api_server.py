"""
FastAPI server for the automotive news crawler.

Thin HTTP boundary over the crawler, content-quality scorer, duplicate
checker, SEO ranking detector and AI provider chain. Every endpoint except
``/status`` requires the ``X-API-Key`` header when ``NEWS_API_KEY`` is set.
"""

import os
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, Depends, FastAPI, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
import uvicorn

from config.settings import crawler_config
from core import get_duplicate_checker, get_quality_checker
from core.content_quality import ArticleData
from core.crawl_monitor import CrawlMonitor
from integrations.llm_interface import AIProviderManager, get_ai_provider_manager
from scrapers.scraper_engine import AutoNewsCrawler, CrawlInProgressError, get_auto_news_crawler
from scrapers.simple_scraper import PageNotFoundError, simple_scrape_article
from scrapers.web_scraper import scrape_article
from seo.ranking_detector import create_seo_ranking_detector
from tools.postgres_tools import check_connection
from Utils.chinese_converter import generate_conversion_report

logger = logging.getLogger(__name__)
API_KEY: str = os.getenv("NEWS_API_KEY", "")

__all__ = ["app", "main"]


# ---------------------------------------------------------------------------
# Pydantic Models
# ---------------------------------------------------------------------------


def _check_http_url(v: str) -> str:
    v = v.strip()
    if not v.startswith(("http://", "https://")):
        raise ValueError("url must be a valid HTTP/HTTPS URL")
    return v


class ScrapeRequest(BaseModel):
    """Request payload for ``POST /scrape``.

    Attributes:
        url: Article page to scrape.
        use_browser: Use the Playwright-backed scraper instead of the static one.
    """

    url: str
    use_browser: bool = False

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return _check_http_url(v)


class QualityCheckRequest(BaseModel):
    title: str = ""
    content: str = ""
    author: Optional[str] = None
    publish_date: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    cover_image: Optional[str] = None
    excerpt: Optional[str] = None
    seo_keywords: List[str] = Field(default_factory=list)
    auto_fix: bool = False


class DuplicateCheckRequest(BaseModel):
    url: str
    title: str = ""
    content: str = ""
    source_id: Optional[str] = None


class CrawlRequest(BaseModel):
    parallel: Optional[bool] = None
    concurrent_limit: Optional[int] = Field(default=None, ge=1, le=10)


class RankingCheckRequest(BaseModel):
    """Request payload for ``POST /seo/rankings``.

    Attributes:
        keywords: Keywords to check; blanks are ignored.
        domain: Domain to look for; defaults to ``SITE_DOMAIN``.
    """

    keywords: List[str] = Field(..., min_length=1, max_length=50)
    domain: Optional[str] = None


class ProviderResetRequest(BaseModel):
    name: Optional[str] = None


class ConvertRequest(BaseModel):
    text: str


class HealthResponse(BaseModel):
    """Response model for ``GET /status``.

    Attributes:
        status: ``"healthy"`` or ``"degraded"``.
        timestamp: UTC ISO-8601 timestamp.
        db_connected: Whether Postgres is reachable.
        crawler_running: Whether the periodic crawl loop is active.
        ai_providers: Names of configured AI providers in priority order.
        auto_publish: Whether crawled articles are published immediately.
        version: API server version string.
    """

    status: str
    timestamp: str
    db_connected: bool
    crawler_running: bool
    ai_providers: List[str]
    auto_publish: bool
    version: str = "1.0.0"


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def verify_api_key(x_api_key: str = Header("", alias="X-API-Key")) -> str:
    """Check ``X-API-Key`` against ``NEWS_API_KEY``; open when unset.

    Raises:
        HTTPException: 401 if the key does not match.
    """
    if not API_KEY:
        return "no_auth"
    if x_api_key != API_KEY:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return x_api_key


def get_crawler() -> AutoNewsCrawler:
    return get_auto_news_crawler()


def get_provider_manager() -> AIProviderManager:
    return get_ai_provider_manager()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[type-arg]
    logger.info("API server starting | port=%s", os.getenv("API_PORT", "8000"))
    if not API_KEY:
        logger.warning("NEWS_API_KEY not set, auth disabled")
    if check_connection():
        logger.info("Startup DB connection probe: OK")
    else:
        logger.warning("Startup DB connection probe failed")

    yield

    crawler = get_auto_news_crawler()
    if crawler.is_running:
        crawler.stop(timeout=5)
    logger.info("API server shutting down")


# ---------------------------------------------------------------------------
# App Setup
# ---------------------------------------------------------------------------


app = FastAPI(
    title="Automotive News Crawler API",
    description="Crawl, score and publish automotive news; track Google rankings",
    version="1.0.0",
    docs_url="/docs",
    redoc_url=None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@app.get("/status", response_model=HealthResponse, tags=["health"])
def get_status(
    crawler: AutoNewsCrawler = Depends(get_crawler),
    manager: AIProviderManager = Depends(get_provider_manager),
) -> HealthResponse:
    """Health probe. No authentication required."""
    db_connected = check_connection()
    return HealthResponse(
        status="healthy" if db_connected else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        db_connected=db_connected,
        crawler_running=crawler.is_running,
        ai_providers=manager.get_recommended_order(),
        auto_publish=crawler_config.auto_publish,
    )


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


@app.post("/scrape", tags=["content"])
async def scrape(
    request: ScrapeRequest,
    api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    """Scrape one article page.

    Raises:
        HTTPException: 404 when the page does not exist, 502 when every
            attempt failed.
    """
    try:
        if request.use_browser:
            article = await scrape_article(request.url)
        else:
            article = await run_in_threadpool(simple_scrape_article, request.url)
    except PageNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except RuntimeError as exc:
        logger.warning("Scrape failed for %s: %s", request.url, exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {"success": True, "article": article.to_dict()}


@app.post("/quality-check", tags=["content"])
def quality_check(
    request: QualityCheckRequest,
    api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    checker = get_quality_checker()
    article = ArticleData.from_dict(request.model_dump())
    keywords = request.seo_keywords or crawler_config.keyword_list
    score = checker.check_quality(article, keywords)

    response: Dict[str, Any] = {"score": score.to_dict()}
    if request.auto_fix:
        fixed = checker.auto_fix(article)
        response["fixed_article"] = fixed.to_dict()
        response["fixed_score"] = checker.check_quality(fixed, keywords).to_dict()
    return response


@app.post("/duplicate-check", tags=["content"])
def duplicate_check(
    request: DuplicateCheckRequest,
    api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    result = get_duplicate_checker().check_duplicate(
        request.url, request.title, request.content, request.source_id
    )
    return result.to_dict()


@app.post("/convert", tags=["content"])
def convert(
    request: ConvertRequest,
    api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    return generate_conversion_report(request.text)


# ---------------------------------------------------------------------------
# Crawl
# ---------------------------------------------------------------------------


async def _run_queued_crawl(
    crawler: AutoNewsCrawler,
    parallel: Optional[bool],
    concurrent_limit: Optional[int],
) -> None:
    try:
        await crawler.perform_crawl(parallel, concurrent_limit)
    except CrawlInProgressError:
        logger.info("Queued crawl dropped, another crawl started first")


@app.post("/crawl", status_code=202, tags=["crawl"])
async def trigger_crawl(
    request: CrawlRequest,
    background_tasks: BackgroundTasks,
    crawler: AutoNewsCrawler = Depends(get_crawler),
    api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    """Queue one full crawl; the response returns before the crawl finishes.

    Raises:
        HTTPException: 409 while another crawl is still running.
    """
    if crawler.is_crawling:
        raise HTTPException(status_code=409, detail="Crawl already in progress")
    background_tasks.add_task(_run_queued_crawl, crawler, request.parallel, request.concurrent_limit)
    logger.info("Crawl queued | parallel=%s limit=%s", request.parallel, request.concurrent_limit)
    return {"status": "started", "queued_at": datetime.now(timezone.utc).isoformat()}


@app.get("/crawl/stats", tags=["crawl"])
def crawl_stats(
    days: int = 7,
    crawler: AutoNewsCrawler = Depends(get_crawler),
    api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    return {
        "crawler": crawler.get_crawl_stats(),
        "summary": CrawlMonitor.get_stats_summary(days),
    }


@app.get("/crawl/history", tags=["crawl"])
def crawl_history(
    limit: int = 10,
    api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    return {"history": CrawlMonitor.get_crawl_history(limit)}


# ---------------------------------------------------------------------------
# SEO
# ---------------------------------------------------------------------------


@app.post("/seo/rankings", tags=["seo"])
def check_rankings(
    request: RankingCheckRequest,
    api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    detector = create_seo_ranking_detector(request.domain)
    results = detector.check_multiple_keywords(request.keywords)
    return {
        "domain": detector.domain,
        "checked": len(results),
        "found": sum(1 for r in results if r.found),
        "results": [r.to_dict() for r in results],
    }


@app.get("/seo/rankings/history", tags=["seo"])
def ranking_history(
    keyword: str,
    days: int = 30,
    domain: Optional[str] = None,
    api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    detector = create_seo_ranking_detector(domain)
    return {
        "domain": detector.domain,
        "keyword": keyword,
        "history": detector.get_ranking_history(keyword, days),
    }


@app.get("/seo/rankings/stats", tags=["seo"])
def ranking_stats(
    domain: Optional[str] = None,
    api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    detector = create_seo_ranking_detector(domain)
    return {"domain": detector.domain, **detector.get_ranking_stats().to_dict()}


@app.get("/seo/suggested-keywords", tags=["seo"])
def suggested_keywords(
    domain: Optional[str] = None,
    api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    detector = create_seo_ranking_detector(domain)
    return {"domain": detector.domain, "keywords": detector.get_suggested_keywords()}


# ---------------------------------------------------------------------------
# AI providers
# ---------------------------------------------------------------------------


@app.get("/ai/providers", tags=["ai"])
def ai_providers(
    manager: AIProviderManager = Depends(get_provider_manager),
    api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    return {
        "providers": manager.get_provider_status(),
        "recommended_order": manager.get_recommended_order(),
    }


@app.post("/ai/providers/reset", tags=["ai"])
def reset_ai_providers(
    request: ProviderResetRequest,
    manager: AIProviderManager = Depends(get_provider_manager),
    api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    known = {p["name"] for p in manager.get_provider_status()}
    if request.name is not None and request.name not in known:
        raise HTTPException(status_code=404, detail=f"Provider '{request.name}' is not configured")
    manager.reset_failure_count(request.name)
    return {"reset": request.name or "all", "providers": manager.get_provider_status()}


# ---------------------------------------------------------------------------
# Global Exception Handler
# ---------------------------------------------------------------------------


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception: %s | path=%s", exc, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": str(exc), "path": str(request.url.path)},
    )


# ---------------------------------------------------------------------------
# Main Runner
# ---------------------------------------------------------------------------


def main() -> None:
    """Start uvicorn on ``API_HOST``:``API_PORT`` (default 0.0.0.0:8000)."""
    uvicorn.run(
        "api.api_server:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        reload=False,
        workers=1,
    )


if __name__ == "__main__":
    main()
