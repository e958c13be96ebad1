"""
scrapers/scraper_engine.py

AUTOMOTIVE NEWS CRAWLER ENGINE
==============================

Purpose:
    Periodically crawl Taiwanese automotive news sites, turn each new article
    into an SEO-ready news post and store it in the ``news`` table.

Pipeline per source:
    listing page -> article URLs -> simple scraper -> duplicate check
    -> optional AI rewrite -> tags + SEO keywords -> quality check / auto fix
    -> SEO fields + JSON-LD -> save (draft or published)

Key Features:
- Default sources from config/news_sources.yaml, seeded into the database
- Sequential or batched-parallel source crawling
- Per-source monitoring persisted to crawl_logs
- Background periodic crawling on a daemon thread
- Results and metrics written to logs/latest_crawl*.json
- Fail-soft: a failing source or article never aborts the run
"""

from __future__ import annotations

import re
import json
import math
import time
import asyncio
import logging
import threading
from dataclasses import dataclass, asdict, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin, urlparse

import yaml
import requests
import pandas as pd
from bs4 import BeautifulSoup

from config.settings import CONFIG_DIR, CrawlerConfig, crawler_config, db_config
from core.content_quality import ArticleData, ContentQualityChecker
from core.crawl_monitor import CrawlMonitor
from core.duplicate_checker import DuplicateChecker
from integrations.llm_interface import get_ai_provider_manager
from scrapers.simple_scraper import simple_scrape_article
from scrapers.web_scraper import ArticleContent
from tools.postgres_tools import (
    create_news_source,
    find_news_by_url,
    get_news_sources,
    save_news_article,
    update_source_last_crawl,
)
from Utils.normalise_dedupe import generate_slug, generate_url_hash, normalize_url

# ================================================================================
# LOGGING
# ================================================================================

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    handlers=[logging.StreamHandler()],
)

LOG = logging.getLogger("scraper_engine")

# ================================================================================
# PATHS
# ================================================================================

BASE_DIR = Path(__file__).resolve().parent.parent
SOURCES_PATH = CONFIG_DIR / "news_sources.yaml"

OUTPUT_DIR = BASE_DIR / "logs"
LATEST_CRAWL_PATH = OUTPUT_DIR / "latest_crawl.json"
LATEST_CRAWL_METRICS_PATH = OUTPUT_DIR / "latest_crawl_metrics.json"

# ================================================================================
# CONSTANTS
# ================================================================================

PUBLISHER_NAME = "車冷博士"
READING_CHARS_PER_MINUTE = 300
EXCERPT_LENGTH = 200
DEFAULT_MAX_ARTICLES = 5

QUALITY_AUTOFIX_THRESHOLD = 60
QUALITY_REJECT_THRESHOLD = 40

GENERIC_LINK_SELECTORS = [
    "article a[href]",
    ".article-list a[href]",
    ".news-list a[href]",
    ".post-list a[href]",
    ".entry-title a[href]",
    ".post-title a[href]",
    "h2 a[href]",
    "h3 a[href]",
    ".title a[href]",
    ".headline a[href]",
    "a[href]",
]

ARTICLE_URL_PATTERNS = [
    re.compile(r"/article/", re.I),
    re.compile(r"/news/", re.I),
    re.compile(r"/post/", re.I),
    re.compile(r"/story/", re.I),
    re.compile(r"/content/", re.I),
    re.compile(r"/\d{4}/\d{2}/"),
    re.compile(r"\d{6,}"),
    re.compile(r"\.html?$", re.I),
    re.compile(r"/p/\d+"),
    re.compile(r"\?id=\d+"),
]

EXCLUDE_URL_PATTERNS = [
    re.compile(r"/tag/", re.I),
    re.compile(r"/category/", re.I),
    re.compile(r"/author/", re.I),
    re.compile(r"/page/", re.I),
    re.compile(r"/search", re.I),
    re.compile(r"/login", re.I),
    re.compile(r"/register", re.I),
    re.compile(r"\.(jpg|jpeg|png|gif|pdf|zip)$", re.I),
    re.compile(r"#"),
    re.compile(r"javascript:", re.I),
    re.compile(r"mailto:", re.I),
]

_CJK_RE = re.compile(r"[一-龥]")


# ================================================================================
# DATA TYPES
# ================================================================================


class CrawlInProgressError(RuntimeError):
    """Raised when a crawl is requested while another one is still running."""


@dataclass
class NewsSource:
    id: str
    name: str
    url: str
    rss_url: Optional[str] = None
    enabled: bool = True
    max_articles_per_crawl: int = DEFAULT_MAX_ARTICLES
    crawl_interval: int = 60
    last_crawl: Optional[str] = None
    selectors: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NewsSource":
        selectors = data.get("selectors") or {}
        if isinstance(selectors, str):
            selectors = json.loads(selectors)
        last_crawl = data.get("last_crawl")
        return cls(
            id=str(data["id"]),
            name=data["name"],
            url=data["url"],
            rss_url=data.get("rss_url"),
            enabled=bool(data.get("enabled", True)),
            max_articles_per_crawl=int(data.get("max_articles_per_crawl") or DEFAULT_MAX_ARTICLES),
            crawl_interval=int(data.get("crawl_interval") or 60),
            last_crawl=last_crawl.isoformat() if isinstance(last_crawl, datetime) else last_crawl,
            selectors=dict(selectors),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CrawlResult:
    source_id: str
    success: bool = False
    articles_found: int = 0
    articles_processed: int = 0
    articles_published: int = 0
    errors: List[str] = field(default_factory=list)
    crawl_time: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CrawlMetrics:
    sources_total: int = 0
    sources_succeeded: int = 0
    sources_failed: int = 0

    articles_found: int = 0
    articles_processed: int = 0
    articles_published: int = 0
    duplicates_skipped: int = 0

    execution_time_ms: float = 0.0
    started_at: Optional[str] = None
    parallel: bool = True

    # source_id -> {"found": int, "processed": int, "published": int, "errors": int}
    per_source: Dict[str, Dict[str, int]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ================================================================================
# SOURCES
# ================================================================================


def load_default_sources(path: Path = SOURCES_PATH) -> List[NewsSource]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return [NewsSource.from_dict(s) for s in data.get("sources", [])]


def _request_headers(user_agent: str) -> Dict[str, str]:
    return {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": "zh-TW,zh;q=0.9,en;q=0.8",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
    }


# ================================================================================
# CRAWLER
# ================================================================================


class AutoNewsCrawler:
    """
    Crawl every enabled news source and store new articles.

    Public API:
        perform_crawl(parallel, concurrent_limit)   one full crawl
        start(interval_minutes) / stop()            background periodic crawl
        get_crawl_stats(), get_dataframe(), run_sync()
    """

    def __init__(
        self,
        config: Optional[CrawlerConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or crawler_config
        self.session = session or requests.Session()
        self.monitor = CrawlMonitor()
        self.quality_checker = ContentQualityChecker()
        self.duplicate_checker = DuplicateChecker()

        self.results: List[CrawlResult] = []
        self.metrics = CrawlMetrics()
        self.last_crawl_at: Optional[str] = None

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._crawl_lock = threading.Lock()
        self.interval_minutes = self.config.crawl_interval_minutes

    # ------------------------------------------------------------------ #
    # SOURCES
    # ------------------------------------------------------------------ #

    def get_enabled_sources(self) -> List[NewsSource]:
        """Enabled sources from the database, seeding defaults into an empty table."""
        defaults = load_default_sources()
        if not db_config.configured:
            LOG.info("Database not configured; using default sources")
            return [s for s in defaults if s.enabled]

        if not get_news_sources():
            LOG.info("No news sources stored; seeding %d defaults", len(defaults))
            for source in defaults:
                create_news_source(source.to_dict())

        rows = get_news_sources(enabled_only=True)
        if not rows:
            return [s for s in defaults if s.enabled]
        return [NewsSource.from_dict(r) for r in rows]

    # ------------------------------------------------------------------ #
    # MAIN EXECUTION
    # ------------------------------------------------------------------ #

    @property
    def is_crawling(self) -> bool:
        return self._crawl_lock.locked()

    async def perform_crawl(
        self,
        parallel: Optional[bool] = None,
        concurrent_limit: Optional[int] = None,
        sources: Optional[List[NewsSource]] = None,
    ) -> List[CrawlResult]:
        """Run one full crawl; raises CrawlInProgressError if another is still running."""
        if not self._crawl_lock.acquire(blocking=False):
            raise CrawlInProgressError("A crawl is already in progress")
        try:
            return await self._perform_crawl(parallel, concurrent_limit, sources)
        finally:
            self._crawl_lock.release()

    async def _perform_crawl(
        self,
        parallel: Optional[bool],
        concurrent_limit: Optional[int],
        sources: Optional[List[NewsSource]],
    ) -> List[CrawlResult]:
        parallel = self.config.parallel if parallel is None else parallel
        concurrent_limit = max(1, concurrent_limit or self.config.concurrent_limit)

        start_time = time.time()
        self.metrics = CrawlMetrics(
            started_at=datetime.now(timezone.utc).isoformat(),
            parallel=parallel,
        )
        if sources is None:
            sources = await asyncio.to_thread(self.get_enabled_sources)
        self.metrics.sources_total = len(sources)
        if not sources:
            LOG.warning("No enabled news sources")
            self.results = []
            return []

        results: List[CrawlResult] = []
        if not parallel or len(sources) == 1:
            LOG.info("🚀 Sequential crawl of %d sources", len(sources))
            for source in sources:
                results.append(await self._crawl_source_safe(source))
        else:
            LOG.info(
                "🚀 Parallel crawl of %d sources (concurrent_limit=%d)",
                len(sources),
                concurrent_limit,
            )
            batches = [
                sources[i:i + concurrent_limit]
                for i in range(0, len(sources), concurrent_limit)
            ]
            for index, batch in enumerate(batches, start=1):
                LOG.info(
                    "Batch %d/%d: %s",
                    index,
                    len(batches),
                    ", ".join(s.name for s in batch),
                )
                t0 = time.time()
                results.extend(
                    await asyncio.gather(*[self._crawl_source_safe(s) for s in batch])
                )
                LOG.info("Batch %d done in %.0f s", index, time.time() - t0)
                if index < len(batches):
                    await asyncio.sleep(self.config.batch_delay)

        self.results = results
        self.last_crawl_at = datetime.now(timezone.utc).isoformat()
        self._update_metrics(results, start_time)

        LOG.info(
            "🎉 Crawl completed: %d/%d sources ok | %d processed | %d published | %.0f ms",
            self.metrics.sources_succeeded,
            self.metrics.sources_total,
            self.metrics.articles_processed,
            self.metrics.articles_published,
            self.metrics.execution_time_ms,
        )
        self._save_results()
        self._save_metrics()
        return results

    async def _crawl_source_safe(self, source: NewsSource) -> CrawlResult:
        try:
            return await self.crawl_source(source)
        except Exception as e:  # noqa: BLE001
            LOG.error("❌ %s failed: %s", source.name, e, exc_info=True)
            return CrawlResult(source_id=source.id, errors=[str(e) or "未知錯誤"])

    def _update_metrics(self, results: List[CrawlResult], start_time: float) -> None:
        m = self.metrics
        m.sources_succeeded = sum(1 for r in results if r.success)
        m.sources_failed = len(results) - m.sources_succeeded
        m.articles_found = sum(r.articles_found for r in results)
        m.articles_processed = sum(r.articles_processed for r in results)
        m.articles_published = sum(r.articles_published for r in results)
        m.execution_time_ms = (time.time() - start_time) * 1000.0
        m.per_source = {
            r.source_id: {
                "found": r.articles_found,
                "processed": r.articles_processed,
                "published": r.articles_published,
                "errors": len(r.errors),
            }
            for r in results
        }

    async def crawl_source(self, source: NewsSource) -> CrawlResult:
        self.monitor.start_crawl(source.id, source.name)
        result = CrawlResult(source_id=source.id)

        try:
            urls = await asyncio.to_thread(self.get_article_urls, source)
            result.articles_found = len(urls)
            self.monitor.update_stats(source.id, articles_found=len(urls))

            if not urls:
                result.errors.append("未找到文章連結")
                self.monitor.record_error(source.id, "未找到文章連結")
                return result

            self.monitor.log("INFO", f"找到 {len(urls)} 篇文章", {"source": source.name})

            for url in urls[: source.max_articles_per_crawl]:
                try:
                    if find_news_by_url(url, normalize_url(url)):
                        LOG.info("Skipping known article: %s", url)
                        self.metrics.duplicates_skipped += 1
                        continue

                    article = await asyncio.to_thread(simple_scrape_article, url, self.session)
                    processed = await asyncio.to_thread(self.process_article, article, source)
                    if processed is not None:
                        saved = await asyncio.to_thread(self.save_and_publish_article, processed, source)
                        result.articles_processed += 1
                        if saved.get("is_published"):
                            result.articles_published += 1
                        self.monitor.update_stats(
                            source.id,
                            articles_processed=result.articles_processed,
                            articles_published=result.articles_published,
                        )
                    else:
                        self.metrics.duplicates_skipped += 1
                except Exception as e:  # noqa: BLE001
                    message = f"處理文章失敗: {e}"
                    LOG.warning("%s (%s)", message, url)
                    result.errors.append(message)
                    self.monitor.record_error(source.id, message)
                    stats = self.monitor.get_stats(source.id)
                    if stats is not None:
                        self.monitor.update_stats(source.id, articles_failed=stats.articles_failed + 1)

                await asyncio.sleep(self.config.article_delay)

            result.success = result.articles_processed > 0
        except Exception as e:  # noqa: BLE001
            message = f"爬取來源失敗: {e}"
            LOG.error("%s (%s)", message, source.name)
            result.errors.append(message)
            self.monitor.record_error(source.id, message)
        finally:
            await asyncio.to_thread(self.monitor.end_crawl, source.id)
            if db_config.configured:
                await asyncio.to_thread(update_source_last_crawl, source.id)

        return result

    # ------------------------------------------------------------------ #
    # LINK DISCOVERY
    # ------------------------------------------------------------------ #

    def _fetch_listing(self, url: str) -> str:
        response = self.session.get(
            url,
            headers=_request_headers(self.config.user_agent),
            timeout=self.config.request_timeout,
            allow_redirects=True,
        )
        response.raise_for_status()
        if response.encoding is None or response.encoding.lower() == "iso-8859-1":
            response.encoding = response.apparent_encoding
        return response.text

    def get_article_urls(self, source: NewsSource, html: Optional[str] = None) -> List[str]:
        """
        Article links on the source listing page.

        ``html`` skips the network fetch. Returns at most
        ``source.max_articles_per_crawl`` unique absolute URLs; fetch errors
        yield an empty list.
        """
        if html is None:
            try:
                html = self._fetch_listing(source.url)
            except requests.RequestException as e:
                LOG.error("Listing fetch failed for %s: %s", source.name, e)
                return []

        soup = BeautifulSoup(html, "lxml")
        selectors = [s for s in [source.selectors.get("article_links")] if s] + GENERIC_LINK_SELECTORS

        hrefs: Dict[str, str] = {}
        for selector in selectors:
            for anchor in soup.select(selector):
                href = (anchor.get("href") or "").strip()
                if not href:
                    continue
                absolute = urljoin(source.url, href)
                hrefs.setdefault(absolute, anchor.get_text(" ", strip=True))

        source_host = (urlparse(source.url).hostname or "").lower()
        site_host = source_host[4:] if source_host.startswith("www.") else source_host
        listing_urls = {source.url, source.url.rstrip("/"), source.url.rstrip("/") + "/"}

        links: List[str] = []
        for href in hrefs:
            if any(p.search(href) for p in EXCLUDE_URL_PATTERNS):
                continue
            if href in listing_urls:
                continue
            host = (urlparse(href).hostname or "").lower()
            if not host.endswith(site_host):
                continue
            if any(p.search(href) for p in ARTICLE_URL_PATTERNS):
                links.append(href)

        if not links and hrefs:
            LOG.info("No article-shaped links on %s; matching on link text", source.name)
            for href, text in hrefs.items():
                if any(p.search(href) for p in EXCLUDE_URL_PATTERNS):
                    continue
                if len(_CJK_RE.findall(text)) > 5:
                    links.append(href)

        unique = list(dict.fromkeys(links))[: source.max_articles_per_crawl or DEFAULT_MAX_ARTICLES]
        LOG.info("%s: %d article links", source.name, len(unique))
        return unique

    # ------------------------------------------------------------------ #
    # ARTICLE PROCESSING
    # ------------------------------------------------------------------ #

    def _rewrite(self, article: ArticleContent) -> ArticleContent:
        manager = get_ai_provider_manager()
        if not manager.providers:
            LOG.info("AI rewrite enabled but no provider configured")
            return article

        keywords = self.config.seo_keywords
        content_result = manager.rewrite_article_with_fallback(article.content, keywords)
        if not content_result.success:
            LOG.warning("AI rewrite failed, keeping original: %s", content_result.error)
            return article

        title = article.title
        title_result = manager.rewrite_title_with_fallback(article.title, keywords)
        if title_result.success and title_result.content:
            title = title_result.content.strip().strip("「」\"")
        return replace(article, title=title, content=content_result.content)

    def process_article(self, article: ArticleContent, source: NewsSource) -> Optional[ArticleContent]:
        """
        Dedupe, rewrite and quality-check one scraped article.

        Returns None when the article duplicates a stored one.
        """
        duplicate = self.duplicate_checker.check_duplicate(
            article.url, article.title, article.content, source.id
        )
        if duplicate.is_duplicate:
            self.monitor.log(
                "INFO",
                f"跳過重複文章: {article.title}",
                {
                    "duplicate_type": duplicate.duplicate_type,
                    "confidence": duplicate.confidence,
                    "existing_article_id": duplicate.existing_article_id,
                },
            )
            return None

        processed = self._rewrite(article) if self.config.ai_rewrite else article

        keywords = self.config.keyword_list
        processed = replace(
            processed,
            tags=list(dict.fromkeys([*processed.tags, *keywords])),
            source=processed.source or source.name,
        )

        data = ArticleData(
            title=processed.title,
            content=processed.content,
            author=processed.author,
            publish_date=processed.publish_date,
            tags=list(processed.tags),
            cover_image=processed.cover_image,
            excerpt=processed.excerpt,
        )
        score = self.quality_checker.check_quality(data, keywords)
        self.monitor.log(
            "INFO",
            f"文章品質檢查完成: {processed.title}",
            {"overall": score.overall, "issues": len(score.issues)},
        )

        if score.overall < QUALITY_AUTOFIX_THRESHOLD:
            fixed = self.quality_checker.auto_fix(data)
            processed = replace(
                processed,
                title=fixed.title,
                content=fixed.content,
                excerpt=fixed.excerpt or processed.excerpt,
            )
            score = self.quality_checker.check_quality(fixed, keywords)
            LOG.info("Auto-fixed '%s', new score %.1f", processed.title, score.overall)

        if score.overall < QUALITY_REJECT_THRESHOLD:
            self.monitor.record_error(
                source.id, f"文章品質過低: {processed.title} ({score.overall}分)"
            )
        return processed

    def generate_seo_article(self, article: ArticleContent, source: NewsSource) -> Dict[str, Any]:
        content = article.content or ""
        excerpt = content[:EXCERPT_LENGTH] + ("..." if len(content) > EXCERPT_LENGTH else "")
        author = article.author or source.name
        base_slug = generate_slug(article.title, limit=90) or "news"

        return {
            "title": article.title,
            "slug": f"{base_slug}-{generate_url_hash(article.url)[:8]}",
            "content": content,
            "excerpt": excerpt,
            "author": author,
            "tags": list(article.tags),
            "cover_image": article.cover_image,
            "seo_title": article.title,
            "seo_description": excerpt,
            "seo_keywords": self.config.seo_keywords,
            "og_title": article.title,
            "og_description": excerpt,
            "reading_time": max(1, math.ceil(len(content) / READING_CHARS_PER_MINUTE)),
            "structured_data": {
                "@context": "https://schema.org",
                "@type": "Article",
                "headline": article.title,
                "author": {"@type": "Person", "name": author},
                "datePublished": datetime.now(timezone.utc).isoformat(),
                "publisher": {"@type": "Organization", "name": PUBLISHER_NAME},
            },
            "source_url": article.url,
            "source_name": source.name,
        }

    def save_and_publish_article(self, article: ArticleContent, source: NewsSource) -> Dict[str, Any]:
        """Store the article as a draft, or published when auto-publish is on."""
        record = self.generate_seo_article(article, source)
        record.update(
            content_hash=self.duplicate_checker.generate_content_hash(record["content"]),
            source_id=source.id,
            is_published=self.config.auto_publish,
        )
        saved = save_news_article(record)
        if "error" in saved:
            raise RuntimeError(f"儲存文章失敗: {saved.get('detail')}")

        # an article already published stays published after a re-crawl
        is_published = saved.get("is_published", record["is_published"])
        LOG.info(
            "Article %s: %s | reading_time=%d min",
            "published" if is_published else "saved as draft",
            record["title"],
            record["reading_time"],
        )
        return {**saved, "is_published": is_published}

    # ------------------------------------------------------------------ #
    # BACKGROUND LOOP
    # ------------------------------------------------------------------ #

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                asyncio.run(self.perform_crawl())
            except CrawlInProgressError:
                LOG.info("Scheduled crawl skipped, previous crawl still running")
            except Exception as e:  # noqa: BLE001
                LOG.error("Scheduled crawl failed: %s", e, exc_info=True)
            self._stop_event.wait(self.interval_minutes * 60)

    def start(self, interval_minutes: Optional[int] = None) -> bool:
        """Crawl now and then every ``interval_minutes``; False if already running."""
        if self.is_running:
            LOG.info("Auto crawl already running")
            return False
        if interval_minutes:
            self.interval_minutes = interval_minutes
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="auto-news-crawler", daemon=True)
        self._thread.start()
        LOG.info("Auto crawl started, interval %d min", self.interval_minutes)
        return True

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
        self._thread = None
        LOG.info("Auto crawl stopped")

    # ------------------------------------------------------------------ #
    # PERSISTENCE
    # ------------------------------------------------------------------ #

    def _save_results(self) -> None:
        try:
            OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
            with LATEST_CRAWL_PATH.open("w", encoding="utf-8") as f:
                json.dump([r.to_dict() for r in self.results], f, indent=2, ensure_ascii=False)
            LOG.info("Results saved to %s", LATEST_CRAWL_PATH)
        except OSError as e:
            LOG.error("Failed to save results: %s", e)

    def _save_metrics(self) -> None:
        try:
            OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
            with LATEST_CRAWL_METRICS_PATH.open("w", encoding="utf-8") as f:
                json.dump(self.metrics.to_dict(), f, indent=2, ensure_ascii=False)
            LOG.info("Metrics saved to %s", LATEST_CRAWL_METRICS_PATH)
        except OSError as e:
            LOG.error("Failed to save metrics: %s", e)

    # ------------------------------------------------------------------ #
    # PUBLIC ACCESSORS
    # ------------------------------------------------------------------ #

    def get_crawl_stats(self) -> Dict[str, Any]:
        return {
            "is_running": self.is_running,
            "is_crawling": self.is_crawling,
            "interval_minutes": self.interval_minutes,
            "last_crawl_at": self.last_crawl_at,
            "metrics": self.metrics.to_dict(),
            "results": [r.to_dict() for r in self.results],
            "recent_events": self.monitor.get_events(20),
        }

    def get_dataframe(self) -> pd.DataFrame:
        if not self.results:
            return pd.DataFrame()
        return pd.DataFrame([r.to_dict() for r in self.results])

    def run_sync(
        self,
        parallel: Optional[bool] = None,
        concurrent_limit: Optional[int] = None,
    ) -> List[CrawlResult]:
        return asyncio.run(self.perform_crawl(parallel, concurrent_limit))


_crawler: Optional[AutoNewsCrawler] = None


def get_auto_news_crawler() -> AutoNewsCrawler:
    global _crawler
    if _crawler is None:
        _crawler = AutoNewsCrawler()
    return _crawler


__all__ = [
    "NewsSource",
    "CrawlResult",
    "CrawlMetrics",
    "AutoNewsCrawler",
    "CrawlInProgressError",
    "load_default_sources",
    "get_auto_news_crawler",
]
