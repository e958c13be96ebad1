"""
scrapers/web_scraper.py

NEWS ARTICLE WEB SCRAPER
========================

Static-first article extraction for Taiwanese news portals.

Flow per attempt:
    1. scrape_static()  - requests GET with zh-TW headers, parsed with lxml
    2. scrape_dynamic() - Playwright render via PlaywrightManager when the
                          static pass is blocked (403/429) or too thin

An attempt succeeds when the extracted content is longer than 50 chars.
After ``retries`` failed attempts a RuntimeError is raised.

Usage:
    article = await scrape_article("https://news.ltn.com.tw/news/life/1234567")
"""

from __future__ import annotations

import re
import asyncio
import logging
import random
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup

from config.settings import crawler_config
from scrapers.scraper_service import PlaywrightManager

LOG = logging.getLogger("web_scraper")

MIN_CONTENT_LENGTH = 50

# ================================================================================
# DATA MODELS
# ================================================================================


@dataclass
class ArticleContent:
    """Normalised article as produced by every scraper in this package."""

    title: str
    content: str
    excerpt: str
    url: str
    author: Optional[str] = None
    publish_date: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    source: Optional[str] = None
    cover_image: Optional[str] = None
    crawled_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ScrapingConfig:
    timeout: int = crawler_config.request_timeout
    user_agent: str = crawler_config.user_agent
    retries: int = crawler_config.max_retries
    delay: float = crawler_config.retry_delay_ms / 1000
    use_browser: bool = crawler_config.use_browser


# ================================================================================
# SITE SELECTORS
# ================================================================================

NEWS_SITE_SELECTORS: Dict[str, Dict[str, List[str]]] = {
    "default": {
        "title": ["h1", ".title", ".headline", '[class*="title"]', '[class*="headline"]'],
        "content": [
            "article",
            ".content",
            ".post-content",
            ".entry-content",
            ".article-content",
            '[class*="content"]',
            '[class*="article"]',
        ],
        "author": [".author", ".byline", '[class*="author"]', '[rel="author"]'],
        "publish_date": [
            ".date",
            ".publish-date",
            ".timestamp",
            '[class*="date"]',
            '[class*="time"]',
            "time",
        ],
        "excerpt": [".excerpt", ".summary", ".lead", '[class*="excerpt"]', '[class*="summary"]'],
        "remove_elements": [
            "script", "style", "nav", "header", "footer", ".ad",
            ".advertisement", ".social", ".share", ".related", ".sidebar",
        ],
    },
    "chinatimes.com": {
        "title": ["h1.article-title", ".title"],
        "content": [".article-body", ".content"],
        "author": [".author", ".reporter"],
        "publish_date": [".date", ".publish-time"],
        "excerpt": [".summary"],
        "remove_elements": ["script", "style", ".ad", ".advertisement", ".social-share", ".related-news"],
    },
    "ltn.com.tw": {
        "title": ["h1", ".news_title"],
        "content": [".text", ".content"],
        "author": [".reporter"],
        "publish_date": [".time"],
        "excerpt": [".summary"],
        "remove_elements": ["script", "style", ".ad", ".boxTitle", ".related"],
    },
    "udn.com": {
        "title": ["h1#story_art_title", ".story-head__title"],
        "content": [".story-body__inner", ".article-content__editor"],
        "author": [".story-head__author"],
        "publish_date": [".story-head__time"],
        "excerpt": [".story-head__summary"],
        "remove_elements": ["script", "style", ".ad", ".story-list", ".social-share"],
    },
    "ettoday.net": {
        "title": ["h1.title", ".subject"],
        "content": [".story", ".news-content"],
        "author": [".author"],
        "publish_date": [".date"],
        "excerpt": [".summary"],
        "remove_elements": ["script", "style", ".ad", ".related-news", ".social-bar"],
    },
    "setn.com": {
        "title": ["h1.news-title"],
        "content": [".news-content"],
        "author": [".author"],
        "publish_date": [".news-time"],
        "excerpt": [".news-summary"],
        "remove_elements": ["script", "style", ".ad", ".related-box"],
    },
}

KNOWN_SOURCES: Dict[str, str] = {
    "chinatimes.com": "中時新聞網",
    "ltn.com.tw": "自由時報",
    "udn.com": "聯合新聞網",
    "ettoday.net": "ETtoday新聞雲",
    "setn.com": "三立新聞網",
    "tvbs.com.tw": "TVBS新聞網",
    "cna.com.tw": "中央社",
    "storm.mg": "風傳媒",
}

_STATIC_HEADERS = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,image/apng,*/*;q=0.8"
    ),
    "Accept-Language": "zh-TW,zh;q=0.9,en-US;q=0.8,en;q=0.7",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Cache-Control": "max-age=0",
    "DNT": "1",
}

_MAIN_CONTAINERS = [
    "article", "main", ".content", ".post", ".entry",
    '[class*="content"]', '[class*="article"]', '[class*="post"]',
]


def _lookup_by_suffix(table: Dict[str, Any], domain: str) -> Optional[Any]:
    domain = (domain or "").lower()
    for key, value in table.items():
        if key == "default":
            continue
        if domain == key or domain.endswith("." + key):
            return value
    return None


def get_news_site_selectors(domain: str) -> Dict[str, List[str]]:
    return _lookup_by_suffix(NEWS_SITE_SELECTORS, domain) or NEWS_SITE_SELECTORS["default"]


# ================================================================================
# SCRAPER
# ================================================================================


class WebScraper:
    """Article scraper with a static pass and a headless-browser fallback."""

    def __init__(
        self,
        config: Optional[ScrapingConfig] = None,
        browser: Optional[PlaywrightManager] = None,
    ) -> None:
        self.config = config or ScrapingConfig()
        self.browser = browser or PlaywrightManager(user_agent=self.config.user_agent)
        self.session = requests.Session()

    async def close(self) -> None:
        await self.browser.shutdown()
        self.session.close()

    # ------------------------------------------------------------------ #
    # MAIN ENTRY
    # ------------------------------------------------------------------ #

    async def scrape_article(self, url: str) -> ArticleContent:
        last_error: Optional[Exception] = None

        for attempt in range(1, self.config.retries + 1):
            try:
                article = await self.scrape_static(url)
                if article and len(article.content) > MIN_CONTENT_LENGTH:
                    return article

                if self.config.use_browser:
                    article = await self.scrape_dynamic(url)
                    if article and len(article.content) > MIN_CONTENT_LENGTH:
                        return article

                raise ValueError("無法提取有效內容")
            except Exception as e:
                last_error = e
                LOG.warning(
                    "Scrape attempt %d/%d failed for %s: %s",
                    attempt, self.config.retries, url, e,
                )
                if attempt < self.config.retries:
                    await asyncio.sleep(self.config.delay)

        LOG.error("All %d scrape attempts failed for %s", self.config.retries, url)
        raise RuntimeError(f"爬取失敗: {last_error or '未知錯誤'}")

    # ------------------------------------------------------------------ #
    # FETCHERS
    # ------------------------------------------------------------------ #

    def _fetch_static(self, url: str) -> Optional[str]:
        response = self.session.get(
            url,
            headers={"User-Agent": self.config.user_agent, **_STATIC_HEADERS},
            timeout=self.config.timeout,
            allow_redirects=True,
        )
        if response.status_code in (403, 429):
            LOG.info("Static fetch blocked (%d), deferring to browser: %s", response.status_code, url)
            return None
        if response.status_code != 200:
            raise requests.HTTPError(f"HTTP {response.status_code}: {response.reason}")
        response.encoding = response.apparent_encoding or response.encoding
        return response.text

    async def scrape_static(self, url: str) -> Optional[ArticleContent]:
        """Fetch with requests after a 500-1500 ms jitter. ``None`` means use the browser."""
        await asyncio.sleep(random.uniform(0.5, 1.5))
        loop = asyncio.get_running_loop()
        try:
            html = await loop.run_in_executor(None, self._fetch_static, url)
        except requests.RequestException as e:
            LOG.error("Static scrape failed for %s: %s", url, e)
            return None
        if html is None:
            return None
        return self.extract_content(html, url)

    async def scrape_dynamic(self, url: str) -> Optional[ArticleContent]:
        try:
            html = await self.browser.fetch_html(url, timeout_ms=self.config.timeout * 1000)
        except Exception as e:
            LOG.error("Dynamic scrape failed for %s: %s", url, e)
            return None
        return self.extract_content(html, url)

    # ------------------------------------------------------------------ #
    # EXTRACTION
    # ------------------------------------------------------------------ #

    def extract_content(self, html: str, url: str) -> ArticleContent:
        soup = BeautifulSoup(html, "lxml")
        domain = self.get_domain(url)
        site = get_news_site_selectors(domain)

        for selector in site["remove_elements"]:
            for element in soup.select(selector):
                element.decompose()

        title_tag = soup.find("title")
        title = (
            self._by_selectors(soup, site["title"])
            or (title_tag.get_text(strip=True) if title_tag else "")
            or "未知標題"
        )

        content = self._by_selectors(soup, site["content"]) or self.extract_main_content(soup)
        content = self.clean_content(content)

        excerpt = self._by_selectors(soup, site["excerpt"]) or content[:200] + "..."

        return ArticleContent(
            title=title.strip(),
            content=content.strip(),
            excerpt=excerpt.strip(),
            url=url,
            author=self._by_selectors(soup, site["author"]) or None,
            publish_date=self._by_selectors(soup, site["publish_date"]) or None,
            tags=self.extract_tags(soup),
            source=self.extract_source(soup, domain),
        )

    @staticmethod
    def _by_selectors(soup: BeautifulSoup, selectors: List[str]) -> str:
        for selector in selectors:
            element = soup.select_one(selector)
            if element is not None:
                text = element.get_text(" ", strip=True)
                if text:
                    return text
        return ""

    @staticmethod
    def extract_main_content(soup: BeautifulSoup) -> str:
        """Longest container text; all paragraphs when nothing reaches 100 chars."""
        best = ""
        for selector in _MAIN_CONTAINERS:
            for element in soup.select(selector):
                text = element.get_text(" ", strip=True)
                if len(text) > len(best):
                    best = text

        if len(best) < 100:
            paragraphs = [p.get_text(" ", strip=True) for p in soup.find_all("p")]
            best = "\n\n".join(paragraphs)
        return best

    @staticmethod
    def clean_content(text: str) -> str:
        text = re.sub(r"\s+", " ", text or "").strip()
        text = re.sub(r"【[^】]*】", "", text)
        text = re.sub(r"[(（][^)）]*記者[^)）]*[)）]", "", text)
        text = re.sub(r"更多新聞.*$", "", text)
        text = re.sub(r"延伸閱讀.*$", "", text)
        return text.strip()

    @staticmethod
    def extract_tags(soup: BeautifulSoup) -> List[str]:
        tags: List[str] = []
        meta = soup.find("meta", attrs={"name": "keywords"})
        if meta and meta.get("content"):
            tags.extend(t.strip() for t in meta["content"].split(","))

        for element in soup.select('.tag, .tags, [class*="tag"]'):
            text = element.get_text(strip=True)
            if text and len(text) < 20:
                tags.append(text)

        return list(dict.fromkeys(t for t in tags if t))[:10]

    @staticmethod
    def extract_source(soup: BeautifulSoup, domain: str) -> str:
        for attrs in ({"property": "og:site_name"}, {"name": "application-name"}):
            meta = soup.find("meta", attrs=attrs)
            if meta and meta.get("content"):
                return meta["content"].strip()
        return _lookup_by_suffix(KNOWN_SOURCES, domain) or domain

    # ------------------------------------------------------------------ #
    # HELPERS
    # ------------------------------------------------------------------ #

    @staticmethod
    def is_valid_url(url: str) -> bool:
        try:
            parsed = urlparse(url or "")
        except ValueError:
            return False
        return bool(parsed.scheme and parsed.netloc)

    @staticmethod
    def get_domain(url: str) -> str:
        try:
            return urlparse(url).hostname or ""
        except ValueError:
            return ""


# ================================================================================
# CONVENIENCE FUNCTIONS
# ================================================================================


async def scrape_article(url: str) -> ArticleContent:
    if not WebScraper.is_valid_url(url):
        raise ValueError("無效的 URL")

    scraper = WebScraper()
    try:
        return await scraper.scrape_article(url)
    finally:
        await scraper.close()


async def scrape_multiple_articles(urls: List[str]) -> List[ArticleContent]:
    """Scrape ``urls`` one after another; invalid URLs and failures are skipped."""
    scraper = WebScraper()
    results: List[ArticleContent] = []
    try:
        for index, url in enumerate(urls):
            if not WebScraper.is_valid_url(url):
                LOG.warning("Skipping invalid URL: %s", url)
                continue
            try:
                results.append(await scraper.scrape_article(url))
            except RuntimeError as e:
                LOG.error("Failed to scrape %s: %s", url, e)
            if index < len(urls) - 1:
                await asyncio.sleep(2)
    finally:
        await scraper.close()
    return results


__all__ = [
    "ArticleContent",
    "ScrapingConfig",
    "NEWS_SITE_SELECTORS",
    "WebScraper",
    "get_news_site_selectors",
    "scrape_article",
    "scrape_multiple_articles",
]
