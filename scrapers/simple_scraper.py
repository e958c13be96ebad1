"""
scrapers/simple_scraper.py

Selector-table driven synchronous article scraper used by the crawl engine.

Retries with exponential backoff; 404 is final and raised as
PageNotFoundError, 429 adds an extra wait before the next attempt.
"""

from __future__ import annotations

import re
import time
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urljoin, urlparse

import requests
from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from config.settings import crawler_config
from scrapers.crawler_selectors import SITE_SELECTORS, get_site_selectors, try_selectors
from scrapers.web_scraper import ArticleContent
from Utils.proxy_ratelimit import backoff_delay

LOG = logging.getLogger("simple_scraper")

MAX_CONTENT_LENGTH = 5000
MIN_PARAGRAPH_LENGTH = 20
MIN_FALLBACK_LENGTH = 200

_NOISE_SELECTOR = (
    "script, style, nav, header, footer, .ad, .advertisement, .sidebar, .related-posts"
)
_CJK_DATE_RE = re.compile(r"(\d{4})\s*[年/.\-]\s*(\d{1,2})\s*[月/.\-]\s*(\d{1,2})")


class PageNotFoundError(Exception):
    """The article URL answered 404; retrying will not help."""

    def __init__(self, url: str):
        super().__init__(f"文章不存在 (404): {url}")
        self.url = url


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 3
    initial_delay_ms: int = 2000
    max_delay_ms: int = 10000
    backoff_multiplier: float = 2


DEFAULT_RETRY = RetryConfig()


def _request_headers() -> dict:
    return {
        "User-Agent": crawler_config.user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "zh-TW,zh;q=0.9,en;q=0.8",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
    }


# ================================================================================
# EXTRACTION HELPERS
# ================================================================================


def _collapse(text: str) -> str:
    """Collapse whitespace inside paragraphs, keep blank-line paragraph breaks."""
    paragraphs = re.split(r"\n\s*\n", (text or "").replace("\r", ""))
    cleaned = [re.sub(r"\s+", " ", p).strip() for p in paragraphs]
    return "\n\n".join(p for p in cleaned if p)


def _extract_body(soup: BeautifulSoup, selectors: List[str]) -> str:
    for selector in selectors:
        element = soup.select_one(selector)
        if element is None:
            continue
        paragraphs = [
            p.get_text(" ", strip=True)
            for p in element.find_all("p")
        ]
        paragraphs = [p for p in paragraphs if len(p) > MIN_PARAGRAPH_LENGTH]
        if paragraphs:
            LOG.debug("Selector %r yielded %d paragraphs", selector, len(paragraphs))
            return "\n\n".join(paragraphs)
        text = element.get_text(" ", strip=True)
        if text:
            return text

    # largest block of text on the page
    best = ""
    for element in soup.find_all(["div", "section", "article", "main"]):
        text = element.get_text(" ", strip=True)
        if len(text) > len(best) and len(text) > MIN_FALLBACK_LENGTH:
            best = text
    return best


def _meta_content(soup: BeautifulSoup, **attrs) -> str:
    meta = soup.find("meta", attrs=attrs)
    if meta and meta.get("content"):
        return meta["content"].strip()
    return ""


def normalize_date(raw: str) -> str:
    """ISO-8601 form of ``raw`` when it can be parsed, otherwise ``raw``."""
    if not raw:
        return ""
    match = _CJK_DATE_RE.search(raw)
    try:
        if match:
            year, month, day = (int(g) for g in match.groups())
            return datetime(year, month, day).date().isoformat()
        return date_parser.parse(raw, fuzzy=True).isoformat()
    except (ValueError, OverflowError):
        return raw


def _extract_cover_image(soup: BeautifulSoup, selectors: List[str], url: str) -> str:
    if selectors:
        img = soup.select_one(", ".join(selectors))
        src = img.get("src", "") if img is not None else ""
        if src:
            return src if src.startswith("http") else urljoin(url, src)
    return _meta_content(soup, property="og:image")


def _extract_tags(soup: BeautifulSoup, selectors: List[str]) -> List[str]:
    tags: List[str] = []
    keywords = _meta_content(soup, name="keywords")
    if keywords:
        tags.extend(k.strip() for k in keywords.split(","))
    for element in soup.select(", ".join(selectors or [".tags a", ".tag", '[rel="tag"]'])):
        tags.append(element.get_text(strip=True))
    return list(dict.fromkeys(t for t in tags if t))


def parse_article(html: str, url: str) -> ArticleContent:
    """Build an ArticleContent from a fetched page."""
    soup = BeautifulSoup(html, "lxml")
    for element in soup.select(_NOISE_SELECTOR):
        element.decompose()

    selectors = get_site_selectors(url)

    title_tag = soup.find("title")
    title = (
        try_selectors(soup, selectors.title)
        or (title_tag.get_text(strip=True) if title_tag else "")
        or "未知標題"
    )

    content = _collapse(_extract_body(soup, selectors.content))
    if len(content) > MAX_CONTENT_LENGTH:
        content = content[:MAX_CONTENT_LENGTH] + "..."

    author = try_selectors(soup, selectors.author) or _meta_content(soup, name="author")
    publish_date = try_selectors(soup, selectors.date) or _meta_content(
        soup, property="article:published_time"
    )

    return ArticleContent(
        title=title,
        content=content,
        excerpt=content[:200].replace("\n", " ") + "...",
        url=url,
        author=author or None,
        publish_date=normalize_date(publish_date) or None,
        tags=_extract_tags(soup, SITE_SELECTORS["default"].tags),
        source=urlparse(url).hostname,
        cover_image=_extract_cover_image(soup, selectors.image, url) or None,
        crawled_at=datetime.now(timezone.utc).isoformat(),
    )


# ================================================================================
# ENTRY POINT
# ================================================================================


def simple_scrape_article(
    url: str,
    session: Optional[requests.Session] = None,
    retry: RetryConfig = DEFAULT_RETRY,
) -> ArticleContent:
    """Fetch and parse ``url``.

    Raises:
        PageNotFoundError: The page answered 404.
        RuntimeError: Every attempt failed.
    """
    http = session or requests
    last_error: Optional[Exception] = None

    for attempt in range(1, retry.max_retries + 1):
        LOG.info("Scrape attempt %d/%d: %s", attempt, retry.max_retries, url)
        wait_ms = backoff_delay(
            attempt,
            retry.initial_delay_ms,
            retry.backoff_multiplier,
            retry.max_delay_ms,
        )
        if wait_ms:
            LOG.info("Waiting %.0f ms before retrying", wait_ms)
            time.sleep(wait_ms / 1000)

        try:
            response = http.get(
                url,
                headers=_request_headers(),
                timeout=crawler_config.request_timeout,
                allow_redirects=True,
            )
        except requests.RequestException as e:
            last_error = e
            LOG.warning("Attempt %d failed for %s: %s", attempt, url, e)
            continue

        status = response.status_code
        if status == 404:
            raise PageNotFoundError(url)
        if not 200 <= status < 300:
            last_error = requests.HTTPError(f"HTTP {status}: {response.reason or '未知錯誤'}")
            if status == 429:
                LOG.warning("Rate limited (429) by %s", urlparse(url).hostname)
                if attempt < retry.max_retries:
                    time.sleep(retry.max_delay_ms / 1000)
            else:
                LOG.warning("Attempt %d got HTTP %d for %s", attempt, status, url)
            continue

        if response.encoding is None or response.encoding.lower() == "iso-8859-1":
            response.encoding = response.apparent_encoding
        article = parse_article(response.text, url)
        LOG.info("Scraped %s | title=%s | chars=%d", url, article.title, len(article.content))
        return article

    raise RuntimeError(
        f"爬取失敗（已重試 {retry.max_retries} 次）: {last_error or '未知錯誤'}"
    )


__all__ = [
    "RetryConfig",
    "PageNotFoundError",
    "simple_scrape_article",
    "parse_article",
    "normalize_date",
]
