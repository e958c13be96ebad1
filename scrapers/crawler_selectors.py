"""
scrapers/crawler_selectors.py

Per-site CSS selector tables for Taiwanese automotive news portals.

Each entry lists candidate selectors in priority order; the scrapers try
them one by one and keep the first that yields text. Unknown sites fall
back to the ``default`` entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

LOG = logging.getLogger("crawler_selectors")

__all__ = ["SiteSelectors", "SITE_SELECTORS", "get_site_selectors", "try_selectors"]


@dataclass(frozen=True)
class SiteSelectors:
    article_links: Optional[str] = None
    title: List[str] = field(default_factory=list)
    content: List[str] = field(default_factory=list)
    author: List[str] = field(default_factory=list)
    date: List[str] = field(default_factory=list)
    image: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)


SITE_SELECTORS: Dict[str, SiteSelectors] = {
    "news.u-car.com.tw": SiteSelectors(
        article_links=".news-list-item, .channel__list a",
        title=["h1.news-title", ".article-title h1", "h1"],
        content=[".news-content", ".article-content", ".news-body", "article"],
        author=[".news-byline", ".author-name", ".writer"],
        date=[".news-date", "time", ".publish-date"],
        image=[".news-content img", ".article-image img", "article img"],
    ),
    "www.carstuff.com.tw": SiteSelectors(
        article_links=".entry-title a, .post-title a, article h2 a",
        title=["h1.entry-title", ".post-title h1", "h1"],
        content=[".entry-content", ".post-content", "article .content", "main article"],
        author=[".author-name", ".by-author", ".post-author"],
        date=["time", ".entry-date", ".post-date"],
    ),
    "www.cool3c.com": SiteSelectors(
        article_links=".postlist a, article h3 a",
        title=["h1.post-title", ".article-title", "h1"],
        content=[".post-content", ".article-body", "article .content"],
        author=[".author", ".post-author"],
        date=[".post-date", "time"],
    ),
    "carnews.com": SiteSelectors(
        article_links=".item-title a, .entry-title a, .news-item a",
        title=["h1.entry-title", "h1.article-title", ".main-title h1", "h1"],
        content=[".entry-content", ".article-content", ".news-content", "article .content"],
        author=[".author-name", ".article-author", ".by-author"],
        date=[".entry-date", ".publish-time", "time", ".date"],
        image=[".entry-content img", ".article-image img", ".featured-image img"],
    ),
    "c.8891.com.tw": SiteSelectors(
        article_links=".news-list a, .article-item a",
        title=["h1.article-title", ".news-title h1", "h1"],
        content=[".article-content", ".news-content", ".detail-content", "article"],
        author=[".author", ".editor", ".source"],
        date=[".publish-date", ".article-date", "time"],
    ),
    "www.carture.com.tw": SiteSelectors(
        article_links=".post-title a, article h3 a, .news-list a",
        title=["h1.post-title", "h1.entry-title", ".article-title h1", "h1"],
        content=[".post-content", ".entry-content", ".article-body", "article .content"],
        author=[".author-name", ".post-author", ".article-author"],
        date=[".post-date", ".entry-date", "time.published"],
        image=[".post-content img", ".wp-post-image", "article img"],
    ),
    "www.autonet.com.tw": SiteSelectors(
        article_links=".news-list a, .article-link, .title a",
        title=["h1.article-title", ".news-title", "h1"],
        content=[".article-content", ".news-body", ".content-area", "article"],
        author=[".author", ".reporter", ".writer"],
        date=[".publish-date", ".date-time", "time"],
    ),
    "autos.udn.com": SiteSelectors(
        article_links=".story-list a, .news-list a, article a",
        title=["h1.article-content__title", "h1.story-art-title", "h1"],
        content=[".article-content__body", ".story-body", ".article-body", "article"],
        author=[".article-content__author", ".story-author", ".author"],
        date=[".article-content__time", ".story-publish-time", "time"],
        image=[".article-content__body img", ".story-body img", "figure img"],
    ),
    "www.carnews.tw": SiteSelectors(
        article_links=".news-item a, .article-list a",
        title=["h1.news-title", "h1.article-title", "h1"],
        content=[".news-content", ".article-content", ".entry-content", "article"],
        author=[".news-author", ".author-name", ".writer"],
        date=[".news-date", ".publish-date", "time"],
    ),
    "default": SiteSelectors(
        title=["h1", "h2.title", ".article-title", ".post-title", "title"],
        content=[
            "article",
            ".content",
            ".post-content",
            ".article-content",
            ".entry-content",
            "main",
            ".main-content",
        ],
        author=[".author", ".byline", '[rel="author"]', ".writer"],
        date=["time", ".date", ".publish-date", ".post-date"],
        image=["article img", ".content img", "main img"],
        tags=[".tags a", ".tag", '[rel="tag"]'],
    ),
}


def _strip_www(host: str) -> str:
    return host[4:] if host.startswith("www.") else host


def get_site_selectors(url: str) -> SiteSelectors:
    """Return the selector table of the site the URL hostname belongs to.

    A key matches its own host and any subdomain of it; a leading ``www.``
    is ignored on both sides.
    """
    try:
        hostname = _strip_www((urlparse(url).hostname or "").lower())
    except ValueError:
        return SITE_SELECTORS["default"]

    if hostname:
        for site, selectors in SITE_SELECTORS.items():
            if site == "default":
                continue
            key = _strip_www(site)
            if hostname == key or hostname.endswith("." + key):
                LOG.debug("Using %s selectors for %s", site, url)
                return selectors

    LOG.debug("Using default selectors for %s", url)
    return SITE_SELECTORS["default"]


def try_selectors(soup: BeautifulSoup, selectors: Optional[List[str]]) -> str:
    """Text of the first selector that matches an element with content."""
    for selector in selectors or []:
        element = soup.select_one(selector)
        if element is None:
            continue
        text = element.get_text(" ", strip=True)
        if text:
            LOG.debug("Selector %r matched", selector)
            return text
    return ""
