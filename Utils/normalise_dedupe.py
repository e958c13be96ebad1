"""Utility functions for article text normalisation and deduplication.
Called by the scrapers, duplicate_checker.py and the crawl engine."""

import re
import logging
import hashlib
from collections import Counter
from typing import Any
from urllib.parse import urlparse, urlunparse

logger = logging.getLogger(__name__)

__all__ = [
    "clean_description",
    "normalize_url",
    "generate_url_hash",
    "clean_text",
    "generate_content_hash",
    "char_jaccard",
    "extract_content_features",
    "feature_jaccard",
    "generate_slug",
    "dedupe_articles",
]

_NON_WORD_RE = re.compile(r"[^一-龥a-z0-9]")
_FEATURE_RE = re.compile(r"[一-龥]+|[a-z]+")
_SLUG_RE = re.compile(r"[^a-z0-9一-龥]")


def clean_description(text: str, limit: int = 5000) -> str:
    """Strip HTML tags, collapse whitespace/newlines, strip and truncate."""
    if not text:
        return ""
    text = re.sub(r'<[^>]+>', '', str(text))
    text = re.sub(r'\s+', ' ', text)
    text = text.strip()
    return text[:limit]


def normalize_url(url: str) -> str:
    """Drop query string and fragment and lowercase the result."""
    if not url:
        return ""
    try:
        parsed = urlparse(url.strip())
        if not parsed.scheme or not parsed.netloc:
            return url.strip().lower()
        return urlunparse(
            (parsed.scheme, parsed.netloc, parsed.path or "/", "", "", "")
        ).lower()
    except ValueError:
        return url.strip().lower()


def generate_url_hash(url: str) -> str:
    """Generate SHA256 hex digest for normalising and deduplicating article URLs."""
    url_stripped = str(url).strip().lower() if url else ""
    return hashlib.sha256(url_stripped.encode("utf-8")).hexdigest()


def clean_text(text: str) -> str:
    """Lowercase and keep only CJK ideographs, a-z and 0-9."""
    if not text:
        return ""
    return _NON_WORD_RE.sub("", text.lower())


def generate_content_hash(content: str) -> str:
    """MD5 of the cleaned content; whitespace and punctuation do not matter."""
    return hashlib.md5(clean_text(content).encode("utf-8")).hexdigest()


def char_jaccard(first: str, second: str) -> float:
    """Jaccard similarity of the character sets of two strings."""
    if not first or not second:
        return 0.0
    a, b = set(first), set(second)
    return len(a & b) / len(a | b)


def extract_content_features(content: str, top_n: int = 20) -> list[str]:
    """Most frequent CJK runs and latin words longer than two characters."""
    words = [w for w in _FEATURE_RE.findall(clean_text(content)) if len(w) > 2]
    return [word for word, _ in Counter(words).most_common(top_n)]


def feature_jaccard(first: list[str], second: list[str]) -> float:
    if not first or not second:
        return 0.0
    a, b = set(first), set(second)
    return len(a & b) / len(a | b)


def generate_slug(title: str, limit: int = 100) -> str:
    """URL slug keeping a-z, 0-9 and CJK; other runs collapse to one dash."""
    slug = _SLUG_RE.sub("-", (title or "").lower())
    slug = re.sub(r"-+", "-", slug).strip("-")
    return slug[:limit]


def dedupe_articles(articles: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Deduplicate scraped articles on the hash of their normalised URL."""
    seen_hashes = set()
    result = []

    for article in articles:
        url_hash = article.get("url_hash")
        if not url_hash:
            url_hash = generate_url_hash(normalize_url(article.get("url") or ""))
            article["url_hash"] = url_hash

        if url_hash not in seen_hashes:
            seen_hashes.add(url_hash)
            result.append(article)

    removed = len(articles) - len(result)
    logger.info(
        "dedupe_articles: %d input -> %d after dedup (%d removed)",
        len(articles), len(result), removed,
    )

    return result
