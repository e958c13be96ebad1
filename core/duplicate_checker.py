"""
core/duplicate_checker.py

Four-stage duplicate detection for crawled articles.

    1. URL         raw or normalised source URL already stored
    2. title       character-set Jaccard against the last 7 days of titles
    3. hash        md5 of the cleaned content already stored
    4. content     top-20 feature Jaccard against the last 3 days (max 100)

The first stage that matches wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from Utils.normalise_dedupe import (
    char_jaccard,
    clean_text,
    extract_content_features,
    feature_jaccard,
    generate_content_hash,
    normalize_url,
)
from tools.postgres_tools import (
    find_news_by_content_hash,
    find_news_by_url,
    get_recent_news_contents,
    get_recent_news_titles,
    update_news_content_hash,
)

LOG = logging.getLogger("duplicate_checker")

URL_SIMILARITY = 0.9
TITLE_SIMILARITY = 0.85
CONTENT_SIMILARITY = 0.8
SAME_SOURCE_RELAXATION = 0.1

TITLE_WINDOW_DAYS = 7
CONTENT_WINDOW_DAYS = 3
CONTENT_SAMPLE_LIMIT = 100
BATCH_SIZE = 5


@dataclass
class DuplicateCheckResult:
    is_duplicate: bool
    confidence: float = 0.0
    duplicate_type: Optional[str] = None
    existing_article_id: Optional[Any] = None
    existing_article_title: Optional[str] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_NOT_DUPLICATE = DuplicateCheckResult(is_duplicate=False)


class DuplicateChecker:
    def check_duplicate(
        self,
        url: str,
        title: str,
        content: str,
        source_id: Optional[str] = None,
    ) -> DuplicateCheckResult:
        for check in (
            lambda: self._check_url(url),
            lambda: self._check_title(title, source_id),
            lambda: self._check_content_hash(content),
            lambda: self._check_content_similarity(content),
        ):
            result = check()
            if result.is_duplicate:
                LOG.info(
                    "Duplicate (%s, %.2f): %s -> #%s",
                    result.duplicate_type,
                    result.confidence,
                    title[:40],
                    result.existing_article_id,
                )
                return result
        return DuplicateCheckResult(is_duplicate=False)

    # ------------------------------------------------------------------ #
    # STAGES
    # ------------------------------------------------------------------ #

    @staticmethod
    def _check_url(url: str) -> DuplicateCheckResult:
        existing = find_news_by_url(url, normalize_url(url))
        if not existing:
            return _NOT_DUPLICATE
        return DuplicateCheckResult(
            is_duplicate=True,
            confidence=1.0,
            duplicate_type="url",
            existing_article_id=existing["id"],
            existing_article_title=existing["title"],
            reason="URL 完全相同",
        )

    @staticmethod
    def _check_title(title: str, source_id: Optional[str]) -> DuplicateCheckResult:
        cleaned = clean_text(title)
        if not cleaned:
            return _NOT_DUPLICATE

        for article in get_recent_news_titles(TITLE_WINDOW_DAYS):
            similarity = char_jaccard(cleaned, clean_text(article.get("title") or ""))
            same_source = source_id is not None and article.get("source_id") == source_id
            threshold = TITLE_SIMILARITY - SAME_SOURCE_RELAXATION if same_source else TITLE_SIMILARITY
            if similarity >= threshold:
                return DuplicateCheckResult(
                    is_duplicate=True,
                    confidence=similarity,
                    duplicate_type="title",
                    existing_article_id=article["id"],
                    existing_article_title=article["title"],
                    reason=f"標題相似度過高 ({round(similarity * 100)}%)",
                )
        return _NOT_DUPLICATE

    @staticmethod
    def _check_content_hash(content: str) -> DuplicateCheckResult:
        existing = find_news_by_content_hash(generate_content_hash(content))
        if not existing:
            return _NOT_DUPLICATE
        return DuplicateCheckResult(
            is_duplicate=True,
            confidence=1.0,
            duplicate_type="hash",
            existing_article_id=existing["id"],
            existing_article_title=existing["title"],
            reason="內容完全相同",
        )

    @staticmethod
    def _check_content_similarity(content: str) -> DuplicateCheckResult:
        features = extract_content_features(content)
        if not features:
            return _NOT_DUPLICATE

        for article in get_recent_news_contents(CONTENT_WINDOW_DAYS, CONTENT_SAMPLE_LIMIT):
            if not article.get("content"):
                continue
            similarity = feature_jaccard(features, extract_content_features(article["content"]))
            if similarity >= CONTENT_SIMILARITY:
                return DuplicateCheckResult(
                    is_duplicate=True,
                    confidence=similarity,
                    duplicate_type="content",
                    existing_article_id=article["id"],
                    existing_article_title=article["title"],
                    reason=f"內容相似度過高 ({round(similarity * 100)}%)",
                )
        return _NOT_DUPLICATE

    # ------------------------------------------------------------------ #
    # BATCH / MAINTENANCE
    # ------------------------------------------------------------------ #

    def batch_check_duplicates(self, articles: List[Dict[str, Any]]) -> Dict[int, DuplicateCheckResult]:
        """Check ``articles`` (dicts with url/title/content/source_id) in batches of five."""
        results: Dict[int, DuplicateCheckResult] = {}
        for start in range(0, len(articles), BATCH_SIZE):
            for offset, article in enumerate(articles[start:start + BATCH_SIZE]):
                results[start + offset] = self.check_duplicate(
                    article.get("url") or "",
                    article.get("title") or "",
                    article.get("content") or "",
                    article.get("source_id"),
                )
        return results

    @staticmethod
    def generate_content_hash(content: str) -> str:
        return generate_content_hash(content)

    @staticmethod
    def update_content_hash(article_id: Any, content: str) -> Dict[str, Any]:
        return update_news_content_hash(article_id, generate_content_hash(content))


__all__ = [
    "DuplicateCheckResult",
    "DuplicateChecker",
    "URL_SIMILARITY",
    "TITLE_SIMILARITY",
    "CONTENT_SIMILARITY",
]
