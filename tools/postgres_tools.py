"""
Postgres data access layer for the automotive news crawler and SEO toolkit.

Every read and write used by the crawler, duplicate checker, ranking detector
and crawl monitor goes through this module. Each call opens a short-lived
psycopg2 connection, retries transient connection failures, and fails soft:
writes return ``{"error": "<op>_failed", "detail": ...}`` and reads return an
empty result instead of raising.

Schema: tools/schema.sql
"""

import os
import json
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional
from functools import wraps

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection

from config.settings import db_config

# Module-level logger
logger = logging.getLogger(__name__)
logger.setLevel(os.getenv("LOG_LEVEL", "INFO"))

__all__ = [
    "check_connection",
    "save_news_article",
    "find_news_by_url",
    "find_news_by_content_hash",
    "get_recent_news_titles",
    "get_recent_news_contents",
    "update_news_content_hash",
    "get_news_sources",
    "create_news_source",
    "update_source_last_crawl",
    "save_seo_ranking",
    "get_seo_ranking_history",
    "get_latest_found_rankings",
    "get_previous_ranking",
    "get_tracked_keywords",
    "save_crawl_log",
    "get_crawl_logs",
    "get_crawl_logs_since",
    "get_setting",
    "get_settings_map",
]


def _get_conn() -> PgConnection:
    """
    Opens and returns a psycopg2 connection to the database.

    Returns:
        psycopg2.extensions.connection: Database connection with autocommit=False.

    Raises:
        RuntimeError: If DATABASE_URL is not configured.
        psycopg2.OperationalError: If the server cannot be reached.
    """
    if not db_config.configured:
        raise RuntimeError("Database URL not configured. Set DATABASE_URL in .env")

    conn = psycopg2.connect(db_config.database_url)
    conn.autocommit = False
    return conn


def _with_retry(max_retries: int = 3) -> Callable:
    """
    Decorator that retries database calls on connection-level failures.

    Args:
        max_retries: Maximum number of attempts (default: 3).

    Returns:
        Decorated function with retry logic.
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            last_exception = None
            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except psycopg2.OperationalError as e:
                    last_exception = e
                    if attempt < max_retries - 1:
                        sleep_time = 2**attempt
                        logger.warning(
                            f"{func.__name__} failed (attempt {attempt + 1}/{max_retries}): {e}. "
                            f"Retrying in {sleep_time}s..."
                        )
                        time.sleep(sleep_time)
                    else:
                        logger.critical(
                            f"{func.__name__} failed after {max_retries} attempts: {e}"
                        )

            raise last_exception

        return wrapper

    return decorator


@_with_retry(max_retries=3)
def _execute(
    sql: str,
    params: Iterable[Any] = (),
    fetch: Optional[str] = "all",
) -> Any:
    """
    Run one statement in its own transaction.

    Args:
        sql: SQL with ``%s`` placeholders.
        params: Positional parameters.
        fetch: ``"all"`` for a list of rows, ``"one"`` for a single row or
            ``None``, anything else for the affected row count.

    Returns:
        Rows as plain dicts, a single dict, or the rowcount.
    """
    conn = None
    try:
        conn = _get_conn()
        cursor = conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
        cursor.execute(sql, tuple(params))

        if fetch == "all":
            result: Any = [dict(row) for row in cursor.fetchall()]
        elif fetch == "one":
            row = cursor.fetchone()
            result = dict(row) if row else None
        else:
            result = cursor.rowcount

        conn.commit()
        return result
    except Exception:
        if conn:
            conn.rollback()
        raise
    finally:
        if conn:
            conn.close()


def check_connection() -> bool:
    """Return True when the database answers ``SELECT 1``."""
    try:
        _execute("SELECT 1 AS ok", fetch="one")
        return True
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        return False


# =============================================================================
# NEWS
# =============================================================================


def save_news_article(article: Dict[str, Any]) -> Dict[str, Any]:
    """
    Insert a crawled article, or refresh it when its source URL already exists.

    Args:
        article: Output of ``AutoNewsCrawler.generate_seo_article`` plus
            ``content_hash``, ``source_id`` and ``is_published``.

    Returns:
        ``{"news_id": int, "action": "inserted" | "updated", "is_published": bool}``
        or an error dict. A re-crawl never unpublishes a stored article.
    """
    try:
        row = _execute(
            """
            INSERT INTO news (
                title, slug, content, excerpt, cover_image, author,
                source_url, source_name, source_id, tags, content_hash,
                seo_title, seo_description, seo_keywords,
                og_title, og_description, reading_time, structured_data,
                is_published, published_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s,
                    %s, %s, %s, %s, %s, CASE WHEN %s THEN NOW() ELSE NULL END)
            ON CONFLICT (source_url) DO UPDATE SET
                title = EXCLUDED.title,
                content = EXCLUDED.content,
                excerpt = EXCLUDED.excerpt,
                content_hash = EXCLUDED.content_hash,
                is_published = news.is_published OR EXCLUDED.is_published,
                published_at = COALESCE(news.published_at, EXCLUDED.published_at),
                updated_at = NOW()
            RETURNING id, (xmax = 0) AS inserted, is_published
            """,
            (
                article.get("title"),
                article.get("slug"),
                article.get("content"),
                article.get("excerpt"),
                article.get("cover_image"),
                article.get("author"),
                article.get("source_url"),
                article.get("source_name"),
                article.get("source_id"),
                json.dumps(article.get("tags") or [], ensure_ascii=False),
                article.get("content_hash"),
                article.get("seo_title"),
                article.get("seo_description"),
                article.get("seo_keywords"),
                article.get("og_title"),
                article.get("og_description"),
                article.get("reading_time"),
                json.dumps(article.get("structured_data") or {}, ensure_ascii=False),
                bool(article.get("is_published")),
                bool(article.get("is_published")),
            ),
            fetch="one",
        )
        action = "inserted" if row["inserted"] else "updated"
        logger.info(f"News {action}: {article.get('title')} (id: {row['id']})")
        return {"news_id": row["id"], "action": action, "is_published": bool(row["is_published"])}
    except Exception as e:
        logger.error(f"Failed to save news article: {e}")
        return {"error": "save_news_article_failed", "detail": str(e)}


def find_news_by_url(*urls: str) -> Optional[Dict[str, Any]]:
    """Return ``{"id", "title"}`` of the first article whose source URL is any of ``urls``."""
    candidates = [u for u in dict.fromkeys(urls) if u]
    if not candidates:
        return None
    try:
        return _execute(
            "SELECT id, title FROM news WHERE source_url = ANY(%s) LIMIT 1",
            (candidates,),
            fetch="one",
        )
    except Exception as e:
        logger.error(f"Failed to look up news by url: {e}")
        return None


def find_news_by_content_hash(content_hash: str) -> Optional[Dict[str, Any]]:
    try:
        return _execute(
            "SELECT id, title FROM news WHERE content_hash = %s LIMIT 1",
            (content_hash,),
            fetch="one",
        )
    except Exception as e:
        logger.error(f"Failed to look up news by content hash: {e}")
        return None


def get_recent_news_titles(days: int = 7) -> List[Dict[str, Any]]:
    """Titles (with id and source_id) of articles created in the last ``days`` days."""
    try:
        return _execute(
            """
            SELECT id, title, source_id
            FROM news
            WHERE created_at >= NOW() - make_interval(days => %s)
            """,
            (days,),
        )
    except Exception as e:
        logger.error(f"Failed to get recent news titles: {e}")
        return []


def get_recent_news_contents(days: int = 3, limit: int = 100) -> List[Dict[str, Any]]:
    try:
        return _execute(
            """
            SELECT id, title, content
            FROM news
            WHERE created_at >= NOW() - make_interval(days => %s)
              AND content <> ''
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (days, limit),
        )
    except Exception as e:
        logger.error(f"Failed to get recent news contents: {e}")
        return []


def update_news_content_hash(news_id: int, content_hash: str) -> Dict[str, Any]:
    try:
        updated = _execute(
            "UPDATE news SET content_hash = %s, updated_at = NOW() WHERE id = %s",
            (content_hash, news_id),
            fetch=None,
        )
        if not updated:
            return {"error": "news_not_found", "detail": f"No news with id {news_id}"}
        return {"news_id": news_id, "content_hash": content_hash}
    except Exception as e:
        logger.error(f"Failed to update content hash: {e}")
        return {"error": "update_news_content_hash_failed", "detail": str(e)}


# =============================================================================
# NEWS SOURCES
# =============================================================================


def get_news_sources(enabled_only: bool = False) -> List[Dict[str, Any]]:
    try:
        sql = """
            SELECT id, name, url, rss_url, enabled, max_articles_per_crawl,
                   crawl_interval, selectors, last_crawl
            FROM news_sources
        """
        if enabled_only:
            sql += " WHERE enabled = TRUE"
        sql += " ORDER BY name"
        return _execute(sql)
    except Exception as e:
        logger.error(f"Failed to get news sources: {e}")
        return []


def create_news_source(source: Dict[str, Any]) -> Dict[str, Any]:
    try:
        row = _execute(
            """
            INSERT INTO news_sources (
                id, name, url, rss_url, enabled, max_articles_per_crawl,
                crawl_interval, selectors
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (id) DO NOTHING
            RETURNING id
            """,
            (
                str(source["id"]),
                source["name"],
                source["url"],
                source.get("rss_url"),
                source.get("enabled", True),
                source.get("max_articles_per_crawl", 5),
                source.get("crawl_interval", 60),
                json.dumps(source.get("selectors") or {}),
            ),
            fetch="one",
        )
        action = "inserted" if row else "exists"
        logger.info(f"News source {action}: {source['name']}")
        return {"source_id": str(source["id"]), "action": action}
    except Exception as e:
        logger.error(f"Failed to create news source: {e}")
        return {"error": "create_news_source_failed", "detail": str(e)}


def update_source_last_crawl(source_id: str) -> Dict[str, Any]:
    try:
        _execute(
            "UPDATE news_sources SET last_crawl = NOW() WHERE id = %s",
            (source_id,),
            fetch=None,
        )
        return {"source_id": source_id}
    except Exception as e:
        logger.error(f"Failed to update last crawl for {source_id}: {e}")
        return {"error": "update_source_last_crawl_failed", "detail": str(e)}


# =============================================================================
# SEO RANKINGS
# =============================================================================


def save_seo_ranking(ranking: Dict[str, Any]) -> Dict[str, Any]:
    """
    Persist one ranking check.

    Args:
        ranking: ``RankingResult.to_dict()`` plus ``domain``.

    Returns:
        ``{"ranking_id": int}`` or an error dict.
    """
    try:
        row = _execute(
            """
            INSERT INTO seo_rankings (
                keyword, position, url, title, search_engine, domain,
                is_found, error, checked_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, COALESCE(%s::timestamptz, NOW()))
            RETURNING id
            """,
            (
                ranking["keyword"],
                ranking.get("position"),
                ranking.get("url"),
                ranking.get("title"),
                ranking.get("search_engine", "google"),
                ranking.get("domain"),
                bool(ranking.get("found")),
                ranking.get("error"),
                ranking.get("checked_at"),
            ),
            fetch="one",
        )
        return {"ranking_id": row["id"]}
    except Exception as e:
        logger.error(f"Failed to save SEO ranking: {e}")
        return {"error": "save_seo_ranking_failed", "detail": str(e)}


def get_seo_ranking_history(domain: str, keyword: str, days: int = 30) -> List[Dict[str, Any]]:
    """Checks of ``keyword`` for ``domain`` in the last ``days`` days, newest first."""
    try:
        return _execute(
            """
            SELECT keyword, position, url, title, is_found AS found, error, checked_at
            FROM seo_rankings
            WHERE domain = %s
              AND keyword = %s
              AND checked_at >= NOW() - make_interval(days => %s)
            ORDER BY checked_at DESC
            """,
            (domain, keyword, days),
        )
    except Exception as e:
        logger.error(f"Failed to get ranking history for {keyword}: {e}")
        return []


def get_latest_found_rankings(domain: str) -> List[Dict[str, Any]]:
    """Most recent successful check for every keyword tracked for ``domain``."""
    try:
        return _execute(
            """
            SELECT DISTINCT ON (keyword)
                   keyword, position, url, title, checked_at
            FROM seo_rankings
            WHERE domain = %s AND is_found = TRUE
            ORDER BY keyword, checked_at DESC
            """,
            (domain,),
        )
    except Exception as e:
        logger.error(f"Failed to get latest rankings for {domain}: {e}")
        return []


def get_previous_ranking(domain: str, keyword: str, before: Any) -> Optional[Dict[str, Any]]:
    """Latest successful check of ``keyword`` for ``domain`` strictly older than ``before``."""
    try:
        return _execute(
            """
            SELECT keyword, position, checked_at
            FROM seo_rankings
            WHERE domain = %s AND keyword = %s AND is_found = TRUE AND checked_at < %s
            ORDER BY checked_at DESC
            LIMIT 1
            """,
            (domain, keyword, before),
            fetch="one",
        )
    except Exception as e:
        logger.error(f"Failed to get previous ranking for {keyword}: {e}")
        return None


def get_tracked_keywords(domain: str) -> List[str]:
    try:
        rows = _execute(
            "SELECT DISTINCT keyword FROM seo_rankings WHERE domain = %s ORDER BY keyword",
            (domain,),
        )
        return [r["keyword"] for r in rows]
    except Exception as e:
        logger.error(f"Failed to get tracked keywords for {domain}: {e}")
        return []


# =============================================================================
# CRAWL LOGS
# =============================================================================


def save_crawl_log(log: Dict[str, Any]) -> Dict[str, Any]:
    try:
        row = _execute(
            """
            INSERT INTO crawl_logs (
                source_id, source_name, status, articles_found,
                articles_processed, articles_published, articles_failed,
                errors, duration_ms, started_at, finished_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING id
            """,
            (
                log.get("source_id"),
                log.get("source_name"),
                log.get("status"),
                log.get("articles_found", 0),
                log.get("articles_processed", 0),
                log.get("articles_published", 0),
                log.get("articles_failed", 0),
                json.dumps(log.get("errors") or [], ensure_ascii=False),
                log.get("duration_ms"),
                log.get("started_at"),
                log.get("finished_at"),
            ),
            fetch="one",
        )
        logger.debug(f"Crawl log saved: {log.get('source_name')} ({log.get('status')})")
        return {"crawl_log_id": row["id"]}
    except Exception as e:
        logger.warning(f"Failed to save crawl log (non-critical): {e}")
        return {"error": "save_crawl_log_failed", "detail": str(e)}


def get_crawl_logs(limit: int = 10) -> List[Dict[str, Any]]:
    try:
        return _execute(
            "SELECT * FROM crawl_logs ORDER BY created_at DESC LIMIT %s",
            (limit,),
        )
    except Exception as e:
        logger.error(f"Failed to get crawl logs: {e}")
        return []


def get_crawl_logs_since(days: int = 7) -> List[Dict[str, Any]]:
    try:
        return _execute(
            """
            SELECT * FROM crawl_logs
            WHERE created_at >= NOW() - make_interval(days => %s)
            ORDER BY created_at DESC
            """,
            (days,),
        )
    except Exception as e:
        logger.error(f"Failed to get crawl logs since {days} days: {e}")
        return []


# =============================================================================
# SETTINGS
# =============================================================================


def get_setting(key: str, default: Optional[str] = None) -> Optional[str]:
    try:
        row = _execute("SELECT value FROM settings WHERE key = %s", (key,), fetch="one")
        return row["value"] if row else default
    except Exception as e:
        logger.error(f"Failed to read setting {key}: {e}")
        return default


def get_settings_map(keys: Iterable[str]) -> Dict[str, str]:
    keys = list(keys)
    if not keys:
        return {}
    try:
        rows = _execute(
            "SELECT key, value FROM settings WHERE key = ANY(%s)",
            (keys,),
        )
        return {r["key"]: r["value"] for r in rows}
    except Exception as e:
        logger.error(f"Failed to read settings: {e}")
        return {}
