"""
scrapers/url_validator.py

Reachability check for article URLs before they are scraped or published.
A HEAD request (10 s timeout, redirects followed) decides whether a URL
still serves HTML. Results are cached in memory for five minutes.
"""

from __future__ import annotations

import time
import logging
import threading
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Tuple

import requests

from config.settings import crawler_config

LOG = logging.getLogger("url_validator")

CACHE_TTL_SECONDS = 300
REQUEST_TIMEOUT = 10

_STATUS_MESSAGES = {
    404: "URL不存在 (404 Not Found)",
    403: "禁止訪問 (403 Forbidden)",
    500: "服務器錯誤 (500 Internal Server Error)",
    503: "服務不可用 (503 Service Unavailable)",
}


@dataclass
class URLValidationResult:
    is_valid: bool
    status_code: int
    error: Optional[str] = None
    redirect_url: Optional[str] = None
    content_type: Optional[str] = None
    response_time_ms: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class URLValidator:
    """HEAD-based URL checker with a per-URL TTL cache."""

    def __init__(self, session: Optional[requests.Session] = None, cache_ttl: float = CACHE_TTL_SECONDS):
        self.session = session or requests.Session()
        self.cache_ttl = cache_ttl
        self._cache: Dict[str, Tuple[float, URLValidationResult]] = {}
        self._lock = threading.Lock()

    def validate(self, url: str) -> URLValidationResult:
        now = time.monotonic()
        with self._lock:
            cached = self._cache.get(url)
        if cached and now - cached[0] < self.cache_ttl:
            return cached[1]

        started = time.monotonic()
        try:
            response = self.session.head(
                url,
                headers={
                    "User-Agent": crawler_config.user_agent,
                    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                    "Accept-Language": "zh-TW,zh;q=0.8,en;q=0.6",
                },
                timeout=REQUEST_TIMEOUT,
                allow_redirects=True,
            )
        except requests.Timeout:
            result = self._failure("URL驗證超時 (10秒)", started)
        except requests.ConnectionError as e:
            message = str(e)
            if "Name or service not known" in message or "getaddrinfo" in message or "NameResolution" in message:
                result = self._failure("DNS解析失敗", started)
            elif "Connection refused" in message:
                result = self._failure("連接被拒絕", started)
            elif "Connection reset" in message:
                result = self._failure("連接被重置", started)
            else:
                result = self._failure(f"連接失敗: {message}", started)
        except requests.RequestException as e:
            result = self._failure(str(e) or "未知錯誤", started)
        else:
            result = self._from_response(url, response, started)

        with self._lock:
            self._cache[url] = (time.monotonic(), result)

        LOG.info(
            "%s URL check: %s (%d) %s",
            "✅" if result.is_valid else "❌",
            url,
            result.status_code,
            result.error or "OK",
        )
        return result

    @staticmethod
    def _failure(message: str, started: float) -> URLValidationResult:
        return URLValidationResult(
            is_valid=False,
            status_code=0,
            error=message,
            response_time_ms=round((time.monotonic() - started) * 1000, 1),
        )

    @staticmethod
    def _from_response(url: str, response: requests.Response, started: float) -> URLValidationResult:
        status = response.status_code
        content_type = response.headers.get("content-type")
        result = URLValidationResult(
            is_valid=200 <= status < 300,
            status_code=status,
            content_type=content_type,
            redirect_url=response.url if response.url and response.url != url else None,
            response_time_ms=round((time.monotonic() - started) * 1000, 1),
        )
        if not result.is_valid:
            result.error = _STATUS_MESSAGES.get(
                status, f"HTTP錯誤: {status} {response.reason or ''}".strip()
            )
        elif content_type and "text/html" not in content_type:
            result.is_valid = False
            result.error = f"不是HTML內容: {content_type}"
        return result

    def validate_many(self, urls: List[str]) -> List[URLValidationResult]:
        results = [self.validate(url) for url in urls]
        LOG.info(
            "Validated %d URLs | valid=%d",
            len(results),
            sum(1 for r in results if r.is_valid),
        )
        return results

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()


_validator: Optional[URLValidator] = None


def get_url_validator() -> URLValidator:
    global _validator
    if _validator is None:
        _validator = URLValidator()
    return _validator


__all__ = ["URLValidationResult", "URLValidator", "get_url_validator"]
