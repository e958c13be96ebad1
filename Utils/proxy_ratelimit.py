"""Utility functions for proxy rotation, polite delays and retry backoff.
Called by the scrapers and the SEO ranking detector."""

import os
import time
import random
import logging
import itertools
import threading
from typing import Optional

logger = logging.getLogger(__name__)

__all__ = [
    "get_next_proxy",
    "get_proxy_dict",
    "reset_proxy_cycle",
    "rate_limit_wait",
    "random_delay",
    "backoff_delay",
]

_proxy_list: list[str] = [
    p.strip() for p in os.getenv("SCRAPER_PROXY_LIST", "").split(",") if p.strip()
]
_proxy_lock = threading.Lock()
_proxy_cycle = itertools.cycle(_proxy_list) if _proxy_list else None


def get_next_proxy() -> Optional[str]:
    """Retrieve the next proxy in a thread-safe round-robin fashion."""
    with _proxy_lock:
        if _proxy_cycle is None:
            logger.debug("No proxies configured, running without proxy")
            return None
        return next(_proxy_cycle)


def get_proxy_dict() -> Optional[dict[str, str]]:
    """Return a ``requests``-compatible proxies mapping for the next proxy."""
    proxy_url = get_next_proxy()
    if proxy_url is None:
        return None
    return {"http": proxy_url, "https": proxy_url}


def reset_proxy_cycle(proxies: Optional[list[str]] = None) -> None:
    """Restart the rotation, optionally with a new proxy list."""
    global _proxy_list, _proxy_cycle
    with _proxy_lock:
        if proxies is not None:
            _proxy_list = [p.strip() for p in proxies if p.strip()]
        _proxy_cycle = itertools.cycle(_proxy_list) if _proxy_list else None
        logger.debug("proxy_cycle reset | proxies=%d", len(_proxy_list))


def rate_limit_wait(domain: str, seconds: float) -> None:
    """Sleep to stay polite towards ``domain``."""
    if seconds <= 0:
        return
    logger.debug("rate_limit_wait: %.1fs | domain=%s", seconds, domain)
    time.sleep(seconds)
    if seconds > 10:
        logger.warning("Long rate limit wait: %.1fs for %s", seconds, domain)


def random_delay(min_seconds: float, max_seconds: float) -> float:
    """Sleep for a uniformly random duration and return it."""
    seconds = random.uniform(min_seconds, max_seconds)
    time.sleep(seconds)
    return seconds


def backoff_delay(
    attempt: int,
    initial: float,
    multiplier: float = 2.0,
    maximum: Optional[float] = None,
) -> float:
    """Delay before ``attempt`` (1-based); the first attempt never waits.

    Attempt 2 waits ``initial``, attempt 3 ``initial * multiplier`` and so
    on, capped at ``maximum``.
    """
    if attempt <= 1:
        return 0.0
    delay = initial * (multiplier ** (attempt - 2))
    if maximum is not None:
        delay = min(delay, maximum)
    return delay
