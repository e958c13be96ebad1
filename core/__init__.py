"""
=============================================================================
AUTOMOTIVE NEWS CRAWLER - CORE MODULE INITIALIZATION
=============================================================================
Content pipeline components shared by the crawler, the API and the CLI.

This module exposes:
- Content Quality Checker (scoring and auto-fix)
- Duplicate Checker (URL / title / hash / content similarity)
- Crawl Monitor (per-source stats and crawl_logs persistence)

Components are created lazily so importing ``core`` stays cheap.
=============================================================================
"""

import logging

logger = logging.getLogger(__name__)

__version__ = "1.0.0"
__description__ = "Content pipeline for automotive news crawling"

_duplicate_checker = None


def get_quality_checker():
    """Shared ContentQualityChecker (lazy loading)."""
    from .content_quality import get_quality_checker as _get

    return _get()


def get_duplicate_checker():
    """Shared DuplicateChecker (lazy loading)."""
    global _duplicate_checker
    if _duplicate_checker is None:
        from .duplicate_checker import DuplicateChecker
        _duplicate_checker = DuplicateChecker()
        logger.info("Duplicate checker initialized")
    return _duplicate_checker


__all__ = [
    "get_quality_checker",
    "get_duplicate_checker",
]
