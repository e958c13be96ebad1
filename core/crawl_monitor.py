"""
core/crawl_monitor.py

Per-source crawl bookkeeping: counters, errors, an in-memory event log, and
one ``crawl_logs`` row per finished crawl.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from tools.postgres_tools import get_crawl_logs, get_crawl_logs_since, save_crawl_log

LOG = logging.getLogger("crawl_monitor")

MAX_EVENTS = 1000

_LEVELS = {
    "INFO": logging.INFO,
    "SUCCESS": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


@dataclass
class CrawlStats:
    source_id: str
    source_name: str
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: Optional[datetime] = None
    duration: float = 0.0
    articles_found: int = 0
    articles_processed: int = 0
    articles_published: int = 0
    articles_failed: int = 0
    errors: List[str] = field(default_factory=list)
    success: bool = False

    @property
    def result_type(self) -> str:
        if not self.errors and self.articles_processed > 0:
            return "success"
        if self.articles_processed > 0:
            return "partial"
        return "failure"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["start_time"] = self.start_time.isoformat()
        data["end_time"] = self.end_time.isoformat() if self.end_time else None
        data["result_type"] = self.result_type
        return data


@dataclass
class CrawlEvent:
    level: str
    message: str
    timestamp: str
    details: Optional[Dict[str, Any]] = None


class CrawlMonitor:
    def __init__(self) -> None:
        self._stats: Dict[str, CrawlStats] = {}
        self._events: List[CrawlEvent] = []
        self._lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # EVENT LOG
    # ------------------------------------------------------------------ #

    def log(self, level: str, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        level = level.upper()
        event = CrawlEvent(
            level=level,
            message=message,
            timestamp=datetime.now(timezone.utc).isoformat(),
            details=details,
        )
        with self._lock:
            self._events.append(event)
            del self._events[:-MAX_EVENTS]
        LOG.log(_LEVELS.get(level, logging.INFO), "%s %s", message, details or "")

    def get_events(self, limit: int = 100) -> List[Dict[str, Any]]:
        with self._lock:
            return [asdict(e) for e in self._events[-limit:]]

    # ------------------------------------------------------------------ #
    # CRAWL LIFECYCLE
    # ------------------------------------------------------------------ #

    def start_crawl(self, source_id: str, source_name: str) -> CrawlStats:
        stats = CrawlStats(source_id=source_id, source_name=source_name)
        with self._lock:
            self._stats[source_id] = stats
        self.log("INFO", f"開始爬取 {source_name}")
        return stats

    def update_stats(self, source_id: str, **updates: Any) -> None:
        stats = self._stats.get(source_id)
        if stats is None:
            return
        for key, value in updates.items():
            if hasattr(stats, key):
                setattr(stats, key, value)

    def record_error(self, source_id: str, error: str) -> None:
        stats = self._stats.get(source_id)
        if stats is None:
            return
        stats.errors.append(error)
        self.log("ERROR", error, {"source_id": source_id})

    def get_stats(self, source_id: str) -> Optional[CrawlStats]:
        return self._stats.get(source_id)

    def end_crawl(self, source_id: str) -> Optional[CrawlStats]:
        """Close the crawl, persist it and return the final stats."""
        stats = self._stats.get(source_id)
        if stats is None:
            return None

        stats.end_time = datetime.now(timezone.utc)
        stats.duration = round((stats.end_time - stats.start_time).total_seconds(), 1)
        stats.success = not stats.errors and stats.articles_processed > 0

        save_crawl_log(
            {
                "source_id": stats.source_id,
                "source_name": stats.source_name,
                "status": stats.result_type,
                "articles_found": stats.articles_found,
                "articles_processed": stats.articles_processed,
                "articles_published": stats.articles_published,
                "articles_failed": stats.articles_failed,
                "errors": stats.errors,
                "duration_ms": int(stats.duration * 1000),
                "started_at": stats.start_time.isoformat(),
                "finished_at": stats.end_time.isoformat(),
            }
        )

        self.log(
            "SUCCESS" if stats.success else "INFO",
            f"爬取結束 {stats.source_name}",
            {
                "duration": f"{stats.duration}秒",
                "processed": stats.articles_processed,
                "published": stats.articles_published,
                "result": stats.result_type,
            },
        )
        return stats

    # ------------------------------------------------------------------ #
    # HISTORY
    # ------------------------------------------------------------------ #

    @staticmethod
    def get_crawl_history(limit: int = 10) -> List[Dict[str, Any]]:
        return get_crawl_logs(limit)

    @staticmethod
    def get_stats_summary(days: int = 7) -> Dict[str, Any]:
        """Aggregate ``crawl_logs`` rows from the last ``days`` days."""
        logs = get_crawl_logs_since(days)
        statuses = Counter(log.get("status") for log in logs)
        total = len(logs)
        durations = [log["duration_ms"] for log in logs if log.get("duration_ms") is not None]
        return {
            "days": days,
            "total_crawls": total,
            "successful": statuses.get("success", 0),
            "partial": statuses.get("partial", 0),
            "failed": statuses.get("failure", 0),
            "success_rate": round(statuses.get("success", 0) / total * 100, 1) if total else 0.0,
            "articles_found": sum(log.get("articles_found") or 0 for log in logs),
            "articles_processed": sum(log.get("articles_processed") or 0 for log in logs),
            "articles_published": sum(log.get("articles_published") or 0 for log in logs),
            "average_duration_ms": round(sum(durations) / len(durations)) if durations else 0,
        }


__all__ = ["CrawlStats", "CrawlEvent", "CrawlMonitor"]
