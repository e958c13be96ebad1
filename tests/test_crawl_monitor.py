# tests/test_crawl_monitor.py
# Per-source crawl stats, the event log and crawl_logs aggregation

import pytest

import core.crawl_monitor as cm
from core.crawl_monitor import CrawlMonitor, CrawlStats


@pytest.fixture
def saved_logs(monkeypatch):
    rows = []
    monkeypatch.setattr(cm, "save_crawl_log", lambda row: rows.append(row) or {"log_id": len(rows)})
    return rows


def test_result_type():
    stats = CrawlStats(source_id="u-car", source_name="U-CAR")
    assert stats.result_type == "failure"
    stats.articles_processed = 2
    assert stats.result_type == "success"
    stats.errors.append("boom")
    assert stats.result_type == "partial"


def test_crawl_lifecycle(saved_logs):
    monitor = CrawlMonitor()
    monitor.start_crawl("u-car", "U-CAR")
    monitor.update_stats("u-car", articles_found=5, articles_processed=3, not_a_field=1)
    monitor.record_error("u-car", "處理文章失敗: timeout")

    stats = monitor.end_crawl("u-car")

    assert stats.articles_found == 5
    assert stats.end_time is not None
    assert not stats.success
    assert stats.result_type == "partial"
    assert not hasattr(stats, "not_a_field")

    assert len(saved_logs) == 1
    row = saved_logs[0]
    assert row["status"] == "partial"
    assert row["errors"] == ["處理文章失敗: timeout"]
    assert row["articles_processed"] == 3

    levels = [e["level"] for e in monitor.get_events()]
    assert levels == ["INFO", "ERROR", "INFO"]


def test_successful_crawl(saved_logs):
    monitor = CrawlMonitor()
    monitor.start_crawl("carnews", "CarNews")
    monitor.update_stats("carnews", articles_processed=1)
    stats = monitor.end_crawl("carnews")

    assert stats.success
    assert saved_logs[0]["status"] == "success"
    assert monitor.get_events()[-1]["level"] == "SUCCESS"


def test_unknown_source_is_ignored(saved_logs):
    monitor = CrawlMonitor()
    monitor.update_stats("nope", articles_found=1)
    monitor.record_error("nope", "x")
    assert monitor.end_crawl("nope") is None
    assert monitor.get_stats("nope") is None
    assert saved_logs == []


def test_event_log_is_bounded():
    monitor = CrawlMonitor()
    for i in range(cm.MAX_EVENTS + 5):
        monitor.log("info", f"event {i}")
    events = monitor.get_events(limit=cm.MAX_EVENTS * 2)
    assert len(events) == cm.MAX_EVENTS
    assert events[0]["message"] == "event 5"
    assert len(monitor.get_events(limit=3)) == 3


def test_stats_summary(monkeypatch):
    monkeypatch.setattr(
        cm,
        "get_crawl_logs_since",
        lambda days: [
            {"status": "success", "articles_found": 5, "articles_processed": 3, "articles_published": 1, "duration_ms": 1000},
            {"status": "partial", "articles_found": 4, "articles_processed": 1, "articles_published": 0, "duration_ms": 3000},
            {"status": "failure", "articles_found": 0, "articles_processed": 0, "articles_published": 0, "duration_ms": None},
        ],
    )
    summary = CrawlMonitor.get_stats_summary(7)

    assert summary["total_crawls"] == 3
    assert summary["successful"] == 1
    assert summary["partial"] == 1
    assert summary["failed"] == 1
    assert summary["success_rate"] == 33.3
    assert summary["articles_found"] == 9
    assert summary["articles_processed"] == 4
    assert summary["average_duration_ms"] == 2000


def test_stats_summary_without_logs(monkeypatch):
    monkeypatch.setattr(cm, "get_crawl_logs_since", lambda days: [])
    summary = CrawlMonitor.get_stats_summary(3)
    assert summary["total_crawls"] == 0
    assert summary["success_rate"] == 0.0


def test_crawl_history(monkeypatch):
    monkeypatch.setattr(cm, "get_crawl_logs", lambda limit: [{"id": i} for i in range(limit)])
    assert len(CrawlMonitor.get_crawl_history(4)) == 4
