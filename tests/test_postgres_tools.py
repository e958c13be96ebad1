# tests/test_postgres_tools.py
# Data access layer: fail-soft behaviour without a database and retry on
# connection failures, using an in-memory fake connection

import psycopg2
import pytest

import tools.postgres_tools as pg


class FakeCursor:
    def __init__(self, rows):
        self.rows = rows
        self.rowcount = len(rows)
        self.executed = []

    def execute(self, sql, params):
        self.executed.append((sql, params))

    def fetchone(self):
        return self.rows[0] if self.rows else None

    def fetchall(self):
        return self.rows


class FakeConnection:
    def __init__(self, rows=None, fail_on_execute=None):
        self.cursor_obj = FakeCursor(rows or [])
        self.fail_on_execute = fail_on_execute
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def cursor(self, cursor_factory=None):
        if self.fail_on_execute:
            raise self.fail_on_execute
        return self.cursor_obj

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True


@pytest.fixture
def no_sleep(monkeypatch):
    sleeps = []
    monkeypatch.setattr(pg.time, "sleep", sleeps.append)
    return sleeps


def test_reads_and_writes_fail_soft_without_database():
    assert pg.check_connection() is False
    assert pg.find_news_by_url("https://example.com/a") is None
    assert pg.get_recent_news_titles() == []
    assert pg.get_crawl_logs() == []
    assert pg.get_setting("x", "fallback") == "fallback"

    assert pg.save_news_article({"title": "冷媒"})["error"] == "save_news_article_failed"
    assert pg.save_seo_ranking({"keyword": "冷媒"})["error"] == "save_seo_ranking_failed"
    assert "error" in pg.save_crawl_log({"source_id": "u-car"})


def test_find_news_by_url_ignores_blank_urls(monkeypatch):
    calls = []
    monkeypatch.setattr(pg, "_execute", lambda sql, params, fetch: calls.append(params) or {"id": 1})

    assert pg.find_news_by_url() is None
    assert pg.find_news_by_url("", None) is None
    assert calls == []

    assert pg.find_news_by_url("https://a.com/x", "https://a.com/x", "https://a.com/y") == {"id": 1}
    assert calls == [(["https://a.com/x", "https://a.com/y"],)]


def test_save_news_article_reports_action(monkeypatch):
    monkeypatch.setattr(pg, "_execute", lambda sql, params, fetch: {"id": 7, "inserted": False, "is_published": True})
    assert pg.save_news_article({"title": "冷媒", "tags": ["冷媒"]}) == {
        "news_id": 7,
        "action": "updated",
        "is_published": True,
    }


def test_recrawl_keeps_publish_state_in_sync(monkeypatch):
    conn = FakeConnection(rows=[{"id": 7, "inserted": False, "is_published": True}])
    monkeypatch.setattr(pg, "_get_conn", lambda: conn)

    saved = pg.save_news_article({"title": "冷媒", "source_url": "https://a.com/x", "is_published": False})

    sql, params = conn.cursor_obj.executed[0]
    update = sql.split("ON CONFLICT (source_url) DO UPDATE SET", 1)[1]
    assert "is_published = news.is_published OR EXCLUDED.is_published" in update
    assert "published_at = COALESCE(news.published_at, EXCLUDED.published_at)" in update
    assert "RETURNING id, (xmax = 0) AS inserted, is_published" in update
    assert params[-2:] == (False, False)
    assert saved["is_published"] is True


def test_settings_map(monkeypatch):
    rows = [{"key": "groq_api_key", "value": "k"}]
    monkeypatch.setattr(pg, "_execute", lambda sql, params: rows)
    assert pg.get_settings_map([]) == {}
    assert pg.get_settings_map(["groq_api_key"]) == {"groq_api_key": "k"}


def test_execute_commits_and_closes(monkeypatch):
    conn = FakeConnection(rows=[{"ok": 1}])
    monkeypatch.setattr(pg, "_get_conn", lambda: conn)

    assert pg._execute("SELECT 1 AS ok", fetch="one") == {"ok": 1}
    assert conn.committed and conn.closed
    assert conn.cursor_obj.executed == [("SELECT 1 AS ok", ())]


def test_execute_retries_connection_failures(monkeypatch, no_sleep):
    attempts = []
    conn = FakeConnection(rows=[{"ok": 1}])

    def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise psycopg2.OperationalError("server closed the connection")
        return conn

    monkeypatch.setattr(pg, "_get_conn", flaky)

    assert pg._execute("SELECT 1 AS ok") == [{"ok": 1}]
    assert len(attempts) == 3
    assert no_sleep == [1, 2]


def test_execute_gives_up_after_three_attempts(monkeypatch, no_sleep):
    def down():
        raise psycopg2.OperationalError("could not connect")

    monkeypatch.setattr(pg, "_get_conn", down)

    with pytest.raises(psycopg2.OperationalError):
        pg._execute("SELECT 1")
    assert no_sleep == [1, 2]


def test_execute_rolls_back_on_query_errors(monkeypatch, no_sleep):
    conn = FakeConnection(fail_on_execute=ValueError("bad sql"))
    monkeypatch.setattr(pg, "_get_conn", lambda: conn)

    with pytest.raises(ValueError):
        pg._execute("SELEC 1")
    assert conn.rolled_back and conn.closed
    assert no_sleep == []
