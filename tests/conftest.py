# tests/conftest.py
# Shared fixtures. Settings are frozen at import time, so the environment is
# scrubbed before any project module is imported.

import os

for _name in (
    "DATABASE_URL",
    "NEWS_API_KEY",
    "DEEPSEEK_API_KEY",
    "GROQ_API_KEY",
    "GEMINI_API_KEY",
    "COHERE_API_KEY",
    "OPENAI_API_KEY",
    "GOOGLE_SEARCH_API_KEY",
    "GOOGLE_CSE_ID",
    "SERPAPI_API_KEY_1",
    "SERPAPI_API_KEY_2",
    "SERPAPI_API_KEY_3",
    "SERPAPI_API_KEY_4",
    "AI_REWRITE_ENABLED",
    "AUTO_PUBLISH_ENABLED",
):
    os.environ.pop(_name, None)

import pytest  # noqa: E402
import requests  # noqa: E402

from core.content_quality import ArticleData  # noqa: E402

SENTENCE_A = "汽車冷氣系統的冷媒需要定期檢查，才能確保夏季行車時的舒適溫度。"
SENTENCE_B = "專業技師建議車主每年至少進行一次冷媒壓力與管路檢測。"
SENTENCE_C = "若發現冷氣不冷或有異味，應盡快前往合格的保養廠處理。"
KEYWORD_SENTENCE = "選擇優質汽車冷媒，是維持冷氣效能的關鍵。"

ARTICLE_HTML = """
<html>
  <head>
    <title>頁面標題</title>
    <meta name="keywords" content="冷媒, 汽車冷氣">
    <meta name="author" content="王小明">
  </head>
  <body>
    <header><h1>網站名稱</h1></header>
    <article>
      <h1>汽車冷媒更換全攻略</h1>
      <time>2024年3月5日</time>
      <p>短句</p>
      <p>夏天到了，汽車冷氣不冷往往是冷媒不足造成的，建議定期檢查。</p>
      <p>專業技師指出，冷媒管路若有洩漏，應先修復再進行補充作業。</p>
      <div class="tags"><a>冷媒</a><a>保養</a></div>
    </article>
    <footer>版權所有</footer>
  </body>
</html>
"""


def build_good_content() -> str:
    paragraphs = []
    for i in range(10):
        paragraph = SENTENCE_A + SENTENCE_B + SENTENCE_C
        if i in (2, 6):
            paragraph += KEYWORD_SENTENCE
        paragraphs.append(paragraph)
    return "\n\n".join(paragraphs)


@pytest.fixture
def good_article():
    return ArticleData(
        title="汽車冷媒保養指南：夏季冷氣檢查重點",
        content=build_good_content(),
        author="車冷博士編輯部",
        publish_date="2024-06-01",
        tags=["冷媒", "冷氣保養", "汽車空調"],
        cover_image="https://example.com/cover.jpg",
    )


@pytest.fixture
def article_html():
    return ARTICLE_HTML


class FakeResponse:
    def __init__(self, status_code=200, text="", payload=None, reason="OK"):
        self.status_code = status_code
        self.text = text
        self.reason = reason
        self.encoding = "utf-8"
        self.apparent_encoding = "utf-8"
        self._payload = payload

    def json(self):
        return self._payload or {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


class FakeSession:
    """Replays queued responses and records every GET."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if not self.responses:
            raise AssertionError(f"unexpected GET {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        pass


@pytest.fixture
def fake_session():
    return FakeSession
