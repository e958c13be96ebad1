# tests/test_llm_interface.py
# Provider failover over litellm.completion (stubbed)

from types import SimpleNamespace

import pytest

import integrations.llm_interface as llm
from config.settings import AIConfig
from integrations.llm_interface import AIProviderManager, ProviderError, call_provider


def _response(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


class FakeCompletion:
    """Answers per model: a string is returned, an exception is raised."""

    def __init__(self, **answers):
        self.answers = answers
        self.models = []

    def __call__(self, model, **kwargs):
        self.models.append(model)
        answer = self.answers.get(model.split("/")[0], "")
        if isinstance(answer, Exception):
            raise answer
        return _response(answer)


def _manager(**keys):
    config = AIConfig(
        deepseek_api_key=keys.get("deepseek", ""),
        groq_api_key=keys.get("groq", ""),
        gemini_api_key=keys.get("gemini", ""),
        cohere_api_key=keys.get("cohere", ""),
        openai_api_key=keys.get("openai", ""),
        failover_retries=1,
        provider_delay=0,
    )
    return AIProviderManager(config)


def test_chain_is_ordered_by_priority():
    manager = _manager(openai="k", groq="k", deepseek="k")
    assert manager.get_recommended_order() == ["deepseek", "groq", "openai"]


def test_no_providers_configured():
    result = _manager().rewrite_article_with_fallback("內容", "汽車冷媒")
    assert not result.success
    assert result.provider == "none"
    assert "沒有可用的提供商" in result.error


def test_call_provider_converts_to_traditional(monkeypatch):
    monkeypatch.setattr(llm.litellm, "completion", FakeCompletion(deepseek="汽车冷气维修"))
    assert call_provider("deepseek", "k", "sys", "user", retries=1) == "汽車冷氣維修"


def test_call_provider_unknown_name():
    with pytest.raises(ValueError):
        call_provider("nope", "k", "sys", "user")


def test_call_provider_quota_error_is_final(monkeypatch):
    fake = FakeCompletion(groq=RuntimeError("Rate limit exceeded"))
    monkeypatch.setattr(llm.litellm, "completion", fake)
    with pytest.raises(ProviderError) as exc:
        call_provider("groq", "k", "sys", "user", retries=3)
    assert exc.value.quota_exhausted
    assert len(fake.models) == 1


def test_failover_to_next_provider(monkeypatch):
    fake = FakeCompletion(deepseek=RuntimeError("connection reset"), groq="改寫後的文章")
    monkeypatch.setattr(llm.litellm, "completion", fake)
    manager = _manager(deepseek="k", groq="k")

    result = manager.rewrite_article_with_fallback("原文", "汽車冷媒")

    assert result.success
    assert result.provider == "groq"
    assert result.content == "改寫後的文章"
    status = {s["name"]: s for s in manager.get_provider_status()}
    assert status["deepseek"]["failure_count"] == 1
    assert status["groq"]["failure_count"] == 0
    assert status["groq"]["last_used"] is not None


def test_quota_exhausted_provider_is_skipped(monkeypatch):
    fake = FakeCompletion(deepseek=RuntimeError("insufficient quota"), groq="標題")
    monkeypatch.setattr(llm.litellm, "completion", fake)
    manager = _manager(deepseek="k", groq="k")

    manager.rewrite_title_with_fallback("原標題", "汽車冷媒")
    fake.models.clear()
    manager.rewrite_title_with_fallback("原標題", "汽車冷媒")

    assert fake.models == ["groq/llama-3.3-70b-versatile"]
    assert not {s["name"]: s for s in manager.get_provider_status()}["deepseek"]["available"]


def test_reset_failure_count(monkeypatch):
    monkeypatch.setattr(llm.litellm, "completion", FakeCompletion(deepseek=RuntimeError("quota")))
    manager = _manager(deepseek="k")
    manager.rewrite_article_with_fallback("原文", "汽車冷媒")
    assert manager.get_provider_status()[0]["failure_count"] == 3

    manager.reset_failure_count("deepseek")
    assert manager.get_provider_status()[0]["available"]


def test_empty_response_counts_as_failure(monkeypatch):
    monkeypatch.setattr(llm.litellm, "completion", FakeCompletion(deepseek="   "))
    result = _manager(deepseek="k").rewrite_article_with_fallback("原文", "汽車冷媒")
    assert not result.success
    assert "empty response" in result.error


def test_connection_check(monkeypatch):
    monkeypatch.setattr(llm.litellm, "completion", FakeCompletion(gemini="ok"))
    manager = _manager(gemini="k")

    assert manager.test_connection("gemini")["reachable"]
    missing = manager.test_connection("openai")
    assert not missing["reachable"]
    assert "not configured" in missing["error"]
