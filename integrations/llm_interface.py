# integrations/llm_interface.py
"""
LLM Interface Module: AI article rewriting with provider failover

Every provider is reached through ``litellm.completion``. Providers are tried
in priority order (free tiers first, paid OpenAI last); a provider that keeps
failing, or reports an exhausted quota, is skipped until its failure count is
reset. All output is forced to Traditional Chinese before it is returned.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Optional

import litellm

from config.settings import AIConfig, ai_config, db_config
from tools.postgres_tools import get_settings_map
from Utils.chinese_converter import ensure_traditional
from Utils.proxy_ratelimit import backoff_delay

__all__ = [
    "ProviderError",
    "AIProviderResult",
    "ProviderState",
    "AIProviderManager",
    "call_provider",
    "get_ai_provider_manager",
]

logger = logging.getLogger(__name__)

# Provider config: name -> (model, api_key_env, priority, max_failures)
_PROVIDERS: dict[str, tuple[str, str, int, int]] = {
    "deepseek": ("deepseek/deepseek-chat", "DEEPSEEK_API_KEY", 1, 3),
    "groq": ("groq/llama-3.3-70b-versatile", "GROQ_API_KEY", 2, 3),
    "gemini": ("gemini/gemini-1.5-flash", "GEMINI_API_KEY", 3, 3),
    "cohere": ("cohere/command-r-plus", "COHERE_API_KEY", 4, 3),
    "openai": ("openai/gpt-4o-mini", "OPENAI_API_KEY", 10, 2),
}

# settings-table keys consulted when the environment has no key
_SETTING_KEYS = {
    "deepseek": "deepseekApiKey",
    "groq": "groqApiKey",
    "gemini": "geminiApiKey",
    "cohere": "cohereApiKey",
    "openai": "openaiApiKey",
}

_QUOTA_MARKERS = ("quota", "rate limit", "ratelimit", "exceeded", "429")

ARTICLE_SYSTEM_PROMPT = """你是汽車冷氣與冷媒領域的專業內容編輯。請改寫使用者提供的文章，並自然融入以下 SEO 關鍵字：{keywords}。

要求：
1. 全文使用繁體中文（Traditional Chinese），不得出現簡體字
2. 保持專業、易讀、流暢自然
3. 保留原文的核心意思
4. 關鍵字融入要自然，不要堆砌

只輸出改寫後的文章。"""

TITLE_SYSTEM_PROMPT = """你是汽車冷氣與冷媒領域的專業內容編輯。請改寫使用者提供的新聞標題，使其更適合 SEO，並包含以下關鍵字：{keywords}。

要求：
1. 使用繁體中文（Traditional Chinese），不得出現簡體字
2. 簡潔有力，不超過 50 個字
3. 吸引人且專業

只輸出一個標題。"""


class ProviderError(Exception):
    """A provider call failed; ``quota_exhausted`` marks quota and rate-limit failures."""

    def __init__(self, provider: str, message: str, quota_exhausted: bool = False):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.quota_exhausted = quota_exhausted


def _is_quota_error(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in _QUOTA_MARKERS)


def call_provider(
    name: str,
    api_key: str,
    system_prompt: str,
    user_prompt: str,
    max_tokens: int = 2000,
    retries: int = 3,
) -> str:
    """
    Send one chat completion to ``name`` and return Traditional Chinese text.

    Args:
        name: Provider name (key of the provider table).
        api_key: Provider API key.
        system_prompt: System message.
        user_prompt: User message.
        max_tokens: Completion budget.
        retries: Attempts with 1 s, 2 s, 4 s backoff (capped at 5 s).

    Returns:
        Response text after simplified-to-traditional conversion.

    Raises:
        ValueError: If ``name`` is not a known provider.
        ProviderError: If every attempt failed or the quota is exhausted.
    """
    if name not in _PROVIDERS:
        raise ValueError(f"Unknown AI provider: '{name}'. Valid: {sorted(_PROVIDERS)}")

    model = _PROVIDERS[name][0]
    last_error = ""

    for attempt in range(1, retries + 1):
        delay_ms = backoff_delay(attempt, 1000, 2, 5000)
        if delay_ms:
            time.sleep(delay_ms / 1000)
        try:
            response = litellm.completion(
                model=model,
                api_key=api_key,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=max_tokens,
                temperature=0.7,
            )
            content = (response.choices[0].message.content or "").strip()
            if not content:
                raise ProviderError(name, "empty response")

            result = ensure_traditional(content)
            if result.has_simplified:
                logger.info(
                    "[%s] converted simplified chars: %s",
                    name,
                    ", ".join(result.simplified_chars),
                )
            return result.text
        except ProviderError as e:
            last_error = str(e)
        except Exception as e:  # noqa: BLE001
            last_error = str(e)
            if _is_quota_error(last_error):
                raise ProviderError(name, last_error, quota_exhausted=True) from e

        logger.warning("%s attempt %d/%d failed: %s", name, attempt, retries, last_error)

    raise ProviderError(name, last_error or "unknown error")


@dataclass
class AIProviderResult:
    success: bool
    provider: str
    content: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ProviderState:
    name: str
    api_key: str
    priority: int
    max_failures: int
    failure_count: int = 0
    last_used: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.failure_count < self.max_failures


class AIProviderManager:
    """
    Failover chain over every provider that has an API key.

    Keys come from the environment first and the ``settings`` table second.
    """

    def __init__(self, config: Optional[AIConfig] = None) -> None:
        self.config = config or ai_config
        self.retries = self.config.failover_retries
        self.provider_delay = self.config.provider_delay
        self.providers: list[ProviderState] = []
        self.reload()

    def _load_keys(self) -> dict[str, str]:
        keys = {
            "deepseek": self.config.deepseek_api_key,
            "groq": self.config.groq_api_key,
            "gemini": self.config.gemini_api_key,
            "cohere": self.config.cohere_api_key,
            "openai": self.config.openai_api_key,
        }
        missing = [name for name, key in keys.items() if not key]
        if missing and db_config.configured:
            stored = get_settings_map(_SETTING_KEYS[name] for name in missing)
            for name in missing:
                keys[name] = stored.get(_SETTING_KEYS[name], "")
        return keys

    def reload(self) -> None:
        """Rebuild the provider chain from current keys; failure counts reset."""
        keys = self._load_keys()
        for name, (_, key_env, _, _) in _PROVIDERS.items():
            if not keys.get(name, "").strip():
                logger.debug("Skipping %s: %s not set", name, key_env)
        self.providers = sorted(
            (
                ProviderState(
                    name=name,
                    api_key=keys[name].strip(),
                    priority=priority,
                    max_failures=max_failures,
                )
                for name, (_, _, priority, max_failures) in _PROVIDERS.items()
                if keys.get(name, "").strip()
            ),
            key=lambda p: p.priority,
        )
        logger.info(
            "AI provider chain: %s",
            ", ".join(p.name for p in self.providers) or "(none configured)",
        )

    # ------------------------------------------------------------------ #
    # FAILOVER
    # ------------------------------------------------------------------ #

    def _run_with_fallback(self, system_prompt: str, user_prompt: str, max_tokens: int) -> AIProviderResult:
        candidates = [p for p in self.providers if p.available]
        last_error = ""

        for index, provider in enumerate(candidates):
            logger.info("Trying %s (priority %d)", provider.name, provider.priority)
            try:
                content = call_provider(
                    provider.name,
                    provider.api_key,
                    system_prompt,
                    user_prompt,
                    max_tokens=max_tokens,
                    retries=self.retries,
                )
            except ProviderError as e:
                last_error = str(e)
                provider.failure_count += 1
                if e.quota_exhausted or _is_quota_error(last_error):
                    logger.warning("%s disabled: quota exhausted", provider.name)
                    provider.failure_count = provider.max_failures
                logger.warning(
                    "%s failed (%d/%d): %s",
                    provider.name,
                    provider.failure_count,
                    provider.max_failures,
                    last_error,
                )
                if index < len(candidates) - 1 and self.provider_delay:
                    time.sleep(self.provider_delay)
                continue

            provider.failure_count = 0
            provider.last_used = datetime.now(timezone.utc).isoformat()
            logger.info("%s succeeded", provider.name)
            return AIProviderResult(success=True, provider=provider.name, content=content)

        return AIProviderResult(
            success=False,
            provider="none",
            error=f"所有AI提供商都失敗了。最後錯誤: {last_error or '沒有可用的提供商'}",
        )

    def rewrite_article_with_fallback(self, content: str, keywords: str) -> AIProviderResult:
        return self._run_with_fallback(
            ARTICLE_SYSTEM_PROMPT.format(keywords=keywords),
            f"請將以下內容改寫為繁體中文，並融入相關關鍵字：\n\n{content}",
            max_tokens=2000,
        )

    def rewrite_title_with_fallback(self, title: str, keywords: str) -> AIProviderResult:
        return self._run_with_fallback(
            TITLE_SYSTEM_PROMPT.format(keywords=keywords),
            f"請將以下標題改寫為繁體中文，並融入相關關鍵字：{title}",
            max_tokens=100,
        )

    # ------------------------------------------------------------------ #
    # STATUS
    # ------------------------------------------------------------------ #

    def get_provider_status(self) -> list[dict[str, Any]]:
        return [
            {
                "name": p.name,
                "enabled": True,
                "priority": p.priority,
                "failure_count": p.failure_count,
                "max_failures": p.max_failures,
                "available": p.available,
                "last_used": p.last_used,
            }
            for p in self.providers
        ]

    def reset_failure_count(self, name: Optional[str] = None) -> None:
        for provider in self.providers:
            if name is None or provider.name == name:
                provider.failure_count = 0
        logger.info("Reset failure count for %s", name or "all providers")

    def get_recommended_order(self) -> list[str]:
        return [p.name for p in sorted(self.providers, key=lambda p: p.priority)]

    def test_connection(self, name: str) -> dict[str, Any]:
        """
        Ping one provider with a single-token completion.

        Does not raise; always returns a status dict with keys provider,
        model, reachable, latency_ms, error.
        """
        start = time.perf_counter()
        model = _PROVIDERS.get(name, ("unknown",))[0]
        provider = next((p for p in self.providers if p.name == name), None)

        if provider is None:
            return {
                "provider": name,
                "model": model,
                "reachable": False,
                "latency_ms": 0.0,
                "error": f"Provider '{name}' is not configured",
            }

        try:
            response = litellm.completion(
                model=model,
                api_key=provider.api_key,
                messages=[{"role": "user", "content": "Hi"}],
                max_tokens=1,
            )
            reachable = bool(response and response.choices)
            error = None if reachable else "empty response"
        except Exception as e:  # noqa: BLE001
            reachable = False
            error = str(e)

        return {
            "provider": name,
            "model": model,
            "reachable": reachable,
            "latency_ms": round((time.perf_counter() - start) * 1000, 2),
            "error": error,
        }


_manager: Optional[AIProviderManager] = None


def get_ai_provider_manager() -> AIProviderManager:
    global _manager
    if _manager is None:
        _manager = AIProviderManager()
    return _manager
