"""Centralised configuration settings for the news crawler and SEO toolkit.

All environment variable reads are consolidated here into typed, frozen
dataclass instances. Every other module should import the module-level
singletons (``db_config``, ``crawler_config``, ``ai_config``,
``seo_config``) from this module instead of calling ``os.getenv()``
directly.

Secrets are loaded exclusively from environment variables (typically
injected via a ``.env`` file read by the CLI / API entry points).
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

__all__ = [
    "db_config",
    "crawler_config",
    "ai_config",
    "seo_config",
    "get_settings",
    "DBConfig",
    "CrawlerConfig",
    "AIConfig",
    "SEOConfig",
    "CONFIG_DIR",
    "SERPAPI_ACCOUNT_ENV_KEYS",
]

CONFIG_DIR = Path(__file__).resolve().parent
SERPAPI_ACCOUNT_ENV_KEYS = tuple(f"SERPAPI_API_KEY_{i}" for i in range(1, 5))


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() == "true"


@dataclass(frozen=True)
class DBConfig:
    """Database connection configuration.

    Attributes:
        database_url: libpq connection string for the Postgres instance
            holding news, sources, rankings and crawl logs.
    """

    database_url: str = field(
        default_factory=lambda: os.getenv("DATABASE_URL", "")
    )

    @property
    def configured(self) -> bool:
        return bool(self.database_url)


@dataclass(frozen=True)
class CrawlerConfig:
    """Scraping and crawl-scheduling behaviour.

    Attributes:
        request_timeout: Seconds before a static HTTP request is abandoned.
        max_retries: Attempts per article before giving up.
        retry_delay_ms: Pause between attempts of the static/browser scraper.
        use_browser: Allow the Playwright fallback when static fetches fail.
        parallel: Crawl sources in concurrent batches.
        concurrent_limit: Sources per batch when ``parallel`` is set.
        batch_delay: Seconds between source batches.
        article_delay: Seconds between articles of one source.
        crawl_interval_minutes: Period of the background crawl loop.
        auto_publish: Publish saved articles immediately.
        ai_rewrite: Rewrite articles through the AI provider chain.
        seo_keywords: Comma-separated keywords added to tags and used by the
            quality scorer.
        user_agent: Desktop browser user agent for all requests.
    """

    request_timeout: int = field(
        default_factory=lambda: int(os.getenv("CRAWLER_TIMEOUT", "30"))
    )
    max_retries: int = field(
        default_factory=lambda: int(os.getenv("CRAWLER_MAX_RETRIES", "3"))
    )
    retry_delay_ms: int = field(
        default_factory=lambda: int(os.getenv("CRAWLER_RETRY_DELAY_MS", "2000"))
    )
    use_browser: bool = field(
        default_factory=lambda: _env_bool("CRAWLER_USE_BROWSER", "true")
    )
    parallel: bool = field(
        default_factory=lambda: _env_bool("CRAWL_PARALLEL", "true")
    )
    concurrent_limit: int = field(
        default_factory=lambda: int(os.getenv("CRAWL_CONCURRENT_LIMIT", "3"))
    )
    batch_delay: float = field(
        default_factory=lambda: float(os.getenv("CRAWL_BATCH_DELAY", "2"))
    )
    article_delay: float = field(
        default_factory=lambda: float(os.getenv("CRAWL_ARTICLE_DELAY", "3"))
    )
    crawl_interval_minutes: int = field(
        default_factory=lambda: int(os.getenv("CRAWL_INTERVAL_MINUTES", "60"))
    )
    auto_publish: bool = field(
        default_factory=lambda: _env_bool("AUTO_PUBLISH_ENABLED", "false")
    )
    ai_rewrite: bool = field(
        default_factory=lambda: _env_bool("AI_REWRITE_ENABLED", "false")
    )
    seo_keywords: str = field(
        default_factory=lambda: os.getenv(
            "SEO_KEYWORDS", "汽車冷媒,空調維修,冷凍空調"
        )
    )
    user_agent: str = field(
        default_factory=lambda: os.getenv(
            "CRAWLER_USER_AGENT",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        )
    )
    @property
    def keyword_list(self) -> list[str]:
        """Return ``seo_keywords`` split on commas with blanks removed."""
        return [k.strip() for k in self.seo_keywords.split(",") if k.strip()]


@dataclass(frozen=True)
class AIConfig:
    """AI rewrite provider configuration.

    Attributes:
        deepseek_api_key: DeepSeek API key (priority 1).
        groq_api_key: Groq API key (priority 2).
        gemini_api_key: Google Gemini API key (priority 3).
        cohere_api_key: Cohere API key (priority 4).
        openai_api_key: OpenAI API key (paid, lowest priority).
        failover_retries: Attempts per provider call before failing over.
        provider_delay: Seconds to wait before trying the next provider.
    """

    deepseek_api_key: str = field(
        default_factory=lambda: os.getenv("DEEPSEEK_API_KEY", "")
    )
    groq_api_key: str = field(
        default_factory=lambda: os.getenv("GROQ_API_KEY", "")
    )
    gemini_api_key: str = field(
        default_factory=lambda: os.getenv("GEMINI_API_KEY", "")
    )
    cohere_api_key: str = field(
        default_factory=lambda: os.getenv("COHERE_API_KEY", "")
    )
    openai_api_key: str = field(
        default_factory=lambda: os.getenv("OPENAI_API_KEY", "")
    )
    failover_retries: int = field(
        default_factory=lambda: int(os.getenv("AI_FAILOVER_RETRIES", "3"))
    )
    provider_delay: float = field(
        default_factory=lambda: float(os.getenv("AI_PROVIDER_DELAY", "1"))
    )


@dataclass(frozen=True)
class SEOConfig:
    """Search ranking configuration.

    Attributes:
        site_domain: Domain whose Google positions are tracked.
        google_api_key: Google Custom Search JSON API key.
        google_cse_id: Programmable Search Engine id paired with the key.
        serpapi_accounts: Configured SerpAPI keys by env var name
            (``SERPAPI_API_KEY_1`` .. ``SERPAPI_API_KEY_4``).
        serpapi_monthly_quota: Searches per SerpAPI account per month.
    """

    site_domain: str = field(
        default_factory=lambda: os.getenv("SITE_DOMAIN", "drcarcold.com")
    )
    google_api_key: str = field(
        default_factory=lambda: os.getenv("GOOGLE_SEARCH_API_KEY", "")
    )
    google_cse_id: str = field(
        default_factory=lambda: os.getenv("GOOGLE_CSE_ID", "")
    )
    serpapi_accounts: dict[str, str] = field(
        default_factory=lambda: {
            name: os.getenv(name, "")
            for name in SERPAPI_ACCOUNT_ENV_KEYS
            if os.getenv(name)
        }
    )
    serpapi_monthly_quota: int = field(
        default_factory=lambda: int(os.getenv("SERPAPI_MONTHLY_QUOTA", "250"))
    )


def get_settings() -> tuple[DBConfig, CrawlerConfig, AIConfig, SEOConfig]:
    """Initialise logging and build all configuration singletons.

    Returns:
        A four-element tuple ``(db_config, crawler_config, ai_config,
        seo_config)``, each a frozen dataclass populated exclusively from
        environment variables.
    """
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    return DBConfig(), CrawlerConfig(), AIConfig(), SEOConfig()


db_config, crawler_config, ai_config, seo_config = get_settings()
