"""
seo/ranking_detector.py

GOOGLE RANKING DETECTOR
=======================

Purpose:
    Find where the site ranks on Google for a keyword and keep a history of
    every check in the ``seo_rankings`` table.

Search methods, tried in order until one finds the domain:
  1. Google Custom Search JSON API (GOOGLE_SEARCH_API_KEY + GOOGLE_CSE_ID)
  2. Google result page scrape (zh-TW, 100 results)
  3. SerpAPI, with monthly credit tracking across up to 4 accounts
     (SERPAPI_API_KEY_1 .. SERPAPI_API_KEY_4)

A method that raises is logged and skipped. A check always produces a
``RankingResult`` and always persists it.
"""

from __future__ import annotations

import re
import json
import time
import random
import logging
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import requests
from bs4 import BeautifulSoup

from config.settings import SEOConfig, db_config, seo_config
from tools.postgres_tools import (
    get_latest_found_rankings,
    get_previous_ranking,
    get_seo_ranking_history,
    get_settings_map,
    get_tracked_keywords,
    save_seo_ranking,
)

# ================================================================================
# LOGGING
# ================================================================================

LOG = logging.getLogger("ranking_detector")

# ================================================================================
# PATHS / CONSTANTS
# ================================================================================

BASE_DIR = Path(__file__).resolve().parent.parent
OUTPUT_DIR = BASE_DIR / "logs"
SERPAPI_USAGE_PATH = OUTPUT_DIR / "serpapi_usage.json"

GOOGLE_CSE_ENDPOINT = "https://www.googleapis.com/customsearch/v1"
GOOGLE_SEARCH_URL = "https://www.google.com/search"
SERPAPI_ENDPOINT = "https://serpapi.com/search.json"

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

MAX_RESULTS = 100
CSE_MAX_RESULTS = 50
CSE_PAGE_SIZE = 10
REQUEST_TIMEOUT = 15

SUGGESTION_PATTERNS = ("{kw} 推薦", "{kw} 價格", "{kw} 教學", "最佳 {kw}")
MAX_SUGGESTIONS = 20


# ================================================================================
# RESOURCE MANAGER
# ================================================================================


class ResourceManager:
    """
    Monthly SerpAPI credit ledger for the configured accounts, keyed by their
    env var name (SERPAPI_API_KEY_1..4).

    The ledger file only stores credits spent in the current month; remaining
    credits are derived from ``monthly_quota``. A new month starts a new ledger.
    """

    def __init__(
        self,
        monthly_quota: int = 250,
        usage_file: Path = SERPAPI_USAGE_PATH,
        accounts: Optional[Dict[str, str]] = None,
    ):
        self.monthly_quota = monthly_quota
        self.usage_file = Path(usage_file)
        self.accounts = dict(seo_config.serpapi_accounts if accounts is None else accounts)
        self.active_keys: List[str] = [k for k in self.accounts if self.accounts[k]]
        self.ledger = self._read_ledger()

        LOG.info(
            "SerpAPI ledger loaded | accounts=%d | quota=%d | month=%s",
            len(self.active_keys),
            self.monthly_quota,
            self.ledger["month"],
        )

    @staticmethod
    def _this_month() -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m")

    def _empty_ledger(self) -> Dict[str, Any]:
        return {
            "month": self._this_month(),
            "spent": {k: 0 for k in self.active_keys},
            "searches": 0,
        }

    def _read_ledger(self) -> Dict[str, Any]:
        try:
            ledger = json.loads(self.usage_file.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return self._empty_ledger()
        except (OSError, ValueError) as e:
            LOG.warning("SerpAPI ledger unreadable, starting a new one: %s", e)
            return self._empty_ledger()

        if ledger.get("month") != self._this_month() or "spent" not in ledger:
            LOG.info("SerpAPI quotas reset for %s", self._this_month())
            return self._empty_ledger()
        for key in self.active_keys:
            ledger["spent"].setdefault(key, 0)
        return ledger

    def _write_ledger(self) -> None:
        snapshot = dict(self.ledger, total_credits_used=sum(self.ledger["spent"].values()))
        try:
            self.usage_file.parent.mkdir(parents=True, exist_ok=True)
            self.usage_file.write_text(json.dumps(snapshot, indent=2), encoding="utf-8")
        except OSError as e:
            LOG.error("Could not write SerpAPI ledger %s: %s", self.usage_file, e)

    def api_key(self, account_key: str) -> str:
        return self.accounts.get(account_key, "")

    def remaining(self, account_key: str) -> int:
        if account_key not in self.active_keys:
            return 0
        return max(self.monthly_quota - self.ledger["spent"].get(account_key, 0), 0)

    def select_account_for_request(self, required_credits: int = 1) -> Optional[str]:
        """Env-var name of the account with the most credits left, or None."""
        usable = [k for k in self.active_keys if self.remaining(k) >= required_credits]
        if not usable:
            return None
        return max(usable, key=self.remaining)

    def use_credits(self, account_key: str, credits: int = 1) -> bool:
        if account_key not in self.active_keys:
            LOG.warning("No SerpAPI account configured as %s", account_key)
            return False
        if self.remaining(account_key) < credits:
            return False
        self.ledger["spent"][account_key] = self.ledger["spent"].get(account_key, 0) + credits
        self.ledger["searches"] += 1
        self._write_ledger()
        return True

    def get_status(self) -> Dict[str, Any]:
        accounts = {
            k: {"credits_used": self.ledger["spent"].get(k, 0), "credits_remaining": self.remaining(k)}
            for k in self.active_keys
        }
        return {
            "current_month": self.ledger["month"],
            "accounts": accounts,
            "total_credits_used": sum(a["credits_used"] for a in accounts.values()),
            "total_credits_remaining": sum(a["credits_remaining"] for a in accounts.values()),
            "searches_this_month": self.ledger["searches"],
        }


# ================================================================================
# RESULT TYPES
# ================================================================================


@dataclass
class RankingResult:
    keyword: str
    position: Optional[int] = None
    url: str = ""
    title: Optional[str] = None
    checked_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    found: bool = False
    error: Optional[str] = None
    search_engine: str = "google"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RankingStats:
    total_keywords: int = 0
    ranked_keywords: int = 0
    average_position: float = 0.0
    top_rankings: int = 0
    improvements: int = 0
    declines: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SearchMethodError(RuntimeError):
    """A search method could not run (not configured, blocked, bad status)."""


# ================================================================================
# DETECTOR
# ================================================================================


def _strip_www(host: str) -> str:
    host = (host or "").lower()
    return host[4:] if host.startswith("www.") else host


class SEORankingDetector:
    def __init__(
        self,
        domain: str,
        config: Optional[SEOConfig] = None,
        session: Optional[requests.Session] = None,
        resource_manager: Optional[ResourceManager] = None,
    ):
        self.domain = _strip_www(re.sub(r"^https?://", "", domain.strip()).rstrip("/"))
        self.config = config or seo_config
        self.session = session or requests.Session()
        self._resource_manager = resource_manager
        self.delay_range = (2.0, 5.0)

    @property
    def resource_manager(self) -> ResourceManager:
        if self._resource_manager is None:
            self._resource_manager = ResourceManager(
                self.config.serpapi_monthly_quota,
                accounts=self.config.serpapi_accounts,
            )
        return self._resource_manager

    def _matches_domain(self, link: str) -> bool:
        host = _strip_www(urlparse(link).hostname or "")
        return host == self.domain or host.endswith("." + self.domain)

    # ------------------------------------------------------------------ #
    # ENTRY POINTS
    # ------------------------------------------------------------------ #

    def search_methods(self) -> List[Callable[[str], RankingResult]]:
        return [self.search_with_google_api, self.search_with_scraping, self.search_with_serpapi]

    def check_keyword_ranking(self, keyword: str) -> RankingResult:
        LOG.info("Checking ranking for '%s' on %s", keyword, self.domain)
        result: Optional[RankingResult] = None
        last_error = ""

        for method in self.search_methods():
            try:
                result = method(keyword)
            except Exception as e:  # noqa: BLE001
                last_error = str(e)
                LOG.warning("%s failed for '%s': %s", method.__name__, keyword, e)
                continue
            if result.found:
                break

        if result is None:
            result = RankingResult(keyword=keyword, error=last_error or "所有搜索方法都失敗")

        self._save_result(result)
        return result

    def check_multiple_keywords(self, keywords: List[str]) -> List[RankingResult]:
        keywords = [k.strip() for k in keywords if k and k.strip()]
        LOG.info("Checking %d keywords", len(keywords))
        results: List[RankingResult] = []

        for i, keyword in enumerate(keywords):
            LOG.info("Progress %d/%d - %s", i + 1, len(keywords), keyword)
            try:
                results.append(self.check_keyword_ranking(keyword))
            except Exception as e:  # noqa: BLE001
                LOG.error("Ranking check for '%s' failed: %s", keyword, e)
                results.append(RankingResult(keyword=keyword, error=str(e)))

            if i < len(keywords) - 1:
                time.sleep(random.uniform(*self.delay_range))

        LOG.info(
            "Ranking check done: found %d/%d",
            sum(1 for r in results if r.found),
            len(results),
        )
        return results

    # ------------------------------------------------------------------ #
    # SEARCH METHODS
    # ------------------------------------------------------------------ #

    def _google_credentials(self) -> tuple[str, str]:
        api_key, cse_id = self.config.google_api_key, self.config.google_cse_id
        if (not api_key or not cse_id) and db_config.configured:
            stored = get_settings_map(["google_search_api_key", "google_cse_id"])
            api_key = api_key or stored.get("google_search_api_key", "")
            cse_id = cse_id or stored.get("google_cse_id", "")
        return api_key, cse_id

    def search_with_google_api(self, keyword: str) -> RankingResult:
        api_key, cse_id = self._google_credentials()
        if not api_key or not cse_id:
            raise SearchMethodError("Google Search API未配置")

        # the JSON API returns at most 10 items per request
        for start in range(1, CSE_MAX_RESULTS + 1, CSE_PAGE_SIZE):
            response = self.session.get(
                GOOGLE_CSE_ENDPOINT,
                params={"key": api_key, "cx": cse_id, "q": keyword, "num": CSE_PAGE_SIZE, "start": start},
                timeout=REQUEST_TIMEOUT,
            )
            if response.status_code != 200:
                raise SearchMethodError(f"Google API請求失敗: {response.status_code}")

            items = response.json().get("items") or []
            for offset, item in enumerate(items):
                link = item.get("link", "")
                if self._matches_domain(link):
                    return RankingResult(
                        keyword=keyword,
                        position=start + offset,
                        url=link,
                        title=item.get("title"),
                        found=True,
                        search_engine="google_api",
                    )
            if len(items) < CSE_PAGE_SIZE:
                break

        return RankingResult(keyword=keyword, search_engine="google_api")

    @staticmethod
    def _result_link(href: str) -> str:
        if href.startswith("/url?"):
            return parse_qs(urlparse(href).query).get("q", [""])[0]
        return href

    def search_with_scraping(self, keyword: str) -> RankingResult:
        response = self.session.get(
            GOOGLE_SEARCH_URL,
            params={"q": keyword, "num": MAX_RESULTS, "hl": "zh-TW"},
            headers={
                "User-Agent": USER_AGENT,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "zh-TW,zh;q=0.8,en;q=0.6",
                "DNT": "1",
            },
            timeout=REQUEST_TIMEOUT,
        )
        if response.status_code != 200:
            raise SearchMethodError(f"搜索請求失敗: {response.status_code}")
        return self.parse_search_page(keyword, response.text)

    def parse_search_page(self, keyword: str, html: str) -> RankingResult:
        """Locate the domain in a Google result page."""
        soup = BeautifulSoup(html, "lxml")

        position = 0
        for block in soup.select("div.g"):
            anchor = block.select_one("a[href]")
            heading = block.select_one("h3")
            if anchor is None or heading is None:
                continue
            position += 1
            link = self._result_link(anchor["href"])
            if self._matches_domain(link):
                return RankingResult(
                    keyword=keyword,
                    position=position,
                    url=link,
                    title=heading.get_text(strip=True) or None,
                    found=True,
                )
        if position:
            return RankingResult(keyword=keyword)

        # no parseable result blocks: estimate from where the first link sits
        pattern = re.compile(
            r"https?://[^/\"'<>\s]*" + re.escape(self.domain) + r"[^\s\"'<>]*",
            re.IGNORECASE,
        )
        match = pattern.search(html)
        if match:
            return RankingResult(
                keyword=keyword,
                position=min(match.start() // 1000 + 1, MAX_RESULTS),
                url=match.group(0),
                found=True,
            )
        return RankingResult(keyword=keyword)

    def search_with_serpapi(self, keyword: str) -> RankingResult:
        manager = self.resource_manager
        account = manager.select_account_for_request(1)
        if account is None:
            raise SearchMethodError("SerpAPI未配置或額度已用完")

        response = self.session.get(
            SERPAPI_ENDPOINT,
            params={
                "engine": "google",
                "q": keyword,
                "gl": "tw",
                "hl": "zh-tw",
                "num": MAX_RESULTS,
                "api_key": manager.api_key(account),
            },
            timeout=REQUEST_TIMEOUT * 2,
        )
        manager.use_credits(account, 1)
        if response.status_code != 200:
            raise SearchMethodError(f"SerpAPI請求失敗: {response.status_code}")

        for item in response.json().get("organic_results") or []:
            link = item.get("link", "")
            if self._matches_domain(link):
                return RankingResult(
                    keyword=keyword,
                    position=item.get("position"),
                    url=link,
                    title=item.get("title"),
                    found=True,
                    search_engine="serpapi",
                )
        return RankingResult(keyword=keyword, search_engine="serpapi")

    # ------------------------------------------------------------------ #
    # HISTORY / STATS
    # ------------------------------------------------------------------ #

    def _save_result(self, result: RankingResult) -> None:
        saved = save_seo_ranking({**result.to_dict(), "domain": self.domain})
        if "error" in saved:
            LOG.warning("Ranking for '%s' not stored: %s", result.keyword, saved.get("detail"))

    def get_ranking_history(self, keyword: str, days: int = 30) -> List[Dict[str, Any]]:
        return get_seo_ranking_history(self.domain, keyword, days)

    def get_ranking_stats(self) -> RankingStats:
        latest = get_latest_found_rankings(self.domain)
        if not latest:
            return RankingStats()

        ranked = [r for r in latest if r.get("position")]
        if not ranked:
            return RankingStats(total_keywords=len(latest))

        positions = [r["position"] for r in ranked if r["position"] > 0]
        improvements = declines = 0
        for ranking in ranked:
            previous = get_previous_ranking(self.domain, ranking["keyword"], ranking["checked_at"])
            if not previous or not previous.get("position"):
                continue
            if ranking["position"] < previous["position"]:
                improvements += 1
            elif ranking["position"] > previous["position"]:
                declines += 1

        return RankingStats(
            total_keywords=len(latest),
            ranked_keywords=len(ranked),
            average_position=round(sum(positions) / len(positions), 1) if positions else 0.0,
            top_rankings=sum(1 for p in positions if p <= 10),
            improvements=improvements,
            declines=declines,
        )

    def get_suggested_keywords(self) -> List[str]:
        suggestions: List[str] = []
        for keyword in get_tracked_keywords(self.domain):
            for pattern in SUGGESTION_PATTERNS:
                candidate = pattern.format(kw=keyword)
                if candidate not in suggestions:
                    suggestions.append(candidate)
        return suggestions[:MAX_SUGGESTIONS]


def create_seo_ranking_detector(domain: Optional[str] = None) -> SEORankingDetector:
    return SEORankingDetector(domain or seo_config.site_domain)


__all__ = [
    "ResourceManager",
    "RankingResult",
    "RankingStats",
    "SearchMethodError",
    "SEORankingDetector",
    "create_seo_ranking_detector",
]
