"""Automotive news crawler: single CLI entry point.

Invoked by cron (``--mode crawl``), manual runs (``--mode scrape --url ...``)
and the Docker CMD (``--mode serve``). Boots logging, loads ``.env``, runs the
requested mode, prints a JSON report and exits with a POSIX code.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from datetime import datetime, timezone

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# MODULE-LEVEL SETUP  (runs at import time)
# ---------------------------------------------------------------------------

# override=False so values already in the process environment win.
load_dotenv(override=False)

os.makedirs("logs", exist_ok=True)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler("logs/crawler.log", mode="a", encoding="utf-8"),
    ],
)

logger: logging.Logger = logging.getLogger("main")

# Deferred imports so the environment is loaded first.
from config.settings import crawler_config, db_config, seo_config  # noqa: E402
from core.content_quality import ArticleData, get_quality_checker  # noqa: E402
from integrations.llm_interface import get_ai_provider_manager  # noqa: E402
from scrapers.scraper_engine import AutoNewsCrawler, load_default_sources  # noqa: E402
from scrapers.simple_scraper import PageNotFoundError, simple_scrape_article  # noqa: E402
from seo.keywords import load_keyword_library  # noqa: E402
from seo.ranking_detector import create_seo_ranking_detector  # noqa: E402
from tools.postgres_tools import check_connection  # noqa: E402

__all__ = ["main"]


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Automotive news crawler, content-quality scorer and SEO rank checker"
    )
    parser.add_argument(
        "--mode",
        choices=["crawl", "scrape", "quality", "seo", "serve"],
        default="crawl",
        help="Execution mode (default: crawl)",
    )
    parser.add_argument("--url", help="Article URL for --mode scrape/quality")
    parser.add_argument(
        "--keywords",
        help="Comma-separated keywords for --mode seo (default: SEO_KEYWORDS)",
    )
    parser.add_argument("--domain", help="Domain for --mode seo (default: SITE_DOMAIN)")
    parser.add_argument(
        "--sequential",
        action="store_true",
        help="Crawl sources one at a time instead of in parallel batches",
    )
    parser.add_argument(
        "--auto-crawl",
        action="store_true",
        help="With --mode serve, also run the periodic crawl loop",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=0,
        help="Periodic crawl interval in minutes (0 = CRAWL_INTERVAL_MINUTES)",
    )
    parser.add_argument(
        "--health-check",
        action="store_true",
        help="Check configuration and connectivity, then exit",
    )
    return parser.parse_args(argv)


def _print_report(title: str, payload: object) -> None:
    print("\n" + "=" * 70)
    print(title)
    print("=" * 70)
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))
    print("=" * 70)


# ---------------------------------------------------------------------------
# SHORTCUTS
# ---------------------------------------------------------------------------


def run_health_check() -> int:
    """Check config files, database and AI providers; 0 when usable."""
    checks: dict[str, object] = {}
    ok = True

    try:
        checks["news_sources"] = len(load_default_sources())
        checks["keyword_groups"] = len(load_keyword_library())
    except (OSError, ValueError) as exc:
        checks["config_error"] = str(exc)
        ok = False

    checks["db_configured"] = db_config.configured
    checks["db_connected"] = check_connection() if db_config.configured else False
    if db_config.configured and not checks["db_connected"]:
        ok = False

    checks["ai_providers"] = get_ai_provider_manager().get_recommended_order()
    checks["site_domain"] = seo_config.site_domain

    _print_report("HEALTH CHECK", checks)
    if ok:
        logger.info("Health check PASSED")
        print("✅ HEALTH CHECK PASSED")
        return 0
    logger.error("Health check FAILED")
    print("❌ HEALTH CHECK FAILED")
    return 1


# ---------------------------------------------------------------------------
# MODES
# ---------------------------------------------------------------------------


def run_crawl(args: argparse.Namespace) -> int:
    crawler = AutoNewsCrawler()
    results = crawler.run_sync(parallel=not args.sequential)
    _print_report(
        "CRAWL COMPLETE - FINAL REPORT",
        {"metrics": crawler.metrics.to_dict(), "results": [r.to_dict() for r in results]},
    )

    if not results:
        print("\n❌ NO SOURCES CRAWLED")
        return 1
    if all(r.errors and not r.success for r in results):
        print("\n❌ EVERY SOURCE FAILED")
        return 1
    print(
        f"\n✅ SUCCESS | Processed: {crawler.metrics.articles_processed} | "
        f"Published: {crawler.metrics.articles_published}"
    )
    return 0


def run_scrape(args: argparse.Namespace, with_quality: bool = False) -> int:
    if not args.url:
        print("❌ --url is required for this mode")
        return 1

    try:
        article = simple_scrape_article(args.url)
    except PageNotFoundError as exc:
        print(f"❌ {exc}")
        return 1
    except RuntimeError as exc:
        logger.error("Scrape failed: %s", exc)
        print(f"❌ SCRAPE FAILED: {exc}")
        return 1

    report: dict[str, object] = {"article": article.to_dict()}
    if with_quality:
        checker = get_quality_checker()
        data = ArticleData.from_dict(article.to_dict())
        report["quality"] = checker.check_quality(data, crawler_config.keyword_list).to_dict()

    _print_report("QUALITY REPORT" if with_quality else "SCRAPE RESULT", report)
    return 0


def run_seo(args: argparse.Namespace) -> int:
    raw = args.keywords if args.keywords is not None else crawler_config.seo_keywords
    keywords = [k.strip() for k in raw.split(",") if k.strip()]
    if not keywords:
        print("❌ No keywords to check")
        return 1

    detector = create_seo_ranking_detector(args.domain)
    results = detector.check_multiple_keywords(keywords)
    _print_report(
        f"SEO RANKINGS - {detector.domain}",
        {
            "results": [r.to_dict() for r in results],
            "stats": detector.get_ranking_stats().to_dict(),
        },
    )
    return 0 if any(r.error is None for r in results) else 1


def run_serve(args: argparse.Namespace) -> int:
    from api.api_server import main as serve  # FastAPI and uvicorn load lazily
    from scrapers.scraper_engine import get_auto_news_crawler

    if args.auto_crawl:
        get_auto_news_crawler().start(args.interval or None)
    serve()
    return 0


# ---------------------------------------------------------------------------
# MAIN
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Run the requested mode.

    Returns:
        ``0`` on success, ``1`` on failure, ``130`` on
        :exc:`KeyboardInterrupt` (Unix convention).
    """
    args = parse_args(argv)

    if args.health_check:
        return run_health_check()

    logger.info("=" * 70)
    logger.info("AUTOMOTIVE NEWS CRAWLER - %s", args.mode.upper())
    logger.info("Time: %s", datetime.now(timezone.utc).isoformat())
    logger.info(
        "AI REWRITE: %s | AUTO PUBLISH: %s | DB: %s",
        crawler_config.ai_rewrite,
        crawler_config.auto_publish,
        "configured" if db_config.configured else "not configured",
    )
    logger.info("=" * 70)

    try:
        if args.mode == "crawl":
            return run_crawl(args)
        if args.mode == "scrape":
            return run_scrape(args)
        if args.mode == "quality":
            return run_scrape(args, with_quality=True)
        if args.mode == "seo":
            return run_seo(args)
        return run_serve(args)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user (KeyboardInterrupt)")
        print("\n⚠️  Interrupted. Partial results may exist in Postgres.")
        return 130
    except Exception as exc:
        logger.critical("Unhandled exception in main(): %s", exc, exc_info=True)
        print(f"❌ CRASHED: {exc}")
        return 1


# ---------------------------------------------------------------------------
# ENTRY POINT
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    sys.exit(main())
