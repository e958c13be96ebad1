"""
scrapers/__init__.py

AUTOMOTIVE NEWS CRAWLER: SCRAPERS PACKAGE
==========================================

Purpose:
    Discover article links on news listing pages, scrape article pages into
    ``ArticleContent`` records and drive the periodic crawl.

Public API:

    from scrapers import AutoNewsCrawler

    # Synchronous usage
    crawler = AutoNewsCrawler()
    results = crawler.run_sync()

    # Async usage
    results = await crawler.perform_crawl(parallel=True, concurrent_limit=3)

    # Background loop
    crawler.start(interval_minutes=60)
    crawler.stop()

Single articles:

    from scrapers import simple_scrape_article, WebScraper
    article = simple_scrape_article("https://news.u-car.com.tw/news/article/12345")

Advanced (browser layer):

    from scrapers import PlaywrightManager, GLOBAL_PLAYWRIGHT_MANAGER
"""

from scrapers.scraper_service import PlaywrightManager, GLOBAL_PLAYWRIGHT_MANAGER
from scrapers.web_scraper import ArticleContent, WebScraper
from scrapers.simple_scraper import PageNotFoundError, simple_scrape_article
from scrapers.url_validator import URLValidator, get_url_validator
from scrapers.scraper_engine import AutoNewsCrawler, CrawlResult, NewsSource

__all__ = [
    # Crawl engine, main entry point
    "AutoNewsCrawler",
    "CrawlResult",
    "NewsSource",
    # Article scrapers
    "ArticleContent",
    "WebScraper",
    "simple_scrape_article",
    "PageNotFoundError",
    # URL pre-flight checks
    "URLValidator",
    "get_url_validator",
    # Playwright browser lifecycle manager
    "PlaywrightManager",
    "GLOBAL_PLAYWRIGHT_MANAGER",
]
