"""
Feed discovery tasks.

Background task running a search-driven discovery crawl.
"""

from pathlib import Path
from typing import Any

from trawl_core import get_logger
from trawl_core.config import TrawlSettings
from trawl_core.config import settings as default_settings
from trawl_core.services import DiscoveryCrawler, SearchProvider, create_search_provider
from trawl_rss import FeedFetcher

logger = get_logger(__name__)


def build_crawler(
    result_path: str | Path,
    extended_output: bool = False,
    search_provider: SearchProvider | None = None,
    config: TrawlSettings | None = None,
) -> DiscoveryCrawler:
    """Create a crawler configured from settings."""
    config = config or default_settings
    return DiscoveryCrawler(
        search_provider=search_provider or create_search_provider(config),
        result_path=result_path,
        num_workers=config.discovery_num_workers,
        num_results=config.discovery_results_per_query,
        extended_output=extended_output,
        fetcher=FeedFetcher(
            max_size=config.poll_max_feed_size,
            timeout=config.discovery_page_timeout_seconds,
        ),
        language=config.discovery_language,
        backoff_seconds=config.discovery_backoff_seconds,
        progress_every=config.discovery_progress_every,
        user_agent=config.user_agent,
    )


async def run_crawler(crawler: DiscoveryCrawler) -> dict[str, Any]:
    """Run a crawler and release its network clients."""
    try:
        stats = await crawler.run()
    finally:
        await crawler.fetcher.aclose()
        await crawler.search_provider.aclose()
    return stats.model_dump()


async def discover_feeds_task(
    ctx: dict[str, Any],
    queries: list[str],
    result_path: str,
    target_count: int | None = None,
    extended_output: bool = False,
) -> dict[str, Any]:
    """
    Discover feeds for a list of search queries.

    Args:
        ctx: Worker context.
        queries: Search queries.
        result_path: File the discovered feeds are appended to.
        target_count: Combine queries up to this count (-1 for all pairs).
        extended_output: Write CSV records instead of plain feed URLs.

    Returns:
        Dictionary with discovery statistics.
    """
    _ = ctx

    crawler = build_crawler(result_path, extended_output=extended_output)
    crawler.add_queries(queries)
    if target_count is not None:
        crawler.combine_queries(target_count)

    logger.info(
        "Discovery task started",
        extra={"queries": len(crawler.queries), "result_path": result_path},
    )
    return await run_crawler(crawler)
