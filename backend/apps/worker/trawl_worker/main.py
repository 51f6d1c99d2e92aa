"""
arq worker entry point.

Run with ``arq trawl_worker.main.WorkerSettings``.
"""

from typing import Any

from arq import cron
from arq.connections import RedisSettings
from arq.worker import func

from trawl_core import get_logger, init_logging
from trawl_core.config import TrawlSettings, settings
from trawl_core.services import (
    CompositeFeedActions,
    EntryStoreAction,
    FeedPoller,
    FeedStore,
    MovingAverageScheduleController,
)
from trawl_database.session import close_database, init_database
from trawl_rss import FeedFetcher

from .tasks.feed_discovery import discover_feeds_task
from .tasks.feed_poller import poll_due_feeds, poll_feed_task, scheduled_poll

logger = get_logger(__name__)


def build_poller(store: FeedStore, fetcher: FeedFetcher, config: TrawlSettings) -> FeedPoller:
    """Wire the poller with the default schedule controller and entry storage."""
    return FeedPoller(
        store=store,
        fetcher=fetcher,
        controller=MovingAverageScheduleController.from_settings(config),
        actions=CompositeFeedActions(EntryStoreAction(store)),
        config=config,
    )


async def startup(ctx: dict[str, Any]) -> None:
    """Create shared collaborators for the worker's lifetime."""
    init_logging(settings.log_level)
    session_factory = init_database(settings.database_url)
    store = FeedStore(session_factory)
    fetcher = FeedFetcher(
        max_size=settings.poll_max_feed_size,
        timeout=settings.poll_timeout_seconds,
    )
    ctx["store"] = store
    ctx["fetcher"] = fetcher
    ctx["poller"] = build_poller(store, fetcher, settings)
    logger.info("Worker started", extra={"max_jobs": settings.poll_max_jobs})


async def shutdown(ctx: dict[str, Any]) -> None:
    """Close network and database resources."""
    fetcher: FeedFetcher | None = ctx.get("fetcher")
    if fetcher is not None:
        await fetcher.aclose()
    await close_database()
    logger.info("Worker stopped")


class WorkerSettings:
    """arq worker configuration."""

    functions = [
        # Results are not kept so a feed's job id is free again once its poll ends
        func(poll_feed_task, keep_result=0),
        poll_due_feeds,
        func(discover_feeds_task, timeout=24 * 60 * 60),
    ]
    cron_jobs = [
        cron(scheduled_poll, minute=set(range(0, 60, 5)), run_at_startup=True),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    max_jobs = settings.poll_max_jobs
