"""
Feed poller tasks.

Background tasks for polling feeds and scheduling due polls.
"""

from datetime import UTC, datetime
from typing import Any

from trawl_core import get_logger
from trawl_core.config import settings
from trawl_core.redis_keys import RedisKeys
from trawl_core.services import FeedPoller, FeedStore

logger = get_logger(__name__)


async def poll_feed_task(ctx: dict[str, Any], feed_id: str) -> dict[str, str]:
    """
    Run one poll cycle of a feed.

    Args:
        ctx: Worker context.
        feed_id: Feed identifier to poll.

    Returns:
        Dictionary with the poll outcome.
    """
    poller: FeedPoller = ctx["poller"]
    outcome = await poller.poll(feed_id)
    if outcome is None:
        return {"status": "skipped", "feed_id": feed_id}
    return {"status": outcome.value, "feed_id": feed_id}


async def poll_due_feeds(ctx: dict[str, Any], limit: int | None = None) -> dict[str, int]:
    """
    Enqueue a poll job for every due feed.

    Job ids are derived from the feed id, so a feed whose previous poll is
    still queued or running is not enqueued again.

    Args:
        ctx: Worker context.
        limit: Maximum number of feeds to enqueue.

    Returns:
        Dictionary with scheduling statistics.
    """
    store: FeedStore = ctx["store"]
    feed_ids = await store.list_due_feed_ids(datetime.now(UTC), limit or settings.poll_batch_size)

    queued = 0
    for feed_id in feed_ids:
        job = await ctx["redis"].enqueue_job(
            "poll_feed_task", feed_id, _job_id=RedisKeys.poll_feed_job(feed_id)
        )
        if job is not None:
            queued += 1

    if feed_ids:
        logger.info("Queued feed polls", extra={"due": len(feed_ids), "queued": queued})
    return {"feeds_due": len(feed_ids), "feeds_queued": queued}


async def scheduled_poll(ctx: dict[str, Any]) -> dict[str, int]:
    """
    Scheduled task to enqueue due feeds (runs every few minutes).

    Args:
        ctx: Worker context.

    Returns:
        Dictionary with scheduling statistics.
    """
    return await poll_due_feeds(ctx)
