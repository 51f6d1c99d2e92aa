"""Tests for feed polling worker tasks."""

from unittest.mock import AsyncMock

import pytest

from trawl_core.redis_keys import RedisKeys
from trawl_database.models import PollOutcome
from trawl_worker.tasks.feed_poller import poll_due_feeds, poll_feed_task, scheduled_poll


class TestPollFeedTask:
    """Test poll_feed_task."""

    @pytest.mark.asyncio
    async def test_returns_outcome(self):
        poller = AsyncMock()
        poller.poll.return_value = PollOutcome.MISS

        result = await poll_feed_task({"poller": poller}, "feed-1")

        assert result == {"status": "miss", "feed_id": "feed-1"}
        poller.poll.assert_awaited_once_with("feed-1")

    @pytest.mark.asyncio
    async def test_skipped_feed(self):
        poller = AsyncMock()
        poller.poll.return_value = None

        result = await poll_feed_task({"poller": poller}, "feed-1")

        assert result["status"] == "skipped"


class TestPollDueFeeds:
    """Test poll_due_feeds and scheduled_poll."""

    @pytest.mark.asyncio
    async def test_enqueues_due_feeds_with_feed_job_ids(self, feed_store, mock_redis):
        first = await feed_store.add_feed("https://example.com/a.xml")
        second = await feed_store.add_feed("https://example.com/b.xml")
        ctx = {"store": feed_store, "redis": mock_redis}

        result = await poll_due_feeds(ctx)

        assert result == {"feeds_due": 2, "feeds_queued": 2}
        assert {args for _, args in mock_redis.enqueued_jobs} == {(first.id,), (second.id,)}
        assert RedisKeys.poll_feed_job(first.id) in mock_redis.job_ids

    @pytest.mark.asyncio
    async def test_feed_with_pending_job_is_not_enqueued_twice(self, feed_store, mock_redis):
        feed = await feed_store.add_feed("https://example.com/a.xml")
        ctx = {"store": feed_store, "redis": mock_redis}

        await scheduled_poll(ctx)
        result = await scheduled_poll(ctx)

        assert result == {"feeds_due": 1, "feeds_queued": 0}
        assert len(mock_redis.enqueued_jobs) == 1

        mock_redis.finish(RedisKeys.poll_feed_job(feed.id))
        assert (await scheduled_poll(ctx))["feeds_queued"] == 1

    @pytest.mark.asyncio
    async def test_limit(self, feed_store, mock_redis):
        for i in range(3):
            await feed_store.add_feed(f"https://example.com/{i}.xml")

        result = await poll_due_feeds({"store": feed_store, "redis": mock_redis}, limit=2)

        assert result["feeds_due"] == 2
