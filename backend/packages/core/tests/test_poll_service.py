"""Tests for the feed poll task and poller."""

import itertools
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from trawl_core.config import TrawlSettings
from trawl_core.services.feed_actions import FeedActions
from trawl_core.services.poll_service import FeedPoller, FeedPollTask
from trawl_core.services.schedule import MovingAverageScheduleController
from trawl_database.models import PollOutcome
from trawl_rss import FeedFetcher, item_fingerprint

RSS = b"""<?xml version="1.0"?>
<rss version="2.0"><channel><title>Example</title><link>https://example.com/</link>
<item><title>One</title><link>https://example.com/1</link><guid>1</guid>
<pubDate>Wed, 01 May 2024 10:00:00 GMT</pubDate></item>
<item><title>Two</title><link>https://example.com/2</link><guid>2</guid>
<pubDate>Wed, 01 May 2024 09:00:00 GMT</pubDate></item>
</channel></rss>
"""

UNDATED_RSS = b"""<?xml version="1.0"?>
<rss version="2.0"><channel><title>Undated</title>
<item><title>Undated</title><link>https://example.com/u</link><guid>u</guid></item>
</channel></rss>
"""


def _fetcher(handler) -> FeedFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
    return FeedFetcher(client=client)


def _respond(status: int = 200, content: bytes = b"", headers: dict | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, content=content, headers=headers or {})

    return handler


def _store(upsert: bool = True, add_poll: bool = True) -> MagicMock:
    store = MagicMock()
    store.upsert_feed = AsyncMock(return_value=upsert)
    store.add_poll = AsyncMock(return_value=add_poll)
    return store


def _actions() -> MagicMock:
    actions = MagicMock(spec=FeedActions)
    actions.on_modified = AsyncMock()
    actions.on_unmodified = AsyncMock()
    actions.on_error = AsyncMock()
    actions.on_exception = AsyncMock()
    return actions


def _task(feed, handler, store=None, actions=None, **kwargs) -> FeedPollTask:
    return FeedPollTask(
        feed,
        fetcher=_fetcher(handler),
        store=store or _store(),
        controller=MovingAverageScheduleController(),
        actions=actions or _actions(),
        **kwargs,
    )


class TestFeedPollTask:
    """Test FeedPollTask.run."""

    @pytest.mark.asyncio
    async def test_successful_poll(self, make_feed):
        feed = make_feed()
        store = _store()
        actions = _actions()
        seen_items = []
        actions.on_modified.side_effect = lambda f, r: seen_items.append(len(f.items))
        handler = _respond(
            200,
            RSS,
            {"ETag": '"v2"', "Last-Modified": "Wed, 01 May 2024 10:00:00 GMT"},
        )

        outcome = await _task(feed, handler, store=store, actions=actions).run()

        assert outcome is PollOutcome.SUCCESS
        assert feed.last_outcome is PollOutcome.SUCCESS
        assert feed.etag == '"v2"'
        assert feed.last_modified == datetime(2024, 5, 1, 10, 0, tzinfo=UTC)
        assert feed.checks == 1
        assert feed.window_size == 2
        assert feed.total_items == 2
        assert feed.title == "Example"
        assert feed.last_success_at == feed.last_poll_at
        assert set(feed.cached_items) == {
            item_fingerprint("One", "https://example.com/1", "1"),
            item_fingerprint("Two", "https://example.com/2", "2"),
        }
        assert seen_items == [2]
        # Transient window is released after persistence
        assert feed.items == []
        assert feed.document is None

        store.upsert_feed.assert_awaited_once_with(feed, True)
        record = store.add_poll.await_args.args[0]
        assert record.http_status == 200
        assert record.new_items == 2
        assert record.window_size == 2
        assert record.response_size == len(RSS)

    @pytest.mark.asyncio
    async def test_unchanged_window_does_not_replace_cache(self, make_feed):
        hashes = {
            item_fingerprint("One", "https://example.com/1", "1"): None,
            item_fingerprint("Two", "https://example.com/2", "2"): None,
        }
        feed = make_feed(checks=4, cached_items=hashes)
        store = _store()

        outcome = await _task(feed, _respond(200, RSS), store=store).run()

        assert outcome is PollOutcome.SUCCESS
        assert feed.total_items == 0
        store.upsert_feed.assert_awaited_once_with(feed, False)

    @pytest.mark.asyncio
    async def test_undated_item_keeps_first_seen_time(self, make_feed):
        feed = make_feed()
        store = _store()

        await _task(feed, _respond(200, UNDATED_RSS), store=store).run()
        ((item_hash, first_seen),) = feed.cached_items.items()
        assert first_seen == feed.last_poll_at

        await _task(feed, _respond(200, UNDATED_RSS), store=store).run()

        assert feed.last_poll_at >= first_seen
        assert feed.cached_items == {item_hash: first_seen}
        assert feed.last_entry_at == first_seen
        assert store.upsert_feed.await_args_list[-1].args == (feed, False)

    @pytest.mark.asyncio
    async def test_all_new_items_is_a_miss(self, make_feed):
        feed = make_feed(checks=4, cached_items={"unrelated": None})

        outcome = await _task(feed, _respond(200, RSS)).run()

        assert outcome is PollOutcome.MISS
        assert feed.misses == 1

    @pytest.mark.asyncio
    async def test_not_modified(self, make_feed):
        feed = make_feed(etag='"v1"', last_outcome=PollOutcome.SUCCESS)
        store = _store()
        actions = _actions()

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["If-None-Match"] == '"v1"'
            return httpx.Response(304)

        outcome = await _task(feed, handler, store=store, actions=actions).run()

        assert outcome is PollOutcome.SUCCESS
        assert feed.checks == 1
        assert feed.last_success_at == feed.last_poll_at
        assert feed.unreachable_count == 0
        assert feed.unparsable_count == 0
        actions.on_unmodified.assert_awaited_once()
        actions.on_modified.assert_not_awaited()
        store.upsert_feed.assert_awaited_once_with(feed, False)

    @pytest.mark.asyncio
    async def test_http_error(self, make_feed):
        feed = make_feed(check_interval=60)
        store = _store()
        actions = _actions()

        outcome = await _task(feed, _respond(503), store=store, actions=actions).run()

        assert outcome is PollOutcome.UNREACHABLE
        assert feed.unreachable_count == 1
        assert feed.checks == 1
        assert feed.check_interval == 90
        assert feed.last_success_at is None
        actions.on_error.assert_awaited_once()
        assert store.add_poll.await_args.args[0].http_status == 503

    @pytest.mark.asyncio
    async def test_transport_failure_still_advances_schedule(self, make_feed):
        feed = make_feed()
        store = _store()

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        outcome = await _task(feed, handler, store=store).run()

        assert outcome is PollOutcome.UNREACHABLE
        assert feed.unreachable_count == 1
        assert feed.checks == 1
        assert feed.last_poll_at is not None
        store.upsert_feed.assert_awaited_once()
        store.add_poll.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unparsable_body(self, make_feed):
        feed = make_feed()
        actions = _actions()

        outcome = await _task(feed, _respond(200, b"<html>nope</html>"), actions=actions).run()

        assert outcome is PollOutcome.UNPARSABLE
        assert feed.unparsable_count == 1
        assert feed.checks == 0
        actions.on_exception.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failing_action_escalates_to_error(self, make_feed):
        feed = make_feed()
        actions = _actions()
        actions.on_modified.side_effect = RuntimeError("boom")

        outcome = await _task(feed, _respond(200, RSS), actions=actions).run()

        assert outcome is PollOutcome.ERROR
        assert feed.window_size == 2

    @pytest.mark.asyncio
    async def test_persistence_failure_is_error(self, make_feed):
        feed = make_feed()

        outcome = await _task(feed, _respond(200, RSS), store=_store(upsert=False)).run()

        assert outcome is PollOutcome.ERROR

    @pytest.mark.asyncio
    async def test_unexpected_exception_skips_persistence(self, make_feed):
        feed = make_feed()
        store = _store()
        task = _task(feed, _respond(200, RSS), store=store)
        task.fetcher.fetch = AsyncMock(side_effect=RuntimeError("unexpected"))

        outcome = await task.run()

        assert outcome is PollOutcome.ERROR
        assert feed.last_outcome is PollOutcome.ERROR
        store.upsert_feed.assert_not_awaited()
        assert feed.items == []

    @pytest.mark.asyncio
    async def test_slow_poll_flags_execution_time_warning(self, make_feed):
        feed = make_feed()
        clock = itertools.chain([0.0], itertools.repeat(500.0))

        with patch("trawl_core.services.poll_service.time") as mock_time:
            mock_time.monotonic.side_effect = clock
            outcome = await _task(
                feed, _respond(200, RSS), execution_warn_seconds=120.0
            ).run()

        assert outcome is PollOutcome.EXECUTION_TIME_WARNING
        assert feed.total_processing_ms == 500_000

    @pytest.mark.asyncio
    async def test_window_size_change_is_tracked(self, make_feed):
        feed = make_feed(window_size=5)

        await _task(feed, _respond(200, RSS)).run()

        assert feed.has_variable_window_size is True


class TestFeedPoller:
    """Test FeedPoller."""

    def _poller(self, store) -> FeedPoller:
        return FeedPoller(
            store=store,
            fetcher=_fetcher(_respond(200, RSS)),
            controller=MovingAverageScheduleController(),
            config=TrawlSettings(schedule_reset_after_hours=24),
        )

    @pytest.mark.asyncio
    async def test_missing_feed_is_skipped(self):
        store = _store()
        store.load_feed = AsyncMock(return_value=None)

        assert await self._poller(store).poll("missing") is None

    @pytest.mark.asyncio
    async def test_blocked_feed_is_skipped(self, make_feed):
        store = _store()
        store.load_feed = AsyncMock(return_value=make_feed(blocked=True))

        assert await self._poller(store).poll("feed-1") is None
        store.upsert_feed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_polls_loaded_feed(self, make_feed):
        store = _store()
        store.load_feed = AsyncMock(return_value=make_feed())

        assert await self._poller(store).poll("feed-1") is PollOutcome.SUCCESS
        store.upsert_feed.assert_awaited_once()

    def test_needs_reset_after_long_pause(self, make_feed, poll_time):
        poller = self._poller(_store())

        assert not poller.needs_reset(make_feed(), poll_time)
        assert not poller.needs_reset(make_feed(last_poll_at=poll_time - timedelta(hours=2)), poll_time)
        assert poller.needs_reset(make_feed(last_poll_at=poll_time - timedelta(days=2)), poll_time)
