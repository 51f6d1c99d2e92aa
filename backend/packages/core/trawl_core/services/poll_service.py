"""
Feed poll service.

One poll cycle of one feed: conditional fetch, outcome classification,
parsing, deduplication, schedule update, action callbacks and persistence.
"""

import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

from trawl_database.models import PollOutcome
from trawl_rss import (
    DEFAULT_USER_AGENT,
    FeedFetcher,
    FeedParseError,
    FetchError,
    FetchResult,
    ParsedFeed,
    parse_feed,
)

from .. import get_logger
from ..config import TrawlSettings
from ..config import settings as default_settings
from ..schemas.feed import FeedItem, FeedState, PollRecord
from .conditional_fetch import build_poll_request
from .feed_actions import FeedActions
from .feed_store import FeedStore
from .item_cache import replace_cache
from .poll_outcome import PollOutcomeSet
from .schedule import ScheduleController, WindowStatistics

logger = get_logger(__name__)

ActionHook = Callable[[FeedState, FetchResult | None], Awaitable[None]]


class FeedPollTask:
    """
    A single poll cycle of one feed.

    The task mutates the working copy it is given and writes it back
    through the store. ``run`` never raises.
    """

    def __init__(
        self,
        feed: FeedState,
        fetcher: FeedFetcher,
        store: FeedStore,
        controller: ScheduleController,
        actions: FeedActions | None = None,
        execution_warn_seconds: float = 120.0,
        user_agent: str = DEFAULT_USER_AGENT,
        force_reset: bool = False,
    ):
        self.feed = feed
        self.fetcher = fetcher
        self.store = store
        self.controller = controller
        self.actions = actions or FeedActions()
        self.execution_warn_seconds = execution_warn_seconds
        self.user_agent = user_agent
        self.force_reset = force_reset

        self.outcomes = PollOutcomeSet()
        self.stats: WindowStatistics | None = None

    async def run(self) -> PollOutcome:
        """
        Execute the poll cycle.

        Returns:
            The outcome retained for this cycle.
        """
        started = time.monotonic()
        try:
            request = build_poll_request(self.feed, self.user_agent)
            poll_time = datetime.now(UTC)
            self.feed.last_poll_at = poll_time

            result: FetchResult | None = None
            replace_item_cache = False
            try:
                result = await self.fetcher.fetch(request)
            except FetchError as e:
                logger.warning(
                    "Feed unreachable",
                    extra={"feed_id": self.feed.id, "url": self.feed.url, "error": str(e)},
                )
                self.outcomes.add(PollOutcome.UNREACHABLE)
                self.feed.unreachable_count += 1
                self._advance(WindowStatistics.empty(poll_time, failed=True))
            else:
                replace_item_cache = await self._handle_response(result, poll_time)

            elapsed = time.monotonic() - started
            if elapsed > self.execution_warn_seconds:
                logger.warning(
                    "Poll exceeded execution time threshold",
                    extra={"feed_id": self.feed.id, "seconds": round(elapsed, 1)},
                )
                self.outcomes.add(PollOutcome.EXECUTION_TIME_WARNING)

            await self._persist(result, poll_time, replace_item_cache, elapsed)
        except Exception:
            logger.exception(
                "Unexpected error while polling feed",
                extra={"feed_id": self.feed.id, "url": self.feed.url},
            )
            self.outcomes.add(PollOutcome.ERROR)
        finally:
            self.feed.free_memory()

        outcome = self.outcomes.resolve()
        self.feed.last_outcome = outcome
        log = logger.error if outcome is PollOutcome.ERROR else logger.debug
        log(
            "Poll finished",
            extra={
                "feed_id": self.feed.id,
                "url": self.feed.url,
                "outcome": outcome.value,
                "duration_ms": int((time.monotonic() - started) * 1000),
            },
        )
        return outcome

    async def _handle_response(self, result: FetchResult, poll_time: datetime) -> bool:
        """Classify an HTTP response; returns the replace_item_cache flag."""
        if result.status_code >= 400:
            logger.info(
                "Feed returned HTTP error",
                extra={"feed_id": self.feed.id, "status": result.status_code},
            )
            self.outcomes.add(PollOutcome.UNREACHABLE)
            self.feed.unreachable_count += 1
            await self._call(self.actions.on_error, result)
            self._advance(WindowStatistics.empty(poll_time, failed=True))
            return False

        if result.status_code == 304:
            self._advance(WindowStatistics.empty(poll_time))
            self.feed.last_success_at = poll_time
            await self._call(self.actions.on_unmodified, result)
            self._flag_success()
            return False

        self.feed.etag = result.header("etag")
        self.feed.last_modified = result.header_date("last-modified")

        try:
            parsed = parse_feed(result.content, result.url)
        except FeedParseError as e:
            logger.info(
                "Feed unparsable",
                extra={"feed_id": self.feed.id, "url": self.feed.url, "error": str(e)},
            )
            self.outcomes.add(PollOutcome.UNPARSABLE)
            self.feed.unparsable_count += 1
            await self._call(self.actions.on_exception, result)
            return False

        items = [FeedItem.model_validate(entry, from_attributes=True) for entry in parsed.entries]
        self.stats = WindowStatistics.from_window(items, self.feed.cached_items, poll_time)
        replace_item_cache = replace_cache(self.feed, items, poll_time)
        self._update_window(parsed, items)
        self.feed.last_success_at = poll_time

        if self._advance(self.stats):
            self.outcomes.add(PollOutcome.MISS)
        await self._call(self.actions.on_modified, result)
        self._flag_success()
        return replace_item_cache

    def _update_window(self, parsed: ParsedFeed, items: list[FeedItem]) -> None:
        feed = self.feed
        if feed.window_size is not None and feed.window_size != len(items):
            feed.has_variable_window_size = True
        feed.window_size = len(items)
        feed.items = items
        feed.document = parsed
        feed.total_items += self.stats.new_item_count

        feed.title = parsed.title or feed.title
        feed.site_url = parsed.site_url or feed.site_url
        feed.language = parsed.language or feed.language
        feed.feed_format = parsed.feed_format or feed.feed_format

        newest = self.stats.newest
        if newest is not None and (feed.last_entry_at is None or newest > feed.last_entry_at):
            feed.last_entry_at = newest

    def _advance(self, stats: WindowStatistics) -> bool:
        miss = self.controller.advance(self.feed, stats, self.force_reset)
        self.feed.checks += 1
        return miss

    def _flag_success(self) -> None:
        if PollOutcome.MISS not in self.outcomes:
            self.outcomes.add(PollOutcome.SUCCESS)

    async def _call(self, hook: ActionHook, result: FetchResult | None) -> None:
        try:
            await hook(self.feed, result)
        except Exception:
            logger.exception(
                "Feed action failed",
                extra={"feed_id": self.feed.id, "action": getattr(hook, "__name__", repr(hook))},
            )
            self.outcomes.add(PollOutcome.ERROR)

    async def _persist(
        self,
        result: FetchResult | None,
        poll_time: datetime,
        replace_item_cache: bool,
        elapsed: float,
    ) -> None:
        self.feed.last_outcome = self.outcomes.resolve()
        self.feed.total_processing_ms += int(elapsed * 1000)

        if not await self.store.upsert_feed(self.feed, replace_item_cache):
            self.outcomes.add(PollOutcome.ERROR)

        if result is None:
            return
        record = PollRecord(
            feed_id=self.feed.id,
            polled_at=poll_time,
            http_status=result.status_code,
            http_etag=result.header("etag"),
            http_date=result.header_date("date"),
            http_last_modified=result.header_date("last-modified"),
            http_expires=result.header_date("expires"),
            newest_item_at=self.stats.newest if self.stats else None,
            new_items=self.stats.new_item_count if self.stats else None,
            window_size=self.stats.window_size if self.stats else None,
            response_size=result.size,
        )
        if not await self.store.add_poll(record):
            self.outcomes.add(PollOutcome.ERROR)


class FeedPoller:
    """Loads feeds by id and runs their poll cycles with shared collaborators."""

    def __init__(
        self,
        store: FeedStore,
        fetcher: FeedFetcher,
        controller: ScheduleController,
        actions: FeedActions | None = None,
        config: TrawlSettings | None = None,
    ):
        self.store = store
        self.fetcher = fetcher
        self.controller = controller
        self.actions = actions or FeedActions()
        self.config = config or default_settings

    def needs_reset(self, feed: FeedState, now: datetime) -> bool:
        """Whether the feed was idle long enough to distrust its history."""
        if feed.last_poll_at is None:
            return False
        return now - feed.last_poll_at > timedelta(hours=self.config.schedule_reset_after_hours)

    async def poll(self, feed_id: str) -> PollOutcome | None:
        """
        Run one poll cycle of a feed.

        Args:
            feed_id: Feed identifier.

        Returns:
            The cycle outcome, or None if the feed is missing or blocked.
        """
        feed = await self.store.load_feed(feed_id)
        if feed is None:
            logger.warning("Feed not found", extra={"feed_id": feed_id})
            return None
        if feed.blocked:
            logger.info("Skipping blocked feed", extra={"feed_id": feed_id})
            return None

        task = FeedPollTask(
            feed,
            fetcher=self.fetcher,
            store=self.store,
            controller=self.controller,
            actions=self.actions,
            execution_warn_seconds=self.config.poll_execution_warn_seconds,
            user_agent=self.config.user_agent,
            force_reset=self.needs_reset(feed, datetime.now(UTC)),
        )
        return await task.run()
