"""
Feed store.

Durable storage of feeds, their item caches, poll records and entries.
Poll tasks receive a FeedState working copy and hand it back for a single
upsert.
"""

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from trawl_database.models import Entry, Feed, FeedItemCache, FeedPoll, PollOutcome

from .. import get_logger
from ..schemas.feed import FeedItem, FeedState, PollRecord

logger = get_logger(__name__)

# FeedState fields written back verbatim by upsert_feed
PERSISTED_FIELDS: tuple[str, ...] = (
    "url",
    "title",
    "site_url",
    "language",
    "feed_format",
    "etag",
    "last_modified",
    "checks",
    "unreachable_count",
    "unparsable_count",
    "misses",
    "last_miss_at",
    "check_interval",
    "last_poll_at",
    "last_success_at",
    "window_size",
    "has_variable_window_size",
    "total_items",
    "last_entry_at",
    "total_processing_ms",
)


def to_state(feed: Feed) -> FeedState:
    """Build a working copy from a feed row with its cache rows loaded."""
    state = FeedState.model_validate(feed)
    state.cached_items = {row.item_hash: row.corrected_published_at for row in feed.cache_rows}
    return state


class FeedStore:
    """Feed persistence on an async session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def add_feed(self, url: str, check_interval: int = 60) -> FeedState:
        """
        Register a feed URL.

        Idempotent: an already known URL returns the stored feed.

        Args:
            url: Feed URL.
            check_interval: Initial check interval in minutes.

        Returns:
            Working copy of the feed.
        """
        async with self.session_factory() as session:
            stmt = select(Feed).where(Feed.url == url).options(selectinload(Feed.cache_rows))
            result = await session.execute(stmt)
            feed = result.scalar_one_or_none()
            if feed is not None:
                return to_state(feed)

            feed = Feed(url=url, check_interval=check_interval, last_outcome=PollOutcome.OPEN.value)
            session.add(feed)
            await session.commit()
            logger.info("Added feed", extra={"feed_id": feed.id, "url": url})
            return FeedState.model_validate(feed)

    async def load_feed(self, feed_id: str) -> FeedState | None:
        """Load the working copy of a feed, including its item cache."""
        async with self.session_factory() as session:
            stmt = select(Feed).where(Feed.id == feed_id).options(selectinload(Feed.cache_rows))
            result = await session.execute(stmt)
            feed = result.scalar_one_or_none()
            if feed is None:
                return None
            return to_state(feed)

    async def upsert_feed(self, state: FeedState, replace_item_cache: bool = True) -> bool:
        """
        Write a working copy back to the store.

        When ``replace_item_cache`` is set, every cached row of the feed is
        deleted and the current fingerprints are inserted in the same
        transaction.

        Args:
            state: Working copy of the feed.
            replace_item_cache: Whether to rewrite the item cache rows.

        Returns:
            True on success, False on a database error.
        """
        try:
            async with self.session_factory() as session:
                feed = await session.get(Feed, state.id)
                if feed is None:
                    feed = Feed(id=state.id)
                    session.add(feed)

                for name in PERSISTED_FIELDS:
                    setattr(feed, name, getattr(state, name))
                feed.activity_pattern = state.activity_pattern.value
                feed.last_outcome = state.last_outcome.value
                feed.next_check_at = state.next_check_at

                if replace_item_cache:
                    await session.execute(
                        delete(FeedItemCache).where(FeedItemCache.feed_id == state.id)
                    )
                    session.add_all(
                        FeedItemCache(
                            feed_id=state.id,
                            item_hash=item_hash,
                            corrected_published_at=published,
                        )
                        for item_hash, published in state.cached_items.items()
                    )

                await session.commit()
            return True
        except SQLAlchemyError:
            logger.exception("Failed to store feed", extra={"feed_id": state.id})
            return False

    async def add_poll(self, record: PollRecord) -> bool:
        """Store the metadata of one poll. Returns False on a database error."""
        try:
            async with self.session_factory() as session:
                session.add(FeedPoll(**record.model_dump()))
                await session.commit()
            return True
        except SQLAlchemyError:
            logger.exception("Failed to store poll record", extra={"feed_id": record.feed_id})
            return False

    async def list_due_feed_ids(self, now: datetime, limit: int = 200) -> list[str]:
        """
        List feeds due for a poll, never polled feeds first.

        Args:
            now: Reference timestamp.
            limit: Maximum number of ids.

        Returns:
            Feed ids ordered by next check time.
        """
        async with self.session_factory() as session:
            stmt = (
                select(Feed.id)
                .where(
                    Feed.blocked.is_(False),
                    or_(Feed.next_check_at.is_(None), Feed.next_check_at <= now),
                )
                .order_by(Feed.next_check_at.asc().nulls_first(), Feed.created_at.asc())
                .limit(limit)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def add_entries(self, feed_id: str, items: Iterable[FeedItem]) -> int:
        """
        Store items as entries, skipping fingerprints already stored.

        Args:
            feed_id: Owning feed.
            items: Items of a window.

        Returns:
            Number of entries created.
        """
        pending: dict[str, FeedItem] = {}
        for item in items:
            pending.setdefault(item.item_hash, item)
        if not pending:
            return 0

        async with self.session_factory() as session:
            stmt = select(Entry.item_hash).where(
                Entry.feed_id == feed_id, Entry.item_hash.in_(list(pending))
            )
            result = await session.execute(stmt)
            for existing in result.scalars().all():
                pending.pop(existing, None)

            session.add_all(
                Entry(
                    feed_id=feed_id,
                    item_hash=item.item_hash,
                    raw_id=item.raw_id,
                    url=item.link,
                    title=item.title,
                    author=item.author,
                    summary=item.summary,
                    published_at=item.published_at,
                )
                for item in pending.values()
            )
            await session.commit()
        return len(pending)
