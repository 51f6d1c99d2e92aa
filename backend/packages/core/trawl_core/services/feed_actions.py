"""
Feed actions.

Callbacks invoked by the poll task once the HTTP outcome of a cycle is
known. Exceptions raised here are caught by the task.
"""

from typing import TYPE_CHECKING

from trawl_rss import FetchResult

from .. import get_logger
from ..schemas.feed import FeedState

if TYPE_CHECKING:
    from .feed_store import FeedStore

logger = get_logger(__name__)


class FeedActions:
    """No-op action set; subclasses override the hooks they need."""

    async def on_modified(self, feed: FeedState, result: FetchResult) -> None:
        """Called after a successful parse with ``feed.items`` populated."""

    async def on_unmodified(self, feed: FeedState, result: FetchResult) -> None:
        """Called on HTTP 304."""

    async def on_error(self, feed: FeedState, result: FetchResult) -> None:
        """Called on HTTP status 400 or above."""

    async def on_exception(self, feed: FeedState, result: FetchResult | None) -> None:
        """Called when the response body could not be parsed."""


class EntryStoreAction(FeedActions):
    """Persist the items of each modified window as entries."""

    def __init__(self, store: "FeedStore") -> None:
        self.store = store

    async def on_modified(self, feed: FeedState, result: FetchResult) -> None:
        stored = await self.store.add_entries(feed.id, feed.items)
        if stored:
            logger.debug("Stored new entries", extra={"feed_id": feed.id, "count": stored})


class CompositeFeedActions(FeedActions):
    """Fan out every hook to several action sets, in order."""

    def __init__(self, *actions: FeedActions) -> None:
        self.actions = list(actions)

    async def on_modified(self, feed: FeedState, result: FetchResult) -> None:
        for action in self.actions:
            await action.on_modified(feed, result)

    async def on_unmodified(self, feed: FeedState, result: FetchResult) -> None:
        for action in self.actions:
            await action.on_unmodified(feed, result)

    async def on_error(self, feed: FeedState, result: FetchResult) -> None:
        for action in self.actions:
            await action.on_error(feed, result)

    async def on_exception(self, feed: FeedState, result: FetchResult | None) -> None:
        for action in self.actions:
            await action.on_exception(feed, result)
