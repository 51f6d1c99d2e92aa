"""
Item deduplication cache.

Each feed keeps the fingerprints of the items of its latest window. A new
window is compared against that set to count new items, then replaces it.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime

from ..schemas.feed import FeedItem, FeedState


def corrected_publish_time(
    item: FeedItem,
    poll_time: datetime,
    cached: Mapping[str, datetime | None] | None = None,
) -> datetime:
    """
    Return a trustworthy publish time for an item.

    An item already in ``cached`` keeps the time recorded when it was first
    seen. Otherwise missing dates and dates in the future are replaced by
    the poll time.
    """
    if cached:
        known = cached.get(item.item_hash)
        if known is not None:
            return known
    published = item.published_at
    if published is None or published > poll_time:
        return poll_time
    return published


def count_new_items(cached: Iterable[str], window: Iterable[FeedItem]) -> int:
    """Count distinct fingerprints of ``window`` that are not in ``cached``."""
    known = set(cached)
    return len({item.item_hash for item in window} - known)


def replace_cache(feed: FeedState, window: list[FeedItem], poll_time: datetime) -> bool:
    """
    Replace the cache of ``feed`` with the fingerprints of ``window``.

    Fingerprints already cached keep their recorded publish time.

    Args:
        feed: Working copy whose cache is replaced.
        window: Items of the current poll.
        poll_time: Timestamp of the current poll.

    Returns:
        True if the set of cached fingerprints changed and the stored
        cache rows must be rewritten.
    """
    previous = dict(feed.cached_items)
    feed.cached_items = {
        item.item_hash: corrected_publish_time(item, poll_time, previous) for item in window
    }
    return set(feed.cached_items) != set(previous)
