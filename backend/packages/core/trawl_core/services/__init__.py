"""
Service layer.

Feed polling and discovery services.
"""

from .conditional_fetch import build_poll_request
from .discovery_service import DiscoveryCrawler
from .feed_actions import CompositeFeedActions, EntryStoreAction, FeedActions
from .feed_store import FeedStore
from .item_cache import corrected_publish_time, count_new_items, replace_cache
from .poll_outcome import PollOutcomeSet
from .poll_service import FeedPoller, FeedPollTask
from .schedule import (
    FixedIntervalScheduleController,
    MovingAverageScheduleController,
    ScheduleController,
    WindowStatistics,
)
from .search_providers import (
    SearchProvider,
    SearchProviderError,
    SearxngSearchProvider,
    TavilySearchProvider,
    create_search_provider,
)

__all__ = [
    # Polling
    "build_poll_request",
    "PollOutcomeSet",
    "corrected_publish_time",
    "count_new_items",
    "replace_cache",
    "ScheduleController",
    "MovingAverageScheduleController",
    "FixedIntervalScheduleController",
    "WindowStatistics",
    "FeedActions",
    "EntryStoreAction",
    "CompositeFeedActions",
    "FeedStore",
    "FeedPollTask",
    "FeedPoller",
    # Discovery
    "DiscoveryCrawler",
    "SearchProvider",
    "SearchProviderError",
    "TavilySearchProvider",
    "SearxngSearchProvider",
    "create_search_provider",
]
