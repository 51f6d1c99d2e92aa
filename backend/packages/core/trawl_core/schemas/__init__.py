"""
Pydantic schemas shared by polling and discovery.
"""

from .discovery import DiscoveredFeed, DiscoveryStats, FeedType
from .feed import FeedItem, FeedState, PollRecord

__all__ = [
    # Feed polling
    "FeedItem",
    "FeedState",
    "PollRecord",
    # Discovery
    "DiscoveredFeed",
    "DiscoveryStats",
    "FeedType",
]
