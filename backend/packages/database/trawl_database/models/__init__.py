"""
Database models package.

This module exports all SQLAlchemy models for the Trawl application.
"""

from .base import Base, TimestampMixin, generate_uuid
from .entry import Entry
from .feed import Feed, FeedActivityPattern, PollOutcome
from .feed_item_cache import FeedItemCache
from .feed_poll import FeedPoll

__all__ = [
    "Base",
    "TimestampMixin",
    "generate_uuid",
    "Feed",
    "FeedActivityPattern",
    "PollOutcome",
    "FeedItemCache",
    "FeedPoll",
    "Entry",
]
