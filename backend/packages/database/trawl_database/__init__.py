"""
Trawl database package.

SQLAlchemy models, session management and migrations.
"""

from .models import (
    Base,
    Entry,
    Feed,
    FeedActivityPattern,
    FeedItemCache,
    FeedPoll,
    PollOutcome,
)
from .session import (
    close_database,
    create_session_factory,
    get_session,
    get_session_context,
    get_session_factory,
    init_database,
)

__all__ = [
    "Base",
    "Entry",
    "Feed",
    "FeedActivityPattern",
    "FeedItemCache",
    "FeedPoll",
    "PollOutcome",
    "init_database",
    "create_session_factory",
    "get_session",
    "get_session_context",
    "get_session_factory",
    "close_database",
]
