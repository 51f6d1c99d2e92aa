"""
Feed model definition.

This module defines the Feed model for storing polled feed state.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, generate_uuid


class PollOutcome(str, Enum):
    """Terminal result of one poll cycle."""

    SUCCESS = "success"
    MISS = "miss"
    UNREACHABLE = "unreachable"
    UNPARSABLE = "unparsable"
    EXECUTION_TIME_WARNING = "execution_time_warning"
    ERROR = "error"
    OPEN = "open"


class FeedActivityPattern(str, Enum):
    """Posting behaviour classification maintained by the schedule controller."""

    UNKNOWN = "unknown"
    EMPTY = "empty"
    ZOMBIE = "zombie"
    CONSTANT = "constant"
    SPONTANEOUS = "spontaneous"


class Feed(Base, TimestampMixin):
    """
    Polled feed model.

    Durable record of a feed and its adaptive polling state. Poll tasks
    work on a copy and write it back in one upsert.

    Attributes:
        id: Unique feed identifier (UUID).
        url: Feed URL (unique, indexed).
        title: Feed title from source.
        site_url: Website URL associated with feed.
        language: Feed language code.
        feed_format: Format reported by the parser (e.g. 'rss20', 'atom10').
        etag: HTTP ETag for conditional requests.
        last_modified: HTTP Last-Modified timestamp.
        checks: Number of polls that advanced the schedule.
        unreachable_count: Polls that failed at transport or HTTP level.
        unparsable_count: Polls whose body could not be parsed.
        misses: Polls in which updates were likely missed.
        last_miss_at: Timestamp of the most recent miss.
        check_interval: Predicted minutes until the next poll.
        activity_pattern: Schedule controller classification.
        last_poll_at: Timestamp of last poll attempt.
        last_success_at: Timestamp of last successful poll.
        next_check_at: Scheduled timestamp for next poll.
        window_size: Number of items returned by the last parsed poll.
        has_variable_window_size: Whether the window size has ever changed.
        total_items: Number of new items received over the feed's lifetime.
        last_entry_at: Timestamp of the newest item seen.
        last_outcome: Outcome of the most recent poll.
        total_processing_ms: Accumulated poll processing time.
        blocked: Set externally to exclude the feed from scheduling.
    """

    __tablename__ = "feeds"

    # Primary key
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    # Feed metadata
    url: Mapped[str] = mapped_column(String(2000), unique=True, nullable=False, index=True)
    title: Mapped[str | None] = mapped_column(String(500))
    site_url: Mapped[str | None] = mapped_column(String(2000))
    language: Mapped[str | None] = mapped_column(String(10))
    feed_format: Mapped[str | None] = mapped_column(String(20))

    # Conditional request validators
    etag: Mapped[str | None] = mapped_column(Text)
    last_modified: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Counters
    checks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unreachable_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unparsable_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    misses: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_miss_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Schedule
    check_interval: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    activity_pattern: Mapped[FeedActivityPattern] = mapped_column(
        String(20), default=FeedActivityPattern.UNKNOWN, nullable=False
    )
    last_poll_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_success_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    next_check_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)

    # Window
    window_size: Mapped[int | None] = mapped_column(Integer)
    has_variable_window_size: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    total_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_entry_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Result bookkeeping
    last_outcome: Mapped[PollOutcome] = mapped_column(
        String(30), default=PollOutcome.OPEN, nullable=False
    )
    total_processing_ms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    blocked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)

    # Relationships
    cache_rows = relationship(
        "FeedItemCache", back_populates="feed", cascade="all, delete-orphan"
    )
    polls = relationship("FeedPoll", back_populates="feed", cascade="all, delete-orphan")
    entries = relationship("Entry", back_populates="feed", cascade="all, delete-orphan")
