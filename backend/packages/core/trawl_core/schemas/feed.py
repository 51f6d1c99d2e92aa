"""
Feed polling schemas.

Working-copy models exchanged between the feed store and poll tasks.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from trawl_database.models import FeedActivityPattern, PollOutcome


def _ensure_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class FeedItem(BaseModel):
    """One item of a poll window."""

    model_config = ConfigDict(from_attributes=True)

    raw_id: str | None = None
    link: str | None = None
    title: str | None = None
    author: str | None = None
    summary: str | None = None
    published_at: datetime | None = None
    item_hash: str

    @field_validator("published_at")
    @classmethod
    def normalize_published(cls, value: datetime | None) -> datetime | None:
        return _ensure_utc(value)


class FeedState(BaseModel):
    """
    Mutable working copy of a feed.

    Loaded from the store at the start of a poll, mutated by the poll task
    and written back with a single upsert. ``items`` and ``document`` are
    transient and never persisted.
    """

    model_config = ConfigDict(from_attributes=True, validate_assignment=True)

    id: str
    url: str
    title: str | None = None
    site_url: str | None = None
    language: str | None = None
    feed_format: str | None = None

    etag: str | None = None
    last_modified: datetime | None = None

    checks: int = 0
    unreachable_count: int = 0
    unparsable_count: int = 0
    misses: int = 0
    last_miss_at: datetime | None = None

    check_interval: int = Field(default=60, gt=0)  # Minutes
    activity_pattern: FeedActivityPattern = FeedActivityPattern.UNKNOWN
    last_poll_at: datetime | None = None
    last_success_at: datetime | None = None

    window_size: int | None = None
    has_variable_window_size: bool = False
    total_items: int = 0
    last_entry_at: datetime | None = None

    last_outcome: PollOutcome = PollOutcome.OPEN
    total_processing_ms: int = 0
    blocked: bool = False

    cached_items: dict[str, datetime | None] = Field(default_factory=dict)
    items: list[FeedItem] = Field(default_factory=list, exclude=True)
    document: Any = Field(default=None, exclude=True)

    @field_validator(
        "last_modified",
        "last_miss_at",
        "last_poll_at",
        "last_success_at",
        "last_entry_at",
    )
    @classmethod
    def normalize_datetimes(cls, value: datetime | None) -> datetime | None:
        return _ensure_utc(value)

    @field_validator("cached_items")
    @classmethod
    def normalize_cache(cls, value: dict[str, datetime | None]) -> dict[str, datetime | None]:
        return {item_hash: _ensure_utc(published) for item_hash, published in value.items()}

    @property
    def next_check_at(self) -> datetime | None:
        """Timestamp at which the feed becomes due again."""
        if self.last_poll_at is None:
            return None
        return self.last_poll_at + timedelta(minutes=self.check_interval)

    def free_memory(self) -> None:
        """Drop the transient window and parsed document."""
        self.items = []
        self.document = None


class PollRecord(BaseModel):
    """HTTP and window metadata of one poll."""

    feed_id: str
    polled_at: datetime
    http_status: int | None = None
    http_etag: str | None = None
    http_date: datetime | None = None
    http_last_modified: datetime | None = None
    http_expires: datetime | None = None
    newest_item_at: datetime | None = None
    new_items: int | None = None
    window_size: int | None = None
    response_size: int | None = None
