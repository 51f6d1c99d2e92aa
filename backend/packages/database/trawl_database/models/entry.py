"""
Entry model definition.

This module defines the Entry model for storing feed items.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, generate_uuid


class Entry(Base, TimestampMixin):
    """
    Feed item persisted when first seen.

    Attributes:
        id: Unique entry identifier (UUID).
        feed_id: Source feed.
        item_hash: Item fingerprint (unique per feed).
        raw_id: Source-provided identifier.
        url: Item link.
        title: Item title.
        author: Item author.
        summary: Item summary.
        published_at: Publish timestamp, if the source provides one.
    """

    __tablename__ = "entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    feed_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("feeds.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    item_hash: Mapped[str] = mapped_column(String(40), nullable=False)
    raw_id: Mapped[str | None] = mapped_column(String(1000))
    url: Mapped[str | None] = mapped_column(String(2000))
    title: Mapped[str | None] = mapped_column(String(1000))
    author: Mapped[str | None] = mapped_column(String(500))
    summary: Mapped[str | None] = mapped_column(Text)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)

    feed = relationship("Feed", back_populates="entries")

    __table_args__ = (UniqueConstraint("feed_id", "item_hash", name="uq_entry_feed_hash"),)
