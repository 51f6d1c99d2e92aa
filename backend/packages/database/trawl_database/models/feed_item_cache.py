"""
Feed item cache model definition.

Stores the fingerprints of the items a feed currently shows, used to count
new items between overlapping polls.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class FeedItemCache(Base):
    """
    Fingerprint of an item in a feed's most recent window.

    Rows of a feed are replaced wholesale whenever its window changes.

    Attributes:
        feed_id: Owning feed.
        item_hash: Item fingerprint over title, link and raw id.
        corrected_published_at: Publish timestamp, or poll time when missing or in the future.
    """

    __tablename__ = "feed_item_cache"

    feed_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("feeds.id", ondelete="CASCADE"),
        primary_key=True,
    )
    item_hash: Mapped[str] = mapped_column(String(40), primary_key=True)
    corrected_published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    feed = relationship("Feed", back_populates="cache_rows")
