"""
Feed poll model definition.

Per-poll HTTP and window metadata.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class FeedPoll(Base):
    """
    Metadata recorded for a single poll that received an HTTP response.

    Attributes:
        id: Autoincrement identifier.
        feed_id: Polled feed.
        polled_at: Poll timestamp.
        http_status: Response status code.
        http_etag: ETag returned by the server.
        http_date: Date header returned by the server.
        http_last_modified: Last-Modified header returned by the server.
        http_expires: Expires header returned by the server.
        newest_item_at: Newest item timestamp in the window.
        new_items: Number of items not seen in the previous window.
        window_size: Number of items in the window.
        response_size: Response body size in bytes.
    """

    __tablename__ = "feed_polls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    feed_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("feeds.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    polled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    http_status: Mapped[int | None] = mapped_column(Integer)
    http_etag: Mapped[str | None] = mapped_column(Text)
    http_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    http_last_modified: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    http_expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    newest_item_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    new_items: Mapped[int | None] = mapped_column(Integer)
    window_size: Mapped[int | None] = mapped_column(Integer)
    response_size: Mapped[int | None] = mapped_column(Integer)

    feed = relationship("Feed", back_populates="polls")
