"""create feed polling tables

Revision ID: 7a1c2e9d4b10
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from collections.abc import Sequence
from typing import Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7a1c2e9d4b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "feeds",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("url", sa.String(length=2000), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=True),
        sa.Column("site_url", sa.String(length=2000), nullable=True),
        sa.Column("language", sa.String(length=10), nullable=True),
        sa.Column("feed_format", sa.String(length=20), nullable=True),
        sa.Column("etag", sa.Text(), nullable=True),
        sa.Column("last_modified", sa.DateTime(timezone=True), nullable=True),
        sa.Column("checks", sa.Integer(), nullable=False),
        sa.Column("unreachable_count", sa.Integer(), nullable=False),
        sa.Column("unparsable_count", sa.Integer(), nullable=False),
        sa.Column("misses", sa.Integer(), nullable=False),
        sa.Column("last_miss_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("check_interval", sa.Integer(), nullable=False),
        sa.Column("activity_pattern", sa.String(length=20), nullable=False),
        sa.Column("last_poll_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_success_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_check_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("window_size", sa.Integer(), nullable=True),
        sa.Column("has_variable_window_size", sa.Boolean(), nullable=False),
        sa.Column("total_items", sa.Integer(), nullable=False),
        sa.Column("last_entry_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_outcome", sa.String(length=30), nullable=False),
        sa.Column("total_processing_ms", sa.Integer(), nullable=False),
        sa.Column("blocked", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_feeds_url"), "feeds", ["url"], unique=True)
    op.create_index(op.f("ix_feeds_next_check_at"), "feeds", ["next_check_at"], unique=False)
    op.create_index(op.f("ix_feeds_blocked"), "feeds", ["blocked"], unique=False)

    op.create_table(
        "feed_item_cache",
        sa.Column("feed_id", sa.String(length=36), nullable=False),
        sa.Column("item_hash", sa.String(length=40), nullable=False),
        sa.Column("corrected_published_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["feed_id"], ["feeds.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("feed_id", "item_hash"),
    )

    op.create_table(
        "feed_polls",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("feed_id", sa.String(length=36), nullable=False),
        sa.Column("polled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("http_status", sa.Integer(), nullable=True),
        sa.Column("http_etag", sa.Text(), nullable=True),
        sa.Column("http_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("http_last_modified", sa.DateTime(timezone=True), nullable=True),
        sa.Column("http_expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("newest_item_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("new_items", sa.Integer(), nullable=True),
        sa.Column("window_size", sa.Integer(), nullable=True),
        sa.Column("response_size", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["feed_id"], ["feeds.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_feed_polls_feed_id"), "feed_polls", ["feed_id"], unique=False)
    op.create_index(op.f("ix_feed_polls_polled_at"), "feed_polls", ["polled_at"], unique=False)

    op.create_table(
        "entries",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("feed_id", sa.String(length=36), nullable=False),
        sa.Column("item_hash", sa.String(length=40), nullable=False),
        sa.Column("raw_id", sa.String(length=1000), nullable=True),
        sa.Column("url", sa.String(length=2000), nullable=True),
        sa.Column("title", sa.String(length=1000), nullable=True),
        sa.Column("author", sa.String(length=500), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["feed_id"], ["feeds.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("feed_id", "item_hash", name="uq_entry_feed_hash"),
    )
    op.create_index(op.f("ix_entries_feed_id"), "entries", ["feed_id"], unique=False)
    op.create_index(op.f("ix_entries_published_at"), "entries", ["published_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_entries_published_at"), table_name="entries")
    op.drop_index(op.f("ix_entries_feed_id"), table_name="entries")
    op.drop_table("entries")
    op.drop_index(op.f("ix_feed_polls_polled_at"), table_name="feed_polls")
    op.drop_index(op.f("ix_feed_polls_feed_id"), table_name="feed_polls")
    op.drop_table("feed_polls")
    op.drop_table("feed_item_cache")
    op.drop_index(op.f("ix_feeds_blocked"), table_name="feeds")
    op.drop_index(op.f("ix_feeds_next_check_at"), table_name="feeds")
    op.drop_index(op.f("ix_feeds_url"), table_name="feeds")
    op.drop_table("feeds")
