"""
RSS/Atom feed parser.

Parses RSS and Atom feeds using feedparser.
"""

import hashlib
from datetime import datetime, timezone
from typing import Any

import feedparser
from feedparser import FeedParserDict


class FeedParseError(ValueError):
    """Raised when a document cannot be parsed as a feed."""


def item_fingerprint(title: str | None, link: str | None, raw_id: str | None) -> str:
    """
    Compute the identity hash of a feed item.

    Args:
        title: Item title.
        link: Item link.
        raw_id: Source-provided identifier (guid/id).

    Returns:
        Hex SHA-1 digest over title, link and raw id.
    """
    payload = f"{title or ''}{link or ''}{raw_id or ''}"
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()


class ParsedFeed:
    """Parsed feed metadata."""

    def __init__(self, data: FeedParserDict):
        """
        Initialize from feedparser data.

        Args:
            data: Parsed feed data from feedparser.
        """
        feed_info = data.get("feed", {})
        self.title = feed_info.get("title", "")
        self.description = feed_info.get("description", "")
        self.site_url = feed_info.get("link", "")
        self.language = feed_info.get("language")
        self.feed_format = data.get("version") or None
        self.entries = [ParsedEntry(entry) for entry in data.get("entries", [])]


class ParsedEntry:
    """Parsed entry data."""

    def __init__(self, data: dict[str, Any]):
        """
        Initialize from feedparser entry data.

        Args:
            data: Entry data from feedparser.
        """
        self.raw_id = data.get("id") or None
        self.link = data.get("link") or None
        self.title = data.get("title") or None
        self.author = data.get("author")
        self.summary = data.get("summary")
        self.item_hash = item_fingerprint(self.title, self.link, self.raw_id)

        # Parse published date
        published = data.get("published_parsed") or data.get("updated_parsed")
        if published:
            try:
                self.published_at = datetime(*published[:6], tzinfo=timezone.utc)
            except (TypeError, ValueError):
                self.published_at = None
        else:
            self.published_at = None


def parse_feed(content: bytes | str, url: str | None = None) -> ParsedFeed:
    """
    Parse RSS/Atom feed from content.

    Args:
        content: Feed XML content.
        url: Feed URL (used for relative link resolution).

    Returns:
        Parsed feed data.

    Raises:
        FeedParseError: If the content is not a feed.
    """
    response_headers = {"content-location": url} if url else None
    data = feedparser.parse(content, response_headers=response_headers)

    if data.get("bozo", False) and not data.get("entries"):
        # Feed has errors and no entries
        raise FeedParseError(f"Failed to parse feed: {data.get('bozo_exception', 'Unknown error')}")

    if not data.get("version") and not data.get("entries"):
        raise FeedParseError("Document is not an RSS or Atom feed")

    return ParsedFeed(data)
