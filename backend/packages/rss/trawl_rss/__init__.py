"""
RSS processing package.

Provides feed fetching, RSS/Atom parsing and feed autodiscovery.
"""

from .discoverer import FeedLink, discover_feeds, normalize_feed_scheme
from .fetcher import (
    DEFAULT_MAX_SIZE,
    DEFAULT_USER_AGENT,
    FeedFetcher,
    FetchError,
    FetchResult,
    ResponseTooLargeError,
    build_feed_request,
    format_http_date,
    parse_http_date,
)
from .parser import FeedParseError, ParsedEntry, ParsedFeed, item_fingerprint, parse_feed

__all__ = [
    "parse_feed",
    "ParsedFeed",
    "ParsedEntry",
    "FeedParseError",
    "item_fingerprint",
    "discover_feeds",
    "normalize_feed_scheme",
    "FeedLink",
    "DEFAULT_MAX_SIZE",
    "DEFAULT_USER_AGENT",
    "build_feed_request",
    "format_http_date",
    "parse_http_date",
    "FeedFetcher",
    "FetchResult",
    "FetchError",
    "ResponseTooLargeError",
]
