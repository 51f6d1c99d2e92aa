"""
Discovery schemas.

Result models of the feed discovery crawler.
"""

import csv
import io
from enum import Enum

from pydantic import BaseModel, ConfigDict


class FeedType(str, Enum):
    """Syndication format announced by an autodiscovery link."""

    RSS = "rss"
    ATOM = "atom"
    UNKNOWN = "unknown"


class DiscoveredFeed(BaseModel):
    """A feed found through autodiscovery on a page."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    feed_type: FeedType = FeedType.UNKNOWN
    feed_url: str
    title: str | None = None
    page_url: str

    def to_csv(self) -> str:
        """Serialize as one CSV record: type, feed URL, title, page URL."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="")
        writer.writerow([self.feed_type.value, self.feed_url, self.title or "", self.page_url])
        return buffer.getvalue()

    def to_line(self, extended: bool = False) -> str:
        """Serialize as a result file line, plain URL unless extended."""
        return self.to_csv() if extended else self.feed_url


class DiscoveryStats(BaseModel):
    """Progress counters of a discovery run."""

    queries: int = 0
    pages_checked: int = 0
    feeds_found: int = 0
    errors: int = 0
    elapsed_seconds: float = 0.0
