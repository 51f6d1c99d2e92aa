"""
RSS feed discovery.

Finds RSS/Atom feeds linked from HTML pages via autodiscovery markup.
"""

from dataclasses import dataclass
from urllib.parse import urljoin

from bs4 import BeautifulSoup

FEED_MIME_TYPES = {
    "application/rss+xml": "rss",
    "application/atom+xml": "atom",
}


@dataclass(frozen=True)
class FeedLink:
    """A feed link found on a page."""

    feed_type: str
    feed_url: str
    title: str | None
    page_url: str


def normalize_feed_scheme(href: str) -> str:
    """
    Rewrite the legacy feed URI scheme to http(s).

    ``feed://example.com/x`` becomes ``http://example.com/x``,
    ``feed:https://example.com/x`` becomes ``https://example.com/x``.
    """
    if href[:7].lower() == "feed://":
        return "http://" + href[7:]
    if href[:5].lower() == "feed:":
        return href[5:]
    return href


def _base_url(soup: BeautifulSoup, page_url: str) -> str:
    base = soup.find("base", href=True)
    if base is None:
        return page_url
    href = str(base.get("href") or "").strip()
    return urljoin(page_url, href) if href else page_url


def _is_alternate(rel: object) -> bool:
    if isinstance(rel, str):
        values = rel.split()
    elif isinstance(rel, (list, tuple)):
        values = [str(value) for value in rel]
    else:
        return False
    return any("alternate" in value.lower() for value in values)


def discover_feeds(html: str | bytes, page_url: str) -> list[FeedLink]:
    """
    Run autodiscovery on an HTML document.

    Duplicate links are kept; consumers dedupe downstream.

    Args:
        html: Page markup.
        page_url: URL the page was retrieved from.

    Returns:
        Feed links in document order, empty if none.
    """
    soup = BeautifulSoup(html, "lxml")
    base_url = _base_url(soup, page_url)

    links: list[FeedLink] = []
    for link in soup.find_all("link"):
        if not _is_alternate(link.get("rel")):
            continue
        mime_type = str(link.get("type") or "").strip().lower()
        feed_type = FEED_MIME_TYPES.get(mime_type)
        if feed_type is None:
            continue

        href = str(link.get("href") or "").strip()
        if not href:
            continue

        feed_url = urljoin(base_url, normalize_feed_scheme(href))
        title = link.get("title")
        links.append(
            FeedLink(
                feed_type=feed_type,
                feed_url=feed_url,
                title=str(title) if title is not None else None,
                page_url=page_url,
            )
        )
    return links
