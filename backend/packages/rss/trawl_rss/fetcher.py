"""
Feed fetching.

Builds conditional feed requests and performs size-limited downloads.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime

import httpx

DEFAULT_USER_AGENT = "Trawl/1.0"
DEFAULT_MAX_SIZE = 5 * 1024 * 1024


class FetchError(Exception):
    """Raised when a resource cannot be retrieved at the transport level."""


class ResponseTooLargeError(FetchError):
    """Raised when a response body exceeds the configured size limit."""


@dataclass
class FetchResult:
    """Outcome of a single HTTP exchange."""

    url: str
    status_code: int
    headers: httpx.Headers
    content: bytes
    size: int

    def header(self, name: str) -> str | None:
        """Return a response header value (case-insensitive), or None."""
        return self.headers.get(name)

    def header_date(self, name: str) -> datetime | None:
        """Parse an HTTP date header, returning None when absent or malformed."""
        return parse_http_date(self.headers.get(name))


def parse_http_date(value: str | None) -> datetime | None:
    """Parse an RFC 7231 date string into an aware UTC datetime."""
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_http_date(value: datetime) -> str:
    """Format a datetime as an RFC 7231 GMT date string."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def build_feed_request(
    url: str,
    etag: str | None = None,
    last_modified: datetime | None = None,
    user_agent: str = DEFAULT_USER_AGENT,
) -> httpx.Request:
    """
    Build a GET request for a feed.

    Cache validators are attached only when given; callers decide whether
    the stored validators are trustworthy.

    Args:
        url: Feed URL.
        etag: Optional ETag for conditional request.
        last_modified: Optional Last-Modified timestamp for conditional request.
        user_agent: User-Agent header value.

    Returns:
        Unsent httpx request.
    """
    headers = {"User-Agent": user_agent, "Cache-Control": "no-cache"}
    if etag:
        headers["If-None-Match"] = etag
    if last_modified is not None:
        headers["If-Modified-Since"] = format_http_date(last_modified)
    return httpx.Request("GET", url, headers=headers)


class FeedFetcher:
    """Size-limited HTTP transport shared by polling and discovery."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        max_size: int = DEFAULT_MAX_SIZE,
        timeout: float = 30.0,
    ):
        """
        Initialize the fetcher.

        Args:
            client: Optional preconfigured client; one is created when omitted.
            max_size: Maximum response body size in bytes.
            timeout: Request timeout in seconds.
        """
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout), follow_redirects=True
        )
        self.max_size = max_size

    async def fetch(self, request: httpx.Request) -> FetchResult:
        """
        Send a request and read the body up to the size limit.

        HTTP error statuses are returned, not raised.

        Raises:
            ResponseTooLargeError: If the body exceeds ``max_size``.
            FetchError: On connection, timeout or protocol failures.
        """
        request.extensions.setdefault("timeout", self.client.timeout.as_dict())
        try:
            response = await self.client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise FetchError(f"Failed to fetch {request.url}: {e}") from e

        try:
            declared = response.headers.get("content-length")
            if declared and declared.isdigit() and int(declared) > self.max_size:
                raise ResponseTooLargeError(
                    f"Response of {request.url} declares {declared} bytes, limit is {self.max_size}"
                )

            chunks: list[bytes] = []
            size = 0
            async for chunk in response.aiter_bytes():
                size += len(chunk)
                if size > self.max_size:
                    raise ResponseTooLargeError(
                        f"Response of {request.url} exceeded {self.max_size} bytes"
                    )
                chunks.append(chunk)
        except httpx.HTTPError as e:
            raise FetchError(f"Failed to read {request.url}: {e}") from e
        finally:
            await response.aclose()

        return FetchResult(
            url=str(response.url),
            status_code=response.status_code,
            headers=response.headers,
            content=b"".join(chunks),
            size=size,
        )

    async def get(self, url: str, user_agent: str = DEFAULT_USER_AGENT) -> FetchResult:
        """Fetch a URL unconditionally."""
        return await self.fetch(build_feed_request(url, user_agent=user_agent))

    async def aclose(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._owns_client:
            await self.client.aclose()
