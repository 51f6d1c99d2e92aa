"""
Web search provider abstraction.

Search backends used by the discovery crawler to turn queries into
candidate page URLs. Supports Tavily and self-hosted SearXNG.
"""

from abc import ABC, abstractmethod
from typing import Any

import httpx

from .. import get_logger
from ..config import TrawlSettings
from ..config import settings as default_settings

logger = get_logger(__name__)


class SearchProviderError(Exception):
    """Raised when a search backend request fails."""


class SearchProvider(ABC):
    """Base class for web search providers."""

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 20.0) -> None:
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    @abstractmethod
    async def search(self, query: str, num_results: int, language: str | None = None) -> list[str]:
        """Return result URLs for ``query``, at most ``num_results``."""

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    @staticmethod
    def _result_urls(data: Any, num_results: int) -> list[str]:
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise SearchProviderError("Search response has no result list")
        urls: list[str] = []
        for row in results:
            if not isinstance(row, dict):
                continue
            url = str(row.get("url") or "").strip()
            if url:
                urls.append(url)
        return urls[:num_results]


class TavilySearchProvider(SearchProvider):
    """Tavily search API."""

    def __init__(
        self,
        api_key: str,
        search_url: str = "https://api.tavily.com/search",
        client: httpx.AsyncClient | None = None,
        timeout: float = 20.0,
    ) -> None:
        super().__init__(client, timeout)
        self.api_key = api_key
        self.search_url = search_url

    async def search(self, query: str, num_results: int, language: str | None = None) -> list[str]:
        payload = {
            "api_key": self.api_key,
            "query": query,
            "search_depth": "basic",
            "include_answer": False,
            "include_raw_content": False,
            "max_results": num_results,
        }
        try:
            response = await self.client.post(self.search_url, json=payload)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise SearchProviderError(f"Tavily search failed for {query!r}: {e}") from e
        return self._result_urls(data, num_results)


class SearxngSearchProvider(SearchProvider):
    """SearXNG instance with the JSON output format enabled."""

    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 20.0,
    ) -> None:
        super().__init__(client, timeout)
        self.base_url = base_url.rstrip("/")

    async def search(self, query: str, num_results: int, language: str | None = None) -> list[str]:
        params = {"q": query, "format": "json"}
        if language:
            params["language"] = language
        try:
            response = await self.client.get(f"{self.base_url}/search", params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise SearchProviderError(f"SearXNG search failed for {query!r}: {e}") from e
        return self._result_urls(data, num_results)


def create_search_provider(config: TrawlSettings | None = None) -> SearchProvider:
    """
    Create the configured search provider.

    Settings keys:
        - discovery_provider: "tavily" | "searxng"
        - tavily_api_key / discovery_search_url for Tavily
        - searxng_url for SearXNG

    Raises:
        ValueError: If the provider is unknown or lacks its required setting.
    """
    config = config or default_settings
    provider = config.discovery_provider.lower()
    timeout = config.discovery_search_timeout_seconds

    if provider == "tavily":
        if not config.tavily_api_key:
            raise ValueError("TRAWL_TAVILY_API_KEY is required for the tavily provider")
        logger.info("Using Tavily search provider")
        return TavilySearchProvider(
            config.tavily_api_key, search_url=config.discovery_search_url, timeout=timeout
        )

    if provider == "searxng":
        if not config.searxng_url:
            raise ValueError("TRAWL_SEARXNG_URL is required for the searxng provider")
        logger.info("Using SearXNG search provider", extra={"base_url": config.searxng_url})
        return SearxngSearchProvider(config.searxng_url, timeout=timeout)

    raise ValueError(f"Unknown discovery provider: {config.discovery_provider}")
