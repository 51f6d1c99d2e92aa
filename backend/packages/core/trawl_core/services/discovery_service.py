"""
Discovery service.

Offline feed discovery pipeline backed by external web search: queries are
turned into candidate site roots, each site root is checked for feed
autodiscovery links, and every hit is appended to a result file.
"""

import asyncio
import itertools
import random
import time
from collections import deque
from collections.abc import Iterable
from pathlib import Path
from urllib.parse import urlparse

from trawl_rss import DEFAULT_USER_AGENT, FeedFetcher, FetchError, discover_feeds

from .. import get_logger
from ..schemas.discovery import DiscoveredFeed, DiscoveryStats
from .search_providers import SearchProvider, SearchProviderError

logger = get_logger(__name__)


def site_root(url: str) -> str | None:
    """Reduce a URL to scheme and host, None if it has neither."""
    parsed = urlparse(url.strip())
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}"


class DiscoveryCrawler:
    """
    Search-driven feed discovery.

    One producer task drains the query queue through the search provider
    and feeds site roots into a URL queue; ``num_workers`` consumer tasks
    run autodiscovery on them. Consumers start once the first search
    returned results (or the producer finished) and stop when the producer
    is done and the URL queue is empty.
    """

    def __init__(
        self,
        search_provider: SearchProvider,
        result_path: str | Path,
        num_workers: int = 10,
        num_results: int = 20,
        extended_output: bool = False,
        fetcher: FeedFetcher | None = None,
        language: str | None = "en",
        backoff_seconds: float = 1.0,
        progress_every: int = 1000,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        if num_workers <= 0:
            raise ValueError("num_workers must be positive")
        self.search_provider = search_provider
        self.result_path = Path(result_path)
        self.num_workers = num_workers
        self.num_results = num_results
        self.extended_output = extended_output
        self.fetcher = fetcher or FeedFetcher(timeout=15.0)
        self.language = language
        self.backoff_seconds = backoff_seconds
        self.progress_every = progress_every
        self.user_agent = user_agent

        self.queries: deque[str] = deque()
        self.stats = DiscoveryStats()
        self._urls: asyncio.Queue[str] = asyncio.Queue()
        self._ready = asyncio.Event()
        self._producer_done = False
        self._started = 0.0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def add_query(self, query: str) -> None:
        self.queries.append(query)

    def add_queries(self, queries: Iterable[str]) -> None:
        self.queries.extend(queries)

    def add_queries_from_file(self, path: str | Path) -> int:
        """
        Add one query per non-empty line of a text file.

        Returns:
            Number of queries added.
        """
        with open(path, encoding="utf-8") as f:
            queries = [line.strip() for line in f if line.strip()]
        self.add_queries(queries)
        return len(queries)

    def combine_queries(self, target_count: int) -> list[str]:
        """
        Expand the single queries to ``target_count`` queries.

        With fewer targets than queries, a random subset is kept. With -1,
        or more targets than singles plus distinct pairs, every pair is
        added. Otherwise randomly chosen distinct pairs are added until the
        target is reached. The query queue is replaced by the shuffled
        result.

        Args:
            target_count: Number of queries wanted, -1 for all combinations.

        Returns:
            The new query list.

        Raises:
            ValueError: If ``target_count`` is negative and not -1.
        """
        if target_count < -1:
            raise ValueError(f"target_count must be -1 or non-negative, got {target_count}")
        singles = list(self.queries)
        available = len(singles)
        possible_pairs = available * (available - 1) // 2

        if target_count != -1 and target_count < available:
            combined = random.sample(singles, target_count)
        else:
            pairs = [f'"{a}" "{b}"' for a, b in itertools.combinations(singles, 2)]
            if target_count == -1 or target_count > available + possible_pairs:
                combined = singles + pairs
            else:
                combined = singles + random.sample(pairs, target_count - available)

        random.shuffle(combined)
        self.queries = deque(combined)
        return combined

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def run(self) -> DiscoveryStats:
        """
        Run the discovery pipeline until every query is processed.

        Returns:
            Final counters of the run.
        """
        self.stats = DiscoveryStats()
        self._urls = asyncio.Queue()
        self._ready = asyncio.Event()
        self._producer_done = False
        self._started = time.monotonic()

        logger.info(
            "Starting feed discovery",
            extra={
                "queries": len(self.queries),
                "results_per_query": self.num_results,
                "max_urls": len(self.queries) * self.num_results,
                "workers": self.num_workers,
            },
        )

        producer = asyncio.create_task(self._produce())
        workers: list[asyncio.Task[None]] = []
        try:
            await self._ready.wait()
            workers = [asyncio.create_task(self._work()) for _ in range(self.num_workers)]
            await producer
            await asyncio.gather(*workers)
        finally:
            for task in [producer, *workers]:
                if not task.done():
                    task.cancel()

        self.stats.elapsed_seconds = round(time.monotonic() - self._started, 3)
        self._log_progress("Finished feed discovery")
        return self.stats

    async def _produce(self) -> None:
        total = len(self.queries)
        done = 0
        try:
            while self.queries:
                query = self.queries.popleft()
                sites = await self.search_sites(query)
                for site in sites:
                    self._urls.put_nowait(site)
                if sites:
                    self._ready.set()

                done += 1
                self.stats.queries = done
                logger.info(
                    "Query finished",
                    extra={
                        "query": query,
                        "progress": f"{done}/{total}",
                        "sites": len(sites),
                        "url_queue": self._urls.qsize(),
                    },
                )
            logger.info(
                "Finished queries",
                extra={"queries": done, "seconds": round(time.monotonic() - self._started, 1)},
            )
        finally:
            self._producer_done = True
            self._ready.set()

    async def search_sites(self, query: str) -> list[str]:
        """Search ``query`` and reduce the result URLs to distinct site roots."""
        try:
            urls = await self.search_provider.search(query, self.num_results, self.language)
        except SearchProviderError as e:
            logger.error("Search failed", extra={"query": query, "error": str(e)})
            return []
        sites: dict[str, None] = {}
        for url in urls:
            root = site_root(url)
            if root:
                sites[root] = None
        return list(sites)

    async def _work(self) -> None:
        while True:
            try:
                url = self._urls.get_nowait()
            except asyncio.QueueEmpty:
                if self._producer_done:
                    return
                # Search may still be running
                await asyncio.sleep(self.backoff_seconds)
                continue

            try:
                feeds = await self.discover_page(url)
            except Exception:
                logger.exception("Autodiscovery failed", extra={"url": url})
                feeds = None

            if feeds is None:
                self.stats.errors += 1
            else:
                try:
                    self.write_feeds(feeds)
                except OSError as e:
                    logger.error(
                        "Could not write discovered feeds",
                        extra={"url": url, "path": str(self.result_path), "error": str(e)},
                    )
                    self.stats.errors += 1
                else:
                    self.stats.feeds_found += len(feeds)

            self.stats.pages_checked += 1
            if self.stats.pages_checked % self.progress_every == 0:
                self._log_progress("Discovery progress")

    async def discover_page(self, page_url: str) -> list[DiscoveredFeed] | None:
        """
        Retrieve a page and run autodiscovery on it.

        Returns:
            Discovered feeds (possibly empty), None if the page could not
            be retrieved.
        """
        try:
            result = await self.fetcher.get(page_url, self.user_agent)
        except FetchError as e:
            logger.warning("Could not retrieve page", extra={"url": page_url, "error": str(e)})
            return None
        if result.status_code >= 400:
            logger.debug(
                "Page returned HTTP error",
                extra={"url": page_url, "status": result.status_code},
            )
            return None

        links = discover_feeds(result.content, result.url)
        logger.debug("Autodiscovery finished", extra={"url": page_url, "feeds": len(links)})
        return [DiscoveredFeed.model_validate(link) for link in links]

    def write_feeds(self, feeds: list[DiscoveredFeed]) -> None:
        """Append feeds to the result file, one line each."""
        if not feeds:
            return
        with open(self.result_path, "a", encoding="utf-8") as f:
            for feed in feeds:
                f.write(feed.to_line(self.extended_output) + "\n")

    def _log_progress(self, message: str) -> None:
        elapsed_minutes = max(time.monotonic() - self._started, 1e-9) / 60
        logger.info(
            message,
            extra={
                "pages": self.stats.pages_checked,
                "feeds": self.stats.feeds_found,
                "errors": self.stats.errors,
                "pages_per_min": round(self.stats.pages_checked / elapsed_minutes, 1),
                "feeds_per_min": round(self.stats.feeds_found / elapsed_minutes, 1),
                "url_queue": self._urls.qsize(),
            },
        )
