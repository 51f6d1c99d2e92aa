"""Tests for the search-driven discovery crawler."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from trawl_core.schemas import DiscoveredFeed, FeedType
from trawl_core.services.discovery_service import DiscoveryCrawler, site_root
from trawl_core.services.search_providers import SearchProviderError
from trawl_rss import FeedFetcher

PAGES = {
    "a.example.com": (
        200,
        '<html><head><link rel="alternate" type="application/rss+xml" '
        'title="A posts" href="/rss"></head></html>',
    ),
    "b.example.com": (404, "missing"),
    "c.example.com": (200, "<html><head></head></html>"),
}


def _fetcher() -> FeedFetcher:
    def handler(request: httpx.Request) -> httpx.Response:
        status, body = PAGES.get(request.url.host, (404, ""))
        return httpx.Response(status, text=body, headers={"Content-Type": "text/html"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
    return FeedFetcher(client=client)


def _provider(results: dict[str, list[str] | Exception]) -> MagicMock:
    async def search(query: str, num_results: int, language: str | None = None) -> list[str]:
        value = results[query]
        if isinstance(value, Exception):
            raise value
        return value

    provider = MagicMock()
    provider.search = AsyncMock(side_effect=search)
    return provider


def _crawler(tmp_path, provider, **kwargs) -> DiscoveryCrawler:
    return DiscoveryCrawler(
        search_provider=provider,
        result_path=tmp_path / "feeds.txt",
        num_workers=3,
        num_results=10,
        fetcher=_fetcher(),
        backoff_seconds=0,
        **kwargs,
    )


def test_site_root() -> None:
    assert site_root("https://a.example.com/post/1?x=1") == "https://a.example.com"
    assert site_root("http://b.example.com") == "http://b.example.com"
    assert site_root("ftp://files.example.com/x") is None
    assert site_root("not a url") is None


class TestQueries:
    """Test query management and combination."""

    def _crawler(self, tmp_path, queries: list[str]) -> DiscoveryCrawler:
        crawler = _crawler(tmp_path, _provider({}))
        crawler.add_queries(queries)
        return crawler

    def test_add_queries_from_file(self, tmp_path):
        path = tmp_path / "queries.txt"
        path.write_text("news\n\n  tech blog  \n", encoding="utf-8")
        crawler = self._crawler(tmp_path, [])

        assert crawler.add_queries_from_file(path) == 2
        assert list(crawler.queries) == ["news", "tech blog"]

    def test_smaller_target_keeps_random_subset(self, tmp_path):
        crawler = self._crawler(tmp_path, ["a", "b", "c", "d"])

        combined = crawler.combine_queries(2)

        assert len(combined) == 2
        assert set(combined) <= {"a", "b", "c", "d"}
        assert list(crawler.queries) == combined

    @pytest.mark.parametrize("target", [-1, 7, 100])
    def test_all_pairs(self, tmp_path, target):
        crawler = self._crawler(tmp_path, ["a", "b", "c"])

        combined = crawler.combine_queries(target)

        assert sorted(combined) == sorted(
            ["a", "b", "c", '"a" "b"', '"a" "c"', '"b" "c"']
        )

    def test_partial_pairs(self, tmp_path):
        crawler = self._crawler(tmp_path, ["a", "b", "c", "d"])

        combined = crawler.combine_queries(7)

        assert len(combined) == 7
        assert {"a", "b", "c", "d"} <= set(combined)
        pairs = [query for query in combined if query.startswith('"')]
        assert len(pairs) == 3
        assert len(set(pairs)) == 3

    def test_target_equal_to_singles(self, tmp_path):
        crawler = self._crawler(tmp_path, ["a", "b", "c"])

        assert sorted(crawler.combine_queries(3)) == ["a", "b", "c"]

    @pytest.mark.parametrize("target", [-2, -10])
    def test_negative_target_is_rejected(self, tmp_path, target):
        crawler = self._crawler(tmp_path, ["a", "b"])

        with pytest.raises(ValueError, match="target_count"):
            crawler.combine_queries(target)

        assert list(crawler.queries) == ["a", "b"]


class TestRun:
    """Test DiscoveryCrawler.run."""

    @pytest.mark.asyncio
    async def test_discovers_feeds_from_site_roots(self, tmp_path):
        provider = _provider(
            {
                "first": [
                    "https://a.example.com/post/1",
                    "https://a.example.com/post/2",
                    "https://b.example.com/page",
                    "ftp://ignored.example.com/",
                ],
                "second": SearchProviderError("quota exceeded"),
                "third": ["https://c.example.com/about"],
            }
        )
        crawler = _crawler(tmp_path, provider)
        crawler.add_queries(["first", "second", "third"])

        stats = await crawler.run()

        assert stats.queries == 3
        assert stats.pages_checked == 3
        assert stats.feeds_found == 1
        assert stats.errors == 1
        lines = (tmp_path / "feeds.txt").read_text(encoding="utf-8").splitlines()
        assert lines == ["https://a.example.com/rss"]

    @pytest.mark.asyncio
    async def test_extended_output_writes_csv(self, tmp_path):
        provider = _provider({"q": ["https://a.example.com/"]})
        crawler = _crawler(tmp_path, provider, extended_output=True)
        crawler.add_query("q")

        await crawler.run()

        lines = (tmp_path / "feeds.txt").read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        assert lines[0].startswith("rss,https://a.example.com/rss,A posts,https://a.example.com")

    @pytest.mark.asyncio
    async def test_unwritable_result_file_is_counted_as_error(self, tmp_path):
        provider = _provider({"q": ["https://a.example.com/", "https://c.example.com/"]})
        crawler = _crawler(tmp_path, provider)
        crawler.result_path = tmp_path / "missing" / "feeds.txt"
        crawler.add_query("q")

        stats = await crawler.run()

        assert stats.pages_checked == 2
        assert stats.errors == 1
        assert stats.feeds_found == 0
        assert not crawler.result_path.exists()

    @pytest.mark.asyncio
    async def test_no_results_finishes(self, tmp_path):
        provider = _provider({"q": []})
        crawler = _crawler(tmp_path, provider)
        crawler.add_query("q")

        stats = await crawler.run()

        assert stats.pages_checked == 0
        assert not (tmp_path / "feeds.txt").exists()

    @pytest.mark.asyncio
    async def test_discover_page_returns_none_on_http_error(self, tmp_path):
        crawler = _crawler(tmp_path, _provider({}))

        assert await crawler.discover_page("https://b.example.com") is None
        assert await crawler.discover_page("https://c.example.com") == []


class TestDiscoveredFeed:
    """Test DiscoveredFeed serialization."""

    def test_csv_quotes_titles_with_commas(self):
        feed = DiscoveredFeed(
            feed_type=FeedType.ATOM,
            feed_url="https://x.example.com/atom",
            title="News, daily",
            page_url="https://x.example.com/",
        )

        assert feed.to_csv() == 'atom,https://x.example.com/atom,"News, daily",https://x.example.com/'
        assert feed.to_line() == "https://x.example.com/atom"
