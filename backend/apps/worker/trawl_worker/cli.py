"""
Operator command line.

``trawl discover`` runs a discovery crawl, ``trawl import`` registers feed
URLs from a discovery result file, and ``trawl poll`` runs poll cycles in
the foreground without the task queue.
"""

import argparse
import asyncio
import csv
import sys
from datetime import UTC, datetime
from pathlib import Path

from trawl_core import get_logger, init_logging
from trawl_core.config import settings
from trawl_core.schemas.discovery import FeedType
from trawl_core.services import FeedStore
from trawl_database.session import close_database, init_database
from trawl_rss import FeedFetcher

from .main import build_poller
from .tasks.feed_discovery import build_crawler, run_crawler

logger = get_logger(__name__)

_FEED_TYPES = {feed_type.value for feed_type in FeedType}


def read_feed_urls(path: str | Path) -> list[str]:
    """
    Read feed URLs from a discovery result file.

    Accepts plain files with one URL per line and extended CSV records
    (type, feed URL, title, page URL). Blank lines and ``#`` comments are
    skipped.
    """
    urls: list[str] = []
    with open(path, encoding="utf-8", newline="") as f:
        for row in csv.reader(f):
            if not row or not row[0].strip() or row[0].lstrip().startswith("#"):
                continue
            if len(row) >= 2 and row[0].strip() in _FEED_TYPES:
                urls.append(row[1].strip())
            else:
                urls.append(row[0].strip())
    return urls


async def _discover(args: argparse.Namespace) -> int:
    crawler = build_crawler(args.output, extended_output=args.extended)
    if args.workers:
        crawler.num_workers = args.workers
    if args.results:
        crawler.num_results = args.results

    if args.queries_file:
        crawler.add_queries_from_file(args.queries_file)
    crawler.add_queries(args.query or [])
    if not crawler.queries:
        logger.error("No queries given")
        await crawler.fetcher.aclose()
        await crawler.search_provider.aclose()
        return 1
    if args.combine is not None:
        crawler.combine_queries(args.combine)

    stats = await run_crawler(crawler)
    print(
        f"queries={stats['queries']} pages={stats['pages_checked']} "
        f"feeds={stats['feeds_found']} errors={stats['errors']}"
    )
    return 0


async def _import(args: argparse.Namespace) -> int:
    store = FeedStore(init_database(settings.database_url))
    try:
        urls = read_feed_urls(args.file)
        known: set[str] = set()
        for url in urls:
            if url in known:
                continue
            known.add(url)
            await store.add_feed(url, check_interval=settings.schedule_default_interval)
    finally:
        await close_database()
    print(f"imported {len(known)} feeds")
    return 0


async def _poll(args: argparse.Namespace) -> int:
    store = FeedStore(init_database(settings.database_url))
    fetcher = FeedFetcher(max_size=settings.poll_max_feed_size, timeout=settings.poll_timeout_seconds)
    poller = build_poller(store, fetcher, settings)
    try:
        feed_ids = list(args.feed_id)
        if args.due or not feed_ids:
            feed_ids += await store.list_due_feed_ids(datetime.now(UTC), args.limit)
        for feed_id in feed_ids:
            outcome = await poller.poll(feed_id)
            print(f"{feed_id} {outcome.value if outcome else 'skipped'}")
    finally:
        await fetcher.aclose()
        await close_database()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="trawl", description="Trawl feed acquisition")
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    discover = subparsers.add_parser("discover", help="Discover feeds through web search")
    discover.add_argument("-o", "--output", required=True, help="Result file (appended)")
    discover.add_argument("-q", "--query", action="append", help="Search query (repeatable)")
    discover.add_argument("-f", "--queries-file", help="File with one query per line")
    discover.add_argument(
        "-c", "--combine", type=int, help="Combine queries up to this count (-1 for all pairs)"
    )
    discover.add_argument("--extended", action="store_true", help="Write CSV records")
    discover.add_argument("--workers", type=int, help="Number of autodiscovery workers")
    discover.add_argument("--results", type=int, help="Search results per query")
    discover.set_defaults(func=_discover)

    import_parser = subparsers.add_parser("import", help="Register feeds from a result file")
    import_parser.add_argument("file", help="Plain or extended discovery result file")
    import_parser.set_defaults(func=_import)

    poll = subparsers.add_parser("poll", help="Poll feeds in the foreground")
    poll.add_argument("feed_id", nargs="*", help="Feed ids (default: all due feeds)")
    poll.add_argument("--due", action="store_true", help="Also poll every due feed")
    poll.add_argument("--limit", type=int, default=settings.poll_batch_size, help="Max due feeds")
    poll.set_defaults(func=_poll)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    init_logging(args.log_level, stream=sys.stderr)
    logger.debug("Running command", extra={"command": args.command})
    return asyncio.run(args.func(args))


if __name__ == "__main__":
    sys.exit(main())
