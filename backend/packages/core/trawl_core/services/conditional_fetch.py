"""
Conditional fetch builder.

Decides whether a poll may send the validators stored on the feed.
"""

import httpx

from trawl_database.models import PollOutcome
from trawl_rss import DEFAULT_USER_AGENT, build_feed_request

from ..schemas.feed import FeedState

# Outcomes after which the stored validators are trusted
VALIDATOR_OUTCOMES = frozenset(
    {PollOutcome.SUCCESS, PollOutcome.MISS, PollOutcome.EXECUTION_TIME_WARNING}
)


def uses_validators(feed: FeedState) -> bool:
    """Whether the next request for ``feed`` should be conditional."""
    if feed.last_outcome not in VALIDATOR_OUTCOMES:
        return False
    return bool(feed.etag) or feed.last_modified is not None


def build_poll_request(feed: FeedState, user_agent: str = DEFAULT_USER_AGENT) -> httpx.Request:
    """
    Build the request for the next poll of a feed.

    Validators are only sent after a poll that left the feed in a good
    state; after a failure the feed is fetched unconditionally so a stale
    validator cannot hide a recovered document.

    Args:
        feed: Working copy of the feed.
        user_agent: User-Agent header value.

    Returns:
        Prepared GET request.
    """
    if uses_validators(feed):
        return build_feed_request(
            feed.url,
            etag=feed.etag,
            last_modified=feed.last_modified,
            user_agent=user_agent,
        )
    return build_feed_request(feed.url, user_agent=user_agent)
