"""Redis key templates and TTL constants.

Centralized management of all Redis keys and arq job ids used by the worker,
so that two poll jobs for the same feed can never coexist in the queue.
"""


class RedisKeys:
    """Redis key templates and helper methods."""

    # ============================================================================
    # Feed Polling
    # ============================================================================

    # arq job id for a single feed poll
    # Format: poll_feed:{feed_id}
    @staticmethod
    def poll_feed_job(feed_id: str) -> str:
        """
        Get the arq job id of a feed poll.

        arq refuses to enqueue a job whose id is already queued or running,
        which serializes poll cycles per feed.

        Args:
            feed_id: Feed identifier.

        Returns:
            Job id string.
        """
        return f"poll_feed:{feed_id}"

