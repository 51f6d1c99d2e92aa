"""
Adaptive schedule controller.

After every poll cycle the controller predicts how long to wait before the
next poll of a feed, classifies the feed's posting behaviour and decides
whether items were missed since the previous poll.
"""

import math
import statistics
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from trawl_database.models import FeedActivityPattern

from ..config import TrawlSettings
from ..config import settings as default_settings
from ..schemas.feed import FeedItem, FeedState
from .item_cache import corrected_publish_time, count_new_items


@dataclass(frozen=True)
class WindowStatistics:
    """
    Summary of the window returned by one poll.

    ``window_size`` is None for cycles that produced no parsed window
    (transport failure, HTTP error, not modified). ``failed`` marks the
    failure cycles among them.
    """

    poll_time: datetime
    window_size: int | None = None
    new_item_count: int = 0
    publish_times: tuple[datetime, ...] = field(default_factory=tuple)
    failed: bool = False

    @classmethod
    def empty(cls, poll_time: datetime, failed: bool = False) -> "WindowStatistics":
        return cls(poll_time=poll_time, failed=failed)

    @classmethod
    def from_window(
        cls,
        items: list[FeedItem],
        cached: Mapping[str, datetime | None],
        poll_time: datetime,
    ) -> "WindowStatistics":
        """
        Summarize ``items`` against the fingerprints cached before this poll.

        Args:
            items: Items of the current window.
            cached: Fingerprints of the previous window with the publish
                times recorded when they were first seen.
            poll_time: Timestamp of the current poll.

        Returns:
            Window statistics.
        """
        times = sorted(corrected_publish_time(item, poll_time, cached) for item in items)
        return cls(
            poll_time=poll_time,
            window_size=len(items),
            new_item_count=count_new_items(cached, items),
            publish_times=tuple(times),
        )

    @property
    def has_window(self) -> bool:
        return self.window_size is not None

    @property
    def newest(self) -> datetime | None:
        return self.publish_times[-1] if self.publish_times else None

    @property
    def oldest(self) -> datetime | None:
        return self.publish_times[0] if self.publish_times else None

    @property
    def intervals(self) -> list[timedelta]:
        """Gaps between consecutive publish times."""
        return [b - a for a, b in zip(self.publish_times, self.publish_times[1:])]

    @property
    def mean_interval(self) -> timedelta | None:
        """Mean gap between items, None if fewer than two distinct times."""
        if len(self.publish_times) < 2 or self.newest == self.oldest:
            return None
        return (self.newest - self.oldest) / (len(self.publish_times) - 1)


class ScheduleController(ABC):
    """Predicts the next check interval of a feed."""

    @abstractmethod
    def advance(self, feed: FeedState, stats: WindowStatistics, force_reset: bool = False) -> bool:
        """
        Update ``check_interval`` and ``activity_pattern`` of ``feed``.

        Implementations increment ``feed.misses`` and set
        ``feed.last_miss_at`` when they judge updates were missed.

        Args:
            feed: Working copy of the feed.
            stats: Statistics of the current window.
            force_reset: Ignore the feed's history and estimate from the
                current window alone.

        Returns:
            True if a miss occurred in this cycle.
        """

    @staticmethod
    def record_miss(feed: FeedState, poll_time: datetime) -> None:
        feed.misses += 1
        feed.last_miss_at = poll_time


class FixedIntervalScheduleController(ScheduleController):
    """Polls every feed at a constant interval and never reports misses."""

    def __init__(self, interval: int = 60) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval

    def advance(self, feed: FeedState, stats: WindowStatistics, force_reset: bool = False) -> bool:
        feed.check_interval = self.interval
        return False


class MovingAverageScheduleController(ScheduleController):
    """
    Moving average schedule.

    The interval is the mean gap between the items of the current window,
    bounded by the configured minimum and maximum. A window whose items are
    all new, on any check but the first, counts as a miss and halves the
    estimate.
    """

    def __init__(
        self,
        default_interval: int = 60,
        min_interval: int = 5,
        max_interval: int = 24 * 60,
        failure_backoff: float = 1.5,
        zombie_days: int = 56,
    ) -> None:
        if not 0 < min_interval <= max_interval:
            raise ValueError("interval bounds must satisfy 0 < min <= max")
        self.default_interval = default_interval
        self.min_interval = min_interval
        self.max_interval = max_interval
        self.failure_backoff = failure_backoff
        self.zombie_after = timedelta(days=zombie_days)

    @classmethod
    def from_settings(cls, config: TrawlSettings | None = None) -> "MovingAverageScheduleController":
        config = config or default_settings
        return cls(
            default_interval=config.schedule_default_interval,
            min_interval=config.schedule_min_interval,
            max_interval=config.schedule_max_interval,
            failure_backoff=config.schedule_failure_backoff,
            zombie_days=config.schedule_zombie_days,
        )

    def _clamp(self, minutes: float) -> int:
        return max(self.min_interval, min(self.max_interval, math.ceil(minutes)))

    def classify(self, stats: WindowStatistics) -> FeedActivityPattern:
        """Classify posting behaviour from one window."""
        if not stats.has_window:
            return FeedActivityPattern.UNKNOWN
        if stats.window_size == 0:
            return FeedActivityPattern.EMPTY
        if stats.poll_time - stats.newest > self.zombie_after:
            return FeedActivityPattern.ZOMBIE
        gaps = [gap.total_seconds() for gap in stats.intervals]
        if not any(gaps):
            # Undated items collapse onto the poll time
            return FeedActivityPattern.UNKNOWN if gaps else FeedActivityPattern.SPONTANEOUS
        if len(gaps) < 2:
            return FeedActivityPattern.SPONTANEOUS
        mean = statistics.fmean(gaps)
        if statistics.pstdev(gaps) <= mean:
            return FeedActivityPattern.CONSTANT
        return FeedActivityPattern.SPONTANEOUS

    def advance(self, feed: FeedState, stats: WindowStatistics, force_reset: bool = False) -> bool:
        if not stats.has_window:
            if force_reset:
                feed.check_interval = self._clamp(self.default_interval)
            elif stats.failed:
                feed.check_interval = self._clamp(feed.check_interval * self.failure_backoff)
            return False

        feed.activity_pattern = self.classify(stats)

        miss = (
            not force_reset
            and feed.checks > 0
            and stats.window_size > 0
            and stats.new_item_count == stats.window_size
        )

        mean = stats.mean_interval
        if feed.activity_pattern is FeedActivityPattern.ZOMBIE:
            interval = self.max_interval
        elif mean is not None:
            interval = mean.total_seconds() / 60
        elif force_reset:
            interval = self.default_interval
        else:
            interval = feed.check_interval * 2

        if miss:
            interval = interval / 2
            self.record_miss(feed, stats.poll_time)

        feed.check_interval = self._clamp(interval)
        return miss
