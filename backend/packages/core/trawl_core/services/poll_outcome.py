"""
Poll outcome classifier.

Collects the outcome flags raised during one poll cycle and resolves them
to the single outcome that is recorded on the feed.
"""

from collections.abc import Iterable

from trawl_database.models import PollOutcome

# Highest priority first
PRIORITY: tuple[PollOutcome, ...] = (
    PollOutcome.ERROR,
    PollOutcome.UNREACHABLE,
    PollOutcome.UNPARSABLE,
    PollOutcome.EXECUTION_TIME_WARNING,
    PollOutcome.MISS,
    PollOutcome.SUCCESS,
    PollOutcome.OPEN,
)


class PollOutcomeSet:
    """Set of outcome flags raised during a poll cycle."""

    def __init__(self, outcomes: Iterable[PollOutcome] = ()) -> None:
        self._flags: set[PollOutcome] = set(outcomes)

    def add(self, outcome: PollOutcome) -> None:
        self._flags.add(outcome)

    def __contains__(self, outcome: object) -> bool:
        return outcome in self._flags

    def __len__(self) -> int:
        return len(self._flags)

    def resolve(self) -> PollOutcome:
        """
        Return the highest priority flag.

        Returns:
            The retained outcome, or OPEN when no flag was raised.
        """
        for outcome in PRIORITY:
            if outcome in self._flags:
                return outcome
        return PollOutcome.OPEN
