"""
Clock and identity capabilities.

The wall clock is injected rather than read from global time so review
outcomes can be replayed exactly. It is only used as a plausibility oracle:
a valid explicit review instant always wins.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol, Union

from memorizer.fsrs.constants import COUNTER_MAX


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class Clock(Protocol):
    """Anything that can tell the current UTC instant."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Clock backed by the host's real time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """
    Deterministic clock for tests and replays.

    Args:
        instant: Starting instant, an aware datetime or an ISO-8601 string
    """

    def __init__(self, instant: Union[datetime, str]):
        if isinstance(instant, str):
            instant = datetime.fromisoformat(instant.replace("Z", "+00:00"))
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self._instant = instant.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._instant

    def advance(self, **delta) -> datetime:
        """Move the clock forward by timedelta(**delta) and return the new instant."""
        self._instant = self._instant + timedelta(**delta)
        return self._instant


def read_wall_clock(clock: Clock) -> datetime:
    """
    Read a clock, tolerating broken implementations.

    Returns:
        Aware UTC datetime; the Unix epoch if the clock returned garbage
    """
    instant = clock.now()
    if not isinstance(instant, datetime):
        return EPOCH
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


class IdSequence:
    """
    Monotonic per-process sequence used to keep item ids unique.

    Carries no scheduling meaning; it only separates items created within
    the same wall-clock millisecond.
    """

    def __init__(self, start: int = 0):
        self._value = start

    def next(self) -> int:
        self._value = 1 if self._value >= COUNTER_MAX else self._value + 1
        return self._value
