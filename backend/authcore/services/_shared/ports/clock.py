from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Source of the current UTC time."""

    def now(self) -> datetime: ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(tz=UTC)


class FrozenClock(Clock):
    """Manually driven clock used in tests.

    :param at: Initial instant (aware); defaults to the current time.
    :type at: datetime | None
    """

    def __init__(self, at: datetime | None = None) -> None:
        self._now = at or datetime.now(tz=UTC).replace(microsecond=0)

    def now(self) -> datetime:
        return self._now

    def advance(self, delta: timedelta) -> datetime:
        """Move the clock forward by ``delta`` and return the new instant."""
        self._now = self._now + delta
        return self._now

    def set(self, at: datetime) -> None:
        self._now = at
