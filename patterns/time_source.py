"""Swappable "current moment" providers.

Date-sensitive rules never call ``datetime.now()`` themselves; the engine
reads the moment once per calculation from an injected time source. Tests pin
it with ``FixedClock``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class TimeSource(Protocol):
    """Anything exposing a pure ``now()`` read."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in the local timezone."""

    def now(self) -> datetime:
        return datetime.now().astimezone()


class FixedClock:
    """Always returns the same moment."""

    def __init__(self, moment: datetime):
        self._moment = moment

    def now(self) -> datetime:
        return self._moment

    def __repr__(self) -> str:
        return f"FixedClock({self._moment.isoformat()})"
