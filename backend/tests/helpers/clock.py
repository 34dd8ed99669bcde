"""Controllable clock for time-dependent rules."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta


class FrozenClock:
    """Callable returning a fixed aware UTC instant until told to move.

    Parameters
    ----------
    start: datetime | None
        Initial instant; defaults to the current time truncated to seconds
        (JWT timestamps have second precision).
    """

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(UTC).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        """Move the clock forward by ``timedelta(**delta)`` and return the new instant."""
        self.now = self.now + timedelta(**delta)
        return self.now
