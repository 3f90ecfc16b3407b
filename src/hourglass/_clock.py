"""Clock port and system adapter.

Provides :class:`ClockPort` (Protocol) and :class:`SystemClock`, the
production backend behind a real-source ``TimeProvider``.

**Why wall-clock UTC?** Callers schedule against calendar deadlines
(end of day, 30 days after disbursement) and compare timestamps coming
from elsewhere.  ``datetime.now(UTC)`` gives an aware timestamp that
can be compared and subtracted directly.  The real path adds nothing on
top of that call — no locking, no bookkeeping.

Durations are :class:`~datetime.timedelta` values.  Plain numbers are
accepted as seconds, matching ``asyncio.sleep``.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Protocol, runtime_checkable

from hourglass._source import ensure_utc

Duration = timedelta | float
"""A duration given as a ``timedelta`` or as seconds."""

_ZERO = timedelta(0)


def as_timedelta(duration: Duration) -> timedelta:
    """Coerce *duration* to a :class:`~datetime.timedelta`."""
    if isinstance(duration, timedelta):
        return duration
    return timedelta(seconds=duration)


def clamp_duration(duration: Duration) -> timedelta:
    """Coerce *duration* and clamp negative values to zero.

    Waits computed from an already-passed deadline come out negative;
    they resolve immediately instead of failing.
    """
    delta = as_timedelta(duration)
    return delta if delta > _ZERO else _ZERO


@runtime_checkable
class ClockPort(Protocol):
    """Time reading and waiting for time-dependent code.

    Implemented by :class:`SystemClock`, by ``VirtualClockState`` and by
    ``TimeProvider``, which dispatches to one of the two.  Components
    that only need to read the time or sleep can depend on this protocol
    instead of the concrete provider.
    """

    def now(self) -> datetime:
        """Return the current UTC time (timezone-aware)."""
        ...

    async def wait(self, duration: Duration) -> None:
        """Suspend the calling task for *duration*."""
        ...

    async def wait_until(self, deadline: datetime) -> None:
        """Suspend the calling task until *deadline*."""
        ...


class SystemClock:
    """Production clock wrapping ``datetime.now(UTC)`` and ``asyncio.sleep``.

    Satisfies :class:`ClockPort` via structural subtyping — no
    base-class inheritance required (PEP 544).

    Usage::

        clock = SystemClock()
        start = clock.now()
        await clock.wait(timedelta(seconds=2))
        elapsed = clock.now() - start  # ~2 s
    """

    __slots__ = ()

    def now(self) -> datetime:
        """Return the system clock reading."""
        return datetime.now(UTC)

    async def wait(self, duration: Duration) -> None:
        """Sleep on the event loop's timer for *duration*."""
        await asyncio.sleep(clamp_duration(duration).total_seconds())

    async def wait_until(self, deadline: datetime) -> None:
        """Sleep until *deadline*; returns at once if it has passed."""
        await self.wait(ensure_utc(deadline) - self.now())

    def __repr__(self) -> str:
        return "SystemClock()"
