"""Time control — the test-only handle that moves virtual time.

A :class:`TimeControl` is only ever handed out by
``TimeProvider.test_control()`` on a virtual provider.  Production code
holding a real-source provider has no way to obtain one.

``advance`` and ``set`` are coroutines: awaiting them runs the whole
wake-up cascade, so when the ``await`` returns every waiter that became
due, including waiters registered by the tasks it woke, has been
released.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from hourglass._clock import Duration
from hourglass._state import VirtualClockState


class TimeControl:
    """Mutates the :class:`VirtualClockState` shared by a provider family.

    Any number of controls may exist for the same state; they all see
    and change the same clock.

    Example::

        provider = TimeProvider(VirtualSource(datetime(2024, 1, 1, tzinfo=UTC)))
        control = provider.test_control()
        assert control is not None

        await control.advance(timedelta(days=10))
        assert provider.now() == datetime(2024, 1, 11, tzinfo=UTC)
    """

    __slots__ = ("_state",)

    def __init__(self, state: VirtualClockState) -> None:
        self._state = state

    async def advance(self, duration: Duration) -> None:
        """Advance time by *duration* and release every waiter now due.

        Raises:
            InvalidDurationError: If *duration* is negative.
        """
        await self._state.advance(duration)

    async def set(self, time: datetime) -> None:
        """Jump to *time* (forward or backward), releasing due waiters.

        Raises:
            InvalidTimestampError: If *time* is naive.
        """
        await self._state.set(time)

    def now(self) -> datetime:
        """Return the current virtual time."""
        return self._state.now()

    def total_waited(self) -> timedelta:
        """Total duration requested since creation or the last reset."""
        return self._state.total_waited()

    def wait_call_count(self) -> int:
        """Wait calls made since creation or the last reset."""
        return self._state.wait_call_count()

    def reset_wait_tracking(self) -> None:
        """Zero ``total_waited`` and ``wait_call_count``."""
        self._state.reset_wait_tracking()

    def pending_waiters(self) -> int:
        """Number of tasks currently suspended on this clock."""
        return self._state.pending_waiters()

    def next_deadline(self) -> datetime | None:
        """When the earliest suspended task is due, or ``None``."""
        return self._state.next_deadline()

    def __repr__(self) -> str:
        return (
            f"TimeControl(total_waited={self.total_waited()!r}, "
            f"wait_call_count={self.wait_call_count()!r})"
        )
