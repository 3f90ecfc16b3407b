"""Time provider — the handle time-dependent code holds.

A :class:`TimeProvider` is built once from a
:data:`~hourglass._source.ClockSource` and never changes mode:

- :class:`~hourglass._source.RealSource` — ``now()`` is
  ``datetime.now(UTC)`` and ``wait`` sleeps on the event loop's timer.
- :class:`~hourglass._source.VirtualSource` /
  :class:`~hourglass._source.VirtualNowSource` — both go through a
  :class:`~hourglass._state.VirtualClockState`; waits suspend until a
  :class:`~hourglass._control.TimeControl` moves time past their
  deadline.

Cloning a provider shares its state: statistics, pending waiters and
the current virtual time are visible through every clone and every
control derived from any of them.

Usage::

    time = TimeProvider(RealSource())
    print(time.now())
    await time.wait(timedelta(seconds=5))  # really waits

    time = TimeProvider(VirtualSource(datetime(2024, 1, 1, tzinfo=UTC)))
    control = time.test_control()
    task = asyncio.create_task(time.wait(timedelta(days=30)))
    await control.advance(timedelta(days=30))  # task completes
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Self

from hourglass._clock import Duration, SystemClock
from hourglass._control import TimeControl
from hourglass._settings import load_settings, source_from_settings
from hourglass._source import ClockSource, RealSource, VirtualNowSource, VirtualSource
from hourglass._state import VirtualClockState

logger = logging.getLogger(__name__)

_SYSTEM_CLOCK = SystemClock()


class TimeProvider:
    """Reads the current time and performs asynchronous waits.

    Satisfies :class:`~hourglass._clock.ClockPort`.

    Args:
        source: Where time comes from.  Fixed for the provider's life.
    """

    __slots__ = ("_source", "_state")

    def __init__(self, source: ClockSource | None = None) -> None:
        source = RealSource() if source is None else source
        self._source: ClockSource = source
        self._state: VirtualClockState | None
        match source:
            case RealSource():
                self._state = None
            case VirtualSource(start=start):
                self._state = VirtualClockState(start)
            case VirtualNowSource():
                self._state = VirtualClockState(_SYSTEM_CLOCK.now())
            case _:
                msg = f"Unsupported clock source: {source!r}"
                raise TypeError(msg)
        if self._state is not None:
            logger.debug("Virtual clock created at %s", self._state.start)

    @classmethod
    def from_state(cls, state: VirtualClockState) -> Self:
        """Wrap an existing virtual clock state in a new provider."""
        provider = cls.__new__(cls)
        provider._source = VirtualSource(state.start)
        provider._state = state
        return provider

    @classmethod
    def from_env(cls, env_file: str | None = ".env") -> Self:
        """Build a provider from ``TIME_SOURCE`` / ``TIME_START``.

        Raises:
            ConfigurationError: If the environment is invalid, e.g. an
                unparseable ``TIME_START``.
        """
        return cls(source_from_settings(load_settings(env_file=env_file)))

    @property
    def source(self) -> ClockSource:
        """The clock source this provider was built from."""
        return self._source

    def now(self) -> datetime:
        """Return the current time (UTC, timezone-aware)."""
        if self._state is None:
            return _SYSTEM_CLOCK.now()
        return self._state.now()

    async def wait(self, duration: Duration) -> None:
        """Suspend the calling task for *duration*.

        Negative durations are treated as zero.  On a virtual clock the
        call is counted immediately and resolves when time is advanced
        past the deadline.
        """
        if self._state is None:
            await _SYSTEM_CLOCK.wait(duration)
        else:
            await self._state.wait(duration)

    async def wait_until(self, deadline: datetime) -> None:
        """Suspend the calling task until *deadline*.

        A deadline at or before ``now()`` returns without suspending.
        """
        if self._state is None:
            await _SYSTEM_CLOCK.wait_until(deadline)
        else:
            await self._state.wait_until(deadline)

    def is_test_mode(self) -> bool:
        """Return ``True`` when backed by a virtual clock."""
        return self._state is not None

    def test_control(self) -> TimeControl | None:
        """Return a control for the virtual clock, or ``None`` in production."""
        if self._state is None:
            return None
        return TimeControl(self._state)

    def clone(self) -> TimeProvider:
        """Return a new handle sharing this provider's clock."""
        other = TimeProvider.__new__(TimeProvider)
        other._source = self._source
        other._state = self._state
        return other

    __copy__ = clone

    def __repr__(self) -> str:
        return f"TimeProvider(source={self._source!r})"
