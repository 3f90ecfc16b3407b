"""Integration tests — scheduled services on a virtual clock.

Drives small periodic services end to end: the service is written
against :class:`~hourglass.ClockPort`, started as a task on a virtual
:class:`~hourglass.TimeProvider`, and fast-forwarded through its whole
schedule with :class:`~hourglass.TimeControl`.

Test Techniques Used:
    - Integration Testing: provider, control and waiting tasks together.
    - State-based Testing: recorded executions and wait statistics.
    - Concurrency Testing: independent clocks in one event loop.
"""

from __future__ import annotations

import asyncio
import contextlib
from datetime import UTC, datetime, timedelta

import pytest

from hourglass import ClockPort, RealSource, TimeProvider, VirtualSource
from tests.fixtures.clock import START, start

pytestmark = pytest.mark.integration

# ---------------------------------------------------------------------------
# Services under test
# ---------------------------------------------------------------------------


class Heartbeat:
    """Records ``now()`` every *interval*, forever."""

    def __init__(self, clock: ClockPort, interval: timedelta) -> None:
        self._clock = clock
        self._interval = interval
        self.beats: list[datetime] = []

    async def run(self) -> None:
        while True:
            self.beats.append(self._clock.now())
            await self._clock.wait(self._interval)


class DailyReport:
    """Prints one line per day for a fixed number of days."""

    def __init__(self, clock: ClockPort, days: int) -> None:
        self._clock = clock
        self._days = days
        self.lines: list[str] = []

    async def run(self) -> None:
        for day in range(1, self._days + 1):
            self.lines.append(f"day {day}: {self._clock.now():%Y-%m-%d}")
            await self._clock.wait(timedelta(days=1))


def is_expired(clock: ClockPort, issued: datetime, ttl: timedelta) -> bool:
    return clock.now() >= issued + ttl


async def _stop(task: asyncio.Task[None]) -> None:
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


# ---------------------------------------------------------------------------
# TestScheduledService
# ---------------------------------------------------------------------------


class TestScheduledService:
    """A periodic service runs its whole schedule in one advance."""

    async def test_hourly_service_over_one_day(self) -> None:
        provider = TimeProvider(VirtualSource(START))
        control = provider.test_control()
        assert control is not None
        heartbeat = Heartbeat(provider, timedelta(hours=1))

        task = await start(heartbeat.run())
        control.reset_wait_tracking()
        await control.advance(timedelta(hours=24))

        assert len(heartbeat.beats) == 25
        assert heartbeat.beats == [START + timedelta(hours=i) for i in range(25)]
        assert control.wait_call_count() == 24
        assert control.total_waited() == timedelta(hours=24)
        assert provider.now() == START + timedelta(hours=24)

        await _stop(task)
        assert control.pending_waiters() == 0

    async def test_daily_report_over_three_days(self) -> None:
        provider = TimeProvider(VirtualSource(START))
        control = provider.test_control()
        assert control is not None
        report = DailyReport(provider, days=3)

        task = await start(report.run())
        await control.advance(timedelta(days=3))

        assert task.done()
        assert report.lines == [
            "day 1: 2024-01-01",
            "day 2: 2024-01-02",
            "day 3: 2024-01-03",
        ]
        assert control.wait_call_count() == 3
        assert control.total_waited() == timedelta(days=3)

    async def test_advance_in_steps_matches_single_advance(self) -> None:
        """Many small advances release the same executions as one large one."""
        provider = TimeProvider(VirtualSource(START))
        control = provider.test_control()
        assert control is not None
        heartbeat = Heartbeat(provider, timedelta(minutes=15))

        task = await start(heartbeat.run())
        for _ in range(8):
            await control.advance(timedelta(minutes=15))

        assert heartbeat.beats == [
            START + timedelta(minutes=15 * i) for i in range(9)
        ]
        await _stop(task)


# ---------------------------------------------------------------------------
# TestDeadlines
# ---------------------------------------------------------------------------


class TestDeadlines:
    """wait_until against a clock moved by both advance and set."""

    async def test_wait_until_with_advance_then_set(self) -> None:
        provider = TimeProvider(VirtualSource(START))
        control = provider.test_control()
        assert control is not None
        deadline = START + timedelta(hours=10)
        woke_at: list[datetime] = []

        async def sleeper() -> None:
            await provider.wait_until(deadline)
            woke_at.append(provider.now())

        task = await start(sleeper())

        await control.advance(timedelta(hours=6))
        assert not task.done()

        await control.set(START + timedelta(hours=12))
        assert task.done()
        assert woke_at == [deadline]
        assert provider.now() == START + timedelta(hours=12)

    async def test_set_backward_then_forward(self) -> None:
        """A waiter registered after rewinding is due relative to the rewound time."""
        provider = TimeProvider(VirtualSource(START))
        control = provider.test_control()
        assert control is not None

        await control.advance(timedelta(days=2))
        await control.set(START)
        task = await start(provider.wait(timedelta(hours=1)))

        await control.advance(timedelta(hours=1))

        assert task.done()
        assert provider.now() == START + timedelta(hours=1)


# ---------------------------------------------------------------------------
# TestIndependentClocks
# ---------------------------------------------------------------------------


class TestIndependentClocks:
    """Separate providers keep separate time in one event loop."""

    async def test_concurrent_providers(self) -> None:
        first = TimeProvider(VirtualSource(START))
        second = TimeProvider(VirtualSource(datetime(2030, 1, 1, tzinfo=UTC)))
        first_control = first.test_control()
        second_control = second.test_control()
        assert first_control is not None
        assert second_control is not None
        first_beat = Heartbeat(first, timedelta(hours=1))
        second_beat = Heartbeat(second, timedelta(minutes=30))

        tasks = [await start(first_beat.run()), await start(second_beat.run())]
        await asyncio.gather(
            first_control.advance(timedelta(hours=3)),
            second_control.advance(timedelta(hours=1)),
        )

        assert len(first_beat.beats) == 4
        assert len(second_beat.beats) == 3
        assert first.now() == START + timedelta(hours=3)
        assert second.now() == datetime(2030, 1, 1, 1, tzinfo=UTC)
        assert first_control.wait_call_count() == 4
        assert second_control.wait_call_count() == 3

        for task in tasks:
            await _stop(task)


# ---------------------------------------------------------------------------
# TestProductionAndTestCode
# ---------------------------------------------------------------------------


class TestProductionAndTestCode:
    """The same business logic runs on real and virtual clocks."""

    def test_real_clock(self) -> None:
        provider = TimeProvider(RealSource())
        issued = provider.now()

        assert not is_expired(provider, issued, timedelta(hours=1))
        assert is_expired(provider, issued - timedelta(hours=2), timedelta(hours=1))

    async def test_virtual_clock(self) -> None:
        provider = TimeProvider(VirtualSource(START))
        control = provider.test_control()
        assert control is not None
        issued = provider.now()

        assert not is_expired(provider, issued, timedelta(hours=1))
        await control.advance(timedelta(minutes=59))
        assert not is_expired(provider, issued, timedelta(hours=1))
        await control.advance(timedelta(minutes=1))
        assert is_expired(provider, issued, timedelta(hours=1))
