"""Virtual clock state, waiter registry and drain.

:class:`VirtualClockState` is the single mutable record shared by a
virtual ``TimeProvider``, all of its clones and every ``TimeControl``
derived from them.  It holds the current virtual time, the registry of
suspended waiters and the wait statistics.

Waiting
-------

``wait(d)`` counts the call and adds ``d`` to ``total_waited`` *at
invocation*, then registers a waiter due at ``now() + d`` and suspends
the calling task on an :class:`asyncio.Future`.  A zero duration is
counted but neither registers nor suspends.

Draining
--------

``advance`` and ``set`` move the clock through :meth:`_drain`, which
pops waiters due at or before the target one at a time, smallest
``(deadline, sequence)`` first; equal deadlines resume in registration
order.  After each release the drain lets the event loop settle: it
yields until every other task is either finished or parked on a
waiter of this clock.  Tasks woken indirectly (through a wrapping
task, ``gather``, a queue or an event) therefore run, and register
their next waits, before the clock moves on.  The drain then takes the
next smallest entry, which may be one registered a moment ago.  A task
looping ``wait(1 hour)`` runs 24 times inside a single
``advance(24 hours)``::

    state = VirtualClockState(datetime(2024, 1, 1, tzinfo=UTC))

    async def job() -> None:
        end = state.now() + timedelta(hours=24)
        while state.now() < end:
            await state.wait(timedelta(hours=1))

    task = asyncio.create_task(job())
    await asyncio.sleep(0)
    await state.advance(timedelta(hours=24))
    assert state.wait_call_count() == 24

A task blocked on something other than this clock never parks, so each
settle spends at most ``settle_limit`` event-loop iterations on it.

While a waiter is being released the clock reads that waiter's
deadline, so a resumed task computing its next deadline from ``now()``
stays on schedule.  The clock reaches the target once nothing else is
due.

Locking
-------

A :class:`threading.Lock` guards every read and write of the fields, so
``now()`` may be called from any thread.  An :class:`asyncio.Lock`
serializes drains: a second ``advance`` starts only after the first
cascade has fully settled.
"""

from __future__ import annotations

import asyncio
import heapq
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from hourglass._clock import Duration, as_timedelta, clamp_duration
from hourglass._errors import InvalidDurationError
from hourglass._source import ensure_utc

logger = logging.getLogger(__name__)

_ZERO = timedelta(0)

DEFAULT_SETTLE_LIMIT = 100
"""Event-loop iterations a drain grants the other tasks to go quiet."""


@dataclass(eq=False, slots=True)
class _Waiter:
    """A suspended ``wait`` call."""

    deadline: datetime
    sequence: int
    future: asyncio.Future[None]
    task: asyncio.Task[object] | None

    def release(self) -> None:
        if not self.future.done():
            self.future.set_result(None)


@dataclass(eq=False)
class VirtualClockState:
    """Shared virtual time, waiter registry and wait statistics.

    Args:
        start: Initial virtual time (timezone-aware).
        settle_limit: Upper bound on event-loop iterations the drain
            waits, after each release, for every other task to finish
            or park on a waiter.  Only tasks blocked on something other
            than this clock ever reach it.
    """

    start: datetime
    settle_limit: int = DEFAULT_SETTLE_LIMIT
    _current_time: datetime = field(init=False)
    _total_waited: timedelta = field(init=False, default=_ZERO)
    _wait_call_count: int = field(init=False, default=0)
    _next_sequence: int = field(init=False, default=0)
    _stale: int = field(init=False, default=0, repr=False)
    _heap: list[tuple[datetime, int]] = field(
        init=False, default_factory=list, repr=False
    )
    _waiters: dict[int, _Waiter] = field(
        init=False, default_factory=dict, repr=False
    )
    _parked: dict[asyncio.Task[object], int] = field(
        init=False, default_factory=dict, repr=False
    )
    _lock: threading.Lock = field(
        init=False, default_factory=threading.Lock, repr=False
    )
    _drain_lock: asyncio.Lock = field(
        init=False, default_factory=asyncio.Lock, repr=False
    )

    def __post_init__(self) -> None:
        self.start = ensure_utc(self.start)
        self._current_time = self.start

    # -- reads -------------------------------------------------------------

    def now(self) -> datetime:
        """Return the current virtual time."""
        with self._lock:
            return self._current_time

    def total_waited(self) -> timedelta:
        """Sum of durations requested by every counted wait."""
        with self._lock:
            return self._total_waited

    def wait_call_count(self) -> int:
        """Number of ``wait`` / ``wait_until`` invocations counted."""
        with self._lock:
            return self._wait_call_count

    def pending_waiters(self) -> int:
        """Number of registered waiters not yet released or cancelled."""
        with self._lock:
            return len(self._waiters)

    def next_deadline(self) -> datetime | None:
        """Deadline of the earliest pending waiter, if any."""
        with self._lock:
            self._prune_heap()
            return self._heap[0][0] if self._heap else None

    # -- waiting -----------------------------------------------------------

    async def wait(self, duration: Duration) -> None:
        """Suspend until the clock is advanced past ``now() + duration``.

        Negative durations are clamped to zero.  The call is counted
        immediately, whether or not it ever resolves.
        """
        delta = clamp_duration(duration)
        with self._lock:
            waiter = self._register(delta)
        if waiter is not None:
            await self._suspend(waiter)

    async def wait_until(self, deadline: datetime) -> None:
        """Suspend until the clock reaches *deadline*.

        A deadline at or before ``now()`` resolves immediately and is
        counted as a zero-length wait.
        """
        deadline = ensure_utc(deadline)
        with self._lock:
            delta = max(deadline - self._current_time, _ZERO)
            waiter = self._register(delta)
        if waiter is not None:
            await self._suspend(waiter)

    def _register(self, delta: timedelta) -> _Waiter | None:
        # caller holds self._lock
        self._wait_call_count += 1
        self._total_waited += delta
        if delta == _ZERO:
            return None

        loop = asyncio.get_running_loop()
        self._next_sequence += 1
        waiter = _Waiter(
            deadline=self._current_time + delta,
            sequence=self._next_sequence,
            future=loop.create_future(),
            task=asyncio.current_task(),
        )
        self._waiters[waiter.sequence] = waiter
        heapq.heappush(self._heap, (waiter.deadline, waiter.sequence))
        if waiter.task is not None:
            self._parked[waiter.task] = self._parked.get(waiter.task, 0) + 1
        return waiter

    def _forget(self, waiter: _Waiter) -> None:
        # caller holds self._lock and has removed waiter from _waiters
        task = waiter.task
        if task is None:
            return
        remaining = self._parked[task] - 1
        if remaining:
            self._parked[task] = remaining
        else:
            del self._parked[task]

    async def _suspend(self, waiter: _Waiter) -> None:
        # Log calls stay outside self._lock: formatters may read now().
        logger.debug(
            "Registered waiter #%d due at %s", waiter.sequence, waiter.deadline
        )
        try:
            await waiter.future
        except asyncio.CancelledError:
            compacted = None
            with self._lock:
                removed = self._waiters.pop(waiter.sequence, None) is not None
                if removed:
                    self._forget(waiter)
                    self._stale += 1
                    if self._stale > len(self._heap) // 2:
                        compacted = self._compact_heap()
            if removed:
                logger.debug("Waiter #%d cancelled", waiter.sequence)
            if compacted is not None:
                logger.debug("Compacted waiter heap to %d entries", compacted)
            raise

    # -- control -----------------------------------------------------------

    async def advance(self, duration: Duration) -> None:
        """Move the clock forward by *duration*, releasing due waiters.

        Raises:
            InvalidDurationError: If *duration* is negative.
        """
        delta = as_timedelta(duration)
        if delta < _ZERO:
            raise InvalidDurationError(delta)
        async with self._drain_lock:
            with self._lock:
                target = self._current_time + delta
            logger.debug("Advancing virtual clock by %s to %s", delta, target)
            await self._drain(target)

    async def set(self, time: datetime) -> None:
        """Move the clock to *time*, forward or backward.

        Moving backward releases nothing and never re-arms waiters that
        were already released.
        """
        target = ensure_utc(time)
        async with self._drain_lock:
            logger.debug("Setting virtual clock to %s", target)
            await self._drain(target)

    def reset_wait_tracking(self) -> None:
        """Zero the wait statistics.  Time and waiters are untouched."""
        with self._lock:
            self._wait_call_count = 0
            self._total_waited = _ZERO

    # -- drain -------------------------------------------------------------

    async def _drain(self, target: datetime) -> None:
        released = 0
        # let freshly spawned tasks reach their first wait
        await self._settle()
        while True:
            with self._lock:
                waiter = self._pop_due(target)
                if waiter is not None:
                    self._current_time = waiter.deadline
            if waiter is None:
                break
            logger.debug(
                "Releasing waiter #%d due at %s", waiter.sequence, waiter.deadline
            )
            waiter.release()
            released += 1
            await self._settle()
        with self._lock:
            self._current_time = target
        if released:
            logger.debug("Drain to %s released %d waiter(s)", target, released)

    def _pop_due(self, target: datetime) -> _Waiter | None:
        # caller holds self._lock; heap order is (deadline, sequence)
        self._prune_heap()
        if not self._heap or self._heap[0][0] > target:
            return None
        _, sequence = heapq.heappop(self._heap)
        waiter = self._waiters.pop(sequence)
        self._forget(waiter)
        return waiter

    def _prune_heap(self) -> None:
        # caller holds self._lock; drops entries of cancelled waiters
        while self._heap and self._heap[0][1] not in self._waiters:
            heapq.heappop(self._heap)
            self._stale -= 1

    def _compact_heap(self) -> int:
        # caller holds self._lock
        self._heap = [entry for entry in self._heap if entry[1] in self._waiters]
        heapq.heapify(self._heap)
        self._stale = 0
        return len(self._heap)

    async def _settle(self) -> None:
        drain_task = asyncio.current_task()
        for _ in range(self.settle_limit):
            await asyncio.sleep(0)
            if self._is_quiet(drain_task):
                return
        logger.debug(
            "Event loop not quiet after %d iterations, continuing drain",
            self.settle_limit,
        )

    def _is_quiet(self, drain_task: asyncio.Task[object] | None) -> bool:
        # quiet: every other unfinished task is parked on this clock
        others = [task for task in asyncio.all_tasks() if task is not drain_task]
        with self._lock:
            return all(task in self._parked for task in others)
