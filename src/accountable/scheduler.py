"""Scheduled jobs with an injectable clock.

Replaces ad-hoc interval timers: each job has a cancellation token, and
time comes from a ``Clock`` so tests advance a ``ManualClock`` instead of
sleeping::

    clock = ManualClock(start=1_700_000_000)
    scheduler = Scheduler(clock)
    token = scheduler.every(30, refresh)
    clock.advance(30)
    await scheduler.run_pending()  # refresh ran once
    token.cancel()

In production ``run_forever`` sleeps (via ``anyio``) until the next job is
due. A job that raises is logged and simply runs again at its next
interval; there is no other retry policy.
"""

import inspect
import itertools
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

import anyio

logger = logging.getLogger("accountable.scheduler")

type JobCallback = Callable[[], Awaitable[None] | None]

# Upper bound on one idle sleep, so cancellations are noticed promptly
_MAX_IDLE = 1.0


class Clock(Protocol):
    def now(self) -> float:
        """Current time in epoch seconds."""
        ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> float:
        return time.time()


class ManualClock:
    """A clock that only moves when told to."""

    __slots__ = ("_now",)

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> float:
        if seconds < 0:
            msg = "ManualClock cannot move backwards"
            raise ValueError(msg)
        self._now += seconds
        return self._now

    def set(self, timestamp: float) -> None:
        self._now = float(timestamp)


class CancelToken:
    """Cancels the job it was issued for. Idempotent."""

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


@dataclass(slots=True)
class _Job:
    name: str
    callback: JobCallback
    next_run: float
    interval: float | None
    token: CancelToken = field(default_factory=CancelToken)
    runs: int = 0


class Scheduler:
    """Run callbacks after a delay or on a fixed interval."""

    __slots__ = ("_clock", "_counter", "_jobs")

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._jobs: list[_Job] = []
        self._counter = itertools.count(1)

    @property
    def clock(self) -> Clock:
        return self._clock

    def every(
        self,
        interval: float,
        callback: JobCallback,
        *,
        name: str | None = None,
        immediately: bool = False,
    ) -> CancelToken:
        """Run *callback* every *interval* seconds.

        With *immediately*, the first run is due right away rather than
        after one interval.
        """
        if interval <= 0:
            msg = "interval must be positive"
            raise ValueError(msg)
        first = self._clock.now() + (0.0 if immediately else interval)
        return self._add(_Job(name or self._name(callback), callback, first, interval))

    def after(self, delay: float, callback: JobCallback, *, name: str | None = None) -> CancelToken:
        """Run *callback* once, *delay* seconds from now."""
        return self._add(_Job(name or self._name(callback), callback, self._clock.now() + delay, None))

    def _name(self, callback: JobCallback) -> str:
        return f"{getattr(callback, '__qualname__', 'job')}#{next(self._counter)}"

    def _add(self, job: _Job) -> CancelToken:
        self._jobs.append(job)
        return job.token

    @property
    def pending(self) -> int:
        """Number of live (uncancelled, not yet finished) jobs."""
        return sum(1 for job in self._jobs if not job.token.cancelled)

    def next_due(self) -> float | None:
        """Timestamp of the earliest live job, or ``None``."""
        live = [job.next_run for job in self._jobs if not job.token.cancelled]
        return min(live) if live else None

    async def run_pending(self) -> int:
        """Run every job that is due now. Returns how many ran.

        An interval job runs at most once per call even if several
        intervals elapsed; it is then rescheduled one interval from now.
        """
        self._jobs = [job for job in self._jobs if not job.token.cancelled]
        now = self._clock.now()
        due = sorted((job for job in self._jobs if job.next_run <= now), key=lambda j: j.next_run)

        ran = 0
        for job in due:
            if job.token.cancelled:
                continue
            if job.interval is None:
                job.token.cancel()
            else:
                job.next_run = now + job.interval
            ran += 1
            job.runs += 1
            try:
                result = job.callback()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Scheduled job %s failed", job.name)

        self._jobs = [job for job in self._jobs if not job.token.cancelled]
        return ran

    async def run_forever(self, stop: CancelToken | None = None) -> None:
        """Run jobs as they come due until *stop* is cancelled."""
        stop = stop or CancelToken()
        while not stop.cancelled:
            await self.run_pending()
            due = self.next_due()
            wait = _MAX_IDLE if due is None else max(0.0, due - self._clock.now())
            await anyio.sleep(min(wait, _MAX_IDLE))

    def cancel_all(self) -> None:
        for job in self._jobs:
            job.token.cancel()
        self._jobs = []
