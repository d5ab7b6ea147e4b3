"""Interval scheduling with per-job non-overlap and hard timeouts.

Each job owns a ticker task that fires every ``interval`` seconds. A tick
never queues work: if the previous run of the same job is still in progress
the tick is skipped. Runs with a timeout are abandoned (not cancelled) once
the timeout expires so that the next tick can proceed.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import functools
import logging
from typing import Callable, List, Optional, Set

from core.ports import Job

LOGGER = logging.getLogger(__name__)

FaultCallback = Callable[[str, BaseException], None]


@dataclass(eq=False)
class JobHandle:
    """Schedule handle returned by ``every`` and accepted by ``cancel``."""

    name: str
    interval: float
    job: Job = field(repr=False)
    timeout: Optional[float] = None
    in_progress: bool = False
    cancelled: bool = False
    runs: int = 0
    skips: int = 0
    timeouts: int = 0
    failures: int = 0
    ticker: Optional["asyncio.Task[None]"] = field(default=None, repr=False)


class AsyncioScheduler:
    """SchedulerPort implementation on top of the running asyncio loop."""

    def __init__(self, on_fault: Optional[FaultCallback] = None) -> None:
        self._on_fault = on_fault
        self._handles: List[JobHandle] = []
        self._tasks: Set["asyncio.Future[None]"] = set()

    @property
    def handles(self) -> List[JobHandle]:
        return list(self._handles)

    def every(
        self,
        interval: float,
        job: Job,
        *,
        name: str,
        timeout: Optional[float] = None,
        run_immediately: bool = False,
    ) -> JobHandle:
        if interval <= 0:
            raise ValueError(f"Interval for job {name} must be positive, got {interval}")
        handle = JobHandle(name=name, interval=interval, job=job, timeout=timeout)
        loop = asyncio.get_running_loop()
        handle.ticker = loop.create_task(self._tick_loop(handle, run_immediately))
        self._track(handle.ticker)
        self._handles.append(handle)
        LOGGER.info("Scheduled job %s every %ss (timeout %s)", name, interval, timeout)
        return handle

    def cancel(self, handle: JobHandle) -> None:
        """Stop future ticks. A run already in progress is left to finish."""

        if handle.cancelled:
            return
        handle.cancelled = True
        if handle.ticker is not None:
            handle.ticker.cancel()
        if handle in self._handles:
            self._handles.remove(handle)
        LOGGER.info("Cancelled job %s", handle.name)

    def cancel_all(self) -> None:
        for handle in list(self._handles):
            self.cancel(handle)

    async def shutdown(self) -> None:
        """Cancel every schedule and every in-flight run, then wait for them."""

        self.cancel_all()
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def trigger(self, handle: JobHandle) -> bool:
        """Fire one tick of ``handle``. Returns False when the tick was skipped."""

        if handle.cancelled:
            return False
        if handle.in_progress:
            handle.skips += 1
            LOGGER.warning("Job %s is still running, skipping tick", handle.name)
            return False
        handle.in_progress = True
        self._track(asyncio.get_running_loop().create_task(self._run(handle)))
        return True

    async def _tick_loop(self, handle: JobHandle, run_immediately: bool) -> None:
        if run_immediately:
            self.trigger(handle)
        while not handle.cancelled:
            await asyncio.sleep(handle.interval)
            self.trigger(handle)

    async def _run(self, handle: JobHandle) -> None:
        handle.runs += 1
        work = asyncio.ensure_future(handle.job())
        self._track(work)
        try:
            done, _ = await asyncio.wait({work}, timeout=handle.timeout)
            if work not in done:
                handle.timeouts += 1
                LOGGER.error("Job %s timed out after %ss, abandoning the run", handle.name, handle.timeout)
                work.add_done_callback(functools.partial(_report_abandoned, handle.name))
                return
            if work.cancelled():
                LOGGER.info("Job %s run was cancelled", handle.name)
                return
            error = work.exception()
            if error is not None:
                handle.failures += 1
                LOGGER.error("Job %s failed", handle.name, exc_info=error)
                if self._on_fault is not None:
                    self._on_fault(handle.name, error)
        finally:
            handle.in_progress = False

    def _track(self, task: "asyncio.Future[None]") -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


def _report_abandoned(name: str, task: "asyncio.Future[None]") -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        LOGGER.error("Abandoned run of job %s failed", name, exc_info=error)
    else:
        LOGGER.info("Abandoned run of job %s finished late", name)
