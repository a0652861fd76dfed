"""
In-process periodic jobs.

Runs the hourly reconciliation sweep and the daily reminder dispatch.

Guarantees:
- A job never overlaps itself: a run requested while one is in
  progress is skipped and logged
- The two jobs have independent timers and do not wait on each other
- stop() lets the in-flight run finish its current record, then ends
  the loop; the job function sees the stop via its should_stop argument
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


# A job receives a should_stop callable and returns a report
JobFunc = Callable[[Callable[[], bool]], Awaitable[Any]]


class PeriodicJob:
    """A cancellable fixed-interval job with a skip-if-running guard."""

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        func: JobFunc,
        run_on_start: bool = False,
    ) -> None:
        """
        Args:
            name: Used in logs and task names
            interval_seconds: Delay between the end of one wait and the next run
            func: Coroutine function called as func(should_stop)
            run_on_start: Run once immediately when started
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self.interval = interval_seconds
        self.func = func
        self.run_on_start = run_on_start

        self._run_lock = asyncio.Lock()
        self._stop = asyncio.Event()
        self._task: asyncio.Task | None = None

        self.runs = 0
        self.skipped = 0
        self.last_result: Any = None

    @property
    def is_running(self) -> bool:
        """True while a run is in progress."""
        return self._run_lock.locked()

    @property
    def is_started(self) -> bool:
        return self._task is not None and not self._task.done()

    def should_stop(self) -> bool:
        return self._stop.is_set()

    def request_stop(self) -> None:
        """Ask the job to stop after its current record."""
        self._stop.set()

    async def run_once(self) -> Any:
        """
        Run the job now unless it is already running.

        Returns:
            The job's result, or None if skipped or failed
        """
        if self._run_lock.locked():
            self.skipped += 1
            logger.warning(f"Job {self.name} still running; skipping this run")
            return None

        async with self._run_lock:
            logger.info(f"Job {self.name} starting")
            try:
                result = await self.func(self.should_stop)
            except Exception:
                logger.exception(f"Job {self.name} failed")
                return None
            self.runs += 1
            self.last_result = result
            return result

    async def _loop(self) -> None:
        if self.run_on_start:
            await self.run_once()

        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                await self.run_once()

        logger.info(f"Job {self.name} loop exited")

    def start(self) -> None:
        """Start the timer loop on the running event loop."""
        if self.is_started:
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._loop(), name=f"job:{self.name}")
        logger.info(f"Job {self.name} scheduled every {self.interval}s")

    async def stop(self, timeout: float | None = None) -> None:
        """
        Stop the loop, draining any in-flight run.

        Args:
            timeout: Give up waiting after this many seconds and cancel
        """
        self.request_stop()
        if self._task is None:
            return

        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(f"Job {self.name} did not drain in {timeout}s; cancelling")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        finally:
            self._task = None


class JobScheduler:
    """Owns the application's periodic jobs."""

    def __init__(self, jobs: list[PeriodicJob] | None = None) -> None:
        self.jobs: dict[str, PeriodicJob] = {}
        for job in jobs or []:
            self.add(job)

    def add(self, job: PeriodicJob) -> None:
        if job.name in self.jobs:
            raise ValueError(f"Duplicate job name: {job.name}")
        self.jobs[job.name] = job

    def get(self, name: str) -> PeriodicJob:
        return self.jobs[name]

    def start_all(self) -> None:
        for job in self.jobs.values():
            job.start()

    async def stop_all(self, timeout: float | None = 60.0) -> None:
        # Signal all first so the jobs drain in parallel
        for job in self.jobs.values():
            job.request_stop()
        await asyncio.gather(*(job.stop(timeout) for job in self.jobs.values()))
