import asyncio
import logging
import time
from typing import Awaitable, Callable, Coroutine, List

from ..utils.date_utils import parse_duration_seconds

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Manages the scheduling and execution of periodic async tasks using asyncio.

    Jobs run on a fixed cadence: after a run, the loop sleeps for the interval
    minus the time the run took (never less than zero). The clock and sleep
    are injectable so tests can drive the loop without real time passing.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.clock = clock
        self.sleep = sleep
        self.tasks: List[asyncio.Task] = []
        logger.info("Scheduler initialized.")

    async def _run_periodically(self, interval_seconds: int, job_func: Callable[[], Coroutine], max_runs: int = None):
        """Internal loop to run a job periodically."""
        runs = 0
        try:
            while max_runs is None or runs < max_runs:
                started = self.clock()
                try:
                    await job_func()
                except Exception as e:
                    # A failed run never delays or cancels the next one.
                    logger.error(f"Error in scheduled job '{_job_name(job_func)}': {e}", exc_info=True)
                runs += 1

                elapsed = self.clock() - started
                await self.sleep(max(0.0, interval_seconds - elapsed))
        except asyncio.CancelledError:
            logger.info(f"Job '{_job_name(job_func)}' cancelled.")
            raise

    def add_job(self, job_func: Callable[[], Coroutine], interval_seconds: int, max_runs: int = None) -> asyncio.Task:
        """
        Adds a new async job to the schedule. The first run starts immediately.
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be greater than zero.")

        task = asyncio.create_task(self._run_periodically(interval_seconds, job_func, max_runs=max_runs))
        self.tasks.append(task)
        logger.info(f"Scheduled job '{_job_name(job_func)}' to run every {interval_seconds} second(s).")
        return task

    def add_job_from_string(self, job_func: Callable[[], Coroutine], interval_str: str) -> asyncio.Task:
        """
        Adds a job based on a Prometheus-style duration string like '5m' or '1h'.
        """
        interval_seconds = parse_duration_seconds(interval_str)
        return self.add_job(job_func, interval_seconds)

    async def wait(self):
        """Waits until every scheduled task has finished."""
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)

    async def stop(self):
        """Cancels all scheduled tasks."""
        logger.info("Stopping scheduler...")
        for task in self.tasks:
            task.cancel()
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)
        self.tasks.clear()


def _job_name(job_func) -> str:
    return getattr(job_func, "__name__", repr(job_func))
