"""
Harvester Scheduler
Owns the single scrape run a process may have active at a time.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Optional

from scrapers import RunStats

logger = logging.getLogger(__name__)

# A job receives the run's stop event and returns the run's counters
ScrapeJob = Callable[[asyncio.Event], Awaitable[RunStats]]


class ScrapeInProgress(Exception):
    """Raised when a run is requested while another one is active."""

    def __init__(self, name: str):
        super().__init__(f"Scrape '{name}' is already in progress")
        self.name = name


@dataclass
class ScrapeRun:
    """One invocation of a scrape job, from start to termination."""
    name: str
    stop_event: asyncio.Event = field(default_factory=asyncio.Event)
    status: str = "running"
    started_at: str = field(default_factory=lambda: datetime.now().isoformat())
    finished_at: Optional[str] = None
    stats: Optional[RunStats] = None
    error: Optional[str] = None
    task: Optional[asyncio.Task] = None

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "status": self.status,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "stats": self.stats.as_dict() if self.stats else None,
            "error": self.error,
        }


class ScrapeScheduler:
    """
    Run-state token holder.

    start() claims the token and launches the job as a background task; the
    token is released when the task ends, whichever way it ends.
    """

    def __init__(self):
        self._active: Optional[ScrapeRun] = None
        self._last: Optional[ScrapeRun] = None

    @property
    def active(self) -> Optional[ScrapeRun]:
        return self._active

    @property
    def last(self) -> Optional[ScrapeRun]:
        return self._last

    def is_running(self) -> bool:
        return self._active is not None

    def start(self, name: str, job: ScrapeJob) -> ScrapeRun:
        """
        Start a job in the background.

        Args:
            name: Label for logs and status
            job: Coroutine function taking the run's stop event

        Returns:
            The started run

        Raises:
            ScrapeInProgress: If another run holds the token
        """
        # No await between the check and the claim, so this is atomic on the loop
        if self._active is not None:
            raise ScrapeInProgress(self._active.name)

        run = ScrapeRun(name=name)
        self._active = run
        run.task = asyncio.create_task(self._execute(run, job), name=f"scrape-{name}")
        logger.info(f"Scrape '{name}' started")
        return run

    async def _execute(self, run: ScrapeRun, job: ScrapeJob):
        try:
            run.stats = await job(run.stop_event)
            run.status = "stopped" if run.stop_event.is_set() else "finished"
            logger.info(f"Scrape '{run.name}' {run.status}")
        except asyncio.CancelledError:
            run.status = "cancelled"
            logger.info(f"Scrape '{run.name}' cancelled")
            raise
        except Exception as e:
            run.status = "failed"
            run.error = f"{type(e).__name__}: {e}"
            logger.error(f"Scrape '{run.name}' failed: {e}", exc_info=True)
        finally:
            run.finished_at = datetime.now().isoformat()
            self._last = run
            if self._active is run:
                self._active = None

    def stop(self) -> bool:
        """
        Ask the active run to stop after its current batch.

        Returns:
            True if a run was signalled, False if idle
        """
        if self._active is None:
            return False
        logger.info(f"Stop requested for scrape '{self._active.name}'")
        self._active.stop_event.set()
        return True

    async def shutdown(self, timeout: float = 10.0):
        """Stop the active run, cancelling it if it doesn't finish within `timeout` seconds."""
        run = self._active
        if run is None or run.task is None:
            return

        self.stop()
        try:
            await asyncio.wait_for(asyncio.shield(run.task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Scrape '{run.name}' did not stop in {timeout}s, cancelling")
            run.task.cancel()
            try:
                await run.task
            except asyncio.CancelledError:
                logger.info(f"Scrape '{run.name}' cancelled successfully")

    def status(self) -> dict:
        return {
            "running": self.is_running(),
            "current": self._active.as_dict() if self._active else None,
            "last": self._last.as_dict() if self._last else None,
        }
