import logging
from typing import Callable, List

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)


class SchedulerService:
    """
    APScheduler wrapper owning the per-owner sync tick jobs.

    Jobs may be added before ``start``; APScheduler keeps them pending until
    the event loop scheduler starts.
    """

    def __init__(self):
        self.scheduler = AsyncIOScheduler()
        self._started = False

    def start(self) -> None:
        if self._started:
            return
        self.scheduler.start()
        self._started = True
        logger.info(f"Scheduler started with {len(self.job_ids())} job(s)")

    def shutdown(self, wait: bool = True) -> None:
        if not self._started:
            return
        self.scheduler.shutdown(wait=wait)
        self._started = False
        logger.info("Scheduler stopped")

    def add_interval_job(
        self,
        func: Callable,
        job_id: str,
        seconds: int,
        **kwargs,
    ) -> None:
        """
        Run ``func`` every ``seconds``, replacing any job with the same id.

        A tick that is still running when the next one is due is skipped,
        and missed ticks collapse into one.
        """
        self.scheduler.add_job(
            func,
            trigger=IntervalTrigger(seconds=seconds),
            id=job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **kwargs,
        )
        logger.info(f"Scheduled job '{job_id}' every {seconds}s")

    def remove_job(self, job_id: str) -> bool:
        """Remove a job; returns False when it was not scheduled."""
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            logger.warning(f"Job '{job_id}' not found")
            return False
        logger.info(f"Removed job '{job_id}'")
        return True

    def has_job(self, job_id: str) -> bool:
        return self.scheduler.get_job(job_id) is not None

    def job_ids(self) -> List[str]:
        return [job.id for job in self.scheduler.get_jobs()]
