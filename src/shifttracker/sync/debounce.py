"""Cancellable debounce timer backed by an APScheduler one-shot job."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler

logger = logging.getLogger(__name__)


class Debouncer:
    """Coalesces bursts of triggers into one call.

    Each ``trigger`` replaces the pending job with one due ``delay_seconds``
    from now, so only the last trigger in a burst fires.
    """

    def __init__(
        self,
        scheduler: BaseScheduler,
        action: Callable[[], None],
        delay_seconds: float,
        job_id: str,
    ) -> None:
        """Initialize debouncer.

        Args:
            scheduler: Scheduler running the delayed job
            action: Callable to run once the burst settles
            delay_seconds: Quiet period before ``action`` runs
            job_id: Scheduler job ID, unique per debouncer
        """
        self.scheduler = scheduler
        self.action = action
        self.delay_seconds = delay_seconds
        self.job_id = job_id

    @property
    def pending(self) -> bool:
        return self.scheduler.get_job(self.job_id) is not None

    def trigger(self) -> None:
        """Restart the timer."""
        if not self.scheduler.running:
            # a stopped scheduler queues jobs without replacing them by id
            self.cancel()
        run_date = datetime.now(timezone.utc) + timedelta(seconds=self.delay_seconds)
        self.scheduler.add_job(
            self.action,
            "date",
            run_date=run_date,
            id=self.job_id,
            name=f"Debounced {self.job_id}",
            replace_existing=True,
            misfire_grace_time=None,
        )
        logger.debug(f"Debounce {self.job_id} rescheduled for {run_date.isoformat()}")

    def cancel(self) -> bool:
        """Drop the pending call.

        Returns:
            True if a call was pending
        """
        try:
            self.scheduler.remove_job(self.job_id)
            return True
        except JobLookupError:
            return False

    def flush(self) -> bool:
        """Run a pending call immediately.

        Returns:
            True if a call was pending and has run
        """
        if not self.cancel():
            return False
        self.action()
        return True
