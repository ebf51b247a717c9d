"""Scheduler service for periodic scans."""

import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from lead_scanner.logging import get_logger

logger = get_logger(__name__, component="scheduler")

JOB_ID = "company-scan"


class SchedulerService:
    """
    Runs the scan on a fixed interval with APScheduler.

    The job runs on a BackgroundScheduler worker thread so the main thread
    stays free to handle signals. Runs never overlap; a run delayed past its
    slot is executed once.
    """

    def __init__(
        self,
        scan_callable: Callable[[], object],
        interval_seconds: int,
        shutdown_event: Optional[threading.Event] = None,
    ):
        """
        Args:
            scan_callable: Function executing one scan (pipeline run plus export)
            interval_seconds: Interval between runs in seconds
            shutdown_event: Set on shutdown; the running scan watches it to stop early
        """
        self.scan_callable = scan_callable
        self.interval_seconds = interval_seconds
        self.shutdown_event = shutdown_event or threading.Event()

        self.scheduler = BackgroundScheduler(
            job_defaults={
                "max_instances": 1,
                "coalesce": True,
                "misfire_grace_time": interval_seconds,
            },
            timezone=timezone.utc,
        )

    def start(self, run_immediately: bool = True) -> None:
        """Register the scan job and start the scheduler thread."""
        first_run = datetime.now(timezone.utc) if run_immediately else None

        job_kwargs = {}
        if first_run is not None:
            job_kwargs["next_run_time"] = first_run

        self.scheduler.add_job(
            func=self._run_job,
            trigger=IntervalTrigger(seconds=self.interval_seconds, timezone=timezone.utc),
            id=JOB_ID,
            name="Company lead scan",
            replace_existing=True,
            **job_kwargs,
        )
        self.scheduler.start()

        logger.info(
            f"Scheduler started with interval: {self.interval_seconds} seconds",
            extra={
                "event": "scheduler.started",
                "interval_seconds": self.interval_seconds,
                "next_run_time": self._format_time(self.get_next_run_time()),
            },
        )

    def shutdown(self, wait: bool = False) -> None:
        """
        Stop scheduling and signal the running scan to stop.

        Args:
            wait: If True, wait for the running scan to return
        """
        logger.info(
            "Shutting down scheduler",
            extra={"event": "scheduler.stopping", "wait_for_jobs": wait},
        )

        self.shutdown_event.set()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    def trigger_now(self) -> None:
        """Run one scan synchronously in the calling thread."""
        logger.info("Triggering immediate scan", extra={"event": "scheduler.trigger_now"})
        self._run_job()

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self) -> Optional[datetime]:
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None

    def _run_job(self) -> None:
        if self.shutdown_event.is_set():
            return
        try:
            self.scan_callable()
        except Exception as e:
            # the next interval retries; the scheduler thread must survive
            logger.error(
                f"Scheduled scan failed: {e}",
                extra={"event": "scheduler.job.failed", "error_type": type(e).__name__},
                exc_info=True,
            )

    @staticmethod
    def _format_time(value: Optional[datetime]) -> Optional[str]:
        return value.isoformat() if value else None
