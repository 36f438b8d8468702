"""
ToolStack Sync Scheduler
========================

Calls the bulk resync endpoints on a daily cron schedule
(default: 12:00 Europe/Paris), text index first, then vector index.

A non-2xx answer stops the remaining calls for that tick; the next tick
starts over, and an unfinished walk resumes from its saved cursor.

Usage:
    # Start scheduler daemon
    python -m toolstack.orchestrator.cli schedule

    # Or programmatically
    scheduler = SyncScheduler()
    scheduler.start()

Configuration:
    SCHEDULER_CRON_HOUR / SCHEDULER_CRON_MINUTE / SCHEDULER_TIMEZONE
    SYNC_BASE_URL: Where the API is served (default: http://localhost:8000)
"""

import logging
import signal
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Event
from typing import Any, Dict, List, Optional, Sequence

import requests
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED, JobExecutionEvent
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from ..data.config import SchedulerConfig

logger = logging.getLogger(__name__)

DEFAULT_TARGETS = ("text", "vector")


@dataclass
class RunHistory:
    """Tracks scheduler run history."""
    last_run_at: Optional[datetime] = None
    last_run_status: Optional[str] = None
    last_run_duration: Optional[float] = None
    consecutive_failures: int = 0
    total_runs: int = 0
    total_successes: int = 0
    total_failures: int = 0

    def record_run(self, succeeded: bool, duration: float):
        self.last_run_at = datetime.now(timezone.utc)
        self.last_run_status = "completed" if succeeded else "failed"
        self.last_run_duration = duration
        self.total_runs += 1

        if succeeded:
            self.total_successes += 1
            self.consecutive_failures = 0
        else:
            self.total_failures += 1
            self.consecutive_failures += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_run_status": self.last_run_status,
            "last_run_duration": self.last_run_duration,
            "consecutive_failures": self.consecutive_failures,
            "total_runs": self.total_runs,
            "total_successes": self.total_successes,
            "total_failures": self.total_failures,
        }


class SyncScheduler:
    """
    Daily trigger for the per-index bulk resync endpoints.

    The actual work runs in the API process; this only makes HTTP calls.
    """

    def __init__(
        self,
        config: Optional[SchedulerConfig] = None,
        targets: Sequence[str] = DEFAULT_TARGETS,
        sync_token: Optional[str] = None,
    ):
        self.config = config or SchedulerConfig()
        self.targets = list(targets)
        self.sync_token = sync_token
        self._scheduler: Optional[BackgroundScheduler] = None
        self._stop_event = Event()
        self._history = RunHistory()

        logger.info(
            f"SyncScheduler initialized: "
            f"schedule={self.config.get_cron_expression()} {self.config.timezone}"
        )

    @property
    def is_running(self) -> bool:
        if self._scheduler is None:
            return False
        return self._scheduler.running

    def sync_urls(self) -> List[str]:
        base = self.config.base_url.rstrip("/")
        return [f"{base}/api/sync/full/{target}" for target in self.targets]

    # =========================================================================
    # APScheduler-based Scheduling
    # =========================================================================

    def start(self, blocking: bool = False):
        """
        Start the scheduler.

        Args:
            blocking: If True, blocks until scheduler is stopped
        """
        if self._scheduler is not None and self._scheduler.running:
            logger.warning("Scheduler is already running")
            return

        self._scheduler = BackgroundScheduler(timezone=self.config.timezone)
        self._scheduler.add_job(
            self.run_sync,
            trigger=CronTrigger(
                hour=self.config.cron_hour,
                minute=self.config.cron_minute,
                timezone=self.config.timezone,
            ),
            id="daily_sync",
            name="ToolStack Daily Sync",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=self.config.misfire_grace_time,
        )
        self._scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)
        self._scheduler.add_listener(self._on_job_missed, EVENT_JOB_MISSED)

        self._scheduler.start()
        logger.info(f"Scheduler started. Next run at: {self._get_next_run_time()}")

        if blocking:
            self._run_blocking()

    def stop(self, wait: bool = True):
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=wait)
            self._scheduler = None
            logger.info("Scheduler stopped")

        self._stop_event.set()

    def _run_blocking(self):
        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}, stopping scheduler...")
            self.stop()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        logger.info("Scheduler running in blocking mode. Press Ctrl+C to stop.")
        self._stop_event.wait()

    # =========================================================================
    # Sync Calls
    # =========================================================================

    def run_sync(self) -> bool:
        """
        Call every sync endpoint in order.

        Returns:
            True if all endpoints answered 2xx
        """
        logger.info("=== Scheduled Sync Starting ===")
        started = time.monotonic()
        headers = {"X-Sync-Token": self.sync_token} if self.sync_token else {}

        succeeded = True
        for url in self.sync_urls():
            logger.info(f"Calling sync URL: {url}")
            try:
                response = requests.post(url, headers=headers, timeout=self.config.request_timeout)
            except requests.RequestException as e:
                logger.error(f"Sync request failed for {url}: {e}")
                succeeded = False
                break

            if not response.ok:
                logger.error(f"Sync failed for {url}: {response.status_code} {response.text[:500]}")
                succeeded = False
                break

            logger.info(f"Response status: {response.status_code}")
            logger.debug(f"Response text: {response.text[:2000]}")

        self._history.record_run(succeeded, time.monotonic() - started)
        return succeeded

    def _get_next_run_time(self) -> Optional[datetime]:
        if self._scheduler is None:
            return None
        job = self._scheduler.get_job("daily_sync")
        if job is None:
            return None
        return job.next_run_time

    def _on_job_error(self, event: JobExecutionEvent):
        logger.error(f"Job {event.job_id} raised an exception: {event.exception}")

    def _on_job_missed(self, event: JobExecutionEvent):
        logger.warning(f"Job {event.job_id} missed its scheduled time")

    # =========================================================================
    # Status
    # =========================================================================

    def get_status(self) -> Dict[str, Any]:
        next_run = self._get_next_run_time()
        return {
            "is_running": self.is_running,
            "config": {
                "schedule": self.config.get_cron_expression(),
                "timezone": self.config.timezone,
                "urls": self.sync_urls(),
            },
            "next_run": next_run.isoformat() if next_run else None,
            "history": self._history.to_dict(),
        }

    def get_run_history(self) -> RunHistory:
        return self._history
