"""
Retention sweeper using APScheduler.
Deletes session directories older than the retention window once a day.
"""

import asyncio
import shutil
import time
from pathlib import Path
from typing import Callable, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED, JobExecutionEvent

from meet_recorder.config import RetentionSettings, get_logger

logger = get_logger("retention")

SECONDS_PER_DAY = 24 * 60 * 60


class RetentionSweeper:
    """
    Daily cleanup of old recordings.

    Directories of sessions that are still active are always kept.
    """

    def __init__(
        self,
        recordings_dir: str,
        settings: Optional[RetentionSettings] = None,
        is_active: Optional[Callable[[str], bool]] = None,
    ):
        """
        Args:
            recordings_dir: Root holding one directory per session
            settings: Retention window and schedule
            is_active: Returns True for session ids that must not be deleted
        """
        self._settings = settings or RetentionSettings()
        self.recordings_dir = Path(recordings_dir)
        self._is_active = is_active or (lambda session_id: False)
        self._is_running = False

        self._scheduler = AsyncIOScheduler(jobstores={"default": MemoryJobStore()})
        self._scheduler.add_listener(self._on_job_event, EVENT_JOB_ERROR | EVENT_JOB_MISSED)

    @property
    def is_running(self) -> bool:
        return self._is_running

    def sweep(self, now: Optional[float] = None) -> List[str]:
        """
        Delete every session directory older than the retention window.

        Args:
            now: Reference epoch time (defaults to the current time)

        Returns:
            Ids of the removed session directories.
        """
        if not self.recordings_dir.exists():
            return []

        now = time.time() if now is None else now
        cutoff = now - self._settings.days * SECONDS_PER_DAY
        removed = []

        for entry in sorted(self.recordings_dir.iterdir()):
            if not entry.is_dir():
                continue
            try:
                if entry.stat().st_mtime >= cutoff:
                    continue
                if self._is_active(entry.name):
                    logger.info(f"Keeping {entry.name}: recording still active")
                    continue
                shutil.rmtree(entry)
                removed.append(entry.name)
                logger.info(f"🗑️ Removed old recording {entry.name}")
            except OSError as e:
                logger.error(f"Failed to remove {entry.name}: {e}")

        logger.info(f"Retention sweep done: {len(removed)} recording(s) removed")
        return removed

    async def _sweep_job(self) -> None:
        # rmtree blocks; keep it off the event loop
        await asyncio.to_thread(self.sweep)

    def start(self) -> None:
        """Schedule the daily sweep and start the scheduler."""
        if self._is_running or not self._settings.enabled:
            return

        self._scheduler.add_job(
            self._sweep_job,
            trigger=CronTrigger(hour=self._settings.hour, minute=self._settings.minute),
            id="retention_sweep",
            name="Retention Sweep",
            replace_existing=True,
            max_instances=1,
        )
        self._scheduler.start()
        self._is_running = True
        logger.info(
            f"Retention sweeper started (daily at {self._settings.hour:02d}:{self._settings.minute:02d}, "
            f"keeping {self._settings.days} days)"
        )

    def stop(self) -> None:
        """Stop the scheduler."""
        if not self._is_running:
            return

        try:
            # Avoid calling into a closed event loop (e.g. during test teardown)
            loop = getattr(self._scheduler, "_eventloop", None)
            if self._scheduler.running and not (loop and loop.is_closed()):
                self._scheduler.shutdown(wait=False)
            logger.info("Retention sweeper stopped")
        finally:
            self._is_running = False

    def _on_job_event(self, event: JobExecutionEvent) -> None:
        if event.exception:
            logger.error(f"Job {event.job_id} failed: {event.exception}")
        else:
            logger.warning(f"Job {event.job_id} missed its run time")
