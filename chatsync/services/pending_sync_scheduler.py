"""
Periodic reconciliation of the pending-sync list.

Uses APScheduler for in-process scheduling.
"""

from __future__ import annotations

from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from chatsync.core.config import get_settings
from chatsync.core.exceptions import ChatSyncError
from chatsync.core.logger import logger
from chatsync.models.enums import SyncOutcome
from chatsync.services.sync_manager import SyncManager

JOB_ID = "pending_sync"


class PendingSyncScheduler:
    """Runs SyncManager.retry_pending on a fixed interval."""

    def __init__(self, sync_manager: SyncManager, interval_seconds: Optional[int] = None):
        self._sync = sync_manager
        self.interval_seconds = interval_seconds or get_settings().PENDING_SYNC_INTERVAL_SECONDS
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    async def start(self) -> None:
        """Start the interval job. Must be called from a running event loop."""
        if self.running:
            return
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.run_once,
            IntervalTrigger(seconds=self.interval_seconds),
            id=JOB_ID,
            name="Pending Sync Reconciliation",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info(f"Pending sync scheduler started: every {self.interval_seconds}s")

    async def stop(self) -> None:
        """Stop the scheduler."""
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Pending sync scheduler stopped")

    async def run_once(self) -> dict[str, SyncOutcome]:
        """One reconciliation pass; failures are logged, never raised."""
        try:
            return await self._sync.retry_pending()
        except ChatSyncError as e:
            logger.error(f"Pending sync pass failed: {e}")
            return {}
