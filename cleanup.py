"""Periodic removal of completed tickets past their retention window."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from starlette.concurrency import run_in_threadpool

import config
from database import collection, utcnow

logger = logging.getLogger(__name__)


class TicketCleanupService:
    def __init__(self, retention_days: int, interval_minutes: int):
        self.retention_days = retention_days
        self.interval_minutes = interval_minutes
        self.last_run: Optional[datetime] = None
        self.last_removed = 0
        self.total_removed = 0
        self.last_error: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        cutoff = now - timedelta(days=self.retention_days)
        result = collection("tickets").delete_many(
            {"status": "completed", "completed_at": {"$lt": cutoff}}
        )
        self.last_run = now
        self.last_removed = result.deleted_count
        self.total_removed += result.deleted_count
        self.last_error = None
        logger.info("Ticket cleanup removed %d completed tickets older than %s", result.deleted_count, cutoff)
        return result.deleted_count

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_minutes * 60)
            try:
                await run_in_threadpool(self.run_once)
            except Exception as exc:
                self.last_error = str(exc)
                logger.exception("Ticket cleanup run failed")

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info(
            "Ticket cleanup service started (every %d min, retention %d days)",
            self.interval_minutes,
            self.retention_days,
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Ticket cleanup service stopped")

    def status(self) -> Dict[str, Any]:
        return {
            "is_running": self.is_running,
            "interval_minutes": self.interval_minutes,
            "retention_days": self.retention_days,
            "last_run": self.last_run,
            "last_removed": self.last_removed,
            "total_removed": self.total_removed,
            "last_error": self.last_error,
        }


cleanup_service = TicketCleanupService(config.TICKET_RETENTION_DAYS, config.TICKET_CLEANUP_INTERVAL_MINUTES)
