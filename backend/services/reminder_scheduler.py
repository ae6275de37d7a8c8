"""
Reminder Scheduler Service.

Background loop that sends due notifications. The same processing is
exposed over HTTP for external cron triggers.
"""

import asyncio
import logging
from typing import Optional

from infrastructure.config import settings
from infrastructure.database import async_session_maker
from services.reminder_orchestrator import ReminderOrchestrator

logger = logging.getLogger(__name__)


class ReminderScheduler:
    """Service for periodically processing scheduled notifications."""

    def __init__(
        self,
        check_interval: Optional[int] = None,
        batch_size: Optional[int] = None,
    ):
        self.is_running = False
        self.check_interval = check_interval or settings.reminder_scheduler_interval
        self.batch_size = batch_size or settings.reminder_batch_size

    async def start(self):
        """Start the scheduler background loop."""
        if self.is_running:
            logger.warning("Reminder scheduler is already running")
            return

        self.is_running = True
        logger.info(
            "Reminder scheduler started - checking for notifications every %d seconds",
            self.check_interval,
        )

        while self.is_running:
            try:
                await self.process_due_notifications()
            except Exception as e:
                logger.error("Reminder scheduler error: %s", e, exc_info=True)

            await asyncio.sleep(self.check_interval)

    async def stop(self):
        """Stop the scheduler."""
        if not self.is_running:
            return

        self.is_running = False
        logger.info("Reminder scheduler stopped")

    async def process_due_notifications(self) -> int:
        """Send one batch of due notifications in its own session."""
        async with async_session_maker() as db:
            try:
                processed = await ReminderOrchestrator(db).process_scheduled_notifications(
                    self.batch_size
                )
                await db.commit()
                return processed
            except Exception:
                await db.rollback()
                raise


reminder_scheduler = ReminderScheduler()
