"""Unit tests for the background reminder loop."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from services.reminder_scheduler import ReminderScheduler

pytestmark = pytest.mark.asyncio


class TestReminderScheduler:
    def test_defaults_from_settings(self):
        scheduler = ReminderScheduler()
        assert scheduler.check_interval > 0
        assert scheduler.batch_size > 0
        assert scheduler.is_running is False

    async def test_loop_survives_errors_and_stops(self):
        scheduler = ReminderScheduler(check_interval=1, batch_size=10)
        calls = 0

        async def process():
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("database unavailable")
            await scheduler.stop()
            return 0

        with patch.object(scheduler, "process_due_notifications", side_effect=process), patch(
            "services.reminder_scheduler.asyncio.sleep", new=AsyncMock()
        ):
            await asyncio.wait_for(scheduler.start(), timeout=5)

        assert calls == 2
        assert scheduler.is_running is False

    async def test_second_start_is_ignored(self):
        scheduler = ReminderScheduler(check_interval=1)
        scheduler.is_running = True
        with patch.object(scheduler, "process_due_notifications", new=AsyncMock()) as process:
            await scheduler.start()
        process.assert_not_awaited()

    async def test_processes_batch_in_own_session(self, db_engine):
        from sqlalchemy.ext.asyncio import async_sessionmaker

        maker = async_sessionmaker(db_engine, expire_on_commit=False)
        scheduler = ReminderScheduler(check_interval=60, batch_size=25)

        with patch("services.reminder_scheduler.async_session_maker", maker), patch(
            "services.reminder_scheduler.ReminderOrchestrator"
        ) as orchestrator_cls:
            orchestrator_cls.return_value.process_scheduled_notifications = AsyncMock(return_value=3)
            assert await scheduler.process_due_notifications() == 3

        orchestrator_cls.return_value.process_scheduled_notifications.assert_awaited_once_with(25)
