"""Unit tests for the reminder workflow."""

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from infrastructure.database.models.notification import MLPrediction, UserBehavior
from services.notification_service import NotificationService
from services.reminder_orchestrator import (
    FatigueLimitExceeded,
    ReminderInput,
    ReminderOrchestrator,
)

pytestmark = pytest.mark.asyncio


@pytest.fixture
def adapters():
    email = AsyncMock()
    email.send_email.return_value = True
    messaging = AsyncMock()
    messaging.send_message.return_value = SimpleNamespace(message_id="wa-1")
    messaging.send_sms.return_value = SimpleNamespace(message_id="sms-1")
    push = AsyncMock()
    push.send.return_value = True
    return SimpleNamespace(email=email, messaging=messaging, push=push)


@pytest.fixture
def orchestrator(db_session, adapters):
    notifications = NotificationService(
        db_session, email=adapters.email, messaging=adapters.messaging, push=adapters.push
    )
    return ReminderOrchestrator(db_session, notification_service=notifications)


class TestCreateReminder:
    async def test_preferred_channel_sends_now(self, orchestrator, test_user):
        before = datetime.now(UTC)
        notification_id = await orchestrator.create_intelligent_reminder(
            ReminderInput(
                user_id=test_user.id,
                type="REMINDER",
                content="Renove sua assinatura",
                preferred_channel="EMAIL",
                metadata={"source": "test"},
            )
        )

        notification = await orchestrator.notifications.get_notification(notification_id)
        assert notification.channel == "EMAIL"
        assert notification.extra_data == {"source": "test"}
        assert notification.scheduled_at >= before

    async def test_ml_selection(self, db_session, orchestrator, test_user):
        notification_id = await orchestrator.create_intelligent_reminder(
            ReminderInput(user_id=test_user.id, type="REMINDER", content="Oi")
        )

        notification = await orchestrator.notifications.get_notification(notification_id)
        assert notification.channel == "WHATSAPP"
        prediction_id = notification.extra_data["ml_prediction_id"]
        assert await db_session.get(MLPrediction, prediction_id) is not None

    async def test_disabled_prediction_uses_preferences(self, orchestrator, test_user):
        await orchestrator.update_user_preferences(
            test_user.id, {"channels": {"whatsapp": {"enabled": False}}}
        )
        notification_id = await orchestrator.create_intelligent_reminder(
            ReminderInput(user_id=test_user.id, type="REMINDER", content="Oi")
        )

        notification = await orchestrator.notifications.get_notification(notification_id)
        assert notification.channel == "EMAIL"

    async def test_fatigued_user_is_refused(self, db_session, test_user):
        ml = AsyncMock()
        ml.should_send_notification.return_value = False
        orchestrator = ReminderOrchestrator(db_session, ml_service=ml)

        with pytest.raises(FatigueLimitExceeded) as exc:
            await orchestrator.create_intelligent_reminder(
                ReminderInput(user_id=test_user.id, type="REMINDER", content="Oi")
            )
        assert exc.value.user_id == test_user.id

    async def test_batch_skips_failures(self, orchestrator, test_user, other_user):
        created = await orchestrator.create_batch_reminders(
            [
                ReminderInput(user_id=test_user.id, type="REMINDER", content="Oi", preferred_channel="EMAIL"),
                ReminderInput(user_id=other_user.id, type="REMINDER", content="Oi", preferred_channel="FAX"),
            ]
        )
        assert len(created) == 1


class TestSendWithFallback:
    async def test_success_scores_prediction(self, db_session, orchestrator, test_user):
        notification_id = await orchestrator.create_intelligent_reminder(
            ReminderInput(user_id=test_user.id, type="REMINDER", content="Oi")
        )
        notification = await orchestrator.notifications.get_notification(notification_id)

        result = await orchestrator.send_with_fallback(notification_id)

        assert result.success is True
        prediction = await db_session.get(MLPrediction, notification.extra_data["ml_prediction_id"])
        assert prediction.actual_channel == "WHATSAPP"
        assert prediction.was_accurate is not None

    async def test_failure_falls_back_to_email(self, orchestrator, adapters, other_user):
        notification_id = await orchestrator.create_intelligent_reminder(
            ReminderInput(
                user_id=other_user.id, type="REMINDER", content="Oi", preferred_channel="WHATSAPP"
            )
        )

        result = await orchestrator.send_with_fallback(notification_id)

        assert result.success is True
        assert result.channel == "EMAIL"
        assert result.notification_id != notification_id
        original = await orchestrator.notifications.get_notification(notification_id)
        assert original.status == "FAILED"
        fallback = await orchestrator.notifications.get_notification(result.notification_id)
        assert fallback.extra_data["original_notification_id"] == notification_id
        assert fallback.extra_data["is_fallback"] is True
        adapters.email.send_email.assert_awaited_once()

    async def test_no_fallback_available(self, orchestrator, adapters, test_user):
        adapters.email.send_email.return_value = False
        await orchestrator.update_user_preferences(
            test_user.id, {"channels": {"whatsapp": {"enabled": False}}}
        )
        notification_id = await orchestrator.create_intelligent_reminder(
            ReminderInput(user_id=test_user.id, type="REMINDER", content="Oi", preferred_channel="EMAIL")
        )

        result = await orchestrator.send_with_fallback(notification_id)

        assert result.success is False
        assert result.notification_id == notification_id

    async def test_missing_notification(self, orchestrator):
        with pytest.raises(ValueError):
            await orchestrator.send_with_fallback("missing")


class TestProcessing:
    async def test_process_due_notifications(self, orchestrator, adapters, test_user):
        past = datetime.now(UTC) - timedelta(minutes=5)
        for channel in ("EMAIL", "WHATSAPP"):
            await orchestrator.create_intelligent_reminder(
                ReminderInput(
                    user_id=test_user.id,
                    type="REMINDER",
                    content="Oi",
                    preferred_channel=channel,
                    scheduled_at=past,
                )
            )
        await orchestrator.create_intelligent_reminder(
            ReminderInput(
                user_id=test_user.id,
                type="REMINDER",
                content="Depois",
                preferred_channel="EMAIL",
                scheduled_at=datetime.now(UTC) + timedelta(hours=2),
            )
        )

        assert await orchestrator.process_scheduled_notifications() == 2
        adapters.email.send_email.assert_awaited_once()
        adapters.messaging.send_message.assert_awaited_once()

    async def test_nothing_due(self, orchestrator):
        assert await orchestrator.process_scheduled_notifications() == 0

    async def test_claimed_elsewhere_is_skipped(self, orchestrator, adapters, test_user):
        notification_id = await orchestrator.create_intelligent_reminder(
            ReminderInput(
                user_id=test_user.id,
                type="REMINDER",
                content="Oi",
                preferred_channel="EMAIL",
                scheduled_at=datetime.now(UTC) - timedelta(minutes=5),
            )
        )
        orchestrator.notifications.claim_notification = AsyncMock(return_value=False)

        assert await orchestrator.process_scheduled_notifications() == 0
        orchestrator.notifications.claim_notification.assert_awaited_once_with(notification_id)
        adapters.email.send_email.assert_not_awaited()

    async def test_failure_rolls_back_only_that_row(self, db_session, orchestrator, adapters, test_user):
        past = datetime.now(UTC) - timedelta(minutes=5)
        ids = []
        for minutes in (10, 5):
            ids.append(
                await orchestrator.create_intelligent_reminder(
                    ReminderInput(
                        user_id=test_user.id,
                        type="REMINDER",
                        content="Oi",
                        preferred_channel="EMAIL",
                        scheduled_at=past - timedelta(minutes=minutes),
                    )
                )
            )
        await db_session.commit()
        adapters.email.send_email.side_effect = [RuntimeError("connection reset"), True]

        assert await orchestrator.process_scheduled_notifications() == 1

        first = await orchestrator.notifications.get_notification(ids[0])
        second = await orchestrator.notifications.get_notification(ids[1])
        assert first.status == "SCHEDULED"
        assert second.status == "SENT"


class TestInteractionsAndHistory:
    async def test_interaction_updates_behavior(self, db_session, orchestrator, test_user):
        notification_id = await orchestrator.create_intelligent_reminder(
            ReminderInput(user_id=test_user.id, type="REMINDER", content="Oi", preferred_channel="EMAIL")
        )
        await orchestrator.send_with_fallback(notification_id)

        await orchestrator.handle_interaction(notification_id, test_user.id, "OPENED")

        behavior = await orchestrator.behavior.get_user_behavior(test_user.id)
        assert isinstance(behavior, UserBehavior)
        assert behavior.email_open_rate == 1.0
        notification = await orchestrator.notifications.get_notification(notification_id)
        assert notification.status == "OPENED"

    async def test_history_and_cancel(self, orchestrator, test_user):
        notification_id = await orchestrator.create_intelligent_reminder(
            ReminderInput(
                user_id=test_user.id,
                type="REMINDER",
                content="Oi",
                preferred_channel="EMAIL",
                scheduled_at=datetime.now(UTC) + timedelta(days=1),
            )
        )

        history = await orchestrator.get_user_history(test_user.id)
        assert [n.id for n in history] == [notification_id]
        assert await orchestrator.cancel_reminder(notification_id) is True
        assert await orchestrator.cancel_reminder(notification_id) is False


class TestPreferences:
    async def test_defaults(self, orchestrator, test_user):
        preferences = await orchestrator.get_user_preferences(test_user.id)
        assert preferences["channels"]["email"]["enabled"] is True
        assert preferences["channels"]["sms"]["enabled"] is False
        assert preferences["language"] == "pt-BR"

    async def test_update_merges(self, orchestrator, test_user):
        updated = await orchestrator.update_user_preferences(
            test_user.id, {"channels": {"sms": {"enabled": True}}, "language": "en"}
        )

        assert updated["channels"]["sms"]["enabled"] is True
        assert updated["channels"]["sms"]["events"]["payment_overdue"] is True
        assert "updated_at" in updated
        assert test_user.preferences["notifications"]["language"] == "en"

        again = await orchestrator.get_user_preferences(test_user.id)
        assert again["channels"]["sms"]["enabled"] is True

    async def test_unknown_user(self, orchestrator):
        with pytest.raises(ValueError):
            await orchestrator.update_user_preferences("missing", {"language": "en"})
