"""Integration tests for reminder endpoints."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.models import (
    AdminAuditLog,
    Notification,
    NotificationInteraction,
    Subscription,
    User,
)

pytestmark = pytest.mark.asyncio


@pytest.fixture
def channels():
    """Replace every delivery adapter used by the reminder services."""
    email = MagicMock()
    email.send_email = AsyncMock(return_value=True)
    email.send_reminder_email = AsyncMock(return_value=True)
    messaging = MagicMock()
    with patch("services.notification_service.email_service", email), patch(
        "services.notification_service.get_sendpulse_adapter", return_value=messaging
    ), patch("services.multichannel_reminders.email_service", email), patch(
        "services.multichannel_reminders.get_sendpulse_adapter", return_value=messaging
    ):
        yield email


async def _scheduled(db: AsyncSession, user: User, minutes: int = -5, **kwargs) -> Notification:
    notification = Notification(
        user_id=user.id,
        channel=kwargs.pop("channel", "EMAIL"),
        type="REMINDER",
        status=kwargs.pop("status", "SCHEDULED"),
        subject="Hora de trocar suas lentes",
        content="<p>Suas lentes vencem em breve.</p>",
        scheduled_at=datetime.now(UTC) + timedelta(minutes=minutes),
        interactions=[],
        **kwargs,
    )
    db.add(notification)
    await db.commit()
    return notification


class TestCreateReminder:
    async def test_explicit_channel(
        self, async_client: AsyncClient, db_session: AsyncSession, auth_headers: dict, test_user: User
    ):
        response = await async_client.post(
            "/api/v1/reminders",
            headers=auth_headers,
            json={"type": "reminder", "content": "Troque suas lentes", "preferred_channel": "whatsapp"},
        )

        assert response.status_code == 201
        notification = await db_session.get(Notification, response.json()["notification_id"])
        assert notification.channel == "WHATSAPP"
        assert notification.type == "REMINDER"
        assert notification.status == "SCHEDULED"

    async def test_predicted_channel(
        self, async_client: AsyncClient, db_session: AsyncSession, auth_headers: dict
    ):
        response = await async_client.post(
            "/api/v1/reminders",
            headers=auth_headers,
            json={"type": "RENEWAL", "content": "Sua assinatura renova em 7 dias"},
        )

        assert response.status_code == 201
        notification = await db_session.get(Notification, response.json()["notification_id"])
        assert notification.extra_data["ml_prediction_id"]

    async def test_invalid_type(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.post(
            "/api/v1/reminders", headers=auth_headers, json={"type": "POSTCARD", "content": "x"}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid reminder type: POSTCARD"

    async def test_invalid_channel(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.post(
            "/api/v1/reminders",
            headers=auth_headers,
            json={"type": "REMINDER", "content": "x", "preferred_channel": "FAX"},
        )
        assert response.status_code == 400

    async def test_fatigued_user(
        self, async_client: AsyncClient, db_session: AsyncSession, auth_headers: dict, test_user: User
    ):
        now = datetime.now(UTC)
        for hours in (1, 2, 3):
            sent_at = now - timedelta(hours=hours)
            db_session.add(
                Notification(
                    user_id=test_user.id,
                    channel="EMAIL",
                    type="REMINDER",
                    status="SENT",
                    content="Lembrete",
                    scheduled_at=sent_at,
                    sent_at=sent_at,
                    interactions=[NotificationInteraction(user_id=test_user.id, type="SENT")],
                )
            )
        await db_session.commit()

        response = await async_client.post(
            "/api/v1/reminders",
            headers=auth_headers,
            json={"type": "REMINDER", "content": "x", "preferred_channel": "EMAIL"},
        )

        assert response.status_code == 429
        assert response.json()["detail"] == "User fatigue score too high"

    async def test_customer_cannot_target_another_user(
        self, async_client: AsyncClient, auth_headers: dict, other_user: User
    ):
        response = await async_client.post(
            "/api/v1/reminders",
            headers=auth_headers,
            json={"user_id": other_user.id, "type": "REMINDER", "content": "x"},
        )
        assert response.status_code == 403

    async def test_staff_can_target_another_user(
        self, async_client: AsyncClient, support_headers: dict, test_user: User
    ):
        response = await async_client.post(
            "/api/v1/reminders",
            headers=support_headers,
            json={"user_id": test_user.id, "type": "REMINDER", "content": "x", "preferred_channel": "EMAIL"},
        )
        assert response.status_code == 201

    async def test_customer_contact_overrides_are_dropped(
        self, async_client: AsyncClient, db_session: AsyncSession, auth_headers: dict
    ):
        response = await async_client.post(
            "/api/v1/reminders",
            headers=auth_headers,
            json={
                "type": "REMINDER",
                "content": "Troque suas lentes",
                "preferred_channel": "SMS",
                "metadata": {"phone": "21999990000", "push_token": "device-x", "source": "app"},
            },
        )

        assert response.status_code == 201
        notification = await db_session.get(Notification, response.json()["notification_id"])
        assert "phone" not in notification.extra_data
        assert "push_token" not in notification.extra_data
        assert notification.extra_data["source"] == "app"

    async def test_customer_without_phone_cannot_pick_sms(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        other_headers: dict,
        other_user: User,
        cron_headers: dict,
    ):
        messaging = MagicMock()
        messaging.send_sms = AsyncMock()
        with patch("services.notification_service.get_sendpulse_adapter", return_value=messaging):
            response = await async_client.post(
                "/api/v1/reminders",
                headers=other_headers,
                json={
                    "type": "REMINDER",
                    "content": "Promoção, clique em http://example.invalid",
                    "preferred_channel": "SMS",
                    "metadata": {"phone": "21999990000"},
                },
            )
            processed = await async_client.post("/api/v1/reminders/process", headers=cron_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "No contact details on file for channel SMS"
        assert processed.json() == {"processed": 0}
        messaging.send_sms.assert_not_called()
        rows = (
            await db_session.execute(select(Notification).where(Notification.user_id == other_user.id))
        ).scalars().all()
        assert rows == []

    @pytest.mark.parametrize("channel", ["WHATSAPP", "PUSH"])
    async def test_customer_without_contact_details(
        self, async_client: AsyncClient, other_headers: dict, channel: str
    ):
        response = await async_client.post(
            "/api/v1/reminders",
            headers=other_headers,
            json={"type": "REMINDER", "content": "x", "preferred_channel": channel},
        )
        assert response.status_code == 400

    async def test_staff_may_supply_phone(
        self, async_client: AsyncClient, db_session: AsyncSession, support_headers: dict, other_user: User
    ):
        response = await async_client.post(
            "/api/v1/reminders",
            headers=support_headers,
            json={
                "user_id": other_user.id,
                "type": "REMINDER",
                "content": "x",
                "preferred_channel": "SMS",
                "metadata": {"phone": "21999990000"},
            },
        )

        assert response.status_code == 201
        notification = await db_session.get(Notification, response.json()["notification_id"])
        assert notification.extra_data["phone"] == "21999990000"

    async def test_staff_unknown_user(self, async_client: AsyncClient, support_headers: dict):
        response = await async_client.post(
            "/api/v1/reminders",
            headers=support_headers,
            json={"user_id": "missing-user", "type": "REMINDER", "content": "x"},
        )
        assert response.status_code == 404


class TestHistoryAndCancel:
    async def test_list(
        self, async_client: AsyncClient, db_session: AsyncSession, auth_headers: dict, test_user: User
    ):
        await _scheduled(db_session, test_user)

        response = await async_client.get("/api/v1/reminders", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["reminders"][0]["subject"] == "Hora de trocar suas lentes"
        assert data["reminders"][0]["interactions"] == []

    async def test_list_of_another_user_is_forbidden(
        self, async_client: AsyncClient, other_headers: dict, test_user: User
    ):
        response = await async_client.get(
            "/api/v1/reminders", headers=other_headers, params={"user_id": test_user.id}
        )
        assert response.status_code == 403

    async def test_cancel(
        self, async_client: AsyncClient, db_session: AsyncSession, auth_headers: dict, test_user: User
    ):
        notification = await _scheduled(db_session, test_user, minutes=60)

        response = await async_client.delete(f"/api/v1/reminders/{notification.id}", headers=auth_headers)

        assert response.status_code == 200
        assert notification.status == "CANCELLED"

    async def test_cancel_sent_reminder(
        self, async_client: AsyncClient, db_session: AsyncSession, auth_headers: dict, test_user: User
    ):
        notification = await _scheduled(db_session, test_user, status="SENT")

        response = await async_client.delete(f"/api/v1/reminders/{notification.id}", headers=auth_headers)

        assert response.status_code == 400

    async def test_cancel_missing(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.delete("/api/v1/reminders/does-not-exist", headers=auth_headers)
        assert response.status_code == 404


class TestInteractions:
    async def test_record_open(
        self, async_client: AsyncClient, db_session: AsyncSession, auth_headers: dict, test_user: User
    ):
        notification = await _scheduled(db_session, test_user, status="SENT")

        response = await async_client.post(
            f"/api/v1/reminders/{notification.id}/interactions",
            headers=auth_headers,
            json={"type": "opened"},
        )

        assert response.status_code == 201
        assert notification.status == "OPENED"
        assert notification.opened_at is not None

    async def test_invalid_interaction(
        self, async_client: AsyncClient, db_session: AsyncSession, auth_headers: dict, test_user: User
    ):
        notification = await _scheduled(db_session, test_user, status="SENT")

        response = await async_client.post(
            f"/api/v1/reminders/{notification.id}/interactions",
            headers=auth_headers,
            json={"type": "liked"},
        )
        assert response.status_code == 400


class TestBatch:
    async def test_admin_batch(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        admin_headers: dict,
        test_user: User,
        other_user: User,
    ):
        response = await async_client.post(
            "/api/v1/reminders/batch",
            headers=admin_headers,
            json={
                "reminders": [
                    {"user_id": test_user.id, "type": "PROMOTION", "content": "Oferta"},
                    {"user_id": other_user.id, "type": "PROMOTION", "content": "Oferta"},
                ]
            },
        )

        assert response.status_code == 201
        assert response.json()["count"] == 2
        assert response.json()["skipped"] == 0

        logs = (await db_session.execute(select(AdminAuditLog))).scalars().all()
        assert [log.action for log in logs] == ["reminders_batch_created"]

    async def test_batch_requires_user_ids(
        self, async_client: AsyncClient, admin_headers: dict
    ):
        response = await async_client.post(
            "/api/v1/reminders/batch",
            headers=admin_headers,
            json={"reminders": [{"type": "PROMOTION", "content": "Oferta"}]},
        )
        assert response.status_code == 400

    async def test_batch_is_admin_only(self, async_client: AsyncClient, support_headers: dict):
        response = await async_client.post(
            "/api/v1/reminders/batch",
            headers=support_headers,
            json={"reminders": [{"user_id": "x", "type": "PROMOTION", "content": "Oferta"}]},
        )
        assert response.status_code == 403


class TestCronEndpoints:
    async def test_process_due(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        cron_headers: dict,
        test_user: User,
        channels,
    ):
        due = await _scheduled(db_session, test_user)
        later = await _scheduled(db_session, test_user, minutes=120)

        response = await async_client.post("/api/v1/reminders/process", headers=cron_headers)

        assert response.status_code == 200
        assert response.json() == {"processed": 1}
        assert due.status == "SENT"
        assert later.status == "SCHEDULED"
        channels.send_email.assert_awaited_once()

    async def test_process_requires_secret(self, async_client: AsyncClient):
        response = await async_client.post(
            "/api/v1/reminders/process", headers={"x-cron-secret": "wrong"}
        )
        assert response.status_code == 401

    async def test_renewals(
        self,
        async_client: AsyncClient,
        cron_headers: dict,
        active_subscription: Subscription,
        channels,
    ):
        response = await async_client.post(
            "/api/v1/reminders/renewals",
            headers=cron_headers,
            json={"days_ahead": 20, "channel": "email"},
        )

        assert response.status_code == 200
        assert response.json() == {"sent": 1, "failed": 0, "total": 1}
        channels.send_reminder_email.assert_awaited_once()

    async def test_renewals_invalid_channel(self, async_client: AsyncClient, cron_headers: dict):
        response = await async_client.post(
            "/api/v1/reminders/renewals", headers=cron_headers, json={"channel": "pigeon"}
        )
        assert response.status_code == 400
