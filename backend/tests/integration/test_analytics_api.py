"""
Integration tests for reminder analytics routes.
"""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi import status
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.models import (
    AdminAuditLog,
    Notification,
    NotificationInteraction,
    User,
)

pytestmark = pytest.mark.asyncio


@pytest.fixture
async def sent_reminders(db_session: AsyncSession, test_user: User) -> list[Notification]:
    """Two emails (one opened) and a clicked WhatsApp message, sent an hour ago."""
    sent_at = datetime.now(UTC) - timedelta(hours=1)
    rows = [
        ("EMAIL", ["DELIVERED", "OPENED"]),
        ("EMAIL", ["DELIVERED"]),
        ("WHATSAPP", ["DELIVERED", "CLICKED"]),
    ]
    notifications = []
    for channel, interactions in rows:
        notification = Notification(
            user_id=test_user.id,
            channel=channel,
            type="REMINDER",
            status="SENT",
            content="Lembrete",
            scheduled_at=sent_at,
            sent_at=sent_at,
            interactions=[NotificationInteraction(user_id=test_user.id, type=t) for t in interactions],
        )
        db_session.add(notification)
        notifications.append(notification)
    await db_session.commit()
    return notifications


class TestReminderAnalytics:
    async def test_default_period(
        self, async_client: AsyncClient, admin_headers: dict, sent_reminders
    ):
        response = await async_client.get("/api/v1/analytics/reminders", headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["global"]["total_sent"] == 3
        assert data["global"]["total_opened"] == 1
        assert data["global"]["total_clicked"] == 1
        channels = {m["channel"]: m for m in data["by_channel"]}
        assert channels["EMAIL"]["sent"] == 2
        assert channels["WHATSAPP"]["clicked"] == 1

    async def test_channel_filter(
        self, async_client: AsyncClient, admin_headers: dict, sent_reminders
    ):
        response = await async_client.get(
            "/api/v1/analytics/reminders",
            headers=admin_headers,
            params={"channels": "whatsapp"},
        )

        assert response.json()["global"]["total_sent"] == 1

    async def test_start_after_end(self, async_client: AsyncClient, admin_headers: dict):
        response = await async_client.get(
            "/api/v1/analytics/reminders",
            headers=admin_headers,
            params={"start": "2026-02-01T00:00:00", "end": "2026-01-01T00:00:00"},
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    async def test_customers_are_rejected(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.get("/api/v1/analytics/reminders", headers=auth_headers)
        assert response.status_code == status.HTTP_403_FORBIDDEN

    async def test_support_is_rejected(self, async_client: AsyncClient, support_headers: dict):
        response = await async_client.get("/api/v1/analytics/dashboard", headers=support_headers)
        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestDashboard:
    async def test_dashboard(
        self, async_client: AsyncClient, admin_headers: dict, sent_reminders
    ):
        response = await async_client.get("/api/v1/analytics/dashboard", headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["global"]["total_sent"] == 3
        assert data["total_users"] == 2
        assert data["pending_notifications"] == 0
        assert data["ml_model"]["total_predictions"] == 0


class TestSnapshots:
    async def test_create_snapshot_for_today(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        admin_headers: dict,
        sent_reminders,
    ):
        today = sent_reminders[0].sent_at.date().isoformat()

        response = await async_client.post(
            "/api/v1/analytics/snapshots", headers=admin_headers, params={"date": today}
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["snapshot_date"] == today
        assert data["total_sent"] == 3
        assert data["model_accuracy"] is None

        logs = (await db_session.execute(select(AdminAuditLog))).scalars().all()
        assert [log.action for log in logs] == ["analytics_snapshot_created"]

    async def test_default_is_yesterday(self, async_client: AsyncClient, admin_headers: dict):
        response = await async_client.post("/api/v1/analytics/snapshots", headers=admin_headers)

        yesterday = (datetime.now(UTC).date() - timedelta(days=1)).isoformat()
        assert response.json()["snapshot_date"] == yesterday
        assert response.json()["total_sent"] == 0


class TestExport:
    async def test_csv(self, async_client: AsyncClient, admin_headers: dict, sent_reminders):
        response = await async_client.get(
            "/api/v1/analytics/export", headers=admin_headers, params={"format": "csv"}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment; filename=reminder-analytics-" in response.headers["content-disposition"]
        assert "Total Sent,3" in response.text

    async def test_json(self, async_client: AsyncClient, admin_headers: dict, sent_reminders):
        response = await async_client.get("/api/v1/analytics/export", headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["global"]["total_sent"] == 3

    async def test_unknown_format(self, async_client: AsyncClient, admin_headers: dict):
        response = await async_client.get(
            "/api/v1/analytics/export", headers=admin_headers, params={"format": "xlsx"}
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
