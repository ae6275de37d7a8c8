"""
Integration tests for the admin back-office API.
"""

from datetime import UTC, date, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import status
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.payments.asaas_adapter import AsaasAPIError
from infrastructure.database.models import (
    AdminAuditLog,
    Order,
    Payment,
    Subscription,
    User,
)

pytestmark = pytest.mark.asyncio


@pytest.fixture
def asaas():
    adapter = MagicMock()
    adapter.update_subscription = AsyncMock()
    adapter.cancel_subscription = AsyncMock(return_value=True)
    with patch("services.subscription_service.create_asaas_adapter", return_value=adapter):
        yield adapter


@pytest.fixture
async def order(db_session: AsyncSession, active_subscription: Subscription) -> Order:
    order = Order(
        user_id=active_subscription.user_id,
        subscription_id=active_subscription.id,
        status="pending",
        total_amount=128.0,
    )
    db_session.add(order)
    await db_session.commit()
    return order


async def _audit_logs(db: AsyncSession) -> list[AdminAuditLog]:
    return list((await db.execute(select(AdminAuditLog))).scalars().all())


class TestAccess:
    async def test_customer_is_rejected(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.get("/api/v1/admin/dashboard", headers=auth_headers)
        assert response.status_code == status.HTTP_403_FORBIDDEN

    async def test_support_can_read(self, async_client: AsyncClient, support_headers: dict):
        response = await async_client.get("/api/v1/admin/customers", headers=support_headers)
        assert response.status_code == status.HTTP_200_OK

    async def test_support_cannot_write(
        self, async_client: AsyncClient, support_headers: dict, active_subscription: Subscription
    ):
        response = await async_client.put(
            f"/api/v1/admin/subscriptions/{active_subscription.id}/status",
            headers=support_headers,
            json={"status": "paused"},
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestDashboard:
    async def test_stats(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        admin_headers: dict,
        active_subscription: Subscription,
        other_user: User,
    ):
        db_session.add(
            Payment(
                user_id=active_subscription.user_id,
                subscription_id=active_subscription.id,
                asaas_payment_id="pay_dash",
                status="RECEIVED",
                billing_type="PIX",
                value=128.0,
                payment_date=datetime.now(UTC).date(),
            )
        )
        await db_session.commit()

        response = await async_client.get("/api/v1/admin/dashboard", headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["customers"]["total_customers"] == 2
        assert data["subscriptions"]["active"] == 1
        assert data["revenue"]["monthly_recurring_revenue"] == 128.0
        assert data["revenue"]["annual_recurring_revenue"] == 1536.0
        assert data["revenue"]["revenue_this_month"] == 128.0
        assert data["orders"]["pending"] == 0


class TestCustomers:
    async def test_list_with_latest_subscription(
        self,
        async_client: AsyncClient,
        admin_headers: dict,
        active_subscription: Subscription,
        other_user: User,
    ):
        response = await async_client.get("/api/v1/admin/customers", headers=admin_headers)

        data = response.json()
        assert data["total"] == 2
        assert data["total_pages"] == 1
        by_email = {c["email"]: c for c in data["customers"]}
        assert by_email["test@example.com"]["subscription_status"] == "active"
        assert by_email["test@example.com"]["plan_id"] == "basico"
        assert by_email["other@example.com"]["subscription_status"] is None

    async def test_search(
        self, async_client: AsyncClient, admin_headers: dict, test_user: User, other_user: User
    ):
        response = await async_client.get(
            "/api/v1/admin/customers", headers=admin_headers, params={"search": "souza"}
        )

        emails = [c["email"] for c in response.json()["customers"]]
        assert emails == ["other@example.com"]

    async def test_invalid_status_filter(self, async_client: AsyncClient, admin_headers: dict):
        response = await async_client.get(
            "/api/v1/admin/customers", headers=admin_headers, params={"status": "vip"}
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


class TestSubscriptions:
    async def test_list(
        self, async_client: AsyncClient, admin_headers: dict, active_subscription: Subscription
    ):
        response = await async_client.get(
            "/api/v1/admin/subscriptions", headers=admin_headers, params={"status": "active"}
        )

        data = response.json()
        assert data["total"] == 1
        item = data["subscriptions"][0]
        assert item["user_email"] == "test@example.com"
        assert item["plan_name"] == "Plano Express Mensal"

    async def test_change_status_is_audited(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        admin_headers: dict,
        admin_user: User,
        active_subscription: Subscription,
        asaas,
    ):
        response = await async_client.put(
            f"/api/v1/admin/subscriptions/{active_subscription.id}/status",
            headers=admin_headers,
            json={"status": "cancelled", "reason": "Pedido por telefone"},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "cancelled"
        assert response.json()["cancellation_reason"] == "Pedido por telefone"
        asaas.cancel_subscription.assert_awaited_once_with("sub_000001")

        logs = await _audit_logs(db_session)
        assert len(logs) == 1
        assert logs[0].action == "subscription_status_changed"
        assert logs[0].admin_user_id == admin_user.id
        assert logs[0].target_user_id == active_subscription.user_id

    async def test_invalid_transition(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        admin_headers: dict,
        active_subscription: Subscription,
        asaas,
    ):
        response = await async_client.put(
            f"/api/v1/admin/subscriptions/{active_subscription.id}/status",
            headers=admin_headers,
            json={"status": "pending"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert await _audit_logs(db_session) == []

    async def test_gateway_error(
        self,
        async_client: AsyncClient,
        admin_headers: dict,
        active_subscription: Subscription,
        asaas,
    ):
        asaas.update_subscription.side_effect = AsaasAPIError("down", 500)

        response = await async_client.put(
            f"/api/v1/admin/subscriptions/{active_subscription.id}/status",
            headers=admin_headers,
            json={"status": "paused"},
        )

        assert response.status_code == status.HTTP_502_BAD_GATEWAY

    async def test_missing_subscription(self, async_client: AsyncClient, admin_headers: dict):
        response = await async_client.put(
            "/api/v1/admin/subscriptions/00000000-0000-0000-0000-000000000000/status",
            headers=admin_headers,
            json={"status": "paused"},
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestOrders:
    async def test_list(self, async_client: AsyncClient, admin_headers: dict, order: Order):
        response = await async_client.get(
            "/api/v1/admin/orders", headers=admin_headers, params={"status": "pending"}
        )

        assert response.json()["total"] == 1
        assert response.json()["orders"][0]["id"] == order.id

    async def test_ship_order(
        self, async_client: AsyncClient, db_session: AsyncSession, admin_headers: dict, order: Order
    ):
        response = await async_client.put(
            f"/api/v1/admin/orders/{order.id}",
            headers=admin_headers,
            json={"status": "shipped", "tracking_code": "BR987654321"},
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "shipped"
        assert data["tracking_code"] == "BR987654321"
        assert data["shipped_at"] is not None

        logs = await _audit_logs(db_session)
        assert logs[0].action == "order_updated"
        assert set(logs[0].details) == {"status", "tracking_code", "description"}

    async def test_delivered_sets_both_dates(
        self, async_client: AsyncClient, admin_headers: dict, order: Order
    ):
        response = await async_client.put(
            f"/api/v1/admin/orders/{order.id}", headers=admin_headers, json={"status": "delivered"}
        )

        data = response.json()
        assert data["delivered_at"] is not None
        assert data["shipped_at"] is not None

    async def test_final_order_is_locked(
        self, async_client: AsyncClient, db_session: AsyncSession, admin_headers: dict, order: Order
    ):
        order.status = "delivered"
        await db_session.commit()

        response = await async_client.put(
            f"/api/v1/admin/orders/{order.id}", headers=admin_headers, json={"tracking_code": "X1"}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "Order is already delivered"

    async def test_empty_update(self, async_client: AsyncClient, admin_headers: dict, order: Order):
        response = await async_client.put(
            f"/api/v1/admin/orders/{order.id}", headers=admin_headers, json={}
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
