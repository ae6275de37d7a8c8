"""
Subscription lifecycle: status transitions, Asaas synchronisation, address
and payment method changes, and payment history summaries.
"""

import logging
from datetime import UTC, datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.payments.asaas_adapter import AsaasAdapter, create_asaas_adapter
from infrastructure.database.models.subscription import (
    Order,
    Payment,
    PaymentStatus,
    Subscription,
    SubscriptionStatus,
)

logger = logging.getLogger(__name__)

VALID_TRANSITIONS: Dict[str, tuple[str, ...]] = {
    SubscriptionStatus.PENDING.value: (
        SubscriptionStatus.ACTIVE.value,
        SubscriptionStatus.CANCELLED.value,
    ),
    SubscriptionStatus.ACTIVE.value: (
        SubscriptionStatus.OVERDUE.value,
        SubscriptionStatus.PAUSED.value,
        SubscriptionStatus.CANCELLED.value,
        SubscriptionStatus.REFUNDED.value,
    ),
    SubscriptionStatus.OVERDUE.value: (
        SubscriptionStatus.ACTIVE.value,
        SubscriptionStatus.CANCELLED.value,
    ),
    SubscriptionStatus.PAUSED.value: (
        SubscriptionStatus.ACTIVE.value,
        SubscriptionStatus.CANCELLED.value,
    ),
    SubscriptionStatus.CANCELLED.value: (),
    SubscriptionStatus.REFUNDED.value: (),
}

PAID_STATUSES = (PaymentStatus.RECEIVED.value, PaymentStatus.CONFIRMED.value)


class InvalidTransition(ValueError):
    """Raised when a subscription cannot move to the requested status."""

    def __init__(self, current: str, requested: str):
        super().__init__(f"Invalid status transition: {current} -> {requested}")
        self.current = current
        self.requested = requested


def can_transition(current: str, requested: str) -> bool:
    return requested in VALID_TRANSITIONS.get(current, ())


def summarize_payments(payments: Sequence[Payment]) -> Dict[str, Any]:
    """
    Totals per payment state plus the share of paid charges settled on time.

    A payment with no due date counts as on time.
    """
    paid = [p for p in payments if p.status in PAID_STATUSES]
    on_time = [
        p for p in paid if not p.due_date or not p.payment_date or p.payment_date <= p.due_date
    ]
    return {
        "total_paid": round(sum(p.value for p in paid), 2),
        "total_pending": round(
            sum(p.value for p in payments if p.status == PaymentStatus.PENDING.value), 2
        ),
        "total_overdue": round(
            sum(p.value for p in payments if p.status == PaymentStatus.OVERDUE.value), 2
        ),
        "on_time_payment_rate": round(len(on_time) / len(paid) * 100) if paid else 100,
        "count": len(payments),
    }


class SubscriptionService:
    """
    Service for customer subscriptions.

    Gateway calls happen before the local change so a failed call leaves
    the row untouched. Methods flush, the caller commits.
    """

    def __init__(self, db: AsyncSession, asaas: Optional[AsaasAdapter] = None):
        self.db = db
        self._asaas = asaas

    @property
    def asaas(self) -> AsaasAdapter:
        if self._asaas is None:
            self._asaas = create_asaas_adapter()
        return self._asaas

    async def get_current_subscription(self, user_id: str) -> Optional[Subscription]:
        """The user's most recent subscription, whatever its status."""
        result = await self.db.execute(
            select(Subscription)
            .where(Subscription.user_id == user_id)
            .order_by(Subscription.created_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def change_status(
        self,
        subscription: Subscription,
        new_status: str,
        reason: Optional[str] = None,
    ) -> Subscription:
        """
        Move a subscription to ``new_status``, syncing Asaas when linked.

        Raises:
            InvalidTransition: If the current status does not allow it
            AsaasError: If the gateway rejects the change
        """
        current = subscription.status
        if not can_transition(current, new_status):
            raise InvalidTransition(current, new_status)

        if subscription.asaas_subscription_id:
            await self._sync_gateway(subscription.asaas_subscription_id, new_status)

        now = datetime.now(UTC)
        subscription.status = new_status
        if new_status == SubscriptionStatus.PAUSED.value:
            subscription.paused_at = now
        elif new_status == SubscriptionStatus.ACTIVE.value:
            subscription.paused_at = None
        elif new_status == SubscriptionStatus.CANCELLED.value:
            subscription.cancelled_at = now
            subscription.cancellation_reason = reason

        await self.db.flush()
        logger.info(
            "Subscription %s status %s -> %s", subscription.id, current, new_status
        )
        return subscription

    async def _sync_gateway(self, asaas_subscription_id: str, new_status: str) -> None:
        if new_status == SubscriptionStatus.CANCELLED.value:
            await self.asaas.cancel_subscription(asaas_subscription_id)
        elif new_status == SubscriptionStatus.PAUSED.value:
            await self.asaas.update_subscription(asaas_subscription_id, status="INACTIVE")
        elif new_status == SubscriptionStatus.ACTIVE.value:
            await self.asaas.update_subscription(asaas_subscription_id, status="ACTIVE")

    async def pause(self, subscription: Subscription, reason: Optional[str] = None) -> Subscription:
        return await self.change_status(subscription, SubscriptionStatus.PAUSED.value, reason)

    async def resume(self, subscription: Subscription) -> Subscription:
        if subscription.status != SubscriptionStatus.PAUSED.value:
            raise InvalidTransition(subscription.status, SubscriptionStatus.ACTIVE.value)
        return await self.change_status(subscription, SubscriptionStatus.ACTIVE.value)

    async def cancel(self, subscription: Subscription, reason: Optional[str] = None) -> Subscription:
        return await self.change_status(subscription, SubscriptionStatus.CANCELLED.value, reason)

    async def update_address(
        self, subscription: Subscription, address: Dict[str, Any]
    ) -> Subscription:
        subscription.shipping_address = dict(address)
        await self.db.flush()
        return subscription

    async def update_payment_method(
        self, subscription: Subscription, billing_type: str
    ) -> Subscription:
        """
        Raises:
            AsaasError: If the gateway rejects the change
        """
        if subscription.asaas_subscription_id:
            await self.asaas.update_subscription(
                subscription.asaas_subscription_id, billingType=billing_type
            )
        subscription.payment_method = billing_type
        await self.db.flush()
        return subscription

    async def get_orders(self, user_id: str, limit: int = 50) -> List[Order]:
        result = await self.db.execute(
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_payments(
        self,
        user_id: str,
        status: Optional[str] = None,
        limit: int = 100,
    ) -> List[Payment]:
        stmt = select(Payment).where(Payment.user_id == user_id)
        if status:
            stmt = stmt.where(Payment.status == status)
        result = await self.db.execute(
            stmt.order_by(Payment.due_date.desc(), Payment.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())
