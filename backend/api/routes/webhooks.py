"""
Webhook routes for Asaas payment events and SendPulse message status.
"""

import calendar
import logging
from datetime import UTC, date, datetime, timedelta
from functools import partial
from typing import Annotated, Awaitable, Callable, List, Optional

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.email.resend_adapter import email_service
from adapters.messaging.sendpulse_adapter import get_sendpulse_adapter
from adapters.payments.asaas_adapter import (
    AsaasPayment,
    AsaasWebhookError,
    AsaasWebhookEvent,
    create_asaas_adapter,
)
from api.middleware.rate_limit import get_rate_limit, limiter
from core.plans import PLANS
from infrastructure.config.settings import settings
from infrastructure.database.connection import get_db
from infrastructure.database.models.notification import InteractionType
from infrastructure.database.models.subscription import (
    BillingInterval,
    Order,
    OrderStatus,
    Payment,
    PaymentStatus,
    Subscription,
    SubscriptionStatus,
)
from infrastructure.database.models.user import User
from services.notification_service import NotificationService
from services.subscription_service import can_transition

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

IDEMPOTENCY_TTL_SECONDS = 86400
DELIVERY_ESTIMATE_DAYS = 7

PendingEmail = Callable[[], Awaitable[bool]]

# SendPulse status -> interaction recorded on the notification
_SENDPULSE_STATUS = {
    "delivered": InteractionType.DELIVERED.value,
    "read": InteractionType.OPENED.value,
}


# ============================================================================
# Idempotency
# ============================================================================


async def _claim_event(key: str) -> bool:
    """
    Claim an event id for processing.

    Returns False when the event was already claimed in the last 24h. Without
    Redis every event is processed.
    """
    client = aioredis.from_url(settings.redis_url)
    try:
        return bool(
            await client.set(f"webhook:asaas:{key}", "1", ex=IDEMPOTENCY_TTL_SECONDS, nx=True)
        )
    except (RedisError, OSError) as e:
        logger.warning("Webhook idempotency check unavailable (Redis error): %s", e)
        return True
    finally:
        await client.aclose()


async def _release_event(key: str) -> None:
    """Forget a claimed event so a retry from Asaas is processed again."""
    client = aioredis.from_url(settings.redis_url)
    try:
        await client.delete(f"webhook:asaas:{key}")
    except (RedisError, OSError) as e:
        logger.warning("Could not release webhook key %s: %s", key, e)
    finally:
        await client.aclose()


# ============================================================================
# Asaas event handlers
# ============================================================================


def _add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def next_billing_date(from_date: date, interval: str) -> date:
    months = 12 if interval == BillingInterval.ANNUAL.value else 1
    return _add_months(from_date, months)


async def _find_subscription(db: AsyncSession, data: AsaasPayment) -> Optional[Subscription]:
    if not data.subscription_id:
        return None
    result = await db.execute(
        select(Subscription)
        .where(Subscription.asaas_subscription_id == data.subscription_id)
        .with_for_update(of=Subscription)
    )
    return result.scalars().first()


async def _find_user(
    db: AsyncSession, data: AsaasPayment, subscription: Optional[Subscription]
) -> Optional[User]:
    if subscription is not None:
        return subscription.user
    if not data.customer_id:
        return None
    result = await db.execute(select(User).where(User.asaas_customer_id == data.customer_id))
    return result.scalar_one_or_none()


async def _get_or_create_payment(
    db: AsyncSession,
    data: AsaasPayment,
    user: User,
    subscription: Optional[Subscription],
) -> Payment:
    result = await db.execute(
        select(Payment).where(Payment.asaas_payment_id == data.id).with_for_update()
    )
    payment = result.scalar_one_or_none()
    if payment is None:
        payment = Payment(
            user_id=user.id,
            subscription_id=subscription.id if subscription else None,
            asaas_payment_id=data.id,
            status=data.status or PaymentStatus.PENDING.value,
            billing_type=data.billing_type,
            value=data.value,
            net_value=data.net_value,
            due_date=data.due_date,
            payment_date=data.payment_date,
            invoice_url=data.invoice_url,
            bank_slip_url=data.bank_slip_url,
            description=data.description,
        )
        db.add(payment)
        await db.flush()
    return payment


def _plan_name(subscription: Optional[Subscription]) -> str:
    if subscription is None:
        return "SV Lentes"
    return PLANS.get(subscription.plan_id, {}).get("name", subscription.plan_id)


async def _handle_payment_created(
    db: AsyncSession, event: AsaasWebhookEvent
) -> List[PendingEmail]:
    subscription = await _find_subscription(db, event.payment)
    user = await _find_user(db, event.payment, subscription)
    if user is None:
        logger.warning(
            "PAYMENT_CREATED for unknown customer %s (payment %s)",
            event.payment.customer_id,
            event.payment.id,
        )
        return []
    await _get_or_create_payment(db, event.payment, user, subscription)
    return []


async def _handle_payment_received(
    db: AsyncSession, event: AsaasWebhookEvent
) -> List[PendingEmail]:
    """Confirmed or received: activate the subscription and open a shipment."""
    data = event.payment
    subscription = await _find_subscription(db, data)
    user = await _find_user(db, data, subscription)
    if user is None:
        logger.warning("%s for unknown customer %s", event.event, data.customer_id)
        return []

    payment = await _get_or_create_payment(db, data, user, subscription)
    payment.status = PaymentStatus.RECEIVED.value
    payment.payment_date = data.payment_date or datetime.now(UTC).date()
    if data.net_value is not None:
        payment.net_value = data.net_value

    if subscription is not None:
        if subscription.status in (
            SubscriptionStatus.PENDING.value,
            SubscriptionStatus.OVERDUE.value,
            SubscriptionStatus.ACTIVE.value,
        ):
            subscription.status = SubscriptionStatus.ACTIVE.value
            subscription.next_billing_date = next_billing_date(
                data.due_date or payment.payment_date, subscription.billing_interval
            )

        existing_order = await db.execute(select(Order.id).where(Order.payment_id == payment.id))
        if existing_order.scalar_one_or_none() is None:
            db.add(
                Order(
                    user_id=user.id,
                    subscription_id=subscription.id,
                    payment_id=payment.id,
                    status=OrderStatus.PENDING.value,
                    total_amount=payment.value,
                    shipping_address=subscription.shipping_address,
                    estimated_delivery=datetime.now(UTC).date()
                    + timedelta(days=DELIVERY_ESTIMATE_DAYS),
                )
            )

    await db.flush()
    logger.info("Payment %s received for user %s", data.id, user.id)
    return [
        partial(
            email_service.send_payment_confirmation_email,
            to_email=user.email,
            user_name=user.first_name,
            amount=payment.value,
            plan_name=_plan_name(subscription),
            payment_date=payment.payment_date,
        )
    ]


async def _handle_payment_overdue(
    db: AsyncSession, event: AsaasWebhookEvent
) -> List[PendingEmail]:
    data = event.payment
    subscription = await _find_subscription(db, data)
    user = await _find_user(db, data, subscription)
    if user is None:
        logger.warning("PAYMENT_OVERDUE for unknown customer %s", data.customer_id)
        return []

    payment = await _get_or_create_payment(db, data, user, subscription)
    payment.status = PaymentStatus.OVERDUE.value

    if subscription is not None and subscription.status in (
        SubscriptionStatus.ACTIVE.value,
        SubscriptionStatus.PENDING.value,
    ):
        subscription.status = SubscriptionStatus.OVERDUE.value

    await db.flush()

    today = datetime.now(UTC).date()
    days_overdue = max((today - payment.due_date).days, 0) if payment.due_date else 0
    logger.info("Payment %s overdue by %d days", data.id, days_overdue)
    return [
        partial(
            email_service.send_payment_overdue_email,
            to_email=user.email,
            user_name=user.first_name,
            amount=payment.value,
            due_date=payment.due_date,
            days_overdue=days_overdue,
            invoice_url=payment.invoice_url,
        )
    ]


async def _handle_payment_refunded(
    db: AsyncSession, event: AsaasWebhookEvent
) -> List[PendingEmail]:
    data = event.payment
    subscription = await _find_subscription(db, data)
    user = await _find_user(db, data, subscription)
    if user is None:
        logger.warning("PAYMENT_REFUNDED for unknown customer %s", data.customer_id)
        return []

    payment = await _get_or_create_payment(db, data, user, subscription)
    payment.status = PaymentStatus.REFUNDED.value
    payment.refunded_at = datetime.now(UTC)

    if subscription is not None:
        if can_transition(subscription.status, SubscriptionStatus.REFUNDED.value):
            subscription.status = SubscriptionStatus.REFUNDED.value
        else:
            logger.info(
                "Refund of %s leaves subscription %s %s",
                data.id,
                subscription.id,
                subscription.status,
            )

    await db.flush()
    logger.info("Payment %s refunded", data.id)
    return [
        partial(
            email_service.send_refund_email,
            to_email=user.email,
            user_name=user.first_name,
            amount=payment.value,
        )
    ]


_ASAAS_HANDLERS = {
    "PAYMENT_CREATED": _handle_payment_created,
    "PAYMENT_CONFIRMED": _handle_payment_received,
    "PAYMENT_RECEIVED": _handle_payment_received,
    "PAYMENT_OVERDUE": _handle_payment_overdue,
    "PAYMENT_REFUNDED": _handle_payment_refunded,
}


@router.post("/asaas")
@limiter.limit(get_rate_limit("webhooks"))
async def asaas_webhook(
    request: Request,
    asaas_access_token: Annotated[str | None, Header(alias="asaas-access-token")] = None,
    db: AsyncSession = Depends(get_db),
):
    """
    Handle Asaas payment events.

    Events are deduplicated by id for 24h. Emails go out only after the
    database changes are committed.
    """
    asaas = create_asaas_adapter()
    try:
        token_ok = asaas.verify_webhook_token(asaas_access_token)
    except AsaasWebhookError:
        logger.error("Asaas webhook rejected: ASAAS_WEBHOOK_TOKEN not configured")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Webhook verification not configured",
        )
    if not token_ok:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook token",
        )

    try:
        payload = await request.json()
    except ValueError as e:
        logger.error("Invalid JSON in Asaas webhook: %s", e)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook payload",
        )
    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook payload",
        )

    try:
        event = asaas.parse_webhook_event(payload)
    except AsaasWebhookError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    handler = _ASAAS_HANDLERS.get(event.event)
    if handler is None:
        logger.info("Ignoring Asaas event %s for payment %s", event.event, event.payment.id)
        return {"received": True}

    if not await _claim_event(event.idempotency_key):
        logger.info("Duplicate Asaas event %s, skipping", event.idempotency_key)
        return {"received": True, "duplicate": True}

    try:
        pending_emails = await handler(db, event)
        await db.commit()
    except Exception as e:
        await db.rollback()
        await _release_event(event.idempotency_key)
        logger.error(
            "Asaas webhook %s processing failed: %s", event.event, e, exc_info=True
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        )

    for send in pending_emails:
        await send()

    return {"received": True}


# ============================================================================
# SendPulse
# ============================================================================


@router.get("/sendpulse")
async def sendpulse_verify(
    token: Optional[str] = Query(None),
    challenge: Optional[str] = Query(None),
):
    """Webhook verification handshake: echo the challenge for a valid token."""
    if not get_sendpulse_adapter().verify_webhook_token(token):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid verification",
        )
    return PlainTextResponse(challenge or "verified")


@router.post("/sendpulse")
@limiter.limit(get_rate_limit("webhooks"))
async def sendpulse_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """
    Handle SendPulse events.

    ``message.status`` updates the matching notification: delivered and read
    become DELIVERED and OPENED interactions, failed marks it FAILED.
    """
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook payload",
        )
    if not isinstance(body, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook payload",
        )

    event = body.get("event")
    if event == "webhook.verify":
        return {"status": "verified"}
    if event != "message.status":
        logger.info("SendPulse event %s received", event)
        return {"status": "received"}

    message_id = body.get("message_id")
    message_status = (body.get("status") or "").lower()
    if not message_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="message_id is required",
        )

    notifications = NotificationService(db)
    notification = await notifications.get_by_provider_message_id(str(message_id))
    if notification is None:
        logger.info("SendPulse status %s for unknown message %s", message_status, message_id)
        return {"status": "ignored"}

    interaction_type = _SENDPULSE_STATUS.get(message_status)
    if interaction_type:
        await notifications.record_interaction(
            notification.id,
            notification.user_id,
            interaction_type,
            {"source": "sendpulse", "message_id": str(message_id)},
        )
    elif message_status == "failed":
        await notifications.mark_failed(
            notification, body.get("error") or "Reported failed by SendPulse"
        )
    else:
        logger.info("Unhandled SendPulse status %s for message %s", message_status, message_id)
        return {"status": "ignored"}

    await db.commit()
    return {"status": "updated"}
