"""
Subscriber area routes: the logged-in customer's subscription, orders,
payments and notification preferences.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.payments.asaas_adapter import AsaasError
from api.routes.auth import get_current_user
from api.schemas.subscriber import (
    AddressUpdateRequest,
    CancelRequest,
    NotificationPreferencesUpdate,
    OrderListResponse,
    OrderResponse,
    PauseRequest,
    PaymentHistoryResponse,
    PaymentMethodUpdateRequest,
    PaymentResponse,
    PaymentSummary,
    SubscriptionResponse,
)
from core.plans import PLANS
from infrastructure.database.connection import get_db
from infrastructure.database.models.subscription import Subscription
from infrastructure.database.models.user import User
from services.reminder_orchestrator import ReminderOrchestrator
from services.subscription_service import (
    InvalidTransition,
    SubscriptionService,
    summarize_payments,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscriber", tags=["Subscriber"])


def _subscription_response(subscription: Subscription) -> SubscriptionResponse:
    response = SubscriptionResponse.model_validate(subscription)
    response.plan_name = PLANS.get(subscription.plan_id, {}).get("name")
    return response


async def _require_subscription(service: SubscriptionService, user: User) -> Subscription:
    subscription = await service.get_current_subscription(user.id)
    if subscription is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscription not found",
        )
    return subscription


def _gateway_error(action: str, subscription: Subscription, error: AsaasError) -> HTTPException:
    logger.error("Asaas %s failed for subscription %s: %s", action, subscription.id, error)
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail="Payment gateway error",
    )


@router.get("/subscription", response_model=SubscriptionResponse)
async def get_subscription(
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
):
    """Get the current user's subscription."""
    service = SubscriptionService(db)
    return _subscription_response(await _require_subscription(service, current_user))


@router.put("/subscription/address", response_model=SubscriptionResponse)
async def update_address(
    body: AddressUpdateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
):
    """Change the delivery address for future shipments."""
    service = SubscriptionService(db)
    subscription = await _require_subscription(service, current_user)
    await service.update_address(subscription, body.model_dump())
    await db.commit()
    return _subscription_response(subscription)


@router.put("/subscription/payment-method", response_model=SubscriptionResponse)
async def update_payment_method(
    body: PaymentMethodUpdateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
):
    """Change how future charges are billed."""
    service = SubscriptionService(db)
    subscription = await _require_subscription(service, current_user)
    try:
        await service.update_payment_method(subscription, body.billing_type)
    except AsaasError as e:
        raise _gateway_error("payment method update", subscription, e)
    await db.commit()
    return _subscription_response(subscription)


@router.post("/subscription/pause", response_model=SubscriptionResponse)
async def pause_subscription(
    current_user: Annotated[User, Depends(get_current_user)],
    body: Optional[PauseRequest] = None,
    db: AsyncSession = Depends(get_db),
):
    """Pause an active subscription."""
    service = SubscriptionService(db)
    subscription = await _require_subscription(service, current_user)
    try:
        await service.pause(subscription, body.reason if body else None)
    except InvalidTransition as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except AsaasError as e:
        raise _gateway_error("pause", subscription, e)
    await db.commit()
    return _subscription_response(subscription)


@router.post("/subscription/resume", response_model=SubscriptionResponse)
async def resume_subscription(
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
):
    """Resume a paused subscription."""
    service = SubscriptionService(db)
    subscription = await _require_subscription(service, current_user)
    try:
        await service.resume(subscription)
    except InvalidTransition as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except AsaasError as e:
        raise _gateway_error("resume", subscription, e)
    await db.commit()
    return _subscription_response(subscription)


@router.post("/subscription/cancel", response_model=SubscriptionResponse)
async def cancel_subscription(
    current_user: Annotated[User, Depends(get_current_user)],
    body: Optional[CancelRequest] = None,
    db: AsyncSession = Depends(get_db),
):
    """Cancel the subscription. Cancelled subscriptions cannot be resumed."""
    service = SubscriptionService(db)
    subscription = await _require_subscription(service, current_user)
    try:
        await service.cancel(subscription, body.reason if body else None)
    except InvalidTransition as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except AsaasError as e:
        raise _gateway_error("cancellation", subscription, e)
    await db.commit()
    logger.info("User %s cancelled subscription %s", current_user.id, subscription.id)
    return _subscription_response(subscription)


@router.get("/orders", response_model=OrderListResponse)
async def list_orders(
    current_user: Annotated[User, Depends(get_current_user)],
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """List the user's lens shipments, newest first."""
    orders = await SubscriptionService(db).get_orders(current_user.id, limit)
    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total=len(orders),
    )


@router.get("/payments", response_model=PaymentHistoryResponse)
async def payment_history(
    current_user: Annotated[User, Depends(get_current_user)],
    payment_status: Optional[str] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """Payment history with totals paid, pending and overdue."""
    payments = await SubscriptionService(db).get_payments(
        current_user.id, status=payment_status, limit=limit
    )
    return PaymentHistoryResponse(
        payments=[PaymentResponse.model_validate(p) for p in payments],
        summary=PaymentSummary(**summarize_payments(payments)),
    )


@router.get("/notification-preferences")
async def get_notification_preferences(
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
):
    """Notification preferences merged over the defaults."""
    preferences = await ReminderOrchestrator(db).get_user_preferences(current_user.id)
    return {"preferences": preferences}


@router.put("/notification-preferences")
async def update_notification_preferences(
    body: NotificationPreferencesUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
):
    """Merge the given keys into the stored notification preferences."""
    changes = body.model_dump(exclude_none=True)
    preferences = await ReminderOrchestrator(db).update_user_preferences(
        current_user.id, changes
    )
    await db.commit()
    return {"preferences": preferences}
