"""
Admin back-office API routes.

Staff can read everything; changes to subscriptions and orders require an
admin and are written to the audit log.
"""

import logging
from datetime import UTC, datetime, timedelta
from math import ceil
from typing import Annotated, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.payments.asaas_adapter import AsaasError
from api.deps_admin import get_current_admin_user, get_current_staff_user
from api.schemas.admin import (
    AdminOrderItem,
    AdminOrderListResponse,
    AdminSubscriptionItem,
    AdminSubscriptionListResponse,
    CustomerListItem,
    CustomerListResponse,
    CustomerStats,
    DashboardStatsResponse,
    OrderStats,
    OrderUpdateRequest,
    RevenueStats,
    SubscriptionStats,
    SubscriptionStatusUpdateRequest,
)
from api.utils import create_audit_log, escape_like
from core.plans import PLANS, monthly_recurring_value
from infrastructure.database.connection import get_db
from infrastructure.database.models.admin import AuditAction, AuditTargetType
from infrastructure.database.models.subscription import (
    BillingInterval,
    Order,
    OrderStatus,
    Payment,
    PaymentStatus,
    Subscription,
    SubscriptionStatus,
)
from infrastructure.database.models.user import User, UserRole, UserStatus
from services.subscription_service import InvalidTransition, SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])

# Orders in these states can no longer change
_FINAL_ORDER_STATUSES = {OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value}


# ============================================================================
# Helper Functions
# ============================================================================


def _total_pages(total: int, page_size: int) -> int:
    return ceil(total / page_size) if total else 0


def _subscription_mrr(subscription: Subscription) -> float:
    try:
        return monthly_recurring_value(subscription.plan_id, subscription.billing_interval)
    except ValueError:
        # Plan retired from the catalogue: fall back to the stored price
        if subscription.billing_interval == BillingInterval.ANNUAL.value:
            return round(subscription.amount / 12, 2)
        return subscription.amount


def _subscription_item(subscription: Subscription) -> AdminSubscriptionItem:
    item = AdminSubscriptionItem.model_validate(subscription)
    item.plan_name = PLANS.get(subscription.plan_id, {}).get("name")
    if subscription.user is not None:
        item.user_email = subscription.user.email
        item.user_name = subscription.user.name
    return item


async def _count_by_status(db: AsyncSession, model) -> Dict[str, int]:
    result = await db.execute(
        select(model.status, func.count(model.id)).group_by(model.status)
    )
    return {row[0]: row[1] for row in result.all()}


# ============================================================================
# Dashboard
# ============================================================================


@router.get("/dashboard", response_model=DashboardStatsResponse)
async def get_dashboard_stats(
    staff_user: Annotated[User, Depends(get_current_staff_user)],
    db: AsyncSession = Depends(get_db),
) -> DashboardStatsResponse:
    """Customer, subscription, order and revenue figures."""
    now = datetime.now(UTC)
    month_ago = now - timedelta(days=30)

    customer_filter = User.role == UserRole.CUSTOMER.value
    total_customers = await db.scalar(select(func.count(User.id)).where(customer_filter))
    new_customers = await db.scalar(
        select(func.count(User.id)).where(customer_filter, User.created_at >= month_ago)
    )
    pending_customers = await db.scalar(
        select(func.count(User.id)).where(
            customer_filter, User.status == UserStatus.PENDING.value
        )
    )

    subscription_counts = await _count_by_status(db, Subscription)
    order_counts = await _count_by_status(db, Order)

    active = await db.execute(
        select(Subscription).where(Subscription.status == SubscriptionStatus.ACTIVE.value)
    )
    mrr = round(sum(_subscription_mrr(s) for s in active.scalars().all()), 2)

    revenue_this_month = await db.scalar(
        select(func.coalesce(func.sum(Payment.value), 0)).where(
            Payment.status.in_([PaymentStatus.RECEIVED.value, PaymentStatus.CONFIRMED.value]),
            Payment.payment_date >= month_ago.date(),
        )
    )

    return DashboardStatsResponse(
        customers=CustomerStats(
            total_customers=total_customers or 0,
            new_customers_this_month=new_customers or 0,
            pending_customers=pending_customers or 0,
        ),
        subscriptions=SubscriptionStats(
            active=subscription_counts.get(SubscriptionStatus.ACTIVE.value, 0),
            pending=subscription_counts.get(SubscriptionStatus.PENDING.value, 0),
            overdue=subscription_counts.get(SubscriptionStatus.OVERDUE.value, 0),
            paused=subscription_counts.get(SubscriptionStatus.PAUSED.value, 0),
            cancelled=subscription_counts.get(SubscriptionStatus.CANCELLED.value, 0),
        ),
        revenue=RevenueStats(
            monthly_recurring_revenue=mrr,
            annual_recurring_revenue=round(mrr * 12, 2),
            revenue_this_month=round(float(revenue_this_month or 0), 2),
        ),
        orders=OrderStats(
            pending=order_counts.get(OrderStatus.PENDING.value, 0),
            processing=order_counts.get(OrderStatus.PROCESSING.value, 0),
            shipped=order_counts.get(OrderStatus.SHIPPED.value, 0),
        ),
        generated_at=now,
    )


# ============================================================================
# Customers
# ============================================================================


@router.get("/customers", response_model=CustomerListResponse)
async def list_customers(
    staff_user: Annotated[User, Depends(get_current_staff_user)],
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None, pattern="^(pending|active|suspended|deleted)$"),
) -> CustomerListResponse:
    """
    List customers with their latest subscription.

    ``search`` matches email, name, phone or CPF/CNPJ.
    """
    query = select(User).where(User.role == UserRole.CUSTOMER.value)
    if search:
        pattern = f"%{escape_like(search)}%"
        query = query.where(
            or_(
                User.email.ilike(pattern, escape="\\"),
                User.name.ilike(pattern, escape="\\"),
                User.phone.ilike(pattern, escape="\\"),
                User.cpf_cnpj.ilike(pattern, escape="\\"),
            )
        )
    if status:
        query = query.where(User.status == status)

    total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0

    result = await db.execute(
        query.order_by(User.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    users = list(result.scalars().all())

    latest: Dict[str, Subscription] = {}
    if users:
        subs = await db.execute(
            select(Subscription)
            .where(Subscription.user_id.in_([u.id for u in users]))
            .order_by(Subscription.created_at.asc())
        )
        for subscription in subs.scalars().all():
            latest[subscription.user_id] = subscription

    customers: List[CustomerListItem] = []
    for user in users:
        item = CustomerListItem.model_validate(user)
        subscription = latest.get(user.id)
        if subscription is not None:
            item.subscription_status = subscription.status
            item.plan_id = subscription.plan_id
        customers.append(item)

    return CustomerListResponse(
        customers=customers,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=_total_pages(total, page_size),
    )


# ============================================================================
# Subscriptions
# ============================================================================


@router.get("/subscriptions", response_model=AdminSubscriptionListResponse)
async def list_subscriptions(
    staff_user: Annotated[User, Depends(get_current_staff_user)],
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(
        None, pattern="^(pending|active|overdue|paused|cancelled|refunded)$"
    ),
) -> AdminSubscriptionListResponse:
    filters = [Subscription.status == status] if status else []
    query = select(Subscription).where(*filters)

    total = await db.scalar(select(func.count(Subscription.id)).where(*filters)) or 0

    result = await db.execute(
        query.order_by(Subscription.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    subscriptions = [_subscription_item(s) for s in result.scalars().unique().all()]

    return AdminSubscriptionListResponse(
        subscriptions=subscriptions,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=_total_pages(total, page_size),
    )


@router.put("/subscriptions/{subscription_id}/status", response_model=AdminSubscriptionItem)
async def update_subscription_status(
    subscription_id: str,
    body: SubscriptionStatusUpdateRequest,
    request: Request,
    admin_user: Annotated[User, Depends(get_current_admin_user)],
    db: AsyncSession = Depends(get_db),
) -> AdminSubscriptionItem:
    """Change a subscription status, syncing the payment gateway."""
    subscription = await db.get(Subscription, subscription_id)
    if subscription is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscription not found",
        )

    old_status = subscription.status
    try:
        await SubscriptionService(db).change_status(subscription, body.status, body.reason)
    except InvalidTransition as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except AsaasError as e:
        logger.error("Asaas rejected status change for %s: %s", subscription_id, e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Payment gateway error",
        )

    await create_audit_log(
        db,
        admin_user,
        AuditAction.SUBSCRIPTION_STATUS_CHANGED,
        AuditTargetType.SUBSCRIPTION,
        subscription.id,
        f"Subscription status changed from {old_status} to {body.status}",
        metadata={"old_value": old_status, "new_value": body.status, "reason": body.reason},
        target_user_id=subscription.user_id,
        request=request,
    )
    await db.commit()

    return _subscription_item(subscription)


# ============================================================================
# Orders
# ============================================================================


@router.get("/orders", response_model=AdminOrderListResponse)
async def list_orders(
    staff_user: Annotated[User, Depends(get_current_staff_user)],
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(
        None, pattern="^(pending|processing|shipped|delivered|cancelled)$"
    ),
    user_id: Optional[str] = Query(None),
) -> AdminOrderListResponse:
    query = select(Order)
    if status:
        query = query.where(Order.status == status)
    if user_id:
        query = query.where(Order.user_id == user_id)

    total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0

    result = await db.execute(
        query.order_by(Order.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    orders = [AdminOrderItem.model_validate(o) for o in result.scalars().all()]

    return AdminOrderListResponse(
        orders=orders,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=_total_pages(total, page_size),
    )


@router.put("/orders/{order_id}", response_model=AdminOrderItem)
async def update_order(
    order_id: str,
    body: OrderUpdateRequest,
    request: Request,
    admin_user: Annotated[User, Depends(get_current_admin_user)],
    db: AsyncSession = Depends(get_db),
) -> AdminOrderItem:
    """Update shipment status and tracking code."""
    if body.status is None and body.tracking_code is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Nothing to update",
        )

    order = await db.get(Order, order_id)
    if order is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found",
        )
    if order.status in _FINAL_ORDER_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Order is already {order.status}",
        )

    changes: Dict[str, Dict[str, Optional[str]]] = {}
    now = datetime.now(UTC)

    if body.tracking_code is not None and body.tracking_code != order.tracking_code:
        changes["tracking_code"] = {"old": order.tracking_code, "new": body.tracking_code}
        order.tracking_code = body.tracking_code

    if body.status is not None and body.status != order.status:
        changes["status"] = {"old": order.status, "new": body.status}
        order.status = body.status
        if body.status == OrderStatus.SHIPPED.value:
            order.shipped_at = now
        elif body.status == OrderStatus.DELIVERED.value:
            order.delivered_at = now
            if order.shipped_at is None:
                order.shipped_at = now

    if changes:
        await create_audit_log(
            db,
            admin_user,
            AuditAction.ORDER_UPDATED,
            AuditTargetType.ORDER,
            order.id,
            f"Order updated: {', '.join(changes)}",
            metadata=changes,
            target_user_id=order.user_id,
            request=request,
        )
    await db.commit()

    return AdminOrderItem.model_validate(order)
