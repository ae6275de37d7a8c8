"""
Admin API schemas for the back-office dashboard and management.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from api.schemas.subscriber import OrderResponse, SubscriptionResponse

# ============================================================================
# Dashboard
# ============================================================================


class CustomerStats(BaseModel):
    """Customer counts for the dashboard."""

    total_customers: int = Field(..., description="Customer accounts")
    new_customers_this_month: int = Field(..., description="Customers created in past 30 days")
    pending_customers: int = Field(..., description="Checkout started, password not set")


class SubscriptionStats(BaseModel):
    """Subscription counts by status."""

    active: int
    pending: int
    overdue: int
    paused: int
    cancelled: int


class RevenueStats(BaseModel):
    """Revenue figures in BRL."""

    monthly_recurring_revenue: float = Field(..., description="MRR from active subscriptions")
    annual_recurring_revenue: float = Field(..., description="MRR x 12")
    revenue_this_month: float = Field(..., description="Payments received in past 30 days")


class OrderStats(BaseModel):
    pending: int
    processing: int
    shipped: int


class DashboardStatsResponse(BaseModel):
    """Main dashboard statistics."""

    customers: CustomerStats
    subscriptions: SubscriptionStats
    revenue: RevenueStats
    orders: OrderStats
    generated_at: datetime


# ============================================================================
# Customers
# ============================================================================


class CustomerListItem(BaseModel):
    id: str
    email: str
    name: str
    status: str
    phone: Optional[str] = None
    created_at: datetime
    last_login: Optional[datetime] = None
    subscription_status: Optional[str] = None
    plan_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CustomerListResponse(BaseModel):
    customers: List[CustomerListItem]
    total: int
    page: int
    page_size: int
    total_pages: int


# ============================================================================
# Subscriptions
# ============================================================================


class AdminSubscriptionItem(SubscriptionResponse):
    user_id: str
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    cancellation_reason: Optional[str] = None


class AdminSubscriptionListResponse(BaseModel):
    subscriptions: List[AdminSubscriptionItem]
    total: int
    page: int
    page_size: int
    total_pages: int


class SubscriptionStatusUpdateRequest(BaseModel):
    status: Literal["pending", "active", "overdue", "paused", "cancelled", "refunded"]
    reason: Optional[str] = Field(None, max_length=500)


# ============================================================================
# Orders
# ============================================================================


class AdminOrderItem(OrderResponse):
    user_id: str
    shipping_address: Optional[dict] = None


class AdminOrderListResponse(BaseModel):
    orders: List[AdminOrderItem]
    total: int
    page: int
    page_size: int
    total_pages: int


class OrderUpdateRequest(BaseModel):
    """At least one field must be set."""

    status: Optional[Literal["pending", "processing", "shipped", "delivered", "cancelled"]] = None
    tracking_code: Optional[str] = Field(None, min_length=1, max_length=100)
