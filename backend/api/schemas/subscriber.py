"""
Subscriber area schemas.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from api.schemas.checkout import ShippingAddress


class SubscriptionResponse(BaseModel):
    id: str
    plan_id: str
    plan_name: Optional[str] = None
    billing_interval: str
    status: str
    payment_method: str
    amount: float
    next_billing_date: Optional[date] = None
    shipping_address: Optional[Dict[str, Any]] = None
    paused_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AddressUpdateRequest(ShippingAddress):
    pass


class PaymentMethodUpdateRequest(BaseModel):
    billing_type: Literal["PIX", "BOLETO", "CREDIT_CARD"]


class PauseRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class OrderResponse(BaseModel):
    id: str
    subscription_id: Optional[str] = None
    status: str
    total_amount: float
    tracking_code: Optional[str] = None
    estimated_delivery: Optional[date] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderListResponse(BaseModel):
    orders: List[OrderResponse]
    total: int


class PaymentResponse(BaseModel):
    id: str
    asaas_payment_id: str
    status: str
    billing_type: str
    value: float
    due_date: Optional[date] = None
    payment_date: Optional[date] = None
    invoice_url: Optional[str] = None
    bank_slip_url: Optional[str] = None
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PaymentSummary(BaseModel):
    total_paid: float
    total_pending: float
    total_overdue: float
    on_time_payment_rate: int
    count: int


class PaymentHistoryResponse(BaseModel):
    payments: List[PaymentResponse]
    summary: PaymentSummary


class NotificationPreferencesUpdate(BaseModel):
    """Partial notification preferences; nested keys are merged."""

    channels: Optional[Dict[str, Any]] = None
    quiet_hours: Optional[Dict[str, Any]] = None
    frequency: Optional[Dict[str, Any]] = None
    fallback: Optional[Dict[str, Any]] = None
    language: Optional[str] = None
    format: Optional[Literal["html", "text"]] = None
