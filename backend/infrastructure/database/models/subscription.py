"""
Subscription, order and payment database models.
"""

from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional
from uuid import uuid4

from sqlalchemy import Date, DateTime, ForeignKey, Index, Numeric, String, Text, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin

if TYPE_CHECKING:
    from .user import User


class BillingInterval(str, Enum):
    """Plan billing interval."""

    MONTHLY = "monthly"
    ANNUAL = "annual"


class BillingType(str, Enum):
    """Asaas billing types."""

    PIX = "PIX"
    BOLETO = "BOLETO"
    CREDIT_CARD = "CREDIT_CARD"


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status."""

    PENDING = "pending"  # Waiting for first payment
    ACTIVE = "active"
    OVERDUE = "overdue"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class OrderStatus(str, Enum):
    """Lens shipment status."""

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment status as reported by Asaas."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    RECEIVED = "RECEIVED"
    OVERDUE = "OVERDUE"
    REFUNDED = "REFUNDED"
    CANCELLED = "CANCELLED"


class Subscription(Base, TimestampMixin):
    """Contact-lens subscription for a customer."""

    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    plan_id: Mapped[str] = mapped_column(String(50), nullable=False)
    billing_interval: Mapped[str] = mapped_column(
        String(20), default=BillingInterval.MONTHLY.value, nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), default=SubscriptionStatus.PENDING.value, nullable=False
    )
    payment_method: Mapped[str] = mapped_column(
        String(20), default=BillingType.PIX.value, nullable=False
    )
    amount: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)

    asaas_subscription_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, unique=True
    )
    next_billing_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    shipping_address: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    """
    Structure:
    {
        "cep": "01310-100",
        "street": "Avenida Paulista",
        "number": "1000",
        "complement": "Apto 12",
        "neighborhood": "Bela Vista",
        "city": "São Paulo",
        "state": "SP"
    }
    """

    paused_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    user: Mapped["User"] = relationship("User", lazy="joined")

    __table_args__ = (
        Index("ix_subscriptions_user_status", "user_id", "status"),
        Index("ix_subscriptions_next_billing", "status", "next_billing_date"),
    )

    def __repr__(self) -> str:
        return f"<Subscription(id={self.id}, plan={self.plan_id}, status={self.status})>"

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE.value


class Order(Base, TimestampMixin):
    """A lens shipment generated by a confirmed payment."""

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subscription_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("subscriptions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    payment_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("payments.id", ondelete="SET NULL"),
        nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(20), default=OrderStatus.PENDING.value, nullable=False
    )
    total_amount: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    tracking_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    shipping_address: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    estimated_delivery: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    shipped_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    delivered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_orders_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, status={self.status})>"


class Payment(Base, TimestampMixin):
    """Payment mirrored from Asaas."""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subscription_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("subscriptions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    asaas_payment_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=PaymentStatus.PENDING.value, nullable=False
    )
    billing_type: Mapped[str] = mapped_column(String(20), nullable=False)
    value: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    net_value: Mapped[Optional[float]] = mapped_column(
        Numeric(10, 2, asdecimal=False), nullable=True
    )
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    payment_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    invoice_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    bank_slip_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    pix_payload: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_payments_user_status", "user_id", "status"),
        Index("ix_payments_due_date", "due_date"),
    )

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, asaas_id={self.asaas_payment_id}, status={self.status})>"
