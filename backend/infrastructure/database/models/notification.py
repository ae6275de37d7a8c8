"""
Notification, engagement and prediction database models.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, Index, Integer, String, Text, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin


class NotificationChannel(str, Enum):
    """Delivery channel, in fallback priority order."""

    EMAIL = "EMAIL"
    WHATSAPP = "WHATSAPP"
    SMS = "SMS"
    PUSH = "PUSH"


class NotificationStatus(str, Enum):
    """Notification delivery status."""

    SCHEDULED = "SCHEDULED"
    SENDING = "SENDING"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    OPENED = "OPENED"
    CLICKED = "CLICKED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class NotificationType(str, Enum):
    """Notification purpose."""

    REMINDER = "REMINDER"
    PROMOTION = "PROMOTION"
    UPDATE = "UPDATE"
    ALERT = "ALERT"


class InteractionType(str, Enum):
    """User interaction with a notification."""

    SENT = "SENT"
    DELIVERED = "DELIVERED"
    OPENED = "OPENED"
    CLICKED = "CLICKED"
    DISMISSED = "DISMISSED"
    OPTED_OUT = "OPTED_OUT"
    CONVERTED = "CONVERTED"


# Statuses that count as "the user received it"
DELIVERED_STATUSES = (
    NotificationStatus.SENT.value,
    NotificationStatus.DELIVERED.value,
    NotificationStatus.OPENED.value,
    NotificationStatus.CLICKED.value,
)


class Notification(Base, TimestampMixin):
    """A single message to a user on one channel."""

    __tablename__ = "notifications"

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

    channel: Mapped[str] = mapped_column(String(20), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=NotificationStatus.SCHEDULED.value, nullable=False
    )
    subject: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    extra_data: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)

    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    opened_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    clicked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Message id returned by the WhatsApp/SMS provider, matched by status webhooks
    provider_message_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, index=True
    )

    interactions: Mapped[list["NotificationInteraction"]] = relationship(
        "NotificationInteraction",
        back_populates="notification",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="NotificationInteraction.created_at",
    )

    __table_args__ = (
        Index("ix_notifications_status_scheduled", "status", "scheduled_at"),
        Index("ix_notifications_user_sent", "user_id", "sent_at"),
        Index("ix_notifications_channel", "channel"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, channel={self.channel}, status={self.status})>"


class NotificationInteraction(Base, TimestampMixin):
    """Event recorded against a notification (sent, opened, opted out...)."""

    __tablename__ = "notification_interactions"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    notification_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("notifications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    extra_data: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)

    notification: Mapped["Notification"] = relationship(
        "Notification", back_populates="interactions"
    )

    __table_args__ = (
        Index("ix_interactions_user_type_created", "user_id", "type", "created_at"),
    )


class UserBehavior(Base, TimestampMixin):
    """Aggregated engagement profile, one row per user."""

    __tablename__ = "user_behaviors"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    email_open_rate: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    email_click_rate: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    whatsapp_open_rate: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    whatsapp_click_rate: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    sms_open_rate: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    sms_click_rate: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    push_open_rate: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    push_click_rate: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    best_hour_of_day: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    best_day_of_week: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # Sunday is 0
    average_response_time: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True
    )  # minutes
    preferred_frequency: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    current_fatigue_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    conversion_rate: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    last_engagement_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def open_rate(self, channel: str) -> float:
        return getattr(self, f"{channel.lower()}_open_rate", 0.0) or 0.0

    def click_rate(self, channel: str) -> float:
        return getattr(self, f"{channel.lower()}_click_rate", 0.0) or 0.0


class MLPrediction(Base, TimestampMixin):
    """Recorded channel/time prediction, later scored against the actual send."""

    __tablename__ = "ml_predictions"

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
    predicted_channel: Mapped[str] = mapped_column(String(20), nullable=False)
    predicted_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    features: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    model_version: Mapped[str] = mapped_column(String(20), nullable=False)

    actual_channel: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    actual_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    was_accurate: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)


class AnalyticsSnapshot(Base, TimestampMixin):
    """Daily roll-up of notification engagement."""

    __tablename__ = "analytics_snapshots"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    snapshot_date: Mapped[date] = mapped_column(Date, unique=True, nullable=False)

    total_sent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_delivered: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_opened: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_clicked: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_converted: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    engagement_rate: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    opt_out_rate: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    by_channel: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    model_accuracy: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
