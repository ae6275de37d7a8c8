"""
Admin database models.
"""

from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import Index, String, JSON, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class AuditAction(str, Enum):
    """Admin audit log action types."""

    SUBSCRIPTION_STATUS_CHANGED = "subscription_status_changed"
    ORDER_UPDATED = "order_updated"
    REMINDERS_BATCH_CREATED = "reminders_batch_created"
    ANALYTICS_SNAPSHOT_CREATED = "analytics_snapshot_created"
    DATA_EXPORT = "data_export"


class AuditTargetType(str, Enum):
    """Admin audit log target types."""

    USER = "user"
    SUBSCRIPTION = "subscription"
    ORDER = "order"
    NOTIFICATION = "notification"
    SYSTEM = "system"


class AdminAuditLog(Base, TimestampMixin):
    """Admin audit log model for tracking administrative actions."""

    __tablename__ = "admin_audit_logs"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    admin_user_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    action: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )

    target_user_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    target_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
    )
    target_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    """
    Structure:
    {
        "old_value": "active",
        "new_value": "paused",
        "reason": "Customer request"
    }
    """

    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)  # IPv6 max length

    __table_args__ = (
        Index("ix_admin_audit_admin_action", "admin_user_id", "action"),
        Index("ix_admin_audit_target", "target_type", "target_id"),
        Index("ix_admin_audit_created", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AdminAuditLog(id={self.id}, action={self.action}, admin_id={self.admin_user_id})>"
