"""
User database model.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Index, String, Text, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class UserRole(str, Enum):
    """User roles enumeration."""

    CUSTOMER = "customer"
    SUPPORT = "support"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class UserStatus(str, Enum):
    """User account status enumeration."""

    PENDING = "pending"  # Created by checkout, password not set yet
    ACTIVE = "active"
    SUSPENDED = "suspended"
    DELETED = "deleted"  # Soft deleted


class User(Base, TimestampMixin):
    """Customer or staff account."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    # Basic info
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Authentication
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(
        String(50),
        default=UserRole.CUSTOMER.value,
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(50),
        default=UserStatus.ACTIVE.value,
        nullable=False,
    )
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Contact and billing identity
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    whatsapp: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    cpf_cnpj: Mapped[Optional[str]] = mapped_column(String(14), nullable=True)
    asaas_customer_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, unique=True
    )

    # Preferences
    preferences: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    """
    Structure:
    {
        "notifications": {
            "channels": {"email": {"enabled": true, "events": {...}}, ...},
            "quiet_hours": {...},
            "frequency": {"max_per_day": 3, ...},
            ...
        }
    }
    """

    # Login tracking
    last_login: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    login_count: Mapped[int] = mapped_column(default=0, nullable=False)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Soft delete
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_users_email_status", "email", "status"),
        Index("ix_users_asaas_customer", "asaas_customer_id"),
        Index("ix_users_role", "role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

    @property
    def is_active(self) -> bool:
        """Check if user account is active."""
        return self.status == UserStatus.ACTIVE.value and self.deleted_at is None

    @property
    def is_admin(self) -> bool:
        """Check if user has admin privileges."""
        return self.role in (UserRole.ADMIN.value, UserRole.SUPER_ADMIN.value)

    @property
    def is_super_admin(self) -> bool:
        """Check if user has super admin privileges."""
        return self.role == UserRole.SUPER_ADMIN.value

    @property
    def first_name(self) -> str:
        return self.name.split(" ")[0] if self.name else ""
