"""
SQLAlchemy database models.
"""

from .admin import AdminAuditLog, AuditAction, AuditTargetType
from .base import Base, TimestampMixin
from .notification import (
    DELIVERED_STATUSES,
    AnalyticsSnapshot,
    InteractionType,
    MLPrediction,
    Notification,
    NotificationChannel,
    NotificationInteraction,
    NotificationStatus,
    NotificationType,
    UserBehavior,
)
from .subscription import (
    BillingInterval,
    BillingType,
    Order,
    OrderStatus,
    Payment,
    PaymentStatus,
    Subscription,
    SubscriptionStatus,
)
from .user import User, UserRole, UserStatus

__all__ = [
    "Base",
    "TimestampMixin",
    "User",
    "UserRole",
    "UserStatus",
    "Subscription",
    "SubscriptionStatus",
    "BillingInterval",
    "BillingType",
    "Order",
    "OrderStatus",
    "Payment",
    "PaymentStatus",
    "Notification",
    "NotificationChannel",
    "NotificationStatus",
    "NotificationType",
    "NotificationInteraction",
    "InteractionType",
    "DELIVERED_STATUSES",
    "UserBehavior",
    "MLPrediction",
    "AnalyticsSnapshot",
    "AdminAuditLog",
    "AuditAction",
    "AuditTargetType",
]
