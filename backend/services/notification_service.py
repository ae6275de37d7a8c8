"""
Notification persistence and channel dispatch.

Creates scheduled notifications, sends them through the email, WhatsApp,
SMS and push adapters, and records interactions against them.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.email.resend_adapter import ResendEmailService, email_service
from adapters.messaging.sendpulse_adapter import (
    SendPulseAdapter,
    SendPulseError,
    get_sendpulse_adapter,
)
from adapters.push.fcm_adapter import FCMError, FCMPushService, push_service
from infrastructure.database.models.notification import (
    InteractionType,
    Notification,
    NotificationChannel,
    NotificationInteraction,
    NotificationStatus,
)
from infrastructure.database.models.user import User

logger = logging.getLogger(__name__)

# Interactions that move the notification forward
_INTERACTION_STATUS = {
    InteractionType.DELIVERED.value: (NotificationStatus.DELIVERED.value, "delivered_at"),
    InteractionType.OPENED.value: (NotificationStatus.OPENED.value, "opened_at"),
    InteractionType.CLICKED.value: (NotificationStatus.CLICKED.value, "clicked_at"),
}


class DeliveryError(Exception):
    """Raised when a notification cannot be handed to its channel."""

    pass


@dataclass
class SendResult:
    success: bool
    notification_id: str
    channel: str
    status: str
    sent_at: Optional[datetime] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "notification_id": self.notification_id,
            "channel": self.channel,
            "status": self.status,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "error": self.error,
        }


class NotificationService:
    """
    Service for notification lifecycle and delivery.

    Adapters default to the shared instances; tests pass mocks.
    """

    def __init__(
        self,
        db: AsyncSession,
        email: Optional[ResendEmailService] = None,
        messaging: Optional[SendPulseAdapter] = None,
        push: Optional[FCMPushService] = None,
    ):
        self.db = db
        self.email = email or email_service
        self.messaging = messaging or get_sendpulse_adapter()
        self.push = push or push_service

    async def create_notification(
        self,
        user_id: str,
        channel: str,
        type: str,
        content: str,
        subject: Optional[str] = None,
        metadata: Optional[dict] = None,
        scheduled_at: Optional[datetime] = None,
    ) -> Notification:
        """
        Create a notification in SCHEDULED state.

        Args:
            user_id: Recipient
            channel: NotificationChannel value
            type: NotificationType value
            content: Message body (HTML for email, text elsewhere)
            subject: Email subject / push title
            metadata: Free-form data (phone, push_token, quick_replies...)
            scheduled_at: When to send, defaults to now

        Returns:
            The flushed Notification
        """
        notification = Notification(
            user_id=user_id,
            channel=NotificationChannel(channel).value,
            type=type,
            status=NotificationStatus.SCHEDULED.value,
            subject=subject,
            content=content,
            extra_data=metadata or {},
            scheduled_at=scheduled_at or datetime.now(UTC),
            interactions=[],
        )
        self.db.add(notification)
        await self.db.flush()

        logger.info(
            "Notification %s scheduled on %s for %s",
            notification.id,
            notification.channel,
            notification.scheduled_at,
        )
        return notification

    async def get_notification(self, notification_id: str) -> Optional[Notification]:
        return await self.db.get(Notification, notification_id)

    async def get_by_provider_message_id(self, message_id: str) -> Optional[Notification]:
        result = await self.db.execute(
            select(Notification).where(Notification.provider_message_id == message_id)
        )
        return result.scalars().first()

    async def mark_failed(self, notification: Notification, error: str) -> None:
        """Mark a notification FAILED after the provider reported a delivery error."""
        notification.status = NotificationStatus.FAILED.value
        notification.error_message = error
        await self.db.flush()

    async def send_notification(self, notification_id: str) -> SendResult:
        """
        Deliver a notification through its channel.

        The notification ends up SENT (with a SENT interaction) or FAILED
        with the error message.

        Raises:
            ValueError: If the notification does not exist
        """
        notification = await self.get_notification(notification_id)
        if not notification:
            raise ValueError(f"Notification {notification_id} not found")

        notification.status = NotificationStatus.SENDING.value
        await self.db.flush()

        try:
            user = await self.db.get(User, notification.user_id)
            if not user:
                raise DeliveryError("User not found")
            await self._dispatch(notification, user)
        except (DeliveryError, SendPulseError, FCMError) as e:
            notification.status = NotificationStatus.FAILED.value
            notification.error_message = str(e)
            await self.db.flush()
            logger.warning(
                "Notification %s failed on %s: %s", notification.id, notification.channel, e
            )
            return SendResult(
                success=False,
                notification_id=notification.id,
                channel=notification.channel,
                status=notification.status,
                error=str(e),
            )

        sent_at = datetime.now(UTC)
        notification.status = NotificationStatus.SENT.value
        notification.sent_at = sent_at
        notification.error_message = None
        await self.record_interaction(notification.id, notification.user_id, InteractionType.SENT.value)

        logger.info(
            "Notification %s sent",
            notification.id,
            extra={"notification_id": notification.id, "channel": notification.channel},
        )
        return SendResult(
            success=True,
            notification_id=notification.id,
            channel=notification.channel,
            status=notification.status,
            sent_at=sent_at,
        )

    async def _dispatch(self, notification: Notification, user: User) -> None:
        metadata = notification.extra_data or {}
        channel = notification.channel

        if channel == NotificationChannel.EMAIL.value:
            sent = await self.email.send_email(
                to_email=user.email,
                subject=notification.subject or "Notificação - SV Lentes",
                html=notification.content,
            )
            if not sent:
                raise DeliveryError("Email delivery failed")

        elif channel == NotificationChannel.WHATSAPP.value:
            phone = user.whatsapp or user.phone or metadata.get("phone")
            if not phone:
                raise DeliveryError("Phone number not available")
            quick_replies = metadata.get("quick_replies") or []
            if quick_replies:
                message = await self.messaging.send_message_with_quick_replies(
                    phone, notification.content, quick_replies
                )
            else:
                message = await self.messaging.send_message(phone, notification.content)
            notification.provider_message_id = message.message_id

        elif channel == NotificationChannel.SMS.value:
            phone = user.phone or metadata.get("phone")
            if not phone:
                raise DeliveryError("Phone number not available")
            message = await self.messaging.send_sms(phone, notification.content)
            notification.provider_message_id = message.message_id

        elif channel == NotificationChannel.PUSH.value:
            token = metadata.get("push_token")
            if not token:
                raise DeliveryError("Push token not available")
            data = {k: v for k, v in metadata.items() if k != "push_token"}
            data["notification_id"] = notification.id
            sent = await self.push.send(
                token,
                notification.subject or "SV Lentes",
                notification.content,
                data,
            )
            if not sent:
                raise DeliveryError("Push delivery failed")

        else:
            raise DeliveryError(f"Unsupported channel: {channel}")

    async def record_interaction(
        self,
        notification_id: str,
        user_id: str,
        type: str,
        metadata: Optional[dict] = None,
    ) -> NotificationInteraction:
        """
        Record an interaction. DELIVERED, OPENED and CLICKED also advance the
        notification status and stamp the matching timestamp.

        Raises:
            ValueError: If the notification does not exist
        """
        notification = await self.get_notification(notification_id)
        if not notification:
            raise ValueError(f"Notification {notification_id} not found")

        interaction = NotificationInteraction(
            user_id=user_id,
            type=InteractionType(type).value,
            extra_data=metadata or {},
        )
        notification.interactions.append(interaction)

        transition = _INTERACTION_STATUS.get(interaction.type)
        if transition:
            status, timestamp_field = transition
            notification.status = status
            setattr(notification, timestamp_field, datetime.now(UTC))

        await self.db.flush()
        return interaction

    async def get_notifications_by_user(self, user_id: str, limit: int = 50) -> List[Notification]:
        result = await self.db.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.scheduled_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_scheduled_notifications(self, limit: int = 100) -> List[Notification]:
        """
        Due notifications, oldest first.

        Rows locked by another worker are skipped on PostgreSQL.
        """
        result = await self.db.execute(
            select(Notification)
            .where(
                Notification.status == NotificationStatus.SCHEDULED.value,
                Notification.scheduled_at <= datetime.now(UTC),
            )
            .order_by(Notification.scheduled_at.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return list(result.scalars().all())

    async def claim_notification(self, notification_id: str) -> bool:
        """
        Move a due notification from SCHEDULED to SENDING.

        Returns:
            False if another worker claimed it first or it was cancelled
        """
        result = await self.db.execute(
            update(Notification)
            .where(
                Notification.id == notification_id,
                Notification.status == NotificationStatus.SCHEDULED.value,
            )
            .values(status=NotificationStatus.SENDING.value)
        )
        return result.rowcount == 1

    async def cancel_notification(self, notification_id: str) -> bool:
        """
        Cancel a notification that has not been sent yet.

        Returns:
            False if the notification is missing or no longer SCHEDULED
        """
        notification = await self.get_notification(notification_id)
        if not notification or notification.status != NotificationStatus.SCHEDULED.value:
            return False

        notification.status = NotificationStatus.CANCELLED.value
        await self.db.flush()
        logger.info("Notification %s cancelled", notification_id)
        return True
