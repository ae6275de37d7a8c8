"""
Reminder orchestrator.

Ties together fatigue checks, ML channel/time selection, notification
delivery with fallback, interaction tracking and user preferences.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import flag_modified

from core.preferences import merge_preferences
from infrastructure.database.models.notification import InteractionType, Notification
from infrastructure.database.models.user import User
from services.behavior_service import BehaviorService
from services.ml_service import MLService
from services.notification_service import NotificationService, SendResult

logger = logging.getLogger(__name__)


class FatigueLimitExceeded(Exception):
    """Raised when a user should not receive another notification now."""

    def __init__(self, user_id: str):
        super().__init__("User fatigue score too high")
        self.user_id = user_id


@dataclass
class ReminderInput:
    user_id: str
    type: str
    content: str
    subject: Optional[str] = None
    preferred_channel: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class ReminderOrchestrator:
    """
    High-level reminder workflow over a single database session.

    The caller owns the transaction: methods flush, never commit.
    """

    def __init__(
        self,
        db: AsyncSession,
        notification_service: Optional[NotificationService] = None,
        ml_service: Optional[MLService] = None,
        behavior_service: Optional[BehaviorService] = None,
    ):
        self.db = db
        self.notifications = notification_service or NotificationService(db)
        self.ml = ml_service or MLService(db)
        self.behavior = behavior_service or BehaviorService(db, ml_service=self.ml)

    async def create_intelligent_reminder(self, data: ReminderInput) -> str:
        """
        Schedule a reminder on the best channel at the best time.

        An explicit preferred channel wins over the prediction and defaults
        to sending now.

        Returns:
            The notification id

        Raises:
            FatigueLimitExceeded: If the user is fatigued or at the daily limit
        """
        if not await self.ml.should_send_notification(data.user_id):
            raise FatigueLimitExceeded(data.user_id)

        if data.preferred_channel:
            channel = data.preferred_channel
            scheduled_at = data.scheduled_at or datetime.now(UTC)
            metadata = dict(data.metadata)
        else:
            preferences = await self.get_user_preferences(data.user_id)
            selection = await self.ml.select_channel_with_fallback(data.user_id, preferences)
            channel = selection.primary
            scheduled_at = data.scheduled_at or selection.optimal_time or datetime.now(UTC)
            metadata = {**data.metadata, "ml_prediction_id": selection.prediction_id}

        notification = await self.notifications.create_notification(
            user_id=data.user_id,
            channel=channel,
            type=data.type,
            content=data.content,
            subject=data.subject,
            metadata=metadata,
            scheduled_at=scheduled_at,
        )
        return notification.id

    async def send_with_fallback(self, notification_id: str) -> SendResult:
        """
        Send a notification and, if it fails, resend right away on the first
        fallback channel.

        Raises:
            ValueError: If the notification does not exist
        """
        notification = await self.notifications.get_notification(notification_id)
        if not notification:
            raise ValueError(f"Notification {notification_id} not found")

        result = await self.notifications.send_notification(notification_id)
        await self._score_prediction(notification, result)
        if result.success:
            return result

        preferences = await self.get_user_preferences(notification.user_id)
        selection = await self.ml.select_channel_with_fallback(notification.user_id, preferences)
        fallback = [c for c in selection.fallback if c != notification.channel]
        if not fallback:
            return result

        fallback_notification = await self.notifications.create_notification(
            user_id=notification.user_id,
            channel=fallback[0],
            type=notification.type,
            content=notification.content,
            subject=notification.subject,
            metadata={
                **(notification.extra_data or {}),
                "original_notification_id": notification.id,
                "is_fallback": True,
            },
            scheduled_at=datetime.now(UTC),
        )
        logger.info(
            "Notification %s failed on %s, falling back to %s",
            notification.id,
            notification.channel,
            fallback[0],
        )
        return await self.notifications.send_notification(fallback_notification.id)

    async def _score_prediction(self, notification: Notification, result: SendResult) -> None:
        prediction_id = (notification.extra_data or {}).get("ml_prediction_id")
        if prediction_id and result.success and result.sent_at:
            await self.ml.update_prediction_accuracy(prediction_id, result.channel, result.sent_at)

    async def process_scheduled_notifications(self, limit: int = 100) -> int:
        """
        Send every due notification.

        Each row is claimed before sending so concurrent runs never send it
        twice. Each row runs in its own savepoint; a failure rolls back only
        that row.

        Returns:
            How many notifications were processed without raising
        """
        due = await self.notifications.get_scheduled_notifications(limit)
        due_ids = [notification.id for notification in due]
        processed = 0
        for notification_id in due_ids:
            try:
                async with self.db.begin_nested():
                    if not await self.notifications.claim_notification(notification_id):
                        logger.info("Notification %s already claimed", notification_id)
                        continue
                    await self.send_with_fallback(notification_id)
                processed += 1
            except Exception as e:
                logger.error(
                    "Failed to process notification %s: %s", notification_id, e, exc_info=True
                )
        if due:
            logger.info("Processed %d of %d due notifications", processed, len(due))
        return processed

    async def handle_interaction(
        self,
        notification_id: str,
        user_id: str,
        type: str,
        metadata: Optional[dict] = None,
    ) -> None:
        """Record an interaction and update the user's engagement profile."""
        await self.notifications.record_interaction(notification_id, user_id, type, metadata)
        await self.behavior.update_user_behavior(user_id)

        if type in (InteractionType.OPENED.value, InteractionType.CLICKED.value):
            await self.behavior.decrease_fatigue_score(user_id)
        elif type in (InteractionType.DISMISSED.value, InteractionType.OPTED_OUT.value):
            await self.behavior.increment_fatigue_score(user_id)

    async def create_batch_reminders(self, inputs: List[ReminderInput]) -> List[str]:
        """Create reminders for many users, skipping the ones that fail."""
        created = []
        for data in inputs:
            try:
                created.append(await self.create_intelligent_reminder(data))
            except FatigueLimitExceeded:
                logger.info("Skipping reminder for fatigued user %s", data.user_id)
            except ValueError as e:
                logger.warning("Failed to create reminder for user %s: %s", data.user_id, e)
        return created

    async def get_user_history(self, user_id: str, limit: int = 50) -> List[Notification]:
        return await self.notifications.get_notifications_by_user(user_id, limit)

    async def cancel_reminder(self, notification_id: str) -> bool:
        return await self.notifications.cancel_notification(notification_id)

    async def get_user_preferences(self, user_id: str) -> Dict[str, Any]:
        """Notification preferences merged over the defaults."""
        user = await self.db.get(User, user_id)
        stored = ((user.preferences or {}).get("notifications") if user else None) or {}
        return merge_preferences(stored)

    async def update_user_preferences(self, user_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge ``changes`` into the stored preferences.

        Raises:
            ValueError: If the user does not exist
        """
        user = await self.db.get(User, user_id)
        if not user:
            raise ValueError(f"User {user_id} not found")

        stored = dict(user.preferences or {})
        updated = merge_preferences(stored.get("notifications"), changes)
        updated["updated_at"] = datetime.now(UTC).isoformat()
        stored["notifications"] = updated
        user.preferences = stored
        flag_modified(user, "preferences")
        await self.db.flush()
        return updated

