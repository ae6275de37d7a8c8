"""
User engagement profile.

Rolls up the last 90 days of delivered notifications into a UserBehavior
row that the ML service reads for channel and timing decisions.
"""

import logging
from collections import defaultdict
from datetime import UTC, datetime, timedelta
from typing import Dict, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.models.notification import (
    DELIVERED_STATUSES,
    InteractionType,
    Notification,
    UserBehavior,
)
from services.ml_service import CHANNEL_ORDER, ENGAGED_TYPES, MLService, day_of_week

logger = logging.getLogger(__name__)

MIN_SENDS_PER_HOUR = 3
MAX_RESPONSE_MINUTES = 24 * 60
FATIGUE_INCREMENT = 5
FATIGUE_DECREMENT = 10


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _is_engaged(notification: Notification) -> bool:
    return any(i.type in ENGAGED_TYPES for i in notification.interactions)


def _has_interaction(notification: Notification, interaction_type: str) -> bool:
    return any(i.type == interaction_type for i in notification.interactions)


def calculate_channel_metrics(notifications: Sequence[Notification]) -> Dict[str, float]:
    """Open and click rate per channel, keyed like the UserBehavior columns."""
    metrics = {}
    for channel in CHANNEL_ORDER:
        channel_notifications = [n for n in notifications if n.channel == channel]
        prefix = channel.lower()
        total = len(channel_notifications)
        if not total:
            metrics[f"{prefix}_open_rate"] = 0.0
            metrics[f"{prefix}_click_rate"] = 0.0
            continue

        opened = sum(1 for n in channel_notifications if _has_interaction(n, InteractionType.OPENED.value))
        clicked = sum(1 for n in channel_notifications if _has_interaction(n, InteractionType.CLICKED.value))
        metrics[f"{prefix}_open_rate"] = opened / total
        metrics[f"{prefix}_click_rate"] = clicked / total
    return metrics


def _best_slot(counters: Dict[int, list]) -> Optional[int]:
    best_slot = None
    best_rate = 0.0
    for slot in sorted(counters):
        total, engaged = counters[slot]
        if total < MIN_SENDS_PER_HOUR:
            continue
        rate = engaged / total
        if rate > best_rate:
            best_rate = rate
            best_slot = slot
    return best_slot


def calculate_best_hour_of_day(notifications: Sequence[Notification]) -> Optional[int]:
    """Hour with the highest engagement rate among hours with at least 3 sends."""
    counters: Dict[int, list] = defaultdict(lambda: [0, 0])
    for notification in notifications:
        if not notification.sent_at:
            continue
        slot = counters[_aware(notification.sent_at).hour]
        slot[0] += 1
        if _is_engaged(notification):
            slot[1] += 1
    return _best_slot(counters)


def calculate_best_day_of_week(notifications: Sequence[Notification]) -> Optional[int]:
    """Same rule as the best hour, by weekday (Sunday is 0)."""
    counters: Dict[int, list] = defaultdict(lambda: [0, 0])
    for notification in notifications:
        if not notification.sent_at:
            continue
        slot = counters[day_of_week(_aware(notification.sent_at))]
        slot[0] += 1
        if _is_engaged(notification):
            slot[1] += 1
    return _best_slot(counters)


def calculate_average_response_time(notifications: Sequence[Notification]) -> Optional[int]:
    """Average minutes between send and first open/click, within a day."""
    response_times = []
    for notification in notifications:
        if not notification.sent_at:
            continue
        first = next((i for i in notification.interactions if i.type in ENGAGED_TYPES), None)
        if not first:
            continue
        minutes = (_aware(first.created_at) - _aware(notification.sent_at)).total_seconds() / 60
        if 0 <= minutes < MAX_RESPONSE_MINUTES:
            response_times.append(minutes)

    if not response_times:
        return None
    return round(sum(response_times) / len(response_times))


def calculate_preferred_frequency(notifications: Sequence[Notification]) -> int:
    """
    Daily volume tier (1, 3 or 5 per day) with the best engagement.

    Days with one send fall in tier 1, two or three in tier 3, more in tier 5.
    """
    daily: Dict[str, list] = defaultdict(lambda: [0, 0])
    for notification in notifications:
        if not notification.sent_at:
            continue
        day = daily[_aware(notification.sent_at).date().isoformat()]
        day[0] += 1
        if _is_engaged(notification):
            day[1] += 1

    tiers: Dict[int, list] = {1: [], 3: [], 5: []}
    for total, engaged in daily.values():
        rate = engaged / total
        if total == 1:
            tiers[1].append(rate)
        elif total <= 3:
            tiers[3].append(rate)
        else:
            tiers[5].append(rate)

    best_frequency = 3
    best_rate = 0.0
    for frequency, rates in tiers.items():
        if not rates:
            continue
        average = sum(rates) / len(rates)
        if average > best_rate:
            best_rate = average
            best_frequency = frequency
    return best_frequency


def calculate_conversion_rate(notifications: Sequence[Notification]) -> float:
    if not notifications:
        return 0.0
    conversions = sum(
        1 for n in notifications if _has_interaction(n, InteractionType.CONVERTED.value)
    )
    return conversions / len(notifications)


class BehaviorService:
    """
    Service for maintaining per-user engagement profiles.
    """

    def __init__(self, db: AsyncSession, ml_service: Optional[MLService] = None):
        self.db = db
        self.ml_service = ml_service or MLService(db)

    async def get_user_behavior(self, user_id: str) -> Optional[UserBehavior]:
        result = await self.db.execute(select(UserBehavior).where(UserBehavior.user_id == user_id))
        return result.scalar_one_or_none()

    async def update_user_behavior(self, user_id: str) -> UserBehavior:
        """
        Recompute and upsert the user's engagement profile.

        Args:
            user_id: User to profile

        Returns:
            The updated UserBehavior row
        """
        since = datetime.now(UTC) - timedelta(days=90)
        result = await self.db.execute(
            select(Notification).where(
                Notification.user_id == user_id,
                Notification.sent_at >= since,
                Notification.status.in_(DELIVERED_STATUSES),
            )
        )
        notifications = result.scalars().all()

        values = calculate_channel_metrics(notifications)
        values.update(
            best_hour_of_day=calculate_best_hour_of_day(notifications),
            best_day_of_week=calculate_best_day_of_week(notifications),
            average_response_time=calculate_average_response_time(notifications),
            preferred_frequency=calculate_preferred_frequency(notifications),
            conversion_rate=calculate_conversion_rate(notifications),
            current_fatigue_score=await self.ml_service.calculate_fatigue_score(user_id),
        )

        engagement_times = [
            _aware(i.created_at)
            for n in notifications
            for i in n.interactions
            if i.type in ENGAGED_TYPES
        ]
        if engagement_times:
            values["last_engagement_at"] = max(engagement_times)

        behavior = await self.get_user_behavior(user_id)
        if behavior is None:
            behavior = UserBehavior(user_id=user_id, **values)
            self.db.add(behavior)
        else:
            for key, value in values.items():
                setattr(behavior, key, value)

        await self.db.flush()
        logger.debug("Updated behavior profile for user %s", user_id)
        return behavior

    async def increment_fatigue_score(self, user_id: str) -> None:
        behavior = await self.get_user_behavior(user_id)
        if behavior:
            behavior.current_fatigue_score = min(
                100.0, (behavior.current_fatigue_score or 0) + FATIGUE_INCREMENT
            )
            await self.db.flush()

    async def decrease_fatigue_score(self, user_id: str) -> None:
        behavior = await self.get_user_behavior(user_id)
        if behavior:
            behavior.current_fatigue_score = max(
                0.0, (behavior.current_fatigue_score or 0) - FATIGUE_DECREMENT
            )
            await self.db.flush()
