"""
Channel and send-time prediction for reminders.

Rule-based scoring over the user's engagement history: each channel gets a
base weight blended with how often the user engaged on it, damped by the
current fatigue score. Predictions are stored so their accuracy can be
measured once the notification is actually sent.

All times are UTC.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.models.notification import (
    DELIVERED_STATUSES,
    InteractionType,
    MLPrediction,
    Notification,
    NotificationChannel,
    NotificationInteraction,
    UserBehavior,
)
from infrastructure.database.models.user import User

logger = logging.getLogger(__name__)

MODEL_VERSION = "1.0.0-mvp"

CHANNEL_ORDER = [
    NotificationChannel.EMAIL.value,
    NotificationChannel.WHATSAPP.value,
    NotificationChannel.SMS.value,
    NotificationChannel.PUSH.value,
]

CHANNEL_BASE_WEIGHTS = {
    NotificationChannel.EMAIL.value: 0.30,
    NotificationChannel.WHATSAPP.value: 0.40,
    NotificationChannel.SMS.value: 0.20,
    NotificationChannel.PUSH.value: 0.25,
}

ENGAGED_TYPES = (InteractionType.OPENED.value, InteractionType.CLICKED.value)

# Fatigue score above which nothing is sent
FATIGUE_BLOCK_THRESHOLD = 70
DEFAULT_PREFERRED_FREQUENCY = 3

# Outside 08:00-21:00 the send hour is moved
EARLIEST_HOUR = 8
LATEST_HOUR = 21
EARLY_FALLBACK_HOUR = 9
LATE_FALLBACK_HOUR = 19

ACCURACY_WINDOW = timedelta(minutes=30)


@dataclass
class MLFeatures:
    hour_of_day: int
    day_of_week: int
    channel_history: Dict[str, int]
    recent_engagement: float
    fatigue_score: float
    avg_response_time: int
    preferred_frequency: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ChannelPrediction:
    channel: str
    time: datetime
    confidence: float
    features: MLFeatures
    prediction_id: Optional[str] = None


@dataclass
class ChannelSelection:
    primary: str
    fallback: List[str] = field(default_factory=list)
    score: float = 0.0
    reason: str = ""
    optimal_time: Optional[datetime] = None
    prediction_id: Optional[str] = None


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def day_of_week(value: datetime) -> int:
    """Weekday number with Sunday as 0."""
    return value.isoweekday() % 7


def calculate_channel_score(channel: str, features: MLFeatures) -> float:
    """Blend the channel's base weight (30%) with normalised engagement (70%)."""
    engagement = min(features.channel_history.get(channel, 0) / 10, 1.0)
    return CHANNEL_BASE_WEIGHTS[channel] * 0.3 + engagement * 0.7


def predict_optimal_time(features: MLFeatures, now: Optional[datetime] = None) -> datetime:
    """
    Next occurrence of the feature hour, on the hour.

    Hour 0 falls back to the current hour. Hours outside 08:00-21:00 are
    moved to the morning or evening fallback.
    """
    now = now or datetime.now(UTC)
    target_hour = features.hour_of_day or now.hour
    if target_hour < EARLIEST_HOUR:
        target_hour = EARLY_FALLBACK_HOUR
    if target_hour > LATEST_HOUR:
        target_hour = LATE_FALLBACK_HOUR

    target = now.replace(hour=target_hour, minute=0, second=0, microsecond=0)
    if now.hour >= target_hour:
        target += timedelta(days=1)
    return target


def is_channel_enabled(preferences: Optional[dict], channel: str) -> bool:
    """Only an explicit ``enabled: False`` disables a channel."""
    channels = (preferences or {}).get("channels") or {}
    return (channels.get(channel.lower()) or {}).get("enabled") is not False


class MLService:
    """
    Service for channel selection, timing and fatigue control.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_behavior(self, user_id: str) -> Optional[UserBehavior]:
        result = await self.db.execute(select(UserBehavior).where(UserBehavior.user_id == user_id))
        return result.scalar_one_or_none()

    async def extract_features(self, user_id: str) -> MLFeatures:
        """
        Build prediction features from the last 90 days of notifications.
        """
        now = datetime.now(UTC)
        since_90d = now - timedelta(days=90)
        since_7d = now - timedelta(days=7)

        behavior = await self._get_behavior(user_id)

        result = await self.db.execute(
            select(Notification).where(
                Notification.user_id == user_id,
                Notification.created_at >= since_90d,
            )
        )
        notifications = result.scalars().all()

        channel_history = {channel: 0 for channel in CHANNEL_ORDER}
        recent_total = 0
        recent_engaged = 0
        for notification in notifications:
            engaged = any(i.type in ENGAGED_TYPES for i in notification.interactions)
            if engaged:
                channel_history[notification.channel] = channel_history.get(notification.channel, 0) + 1
            if _aware(notification.created_at) >= since_7d:
                recent_total += 1
                if engaged:
                    recent_engaged += 1

        return MLFeatures(
            hour_of_day=now.hour,
            day_of_week=day_of_week(now),
            channel_history=channel_history,
            recent_engagement=recent_engaged / recent_total if recent_total else 0.0,
            fatigue_score=await self.calculate_fatigue_score(user_id),
            avg_response_time=(behavior.average_response_time or 0) if behavior else 0,
            preferred_frequency=(
                behavior.preferred_frequency if behavior and behavior.preferred_frequency
                else DEFAULT_PREFERRED_FREQUENCY
            ),
        )

    async def calculate_fatigue_score(self, user_id: str) -> float:
        """
        Fatigue score from 0 to 100; higher means send less.

        Adds points for volume in the last 24h, for a low open/click rate
        and for any opt-out in the last 7 days.
        """
        now = datetime.now(UTC)
        since_24h = now - timedelta(hours=24)
        since_7d = now - timedelta(days=7)

        recent_count = await self.db.scalar(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.sent_at >= since_24h,
            )
        ) or 0

        engaged_count = await self.db.scalar(
            select(func.count(NotificationInteraction.id)).where(
                NotificationInteraction.user_id == user_id,
                NotificationInteraction.created_at >= since_24h,
                NotificationInteraction.type.in_(ENGAGED_TYPES),
            )
        ) or 0

        opt_out_count = await self.db.scalar(
            select(func.count(NotificationInteraction.id)).where(
                NotificationInteraction.user_id == user_id,
                NotificationInteraction.created_at >= since_7d,
                NotificationInteraction.type == InteractionType.OPTED_OUT.value,
            )
        ) or 0

        engagement_rate = engaged_count / recent_count if recent_count else 0.0

        score = 0
        if recent_count > 5:
            score += 30
        elif recent_count > 3:
            score += 20
        elif recent_count > 1:
            score += 10

        if engagement_rate < 0.2:
            score += 30
        elif engagement_rate < 0.4:
            score += 20
        elif engagement_rate < 0.6:
            score += 10

        if opt_out_count > 0:
            score += 40

        return float(min(100, score))

    async def predict_optimal_channel(self, user_id: str) -> ChannelPrediction:
        """
        Score every channel, pick the best one and store the prediction.
        """
        features = await self.extract_features(user_id)
        fatigue_multiplier = 1 - features.fatigue_score / 200

        scores = {
            channel: calculate_channel_score(channel, features) * fatigue_multiplier
            for channel in CHANNEL_ORDER
        }
        # first channel wins ties
        best_channel = max(CHANNEL_ORDER, key=lambda c: scores[c])
        confidence = scores[best_channel]
        optimal_time = predict_optimal_time(features)

        prediction = MLPrediction(
            user_id=user_id,
            predicted_channel=best_channel,
            predicted_time=optimal_time,
            confidence=confidence,
            features=features.to_dict(),
            model_version=MODEL_VERSION,
        )
        self.db.add(prediction)
        await self.db.flush()

        logger.debug(
            "Predicted %s at %s for user %s (confidence %.2f)",
            best_channel,
            optimal_time,
            user_id,
            confidence,
        )
        return ChannelPrediction(
            channel=best_channel,
            time=optimal_time,
            confidence=confidence,
            features=features,
            prediction_id=prediction.id,
        )

    async def select_channel_with_fallback(
        self,
        user_id: str,
        preferences: Optional[dict] = None,
    ) -> ChannelSelection:
        """
        Primary channel plus ordered fallbacks, honouring disabled channels.

        Args:
            user_id: Recipient
            preferences: Notification preferences; loaded from the user when omitted
        """
        prediction = await self.predict_optimal_channel(user_id)

        if preferences is None:
            user = await self.db.get(User, user_id)
            preferences = ((user.preferences or {}).get("notifications") if user else None) or {}

        primary_enabled = is_channel_enabled(preferences, prediction.channel)
        fallback = [
            channel
            for channel in CHANNEL_ORDER
            if channel != prediction.channel and is_channel_enabled(preferences, channel)
        ]

        if primary_enabled:
            primary = prediction.channel
            reason = "ML prediction based on historical engagement"
        else:
            primary = fallback[0] if fallback else NotificationChannel.EMAIL.value
            reason = "Fallback - predicted channel disabled"

        return ChannelSelection(
            primary=primary,
            fallback=fallback,
            score=prediction.confidence,
            reason=reason,
            optimal_time=prediction.time,
            prediction_id=prediction.prediction_id,
        )

    async def should_send_notification(self, user_id: str) -> bool:
        """False when the user is fatigued or already hit today's frequency."""
        fatigue = await self.calculate_fatigue_score(user_id)
        if fatigue > FATIGUE_BLOCK_THRESHOLD:
            logger.info("User %s fatigue score %.0f, skipping notification", user_id, fatigue)
            return False

        since_24h = datetime.now(UTC) - timedelta(hours=24)
        today_count = await self.db.scalar(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.sent_at >= since_24h,
                Notification.status.in_(DELIVERED_STATUSES),
            )
        ) or 0

        behavior = await self._get_behavior(user_id)
        max_per_day = (
            behavior.preferred_frequency if behavior and behavior.preferred_frequency
            else DEFAULT_PREFERRED_FREQUENCY
        )
        return today_count < max_per_day

    async def update_prediction_accuracy(
        self,
        prediction_id: str,
        actual_channel: str,
        actual_time: datetime,
    ) -> Optional[MLPrediction]:
        prediction = await self.db.get(MLPrediction, prediction_id)
        if not prediction:
            return None

        actual_time = _aware(actual_time)
        prediction.actual_channel = actual_channel
        prediction.actual_time = actual_time
        prediction.was_accurate = (
            prediction.predicted_channel == actual_channel
            and abs(_aware(prediction.predicted_time) - actual_time) < ACCURACY_WINDOW
        )
        await self.db.flush()
        return prediction

    async def get_model_accuracy(self) -> Dict[str, Any]:
        """Share of evaluated predictions that were accurate."""
        total = await self.db.scalar(
            select(func.count(MLPrediction.id)).where(MLPrediction.was_accurate.is_not(None))
        ) or 0
        accurate = await self.db.scalar(
            select(func.count(MLPrediction.id)).where(MLPrediction.was_accurate.is_(True))
        ) or 0
        return {
            "accuracy": accurate / total if total else 0.0,
            "total_predictions": total,
        }
