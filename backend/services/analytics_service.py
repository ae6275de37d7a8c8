"""
Engagement analytics for reminders: period reports, dashboard metrics,
daily snapshots and CSV/JSON export.
"""

import csv
import io
import logging
from datetime import UTC, date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.models.notification import (
    AnalyticsSnapshot,
    InteractionType,
    Notification,
    NotificationInteraction,
    NotificationStatus,
    NotificationType,
)
from infrastructure.database.models.user import User
from services.behavior_service import calculate_average_response_time
from services.ml_service import CHANNEL_ORDER, MLService

logger = logging.getLogger(__name__)


def _count_with(notifications: Sequence[Notification], interaction_type: str) -> int:
    return sum(
        1 for n in notifications if any(i.type == interaction_type for i in n.interactions)
    )


def _rate(part: int, total: int) -> float:
    return part / total if total else 0.0


def channel_metrics(notifications: Sequence[Notification]) -> List[Dict[str, Any]]:
    """Per-channel counts and rates, in channel priority order."""
    metrics = []
    for channel in CHANNEL_ORDER:
        channel_notifications = [n for n in notifications if n.channel == channel]
        sent = len(channel_notifications)
        delivered = _count_with(channel_notifications, InteractionType.DELIVERED.value)
        opened = _count_with(channel_notifications, InteractionType.OPENED.value)
        clicked = _count_with(channel_notifications, InteractionType.CLICKED.value)
        failed = sum(1 for n in channel_notifications if n.status == NotificationStatus.FAILED.value)
        metrics.append(
            {
                "channel": channel,
                "sent": sent,
                "delivered": delivered,
                "opened": opened,
                "clicked": clicked,
                "failed": failed,
                "delivery_rate": _rate(delivered, sent),
                "open_rate": _rate(opened, sent),
                "click_rate": _rate(clicked, sent),
                "avg_response_time": calculate_average_response_time(channel_notifications) or 0,
            }
        )
    return metrics


class AnalyticsService:
    """
    Service for reminder engagement reporting.
    """

    def __init__(self, db: AsyncSession, ml_service: Optional[MLService] = None):
        self.db = db
        self.ml_service = ml_service or MLService(db)

    async def get_engagement_analytics(
        self,
        start: datetime,
        end: datetime,
        user_id: Optional[str] = None,
        channels: Optional[List[str]] = None,
        types: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Engagement metrics for notifications sent between ``start`` and ``end``.

        Delivered, opened, clicked and converted totals count notifications
        with at least one interaction of that type.
        """
        stmt = select(Notification).where(
            Notification.sent_at >= start,
            Notification.sent_at <= end,
        )
        if user_id:
            stmt = stmt.where(Notification.user_id == user_id)
        if channels:
            stmt = stmt.where(Notification.channel.in_(channels))
        if types:
            stmt = stmt.where(Notification.type.in_(types))

        result = await self.db.execute(stmt)
        notifications = result.scalars().all()

        total_sent = len(notifications)
        total_opened = _count_with(notifications, InteractionType.OPENED.value)
        total_clicked = _count_with(notifications, InteractionType.CLICKED.value)

        opt_out_stmt = select(func.count(NotificationInteraction.id)).where(
            NotificationInteraction.type == InteractionType.OPTED_OUT.value,
            NotificationInteraction.created_at >= start,
            NotificationInteraction.created_at <= end,
        )
        if user_id:
            opt_out_stmt = opt_out_stmt.where(NotificationInteraction.user_id == user_id)
        opt_out_count = await self.db.scalar(opt_out_stmt) or 0

        by_type = {}
        for notification_type in NotificationType:
            type_notifications = [n for n in notifications if n.type == notification_type.value]
            by_type[notification_type.value] = {
                "sent": len(type_notifications),
                "opened": _count_with(type_notifications, InteractionType.OPENED.value),
                "converted": _count_with(type_notifications, InteractionType.CONVERTED.value),
            }

        return {
            "period": {"start": start.isoformat(), "end": end.isoformat()},
            "global": {
                "total_sent": total_sent,
                "total_delivered": _count_with(notifications, InteractionType.DELIVERED.value),
                "total_opened": total_opened,
                "total_clicked": total_clicked,
                "total_converted": _count_with(notifications, InteractionType.CONVERTED.value),
                "engagement_rate": _rate(total_opened + total_clicked, total_sent),
                "opt_out_rate": _rate(opt_out_count, total_sent),
                "avg_response_time": calculate_average_response_time(notifications) or 0,
            },
            "by_channel": channel_metrics(notifications),
            "by_type": by_type,
        }

    async def get_dashboard_metrics(self) -> Dict[str, Any]:
        """Last 24 hours of engagement plus model accuracy and queue size."""
        now = datetime.now(UTC)
        analytics = await self.get_engagement_analytics(now - timedelta(hours=24), now)

        total_users = await self.db.scalar(
            select(func.count(User.id)).where(User.deleted_at.is_(None))
        ) or 0
        pending = await self.db.scalar(
            select(func.count(Notification.id)).where(
                Notification.status == NotificationStatus.SCHEDULED.value,
                Notification.scheduled_at <= now,
            )
        ) or 0

        analytics.update(
            ml_model=await self.ml_service.get_model_accuracy(),
            total_users=total_users,
            pending_notifications=pending,
            timestamp=now.isoformat(),
        )
        return analytics

    async def create_daily_snapshot(self, snapshot_date: date) -> AnalyticsSnapshot:
        """Compute and upsert the snapshot for one UTC day."""
        start = datetime.combine(snapshot_date, time.min, tzinfo=UTC)
        end = datetime.combine(snapshot_date, time.max, tzinfo=UTC)
        analytics = await self.get_engagement_analytics(start, end)
        totals = analytics["global"]
        accuracy = await self.ml_service.get_model_accuracy()

        values = {
            "total_sent": totals["total_sent"],
            "total_delivered": totals["total_delivered"],
            "total_opened": totals["total_opened"],
            "total_clicked": totals["total_clicked"],
            "total_converted": totals["total_converted"],
            "engagement_rate": totals["engagement_rate"],
            "opt_out_rate": totals["opt_out_rate"],
            "by_channel": {m["channel"]: m for m in analytics["by_channel"]},
            "model_accuracy": accuracy["accuracy"] if accuracy["total_predictions"] else None,
        }

        result = await self.db.execute(
            select(AnalyticsSnapshot).where(AnalyticsSnapshot.snapshot_date == snapshot_date)
        )
        snapshot = result.scalar_one_or_none()
        if snapshot is None:
            snapshot = AnalyticsSnapshot(snapshot_date=snapshot_date, **values)
            self.db.add(snapshot)
        else:
            for key, value in values.items():
                setattr(snapshot, key, value)

        await self.db.flush()
        logger.info("Analytics snapshot stored for %s", snapshot_date.isoformat())
        return snapshot

    async def export_report(self, start: datetime, end: datetime, format: str = "json") -> Any:
        """
        Export the period report.

        Returns:
            The analytics dict for ``json``, CSV text for ``csv``

        Raises:
            ValueError: For any other format
        """
        format = format.lower()
        if format not in ("json", "csv"):
            raise ValueError(f"Unsupported export format: {format}")

        analytics = await self.get_engagement_analytics(start, end)
        if format == "json":
            return analytics

        totals = analytics["global"]
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(["Metric", "Value"])
        writer.writerow(["Period Start", start.isoformat()])
        writer.writerow(["Period End", end.isoformat()])
        writer.writerow(["Total Sent", totals["total_sent"]])
        writer.writerow(["Total Delivered", totals["total_delivered"]])
        writer.writerow(["Total Opened", totals["total_opened"]])
        writer.writerow(["Total Clicked", totals["total_clicked"]])
        writer.writerow(["Total Converted", totals["total_converted"]])
        writer.writerow(["Engagement Rate", f"{totals['engagement_rate'] * 100:.2f}%"])
        writer.writerow(["Opt-Out Rate", f"{totals['opt_out_rate'] * 100:.2f}%"])
        writer.writerow(["Avg Response Time", f"{totals['avg_response_time']} minutes"])
        writer.writerow([])
        writer.writerow(
            ["Channel", "Sent", "Delivered", "Opened", "Clicked", "Failed", "Open Rate", "Click Rate"]
        )
        for m in analytics["by_channel"]:
            writer.writerow(
                [
                    m["channel"],
                    m["sent"],
                    m["delivered"],
                    m["opened"],
                    m["clicked"],
                    m["failed"],
                    f"{m['open_rate'] * 100:.2f}%",
                    f"{m['click_rate'] * 100:.2f}%",
                ]
            )
        return buf.getvalue()
