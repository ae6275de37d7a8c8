"""
Reminder engagement analytics routes (admin only).
"""

import logging
from datetime import UTC, date, datetime, timedelta
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps_admin import get_current_admin_user
from api.utils import create_audit_log
from infrastructure.database.connection import get_db
from infrastructure.database.models.admin import AuditAction, AuditTargetType
from infrastructure.database.models.user import User
from services.analytics_service import AnalyticsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["Analytics"])

DEFAULT_PERIOD_DAYS = 30


def _split(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    return [item.strip().upper() for item in value.split(",") if item.strip()]


def _period(start: Optional[datetime], end: Optional[datetime]) -> tuple[datetime, datetime]:
    """Default to the last 30 days; naive datetimes are taken as UTC."""
    end = end or datetime.now(UTC)
    start = start or end - timedelta(days=DEFAULT_PERIOD_DAYS)
    if start.tzinfo is None:
        start = start.replace(tzinfo=UTC)
    if end.tzinfo is None:
        end = end.replace(tzinfo=UTC)
    if start > end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start must be before end",
        )
    return start, end


@router.get("/reminders")
async def reminder_analytics(
    admin_user: Annotated[User, Depends(get_current_admin_user)],
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    user_id: Optional[str] = Query(None),
    channels: Optional[str] = Query(None, description="Comma-separated channels"),
    types: Optional[str] = Query(None, description="Comma-separated notification types"),
    db: AsyncSession = Depends(get_db),
):
    """Engagement metrics for reminders sent in the period."""
    start, end = _period(start, end)
    return await AnalyticsService(db).get_engagement_analytics(
        start, end, user_id=user_id, channels=_split(channels), types=_split(types)
    )


@router.get("/dashboard")
async def dashboard(
    admin_user: Annotated[User, Depends(get_current_admin_user)],
    db: AsyncSession = Depends(get_db),
):
    """Last 24 hours of engagement, model accuracy and queue size."""
    return await AnalyticsService(db).get_dashboard_metrics()


@router.post("/snapshots", status_code=status.HTTP_201_CREATED)
async def create_snapshot(
    request: Request,
    admin_user: Annotated[User, Depends(get_current_admin_user)],
    snapshot_date: Optional[date] = Query(None, alias="date"),
    db: AsyncSession = Depends(get_db),
):
    """Store the daily roll-up, yesterday by default."""
    snapshot_date = snapshot_date or (datetime.now(UTC).date() - timedelta(days=1))
    snapshot = await AnalyticsService(db).create_daily_snapshot(snapshot_date)
    await create_audit_log(
        db,
        admin_user,
        AuditAction.ANALYTICS_SNAPSHOT_CREATED,
        AuditTargetType.SYSTEM,
        snapshot.id,
        f"Analytics snapshot for {snapshot_date.isoformat()}",
        request=request,
    )
    await db.commit()
    return {
        "id": snapshot.id,
        "snapshot_date": snapshot.snapshot_date.isoformat(),
        "total_sent": snapshot.total_sent,
        "total_delivered": snapshot.total_delivered,
        "total_opened": snapshot.total_opened,
        "total_clicked": snapshot.total_clicked,
        "total_converted": snapshot.total_converted,
        "engagement_rate": snapshot.engagement_rate,
        "opt_out_rate": snapshot.opt_out_rate,
        "by_channel": snapshot.by_channel,
        "model_accuracy": snapshot.model_accuracy,
    }


@router.get("/export")
async def export_report(
    request: Request,
    admin_user: Annotated[User, Depends(get_current_admin_user)],
    format: str = Query("json"),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Download the period report as JSON or CSV."""
    start, end = _period(start, end)
    try:
        report = await AnalyticsService(db).export_report(start, end, format)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    await create_audit_log(
        db,
        admin_user,
        AuditAction.DATA_EXPORT,
        AuditTargetType.SYSTEM,
        None,
        f"Exported reminder analytics as {format.lower()}",
        metadata={"start": start.isoformat(), "end": end.isoformat()},
        request=request,
    )
    await db.commit()

    if format.lower() == "json":
        return report

    filename = f"reminder-analytics-{start.date().isoformat()}-{end.date().isoformat()}.csv"
    return StreamingResponse(
        iter([report]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
