"""
Reminder API routes.

Customers manage their own reminders; staff may act for any user. Batch
creation is admin-only and processing endpoints are called by cron.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps_admin import STAFF_ROLES, get_current_admin_user
from api.dependencies import require_cron_secret
from api.middleware.rate_limit import get_rate_limit, limiter
from api.routes.auth import get_current_user
from api.schemas.reminders import (
    InteractionCreateRequest,
    ReminderBatchRequest,
    ReminderCreateRequest,
    ReminderResponse,
    RenewalRemindersRequest,
)
from api.utils import create_audit_log
from infrastructure.database.connection import get_db
from infrastructure.database.models.admin import AuditAction, AuditTargetType
from infrastructure.database.models.notification import (
    InteractionType,
    NotificationChannel,
    NotificationType,
)
from infrastructure.database.models.user import User
from services.multichannel_reminders import ReminderChannel, MultiChannelReminderService
from services.reminder_orchestrator import (
    FatigueLimitExceeded,
    ReminderInput,
    ReminderOrchestrator,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reminders", tags=["Reminders"])

_TYPES = {t.value for t in NotificationType}
_CHANNELS = {c.value for c in NotificationChannel}
_INTERACTIONS = {i.value for i in InteractionType}

# Delivery targets that override the user's stored contact details
CONTACT_OVERRIDE_KEYS = ("phone", "push_token")


def _is_staff(user: User) -> bool:
    return user.role in STAFF_ROLES


def _check_access(current_user: User, user_id: str) -> None:
    if user_id != current_user.id and not _is_staff(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to access reminders of another user",
        )


def _check_contact(user: User, channel: Optional[str]) -> None:
    """Customers may only pick a channel they have contact details on file for."""
    if channel == NotificationChannel.WHATSAPP.value:
        reachable = bool(user.whatsapp or user.phone)
    elif channel == NotificationChannel.SMS.value:
        reachable = bool(user.phone)
    elif channel == NotificationChannel.PUSH.value:
        reachable = False
    else:
        reachable = True
    if not reachable:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"No contact details on file for channel {channel}",
        )


def _to_input(
    body: ReminderCreateRequest,
    user_id: str,
    allow_contact_override: bool = False,
) -> ReminderInput:
    """
    Normalise and validate a request; raises 400 on unknown enum values.

    ``phone`` and ``push_token`` are dropped from the metadata unless the
    caller is staff.
    """
    reminder_type = body.type.upper()
    if reminder_type not in _TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid reminder type: {body.type}",
        )
    channel = body.preferred_channel.upper() if body.preferred_channel else None
    if channel and channel not in _CHANNELS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid channel: {body.preferred_channel}",
        )
    metadata = body.metadata
    if not allow_contact_override:
        metadata = {k: v for k, v in metadata.items() if k not in CONTACT_OVERRIDE_KEYS}
    return ReminderInput(
        user_id=user_id,
        type=reminder_type,
        content=body.content,
        subject=body.subject,
        preferred_channel=channel,
        scheduled_at=body.scheduled_at,
        metadata=metadata,
    )


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("reminders"))
async def create_reminder(
    request: Request,
    body: ReminderCreateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
):
    """
    Schedule a reminder on the predicted best channel and time.

    An explicit ``preferred_channel`` skips the prediction and sends now
    unless ``scheduled_at`` is given.
    """
    user_id = body.user_id or current_user.id
    _check_access(current_user, user_id)
    is_staff = _is_staff(current_user)
    data = _to_input(body, user_id, allow_contact_override=is_staff)
    if not is_staff:
        _check_contact(current_user, data.preferred_channel)

    if user_id != current_user.id and await db.get(User, user_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    try:
        notification_id = await ReminderOrchestrator(db).create_intelligent_reminder(data)
    except FatigueLimitExceeded as e:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(e),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    await db.commit()
    return {"success": True, "notification_id": notification_id}


@router.get("")
async def list_reminders(
    current_user: Annotated[User, Depends(get_current_user)],
    user_id: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    """Reminder history for a user, newest first, with interactions."""
    target = user_id or current_user.id
    _check_access(current_user, target)

    notifications = await ReminderOrchestrator(db).get_user_history(target, limit)
    reminders = [
        ReminderResponse.model_validate(n).model_dump(mode="json") for n in notifications
    ]
    return {"success": True, "reminders": reminders, "count": len(reminders)}


@router.delete("/{notification_id}")
async def cancel_reminder(
    notification_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
):
    """Cancel a reminder that has not been sent yet."""
    orchestrator = ReminderOrchestrator(db)
    notification = await orchestrator.notifications.get_notification(notification_id)
    if notification is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Reminder not found",
        )
    _check_access(current_user, notification.user_id)

    if not await orchestrator.cancel_reminder(notification_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only scheduled reminders can be cancelled",
        )

    await db.commit()
    return {"success": True, "notification_id": notification_id}


@router.post("/{notification_id}/interactions", status_code=status.HTTP_201_CREATED)
async def record_interaction(
    notification_id: str,
    body: InteractionCreateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
):
    """Record an open, click, dismissal or opt-out and update fatigue."""
    interaction_type = body.type.upper()
    if interaction_type not in _INTERACTIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid interaction type: {body.type}",
        )

    orchestrator = ReminderOrchestrator(db)
    notification = await orchestrator.notifications.get_notification(notification_id)
    if notification is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Reminder not found",
        )
    _check_access(current_user, notification.user_id)

    await orchestrator.handle_interaction(
        notification_id, notification.user_id, interaction_type, body.metadata
    )
    await db.commit()
    return {"success": True}


@router.post("/batch", status_code=status.HTTP_201_CREATED)
async def create_batch(
    request: Request,
    body: ReminderBatchRequest,
    admin_user: Annotated[User, Depends(get_current_admin_user)],
    db: AsyncSession = Depends(get_db),
):
    """Create reminders for many users. Fatigued users are skipped."""
    missing = [i for i, r in enumerate(body.reminders) if not r.user_id]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"user_id is required for every reminder (missing at {missing})",
        )
    inputs = [_to_input(r, r.user_id, allow_contact_override=True) for r in body.reminders]

    created = await ReminderOrchestrator(db).create_batch_reminders(inputs)
    await create_audit_log(
        db,
        admin_user,
        AuditAction.REMINDERS_BATCH_CREATED,
        AuditTargetType.NOTIFICATION,
        None,
        f"Created {len(created)} of {len(inputs)} reminders",
        metadata={"requested": len(inputs), "created": len(created)},
        request=request,
    )
    await db.commit()
    return {
        "success": True,
        "notification_ids": created,
        "count": len(created),
        "skipped": len(inputs) - len(created),
    }


@router.post("/process", dependencies=[Depends(require_cron_secret)])
async def process_due_reminders(
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
):
    """Send every due reminder. Called by the external scheduler."""
    processed = await ReminderOrchestrator(db).process_scheduled_notifications(limit)
    await db.commit()
    return {"processed": processed}


@router.post("/renewals", dependencies=[Depends(require_cron_secret)])
async def send_renewal_reminders(
    body: RenewalRemindersRequest,
    db: AsyncSession = Depends(get_db),
):
    """Remind subscribers whose renewal is ``days_ahead`` days away."""
    try:
        channel = ReminderChannel(body.channel.upper())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid channel: {body.channel}",
        )
    result = await MultiChannelReminderService().send_renewal_reminders(
        db, body.days_ahead, channel
    )
    logger.info("Renewal reminders for +%d days: %s", body.days_ahead, result)
    return result
