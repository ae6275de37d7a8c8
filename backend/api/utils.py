"""
Shared API utility functions.
"""

from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.models.admin import AdminAuditLog, AuditAction, AuditTargetType
from infrastructure.database.models.user import User


def escape_like(value: str) -> str:
    """Escape LIKE wildcards for safe use in SQL LIKE/ILIKE patterns."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def client_ip(request: Optional[Request]) -> Optional[str]:
    if request is None or request.client is None:
        return None
    return request.client.host


async def create_audit_log(
    db: AsyncSession,
    admin_user: User,
    action: AuditAction,
    target_type: AuditTargetType,
    target_id: Optional[str],
    description: str,
    metadata: Optional[dict] = None,
    target_user_id: Optional[str] = None,
    request: Optional[Request] = None,
) -> AdminAuditLog:
    """
    Record an admin action. Flushed with the caller's transaction.
    """
    details = dict(metadata) if metadata else {}
    if description:
        details["description"] = description

    audit_log = AdminAuditLog(
        admin_user_id=admin_user.id,
        action=action.value,
        target_type=target_type.value,
        target_id=target_id,
        target_user_id=target_user_id,
        details=details or None,
        ip_address=client_ip(request),
    )
    db.add(audit_log)
    await db.flush()
    return audit_log
