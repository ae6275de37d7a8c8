"""
Shared API dependencies that are not tied to a logged-in user.
"""

import hmac
import logging
from typing import Annotated

from fastapi import Header, HTTPException, status

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)


async def require_cron_secret(
    x_cron_secret: Annotated[str | None, Header(alias="x-cron-secret")] = None,
) -> None:
    """
    Guard for endpoints triggered by an external scheduler.

    Raises:
        HTTPException: 503 when no secret is configured, 401 on a wrong secret
    """
    if not settings.cron_secret:
        logger.error("Cron request rejected: CRON_SECRET not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron endpoint not configured",
        )

    if not x_cron_secret or not hmac.compare_digest(
        settings.cron_secret.encode(), x_cron_secret.encode()
    ):
        logger.warning("Cron request rejected: invalid secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid cron secret",
        )
