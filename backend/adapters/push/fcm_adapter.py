"""
Firebase Cloud Messaging push adapter (legacy HTTP API).
"""

import logging
from typing import Any, Optional

import httpx

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)


class FCMError(Exception):
    """Raised when FCM rejects a push message."""

    pass


class FCMPushService:
    """Send push notifications to a single device token."""

    FCM_URL = "https://fcm.googleapis.com/fcm/send"

    def __init__(self, server_key: Optional[str] = None, timeout: float = 10.0):
        self.server_key = server_key or settings.fcm_server_key
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.server_key)

    async def send(
        self,
        token: str,
        title: str,
        body: str,
        data: Optional[dict[str, Any]] = None,
    ) -> bool:
        """
        Send a notification to one device.

        Returns:
            True when FCM accepted the message, False when push is not
            configured or the device token was rejected

        Raises:
            FCMError: On HTTP or transport failures
        """
        if not self.is_configured:
            logger.warning("FCM server key not configured, skipping push notification")
            return False

        payload = {
            "to": token,
            "notification": {"title": title, "body": body},
            # FCM data values must be strings
            "data": {k: str(v) for k, v in (data or {}).items()},
        }
        headers = {
            "Authorization": f"key={self.server_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.FCM_URL, json=payload, headers=headers)
                response.raise_for_status()
                result = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("FCM error (%s)", e.response.status_code)
            raise FCMError(f"FCM request failed with status {e.response.status_code}")
        except httpx.RequestError as e:
            logger.error("FCM request error: %s", e)
            raise FCMError(f"Request failed: {e}")

        if result.get("failure"):
            error = (result.get("results") or [{}])[0].get("error", "unknown")
            logger.warning("FCM rejected push notification: %s", error)
            return False

        return True


push_service = FCMPushService()
