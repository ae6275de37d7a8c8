# Push Adapters
# Firebase Cloud Messaging

from .fcm_adapter import FCMError, FCMPushService, push_service

__all__ = ["FCMError", "FCMPushService", "push_service"]
