"""
Notification preference defaults.

Stored preferences are partial; they are always read merged over these
defaults.
"""

import copy
from typing import Any, Dict, Optional

NOTIFICATION_EVENTS = (
    "plan_change",
    "address_update",
    "payment_method_update",
    "subscription_created",
    "subscription_cancelled",
    "subscription_paused",
    "subscription_resumed",
    "payment_received",
    "payment_overdue",
    "delivery_shipped",
    "delivery_delivered",
    "reminder_renewal",
    "marketing",
    "system_updates",
)


def _events(enabled: tuple[str, ...]) -> Dict[str, bool]:
    return {event: event in enabled for event in NOTIFICATION_EVENTS}


_ALL_BUT_MARKETING = tuple(e for e in NOTIFICATION_EVENTS if e != "marketing")

DEFAULT_NOTIFICATION_PREFERENCES: Dict[str, Any] = {
    "channels": {
        "email": {"enabled": True, "events": _events(_ALL_BUT_MARKETING)},
        "whatsapp": {
            "enabled": True,
            "events": _events(
                (
                    "plan_change",
                    "address_update",
                    "payment_method_update",
                    "subscription_created",
                    "subscription_cancelled",
                    "payment_overdue",
                    "delivery_shipped",
                    "delivery_delivered",
                    "reminder_renewal",
                )
            ),
        },
        "sms": {"enabled": False, "events": _events(("payment_overdue", "reminder_renewal"))},
        "push": {"enabled": False, "events": _events(_ALL_BUT_MARKETING)},
    },
    "quiet_hours": {
        "enabled": True,
        "start": "22:00",
        "end": "08:00",
        "timezone": "America/Sao_Paulo",
    },
    "frequency": {
        "max_per_day": 10,
        "max_per_week": 50,
        "respect_quiet_hours": True,
    },
    "fallback": {
        "enabled": True,
        "primary_channel": "email",
        "fallback_channel": "whatsapp",
        "fallback_delay_minutes": 30,
    },
    "language": "pt-BR",
    "format": "html",
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def merge_preferences(*layers: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Layer each dict over the defaults in order, without mutating any of them."""
    merged = DEFAULT_NOTIFICATION_PREFERENCES
    for layer in layers:
        merged = _deep_merge(merged, layer or {})
    return copy.deepcopy(merged)
