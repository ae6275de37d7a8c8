# Messaging Adapters
# SendPulse WhatsApp chatbot and SMS

from .sendpulse_adapter import (
    SendPulseAdapter,
    SendPulseAPIError,
    SendPulseAuthError,
    SendPulseConfigError,
    SendPulseError,
    SendPulseMessage,
    get_sendpulse_adapter,
    normalize_phone,
)

__all__ = [
    "SendPulseAdapter",
    "SendPulseError",
    "SendPulseAPIError",
    "SendPulseAuthError",
    "SendPulseConfigError",
    "SendPulseMessage",
    "get_sendpulse_adapter",
    "normalize_phone",
]
