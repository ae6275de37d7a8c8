"""
SendPulse adapter for WhatsApp chatbot messages and SMS.

Authentication uses the OAuth2 client-credentials flow. The access token
and the WhatsApp bot id are cached on the adapter instance.
"""

import hmac
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from core.validators import clean_numeric
from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

MAX_QUICK_REPLIES = 3
QUICK_REPLY_TITLE_LENGTH = 20


class SendPulseError(Exception):
    """Base exception for SendPulse adapter errors."""

    pass


class SendPulseAPIError(SendPulseError):
    """Raised when the SendPulse API returns an error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SendPulseAuthError(SendPulseError):
    """Raised when credentials are missing or rejected."""

    pass


class SendPulseConfigError(SendPulseError):
    """Raised when no WhatsApp bot is available for the account."""

    pass


@dataclass
class SendPulseMessage:
    """Result of a sent WhatsApp message or SMS."""

    phone: str
    message_id: str | None = None

    @classmethod
    def from_api_response(cls, phone: str, data: dict[str, Any]) -> "SendPulseMessage":
        message_id = data.get("id") or (data.get("data") or {}).get("id")
        return cls(phone=phone, message_id=str(message_id) if message_id else None)

    def to_dict(self) -> dict[str, Any]:
        return {"phone": self.phone, "message_id": self.message_id}


def normalize_phone(phone: str) -> str:
    """
    Return the phone in international format without ``+``.

    10 and 11 digit Brazilian numbers get the ``55`` country code; numbers
    that already carry it are kept as they are.
    """
    cleaned = clean_numeric(phone)
    if cleaned.startswith("55") and len(cleaned) in (12, 13):
        return cleaned
    if len(cleaned) in (10, 11):
        return f"55{cleaned}"
    return cleaned


class SendPulseAdapter:
    """
    SendPulse API adapter.
    """

    BASE_URL = "https://api.sendpulse.com"

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        webhook_token: str | None = None,
        sms_sender: str | None = None,
        timeout: float = 30.0,
    ):
        self.client_id = client_id or settings.sendpulse_client_id
        self.client_secret = client_secret or settings.sendpulse_client_secret
        self.webhook_token = webhook_token or settings.sendpulse_webhook_token
        self.sms_sender = sms_sender or settings.sendpulse_sms_sender
        self.timeout = timeout

        self._access_token: str | None = None
        self._token_expires_at: float = 0.0
        self._bot_id: str | None = None

        if not self.client_id or not self.client_secret:
            logger.warning(
                "SendPulse credentials not configured. "
                "Set sendpulse_client_id and sendpulse_client_secret in settings."
            )

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def _get_access_token(self) -> str:
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        if not self.is_configured:
            raise SendPulseAuthError("SendPulse credentials not configured")

        payload = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(f"{self.BASE_URL}/oauth/access_token", json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("SendPulse auth failed (%s)", e.response.status_code)
            raise SendPulseAuthError(f"Authentication failed: {e.response.status_code}")
        except httpx.RequestError as e:
            raise SendPulseAPIError(f"Request failed: {e}")

        token = data.get("access_token")
        if not token:
            raise SendPulseAuthError("No access token in SendPulse response")

        self._access_token = token
        # refresh one minute before expiry
        self._token_expires_at = time.monotonic() + int(data.get("expires_in", 3600)) - 60
        return token

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Make an authenticated request to the SendPulse API.

        A 401 drops the cached token so the next call authenticates again.

        Raises:
            SendPulseAuthError: If the token is rejected
            SendPulseAPIError: For any other failed request
        """
        token = await self._get_access_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        url = f"{self.BASE_URL}/{endpoint.lstrip('/')}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(method, url, headers=headers, json=data)
                response.raise_for_status()
                if not response.content:
                    return {}
                return response.json()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code == 401:
                self._access_token = None
                raise SendPulseAuthError("SendPulse rejected the access token")

            error_detail = str(e)
            try:
                body = e.response.json()
                error_detail = (
                    body.get("message") or (body.get("error") or {}).get("message") or error_detail
                )
            except (ValueError, AttributeError):
                pass

            logger.error("SendPulse API error (%s): %s", status_code, error_detail)
            raise SendPulseAPIError(f"API request failed: {error_detail}", status_code=status_code)
        except httpx.RequestError as e:
            logger.error("SendPulse request error: %s", e)
            raise SendPulseAPIError(f"Request failed: {e}")

    async def get_bot_id(self) -> str:
        """Return the first WhatsApp bot of the account."""
        if self._bot_id:
            return self._bot_id

        response = await self._make_request("GET", "whatsapp/bots")
        bots = response.get("data") or []
        if not bots:
            raise SendPulseConfigError("No WhatsApp bot found in the SendPulse account")

        self._bot_id = str(bots[0]["id"])
        return self._bot_id

    async def send_message(self, phone: str, text: str) -> SendPulseMessage:
        """Send a plain WhatsApp text message."""
        normalized = normalize_phone(phone)
        payload = {
            "bot_id": await self.get_bot_id(),
            "phone": normalized,
            "data": {"text": text},
        }
        response = await self._make_request("POST", "whatsapp/contacts/sendMessage", data=payload)
        logger.info("WhatsApp message sent to %s", normalized[-4:])
        return SendPulseMessage.from_api_response(normalized, response)

    async def send_message_with_quick_replies(
        self,
        phone: str,
        text: str,
        quick_replies: list[str],
    ) -> SendPulseMessage:
        """
        Send a WhatsApp message with up to three reply buttons.

        Extra replies are dropped and titles are cut to 20 characters, the
        limits WhatsApp interactive messages accept.
        """
        if not quick_replies:
            return await self.send_message(phone, text)

        normalized = normalize_phone(phone)
        buttons = [
            {
                "type": "quick_reply",
                "payload": f"btn_{i + 1}",
                "title": reply[:QUICK_REPLY_TITLE_LENGTH],
            }
            for i, reply in enumerate(quick_replies[:MAX_QUICK_REPLIES])
        ]
        payload = {
            "bot_id": await self.get_bot_id(),
            "phone": normalized,
            "data": {"text": text, "buttons": buttons},
        }
        response = await self._make_request("POST", "whatsapp/contacts/sendMessage", data=payload)
        logger.info("WhatsApp quick-reply message sent to %s", normalized[-4:])
        return SendPulseMessage.from_api_response(normalized, response)

    async def send_sms(self, phone: str, text: str) -> SendPulseMessage:
        normalized = normalize_phone(phone)
        payload = {
            "sender": self.sms_sender,
            "phones": [normalized],
            "body": text,
        }
        response = await self._make_request("POST", "sms/send", data=payload)
        logger.info("SMS sent to %s", normalized[-4:])
        return SendPulseMessage.from_api_response(normalized, response)

    async def create_or_update_contact(
        self,
        phone: str,
        name: Optional[str] = None,
        variables: Optional[dict[str, Any]] = None,
        tags: Optional[list[str]] = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "bot_id": await self.get_bot_id(),
            "phone": normalize_phone(phone),
        }
        if name:
            payload["name"] = name
        if variables:
            payload["variables"] = variables
        if tags:
            payload["tags"] = tags
        return await self._make_request("POST", "whatsapp/contacts/set", data=payload)

    def verify_webhook_token(self, token: str | None) -> bool:
        """Constant-time check of the token SendPulse sends with webhooks."""
        if not self.webhook_token or not token:
            return False
        return hmac.compare_digest(self.webhook_token.encode(), token.encode())


_adapter: SendPulseAdapter | None = None


def get_sendpulse_adapter() -> SendPulseAdapter:
    """Shared adapter so the access token and bot id caches survive between calls."""
    global _adapter
    if _adapter is None:
        _adapter = SendPulseAdapter()
    return _adapter
