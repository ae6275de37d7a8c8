"""
Asaas payment gateway adapter.

Provides integration with the Asaas v3 API for customers, recurring
subscriptions, payments (PIX, boleto, credit card), refunds and webhook
authentication.
"""

import hmac
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

import httpx

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)


class AsaasError(Exception):
    """Base exception for Asaas adapter errors."""

    pass


class AsaasAPIError(AsaasError):
    """Raised when the Asaas API returns an error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AsaasAuthError(AsaasError):
    """Raised when the API key is missing or rejected."""

    pass


class AsaasWebhookError(AsaasError):
    """Raised when a webhook payload is invalid."""

    pass


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    return date.fromisoformat(value[:10])


@dataclass
class AsaasCustomer:
    """Asaas customer record."""

    id: str
    name: str
    email: str
    cpf_cnpj: str | None = None
    phone: str | None = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "AsaasCustomer":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            email=data.get("email", ""),
            cpf_cnpj=data.get("cpfCnpj"),
            phone=data.get("mobilePhone") or data.get("phone"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
        }


@dataclass
class AsaasSubscription:
    """Asaas recurring subscription."""

    id: str
    customer_id: str
    billing_type: str
    value: float
    cycle: str  # MONTHLY, YEARLY
    status: str  # ACTIVE, EXPIRED, INACTIVE
    next_due_date: date | None
    description: str | None = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "AsaasSubscription":
        return cls(
            id=data.get("id", ""),
            customer_id=data.get("customer", ""),
            billing_type=data.get("billingType", ""),
            value=float(data.get("value") or 0),
            cycle=data.get("cycle", ""),
            status=data.get("status", ""),
            next_due_date=_parse_date(data.get("nextDueDate")),
            description=data.get("description"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "cycle": self.cycle,
            "value": self.value,
            "billing_type": self.billing_type,
            "next_due_date": self.next_due_date.isoformat() if self.next_due_date else None,
        }


@dataclass
class AsaasPayment:
    """Asaas payment (charge)."""

    id: str
    customer_id: str
    subscription_id: str | None
    billing_type: str
    status: str
    value: float
    net_value: float | None
    due_date: date | None
    payment_date: date | None
    invoice_url: str | None
    bank_slip_url: str | None
    description: str | None = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "AsaasPayment":
        net_value = data.get("netValue")
        return cls(
            id=data.get("id", ""),
            customer_id=data.get("customer", ""),
            subscription_id=data.get("subscription"),
            billing_type=data.get("billingType", ""),
            status=data.get("status", ""),
            value=float(data.get("value") or 0),
            net_value=float(net_value) if net_value is not None else None,
            due_date=_parse_date(data.get("dueDate")),
            payment_date=_parse_date(data.get("paymentDate") or data.get("clientPaymentDate")),
            invoice_url=data.get("invoiceUrl"),
            bank_slip_url=data.get("bankSlipUrl"),
            description=data.get("description"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "billing_type": self.billing_type,
            "value": self.value,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "invoice_url": self.invoice_url,
            "bank_slip_url": self.bank_slip_url,
        }


@dataclass
class AsaasPixQrCode:
    """PIX QR code for a pending payment."""

    encoded_image: str
    payload: str
    expiration_date: str | None = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "AsaasPixQrCode":
        return cls(
            encoded_image=data.get("encodedImage", ""),
            payload=data.get("payload", ""),
            expiration_date=data.get("expirationDate"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "encoded_image": self.encoded_image,
            "payload": self.payload,
            "expiration_date": self.expiration_date,
        }


@dataclass
class AsaasWebhookEvent:
    """Asaas webhook notification."""

    id: str | None
    event: str  # PAYMENT_CREATED, PAYMENT_RECEIVED, ...
    payment: AsaasPayment
    raw: dict[str, Any] = field(repr=False, default_factory=dict)

    @classmethod
    def from_webhook_payload(cls, payload: dict[str, Any]) -> "AsaasWebhookEvent":
        event = payload.get("event")
        payment = payload.get("payment")
        if not event or not isinstance(payment, dict):
            raise AsaasWebhookError("Webhook payload must contain 'event' and 'payment'")
        return cls(
            id=payload.get("id"),
            event=event,
            payment=AsaasPayment.from_api_response(payment),
            raw=payload,
        )

    @property
    def idempotency_key(self) -> str:
        """Events carry an id; older payloads fall back to event + payment id."""
        return self.id or f"{self.event}:{self.payment.id}"


class AsaasAdapter:
    """
    Asaas API adapter.

    All requests authenticate with the ``access_token`` header. The base URL
    depends on the configured environment (sandbox or production).
    """

    SANDBOX_URL = "https://sandbox.asaas.com/api/v3"
    PRODUCTION_URL = "https://api.asaas.com/v3"

    def __init__(
        self,
        api_key: str | None = None,
        environment: str | None = None,
        webhook_token: str | None = None,
        timeout: float = 30.0,
    ):
        self.api_key = api_key or settings.asaas_api_key
        self.environment = environment or settings.asaas_environment
        self.webhook_token = webhook_token or settings.asaas_webhook_token
        self.timeout = timeout
        self.base_url = (
            self.PRODUCTION_URL if self.environment == "production" else self.SANDBOX_URL
        )

        if not self.api_key:
            logger.warning("Asaas API key not configured. Set asaas_api_key in settings.")

    def _get_headers(self) -> dict[str, str]:
        if not self.api_key:
            raise AsaasAuthError("Asaas API key not configured. Set asaas_api_key in settings.")

        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "access_token": self.api_key,
            "User-Agent": "svlentes-api",
        }

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Make an HTTP request to the Asaas API.

        Raises:
            AsaasAuthError: If the API key is rejected (401)
            AsaasAPIError: For any other failed request
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        headers = self._get_headers()

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                logger.info("Asaas %s %s", method, endpoint)
                response = await client.request(
                    method, url, headers=headers, json=data, params=params
                )
                response.raise_for_status()

                if response.status_code == 204 or not response.content:
                    return {}
                return response.json()

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code == 401:
                raise AsaasAuthError("Asaas rejected the API key")

            error_detail = str(e)
            try:
                errors = e.response.json().get("errors", [])
                if errors and isinstance(errors[0], dict):
                    error_detail = errors[0].get("description", error_detail)
            except ValueError:
                pass

            logger.error("Asaas API error (%s): %s", status_code, error_detail)
            raise AsaasAPIError(f"API request failed: {error_detail}", status_code=status_code)
        except httpx.RequestError as e:
            logger.error("Asaas request error: %s", e)
            raise AsaasAPIError(f"Request failed: {e}")

    # Customers

    async def create_customer(
        self,
        name: str,
        email: str,
        cpf_cnpj: str,
        phone: str | None = None,
        address: dict[str, Any] | None = None,
        external_reference: str | None = None,
    ) -> AsaasCustomer:
        payload: dict[str, Any] = {
            "name": name,
            "email": email,
            "cpfCnpj": cpf_cnpj,
            "notificationDisabled": False,
        }
        if phone:
            payload["mobilePhone"] = phone
        if external_reference:
            payload["externalReference"] = external_reference
        if address:
            payload.update(
                {
                    "postalCode": address.get("cep"),
                    "address": address.get("street"),
                    "addressNumber": address.get("number"),
                    "complement": address.get("complement"),
                    "province": address.get("neighborhood"),
                }
            )

        response = await self._make_request("POST", "customers", data=payload)
        return AsaasCustomer.from_api_response(response)

    async def find_customer_by_email(self, email: str) -> AsaasCustomer | None:
        response = await self._make_request("GET", "customers", params={"email": email})
        customers = response.get("data", [])
        if not customers:
            return None
        return AsaasCustomer.from_api_response(customers[0])

    async def get_or_create_customer(
        self,
        name: str,
        email: str,
        cpf_cnpj: str,
        phone: str | None = None,
        address: dict[str, Any] | None = None,
    ) -> AsaasCustomer:
        existing = await self.find_customer_by_email(email)
        if existing:
            logger.info("Reusing Asaas customer %s", existing.id)
            return existing
        return await self.create_customer(name, email, cpf_cnpj, phone=phone, address=address)

    # Subscriptions

    async def create_subscription(
        self,
        customer_id: str,
        billing_type: str,
        value: float,
        next_due_date: date,
        cycle: str,
        description: str,
        external_reference: str | None = None,
    ) -> AsaasSubscription:
        payload = {
            "customer": customer_id,
            "billingType": billing_type,
            "value": value,
            "nextDueDate": next_due_date.isoformat(),
            "cycle": cycle,
            "description": description,
        }
        if external_reference:
            payload["externalReference"] = external_reference

        response = await self._make_request("POST", "subscriptions", data=payload)
        logger.info("Created Asaas subscription %s", response.get("id"))
        return AsaasSubscription.from_api_response(response)

    async def get_subscription(self, subscription_id: str) -> AsaasSubscription:
        response = await self._make_request("GET", f"subscriptions/{subscription_id}")
        return AsaasSubscription.from_api_response(response)

    async def update_subscription(
        self, subscription_id: str, **changes: Any
    ) -> AsaasSubscription:
        """Update a subscription. Keyword names follow the Asaas API (``billingType``...)."""
        response = await self._make_request(
            "POST", f"subscriptions/{subscription_id}", data=changes
        )
        return AsaasSubscription.from_api_response(response)

    async def cancel_subscription(self, subscription_id: str) -> bool:
        response = await self._make_request("DELETE", f"subscriptions/{subscription_id}")
        deleted = bool(response.get("deleted", True))
        logger.info("Cancelled Asaas subscription %s", subscription_id)
        return deleted

    async def list_subscription_payments(self, subscription_id: str) -> list[AsaasPayment]:
        response = await self._make_request("GET", f"subscriptions/{subscription_id}/payments")
        return [AsaasPayment.from_api_response(item) for item in response.get("data", [])]

    # Payments

    async def get_payment(self, payment_id: str) -> AsaasPayment:
        response = await self._make_request("GET", f"payments/{payment_id}")
        return AsaasPayment.from_api_response(response)

    async def get_pix_qr_code(self, payment_id: str) -> AsaasPixQrCode:
        response = await self._make_request("GET", f"payments/{payment_id}/pixQrCode")
        return AsaasPixQrCode.from_api_response(response)

    async def refund_payment(
        self, payment_id: str, value: float | None = None, description: str | None = None
    ) -> AsaasPayment:
        payload: dict[str, Any] = {}
        if value is not None:
            payload["value"] = value
        if description:
            payload["description"] = description
        response = await self._make_request("POST", f"payments/{payment_id}/refund", data=payload)
        return AsaasPayment.from_api_response(response)

    # Webhooks

    def verify_webhook_token(self, token: str | None) -> bool:
        """
        Check the ``asaas-access-token`` header sent with each webhook.

        Raises:
            AsaasWebhookError: If no webhook token is configured
        """
        if not self.webhook_token:
            raise AsaasWebhookError(
                "Webhook token not configured. Set asaas_webhook_token in settings."
            )
        if not token:
            return False

        is_valid = hmac.compare_digest(self.webhook_token.encode(), token.encode())
        if not is_valid:
            logger.warning("Asaas webhook token verification failed")
        return is_valid

    def parse_webhook_event(self, payload: dict[str, Any]) -> AsaasWebhookEvent:
        event = AsaasWebhookEvent.from_webhook_payload(payload)
        logger.info("Parsed Asaas webhook event %s for payment %s", event.event, event.payment.id)
        return event


def create_asaas_adapter(
    api_key: str | None = None,
    environment: str | None = None,
    webhook_token: str | None = None,
) -> AsaasAdapter:
    """Create an Asaas adapter, defaulting to values from settings."""
    return AsaasAdapter(api_key=api_key, environment=environment, webhook_token=webhook_token)
