"""
Tests for the Asaas payment gateway adapter.
"""

from datetime import date
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from adapters.payments.asaas_adapter import (
    AsaasAdapter,
    AsaasAPIError,
    AsaasAuthError,
    AsaasPayment,
    AsaasWebhookError,
    AsaasWebhookEvent,
)


def _response(status_code=200, json_data=None, method="GET", url="https://sandbox.asaas.com/api/v3/x"):
    return httpx.Response(status_code, json=json_data, request=httpx.Request(method, url))


@pytest.fixture
def adapter():
    return AsaasAdapter(api_key="test_key", environment="sandbox", webhook_token="hook-token")


@pytest.fixture
def payment_data():
    return {
        "id": "pay_123",
        "customer": "cus_123",
        "subscription": "sub_123",
        "billingType": "PIX",
        "status": "RECEIVED",
        "value": 128.0,
        "netValue": 125.5,
        "dueDate": "2026-03-10",
        "paymentDate": "2026-03-09",
        "invoiceUrl": "https://asaas.com/i/pay_123",
    }


class TestConfiguration:
    def test_base_url_by_environment(self):
        assert AsaasAdapter(api_key="k", environment="sandbox").base_url == AsaasAdapter.SANDBOX_URL
        assert AsaasAdapter(api_key="k", environment="production").base_url == AsaasAdapter.PRODUCTION_URL

    def test_headers(self, adapter):
        headers = adapter._get_headers()
        assert headers["access_token"] == "test_key"
        assert headers["Content-Type"] == "application/json"

    def test_missing_api_key(self, adapter):
        adapter.api_key = ""
        with pytest.raises(AsaasAuthError):
            adapter._get_headers()


class TestModels:
    def test_payment_from_api_response(self, payment_data):
        payment = AsaasPayment.from_api_response(payment_data)

        assert payment.id == "pay_123"
        assert payment.subscription_id == "sub_123"
        assert payment.net_value == 125.5
        assert payment.due_date == date(2026, 3, 10)
        assert payment.payment_date == date(2026, 3, 9)

    def test_webhook_event(self, payment_data):
        event = AsaasWebhookEvent.from_webhook_payload(
            {"id": "evt_1", "event": "PAYMENT_RECEIVED", "payment": payment_data}
        )
        assert event.event == "PAYMENT_RECEIVED"
        assert event.idempotency_key == "evt_1"

    def test_webhook_event_without_id(self, payment_data):
        event = AsaasWebhookEvent.from_webhook_payload({"event": "PAYMENT_OVERDUE", "payment": payment_data})
        assert event.idempotency_key == "PAYMENT_OVERDUE:pay_123"

    def test_webhook_event_requires_payment(self):
        with pytest.raises(AsaasWebhookError):
            AsaasWebhookEvent.from_webhook_payload({"event": "PAYMENT_RECEIVED"})


class TestRequests:
    @pytest.mark.asyncio
    async def test_create_customer_maps_fields(self, adapter):
        response = _response(200, {"id": "cus_1", "name": "Maria", "email": "m@example.com", "cpfCnpj": "52998224725"})
        with patch("httpx.AsyncClient.request", new=AsyncMock(return_value=response)) as mock_request:
            customer = await adapter.create_customer(
                "Maria",
                "m@example.com",
                "52998224725",
                phone="11987654321",
                address={"cep": "01310100", "street": "Av. Paulista", "number": "1000", "neighborhood": "Bela Vista"},
            )

        assert customer.id == "cus_1"
        method, url = mock_request.await_args.args
        payload = mock_request.await_args.kwargs["json"]
        assert method == "POST"
        assert url == "https://sandbox.asaas.com/api/v3/customers"
        assert payload["cpfCnpj"] == "52998224725"
        assert payload["mobilePhone"] == "11987654321"
        assert payload["postalCode"] == "01310100"
        assert payload["province"] == "Bela Vista"

    @pytest.mark.asyncio
    async def test_get_or_create_reuses_existing(self, adapter):
        response = _response(200, {"data": [{"id": "cus_9", "name": "Maria", "email": "m@example.com"}]})
        with patch("httpx.AsyncClient.request", new=AsyncMock(return_value=response)) as mock_request:
            customer = await adapter.get_or_create_customer("Maria", "m@example.com", "52998224725")

        assert customer.id == "cus_9"
        assert mock_request.await_count == 1

    @pytest.mark.asyncio
    async def test_create_subscription(self, adapter):
        response = _response(
            200,
            {"id": "sub_1", "customer": "cus_1", "billingType": "PIX", "value": 128, "cycle": "MONTHLY",
             "status": "ACTIVE", "nextDueDate": "2026-04-01"},
        )
        with patch("httpx.AsyncClient.request", new=AsyncMock(return_value=response)) as mock_request:
            subscription = await adapter.create_subscription(
                "cus_1", "PIX", 128.0, date(2026, 4, 1), "MONTHLY", "Plano Express Mensal"
            )

        assert subscription.next_due_date == date(2026, 4, 1)
        assert mock_request.await_args.kwargs["json"]["nextDueDate"] == "2026-04-01"

    @pytest.mark.asyncio
    async def test_cancel_subscription(self, adapter):
        response = _response(200, {"deleted": True, "id": "sub_1"}, method="DELETE")
        with patch("httpx.AsyncClient.request", new=AsyncMock(return_value=response)):
            assert await adapter.cancel_subscription("sub_1") is True

    @pytest.mark.asyncio
    async def test_api_error_uses_description(self, adapter):
        response = _response(400, {"errors": [{"code": "invalid_cpfCnpj", "description": "CPF inválido"}]})
        with patch("httpx.AsyncClient.request", new=AsyncMock(return_value=response)):
            with pytest.raises(AsaasAPIError) as exc_info:
                await adapter.get_payment("pay_1")

        assert exc_info.value.status_code == 400
        assert "CPF inválido" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_rejected_key(self, adapter):
        with patch("httpx.AsyncClient.request", new=AsyncMock(return_value=_response(401, {}))):
            with pytest.raises(AsaasAuthError):
                await adapter.get_payment("pay_1")

    @pytest.mark.asyncio
    async def test_transport_error(self, adapter):
        error = httpx.ConnectError("connection refused")
        with patch("httpx.AsyncClient.request", new=AsyncMock(side_effect=error)):
            with pytest.raises(AsaasAPIError):
                await adapter.get_payment("pay_1")

    @pytest.mark.asyncio
    async def test_refund_payment_partial(self, adapter, payment_data):
        refunded = {**payment_data, "status": "REFUNDED"}
        response = _response(200, refunded, method="POST")
        with patch("httpx.AsyncClient.request", new=AsyncMock(return_value=response)) as mock_request:
            payment = await adapter.refund_payment("pay_123", value=64.0, description="Troca de plano")

        assert payment.status == "REFUNDED"
        method, url = mock_request.await_args.args
        assert method == "POST"
        assert url == "https://sandbox.asaas.com/api/v3/payments/pay_123/refund"
        assert mock_request.await_args.kwargs["json"] == {"value": 64.0, "description": "Troca de plano"}

    @pytest.mark.asyncio
    async def test_refund_payment_full_sends_empty_body(self, adapter, payment_data):
        response = _response(200, {**payment_data, "status": "REFUNDED"}, method="POST")
        with patch("httpx.AsyncClient.request", new=AsyncMock(return_value=response)) as mock_request:
            await adapter.refund_payment("pay_123")

        assert mock_request.await_args.kwargs["json"] == {}

    @pytest.mark.asyncio
    async def test_refund_payment_rejected(self, adapter):
        response = _response(
            400,
            {"errors": [{"code": "invalid_action", "description": "Cobrança já estornada"}]},
            method="POST",
        )
        with patch("httpx.AsyncClient.request", new=AsyncMock(return_value=response)):
            with pytest.raises(AsaasAPIError) as exc_info:
                await adapter.refund_payment("pay_123")

        assert exc_info.value.status_code == 400
        assert "Cobrança já estornada" in str(exc_info.value)


class TestWebhookToken:
    def test_valid_token(self, adapter):
        assert adapter.verify_webhook_token("hook-token") is True

    def test_invalid_or_missing_token(self, adapter):
        assert adapter.verify_webhook_token("other") is False
        assert adapter.verify_webhook_token(None) is False

    def test_unconfigured(self, adapter):
        adapter.webhook_token = ""
        with pytest.raises(AsaasWebhookError):
            adapter.verify_webhook_token("hook-token")
