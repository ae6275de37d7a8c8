"""
Tests for the SendPulse WhatsApp/SMS adapter.
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from adapters.messaging.sendpulse_adapter import (
    SendPulseAdapter,
    SendPulseAPIError,
    SendPulseAuthError,
    SendPulseConfigError,
    SendPulseMessage,
    normalize_phone,
)


def _response(status_code=200, json_data=None, method="POST", url="https://api.sendpulse.com/x"):
    return httpx.Response(status_code, json=json_data, request=httpx.Request(method, url))


@pytest.fixture
def adapter():
    adapter = SendPulseAdapter(
        client_id="client", client_secret="secret", webhook_token="sp-token", sms_sender="SVLentes"
    )
    adapter._get_access_token = AsyncMock(return_value="access")
    return adapter


class TestPhone:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("(11) 98765-4321", "5511987654321"),
            ("1133334444", "551133334444"),
            ("+55 11 98765-4321", "5511987654321"),
            ("123", "123"),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_phone(raw) == expected

    def test_message_id_from_nested_data(self):
        message = SendPulseMessage.from_api_response("5511", {"data": {"id": 42}})
        assert message.message_id == "42"
        assert SendPulseMessage.from_api_response("5511", {}).message_id is None


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_token_is_cached(self):
        adapter = SendPulseAdapter(client_id="client", client_secret="secret")
        response = _response(200, {"access_token": "tok", "expires_in": 3600})
        with patch("httpx.AsyncClient.post", new=AsyncMock(return_value=response)) as mock_post:
            assert await adapter._get_access_token() == "tok"
            assert await adapter._get_access_token() == "tok"

        assert mock_post.await_count == 1

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        adapter = SendPulseAdapter(client_id="client", client_secret="secret")
        adapter.client_secret = ""
        with pytest.raises(SendPulseAuthError):
            await adapter._get_access_token()


class TestMessaging:
    @pytest.mark.asyncio
    async def test_send_message(self, adapter):
        responses = [
            _response(200, {"data": [{"id": "bot-1"}]}, method="GET"),
            _response(200, {"success": True, "data": {"id": "msg-1"}}),
        ]
        with patch("httpx.AsyncClient.request", new=AsyncMock(side_effect=responses)) as mock_request:
            message = await adapter.send_message("11987654321", "Olá")

        assert message.message_id == "msg-1"
        assert message.phone == "5511987654321"
        payload = mock_request.await_args.kwargs["json"]
        assert payload == {"bot_id": "bot-1", "phone": "5511987654321", "data": {"text": "Olá"}}

    @pytest.mark.asyncio
    async def test_quick_replies_are_limited(self, adapter):
        adapter._bot_id = "bot-1"
        response = _response(200, {"data": {"id": "msg-2"}})
        with patch("httpx.AsyncClient.request", new=AsyncMock(return_value=response)) as mock_request:
            await adapter.send_message_with_quick_replies(
                "11987654321", "Confirma?", ["Sim", "Não", "Talvez", "Reagendar a entrega para depois"]
            )

        buttons = mock_request.await_args.kwargs["json"]["data"]["buttons"]
        assert [b["title"] for b in buttons] == ["Sim", "Não", "Talvez"]
        assert buttons[0]["payload"] == "btn_1"

    @pytest.mark.asyncio
    async def test_no_bot_configured(self, adapter):
        with patch("httpx.AsyncClient.request", new=AsyncMock(return_value=_response(200, {"data": []}, method="GET"))):
            with pytest.raises(SendPulseConfigError):
                await adapter.send_message("11987654321", "Olá")

    @pytest.mark.asyncio
    async def test_send_sms(self, adapter):
        response = _response(200, {"id": "sms-1"})
        with patch("httpx.AsyncClient.request", new=AsyncMock(return_value=response)) as mock_request:
            message = await adapter.send_sms("11987654321", "Seu pedido saiu")

        assert message.message_id == "sms-1"
        assert mock_request.await_args.kwargs["json"] == {
            "sender": "SVLentes",
            "phones": ["5511987654321"],
            "body": "Seu pedido saiu",
        }

    @pytest.mark.asyncio
    async def test_rejected_token_is_dropped(self, adapter):
        adapter._bot_id = "bot-1"
        adapter._access_token = "stale"
        with patch("httpx.AsyncClient.request", new=AsyncMock(return_value=_response(401, {}))):
            with pytest.raises(SendPulseAuthError):
                await adapter.send_sms("11987654321", "x")
        assert adapter._access_token is None

    @pytest.mark.asyncio
    async def test_api_error_message(self, adapter):
        adapter._bot_id = "bot-1"
        response = _response(422, {"message": "Phone not subscribed"})
        with patch("httpx.AsyncClient.request", new=AsyncMock(return_value=response)):
            with pytest.raises(SendPulseAPIError) as exc_info:
                await adapter.send_message("11987654321", "x")

        assert exc_info.value.status_code == 422
        assert "Phone not subscribed" in str(exc_info.value)


class TestContacts:
    @pytest.mark.asyncio
    async def test_create_contact_with_tags_and_variables(self, adapter):
        adapter._bot_id = "bot-1"
        response = _response(200, {"success": True, "data": {"id": "contact-1"}})
        with patch("httpx.AsyncClient.request", new=AsyncMock(return_value=response)) as mock_request:
            result = await adapter.create_or_update_contact(
                "(11) 98765-4321",
                name="Maria Silva",
                variables={"plano": "express"},
                tags=["assinante", "mensal"],
            )

        assert result["data"]["id"] == "contact-1"
        method, url = mock_request.await_args.args
        assert method == "POST"
        assert url == "https://api.sendpulse.com/whatsapp/contacts/set"
        assert mock_request.await_args.kwargs["json"] == {
            "bot_id": "bot-1",
            "phone": "5511987654321",
            "name": "Maria Silva",
            "variables": {"plano": "express"},
            "tags": ["assinante", "mensal"],
        }

    @pytest.mark.asyncio
    async def test_empty_optional_fields_are_omitted(self, adapter):
        adapter._bot_id = "bot-1"
        response = _response(200, {"success": True})
        with patch("httpx.AsyncClient.request", new=AsyncMock(return_value=response)) as mock_request:
            await adapter.create_or_update_contact("11987654321", tags=[])

        assert mock_request.await_args.kwargs["json"] == {"bot_id": "bot-1", "phone": "5511987654321"}

    @pytest.mark.asyncio
    async def test_contact_error_is_mapped(self, adapter):
        adapter._bot_id = "bot-1"
        response = _response(400, {"error": {"message": "Invalid phone"}})
        with patch("httpx.AsyncClient.request", new=AsyncMock(return_value=response)):
            with pytest.raises(SendPulseAPIError) as exc_info:
                await adapter.create_or_update_contact("123")

        assert exc_info.value.status_code == 400
        assert "Invalid phone" in str(exc_info.value)


class TestWebhookToken:
    def test_verify(self, adapter):
        assert adapter.verify_webhook_token("sp-token") is True
        assert adapter.verify_webhook_token("nope") is False
        assert adapter.verify_webhook_token(None) is False
