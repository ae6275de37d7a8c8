"""
Tests for the ViaCEP address lookup adapter.
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from adapters.address.viacep_adapter import ViaCEPAdapter, ViaCEPError

pytestmark = pytest.mark.asyncio


def _response(status_code=200, json_data=None):
    return httpx.Response(
        status_code, json=json_data, request=httpx.Request("GET", "https://viacep.com.br/ws/x/json/")
    )


@pytest.fixture
def adapter():
    return ViaCEPAdapter(base_url="https://viacep.com.br/ws/")


class TestViaCEPAdapter:
    async def test_lookup(self, adapter):
        data = {
            "cep": "01310-100",
            "logradouro": "Avenida Paulista",
            "complemento": "de 612 a 1510 - lado par",
            "bairro": "Bela Vista",
            "localidade": "São Paulo",
            "uf": "SP",
            "ibge": "3550308",
        }
        with patch("httpx.AsyncClient.get", new=AsyncMock(return_value=_response(200, data))) as mock_get:
            address = await adapter.lookup("01310-100")

        mock_get.assert_awaited_once_with("https://viacep.com.br/ws/01310100/json/")
        assert address.street == "Avenida Paulista"
        assert address.city == "São Paulo"
        assert address.to_dict()["state"] == "SP"

    async def test_unknown_cep(self, adapter):
        with patch("httpx.AsyncClient.get", new=AsyncMock(return_value=_response(200, {"erro": True}))):
            assert await adapter.lookup("99999999") is None

    async def test_invalid_format(self, adapter):
        with pytest.raises(ValueError):
            await adapter.lookup("123")

    async def test_service_error(self, adapter):
        with patch("httpx.AsyncClient.get", new=AsyncMock(return_value=_response(503, {}))):
            with pytest.raises(ViaCEPError):
                await adapter.lookup("01310100")
