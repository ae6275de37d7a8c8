"""
ViaCEP adapter for Brazilian postal code (CEP) lookups.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional

import httpx

from core.validators import clean_numeric, format_cep, validate_cep_format
from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)


class ViaCEPError(Exception):
    """Raised when ViaCEP cannot be reached or answers with an error."""

    pass


@dataclass
class Address:
    cep: str
    street: str
    complement: str
    neighborhood: str
    city: str
    state: str
    ibge: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "Address":
        return cls(
            cep=data.get("cep", ""),
            street=data.get("logradouro", ""),
            complement=data.get("complemento", ""),
            neighborhood=data.get("bairro", ""),
            city=data.get("localidade", ""),
            state=data.get("uf", ""),
            ibge=data.get("ibge") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class ViaCEPAdapter:
    def __init__(self, base_url: Optional[str] = None, timeout: float = 5.0):
        self.base_url = (base_url or settings.viacep_base_url).rstrip("/")
        self.timeout = timeout

    async def lookup(self, cep: str) -> Optional[Address]:
        """
        Look up an address by CEP.

        Returns:
            The address, or None when the CEP does not exist

        Raises:
            ValueError: If the CEP is not 8 digits
            ViaCEPError: If the service fails
        """
        if not validate_cep_format(cep):
            raise ValueError(f"Invalid CEP: {cep}")

        digits = clean_numeric(cep)
        url = f"{self.base_url}/{digits}/json/"

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("ViaCEP error (%s) for %s", e.response.status_code, digits)
            raise ViaCEPError(f"ViaCEP returned {e.response.status_code}")
        except httpx.RequestError as e:
            logger.error("ViaCEP request error: %s", e)
            raise ViaCEPError(f"Request failed: {e}")

        if data.get("erro"):
            logger.info("CEP %s not found", format_cep(cep))
            return None

        return Address.from_api_response(data)


viacep_adapter = ViaCEPAdapter()
