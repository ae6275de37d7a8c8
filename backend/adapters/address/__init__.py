# Address Adapters
# ViaCEP postal code lookup

from .viacep_adapter import Address, ViaCEPAdapter, ViaCEPError, viacep_adapter

__all__ = ["Address", "ViaCEPAdapter", "ViaCEPError", "viacep_adapter"]
