"""Payment gateway adapters."""

from .asaas_adapter import (
    AsaasAdapter,
    AsaasAPIError,
    AsaasAuthError,
    AsaasCustomer,
    AsaasError,
    AsaasPayment,
    AsaasPixQrCode,
    AsaasSubscription,
    AsaasWebhookError,
    AsaasWebhookEvent,
    create_asaas_adapter,
)

__all__ = [
    "AsaasAdapter",
    "AsaasCustomer",
    "AsaasSubscription",
    "AsaasPayment",
    "AsaasPixQrCode",
    "AsaasWebhookEvent",
    "AsaasError",
    "AsaasAPIError",
    "AsaasAuthError",
    "AsaasWebhookError",
    "create_asaas_adapter",
]
