"""
Checkout request and response schemas.
"""

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from core.validators import format_cep, validate_cep_format


class ShippingAddress(BaseModel):
    """Delivery address. The CEP is normalised to ``00000-000``."""

    cep: str
    street: str = Field(..., min_length=1, max_length=255)
    number: str = Field(..., min_length=1, max_length=20)
    complement: Optional[str] = Field(None, max_length=255)
    neighborhood: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=255)
    state: str = Field(..., min_length=2, max_length=2)

    @field_validator("cep")
    @classmethod
    def validate_cep(cls, v: str) -> str:
        if not validate_cep_format(v):
            raise ValueError("CEP must have 8 digits")
        return format_cep(v)

    @field_validator("state")
    @classmethod
    def upper_state(cls, v: str) -> str:
        return v.upper()


class CustomerData(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(..., max_length=20)
    cpf_cnpj: str = Field(..., max_length=18)
    address: Optional[ShippingAddress] = None


class CheckoutRequest(BaseModel):
    """Start a subscription and generate its first charge."""

    plan_id: str
    billing_interval: Literal["monthly", "annual"] = "monthly"
    billing_type: Literal["PIX", "BOLETO", "CREDIT_CARD"] = "PIX"
    customer: CustomerData


class CheckoutSubscription(BaseModel):
    id: str
    asaas_subscription_id: Optional[str] = None
    status: str
    plan_id: str
    billing_interval: str
    amount: float
    next_billing_date: Optional[date] = None


class CheckoutPayment(BaseModel):
    id: str
    status: str
    billing_type: str
    value: float
    due_date: Optional[date] = None
    invoice_url: Optional[str] = None
    bank_slip_url: Optional[str] = None
    pix_qr_code: Optional[str] = None
    pix_payload: Optional[str] = None


class CheckoutPlan(BaseModel):
    id: str
    name: str
    price: float
    price_formatted: str


class CheckoutResponse(BaseModel):
    customer: dict
    subscription: CheckoutSubscription
    payment: Optional[CheckoutPayment] = None
    plan: CheckoutPlan
