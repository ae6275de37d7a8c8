"""
Plan catalogue, savings calculator and address lookup schemas.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class PlanResponse(BaseModel):
    """Public plan details."""

    id: str
    name: str
    badge: Optional[str] = None
    description: str
    price_monthly: float
    price_annual: float
    price_monthly_formatted: str
    price_annual_formatted: str
    features: List[str]
    recommended: bool = False


class PlanListResponse(BaseModel):
    plans: List[PlanResponse]


class EconomyRequest(BaseModel):
    """Savings calculator input.

    Field constraints are checked by the route so that the error messages
    match the calculator's own.
    """

    lens_type: Optional[str] = None
    usage_pattern: Optional[str] = None
    custom_usage_days: Optional[int] = None
    annual_lens_cost: Optional[float] = None
    annual_consultation_cost: Optional[float] = None


class EconomyResponse(BaseModel):
    lenses_per_month: int
    monthly_single: float
    monthly_subscription: float
    monthly_savings: float
    yearly_single: float
    yearly_subscription: float
    yearly_savings: float
    savings_percentage: float
    recommended_plan: str
    included_consultations: int
    total_current_annual_cost: float
    total_subscription_annual_cost: float
    total_annual_savings: float
    cost_per_lens_single: float
    cost_per_lens_subscription: float
    formatted: dict = Field(default_factory=dict)


class AddressResponse(BaseModel):
    cep: str
    street: str
    complement: str = ""
    neighborhood: str
    city: str
    state: str
    ibge: Optional[str] = None
