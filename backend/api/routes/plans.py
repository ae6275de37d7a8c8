"""
Public catalogue routes: plans, savings calculator and CEP lookup.
"""

import logging

from fastapi import APIRouter, HTTPException, Request, status

from adapters.address.viacep_adapter import ViaCEPError, viacep_adapter
from api.middleware.rate_limit import limiter
from api.schemas.plans import (
    AddressResponse,
    EconomyRequest,
    EconomyResponse,
    PlanListResponse,
    PlanResponse,
)
from core.calculator import (
    calculate_economy,
    format_currency,
    format_percentage,
    validate_calculator_input,
)
from core.plans import PLANS

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Plans"])


def _plan_response(plan_id: str, plan: dict) -> PlanResponse:
    return PlanResponse(
        id=plan_id,
        name=plan["name"],
        badge=plan.get("badge"),
        description=plan["description"],
        price_monthly=plan["price_monthly"],
        price_annual=plan["price_annual"],
        price_monthly_formatted=format_currency(plan["price_monthly"]),
        price_annual_formatted=format_currency(plan["price_annual"]),
        features=plan["features"],
        recommended=plan.get("recommended", False),
    )


@router.get("/plans", response_model=PlanListResponse)
async def list_plans():
    """List all subscription plans."""
    return PlanListResponse(
        plans=[_plan_response(plan_id, plan) for plan_id, plan in PLANS.items()]
    )


@router.get("/plans/{plan_id}", response_model=PlanResponse)
async def get_plan_details(plan_id: str):
    """Get a single plan."""
    plan = PLANS.get(plan_id)
    if plan is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Plan not found",
        )
    return _plan_response(plan_id, plan)


@router.post("/calculator/economy", response_model=EconomyResponse)
async def calculate_savings(body: EconomyRequest):
    """
    Compare single-purchase lens cost with the subscription.

    Returns 400 with every validation message joined when the input is invalid.
    """
    errors = validate_calculator_input(
        body.lens_type,
        body.usage_pattern,
        body.custom_usage_days,
        body.annual_lens_cost,
        body.annual_consultation_cost,
    )
    if errors:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="; ".join(errors),
        )

    result = calculate_economy(
        body.lens_type,
        body.usage_pattern,
        body.custom_usage_days,
        body.annual_lens_cost,
        body.annual_consultation_cost,
    )
    return EconomyResponse(
        **result.to_dict(),
        formatted={
            "monthly_savings": format_currency(result.monthly_savings),
            "yearly_savings": format_currency(result.yearly_savings),
            "savings_percentage": format_percentage(result.savings_percentage),
        },
    )


@router.get("/address/cep/{cep}", response_model=AddressResponse)
@limiter.limit("30/minute")
async def lookup_cep(request: Request, cep: str):
    """Resolve a CEP to a street address."""
    try:
        address = await viacep_adapter.lookup(cep)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="CEP must have 8 digits",
        )
    except ViaCEPError as e:
        logger.error("CEP lookup failed for %s: %s", cep, e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Address service unavailable",
        )

    if address is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="CEP not found",
        )
    return AddressResponse(**address.to_dict())
