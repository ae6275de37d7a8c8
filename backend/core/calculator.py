"""
Savings calculator: single-purchase lenses vs. subscription.
"""

from dataclasses import asdict, dataclass
from typing import Optional

from .plans import PLANS

# Days of lens wear per month
USAGE_PATTERNS = {
    "occasional": 10,
    "regular": 20,
    "daily": 30,
}

# Price per lens (single purchase, subscription)
LENS_TYPES = {
    "daily": (4.50, 2.70),
    "weekly": (12.00, 7.20),
    "monthly": (25.00, 15.00),
}

PLAN_RECOMMENDATIONS = {
    "occasional": "basico",
    "regular": "padrao",
    "daily": "padrao",
}

INCLUDED_CONSULTATIONS = {
    "basico": 1,
    "padrao": 2,
    "premium": 4,
}

# Average private ophthalmology consultation, two per year
MARKET_CONSULTATION_PRICE = 250.00
CONSULTATIONS_PER_YEAR = 2


@dataclass
class EconomyResult:
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

    def to_dict(self) -> dict:
        return asdict(self)


def validate_calculator_input(
    lens_type: Optional[str],
    usage_pattern: Optional[str],
    custom_usage_days: Optional[int] = None,
    annual_lens_cost: Optional[float] = None,
    annual_consultation_cost: Optional[float] = None,
) -> list[str]:
    """Return a list of validation errors; empty when the input is valid."""
    errors = []
    if not lens_type:
        errors.append("Tipo de lente é obrigatório")
    elif lens_type not in LENS_TYPES:
        errors.append("Tipo de lente inválido")

    if not usage_pattern:
        errors.append("Padrão de uso é obrigatório")
    elif usage_pattern not in USAGE_PATTERNS:
        errors.append("Padrão de uso inválido")

    if custom_usage_days is not None:
        if (
            isinstance(custom_usage_days, bool)
            or not isinstance(custom_usage_days, int)
            or not 1 <= custom_usage_days <= 31
        ):
            errors.append("Dias de uso deve ser entre 1 e 31")

    if annual_lens_cost is not None and annual_lens_cost < 0:
        errors.append("Custo de lentes não pode ser negativo")
    if annual_consultation_cost is not None and annual_consultation_cost < 0:
        errors.append("Custo de consultas não pode ser negativo")

    return errors


def calculate_economy(
    lens_type: str,
    usage_pattern: str,
    custom_usage_days: Optional[int] = None,
    annual_lens_cost: Optional[float] = None,
    annual_consultation_cost: Optional[float] = None,
) -> EconomyResult:
    """
    Compare buying lenses one by one against the subscription price.

    Two lenses are used per day of wear (one per eye).

    Raises:
        ValueError: If the lens type or usage pattern is unknown.
    """
    if lens_type not in LENS_TYPES or usage_pattern not in USAGE_PATTERNS:
        raise ValueError("Padrão de uso ou tipo de lente inválido")

    single_price, subscription_price = LENS_TYPES[lens_type]
    days_per_month = custom_usage_days if custom_usage_days is not None else USAGE_PATTERNS[usage_pattern]
    lenses_per_month = days_per_month * 2

    monthly_single = lenses_per_month * single_price
    monthly_subscription = lenses_per_month * subscription_price
    monthly_savings = monthly_single - monthly_subscription

    yearly_single = monthly_single * 12
    yearly_subscription = monthly_subscription * 12
    yearly_savings = yearly_single - yearly_subscription

    savings_percentage = (monthly_savings / monthly_single) * 100 if monthly_single else 0.0

    plan_id = PLAN_RECOMMENDATIONS[usage_pattern]
    current_lens_cost = annual_lens_cost or yearly_single
    current_consultation_cost = annual_consultation_cost or (
        MARKET_CONSULTATION_PRICE * CONSULTATIONS_PER_YEAR
    )
    total_current = current_lens_cost + current_consultation_cost
    total_subscription = PLANS[plan_id]["price_monthly"] * 12 + yearly_subscription

    return EconomyResult(
        lenses_per_month=lenses_per_month,
        monthly_single=round(monthly_single, 2),
        monthly_subscription=round(monthly_subscription, 2),
        monthly_savings=round(monthly_savings, 2),
        yearly_single=round(yearly_single, 2),
        yearly_subscription=round(yearly_subscription, 2),
        yearly_savings=round(yearly_savings, 2),
        savings_percentage=round(savings_percentage, 2),
        recommended_plan=plan_id,
        included_consultations=INCLUDED_CONSULTATIONS[plan_id],
        total_current_annual_cost=round(total_current, 2),
        total_subscription_annual_cost=round(total_subscription, 2),
        total_annual_savings=round(total_current - total_subscription, 2),
        cost_per_lens_single=single_price,
        cost_per_lens_subscription=subscription_price,
    )


def format_currency(value: float) -> str:
    """Format a value as Brazilian reais, e.g. ``R$ 1.091,00``."""
    sign = "-" if value < 0 else ""
    whole = f"{abs(value):,.2f}"
    # swap US separators for pt-BR ones
    whole = whole.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R$ {whole}"


def format_percentage(value: float) -> str:
    # half-up like Math.round, not banker's rounding
    return f"{int(value + 0.5) if value >= 0 else -int(-value + 0.5)}%"
