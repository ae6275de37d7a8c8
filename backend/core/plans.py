"""
Subscription plan catalogue.

This module is the single source of truth for plan prices and features.
It lives in core/ so both service and API layers can import from it
without creating circular dependencies.
"""

BILLING_INTERVALS = ("monthly", "annual")

# Asaas subscription cycle per billing interval
ASAAS_CYCLES = {
    "monthly": "MONTHLY",
    "annual": "YEARLY",
}

PLANS = {
    "basico": {
        "name": "Plano Express Mensal",
        "badge": "Sem Fidelidade",
        "price_monthly": 128.00,
        "price_annual": 1091.00,
        "description": (
            "Plano básico de lentes asféricas mensais com entrega em casa. "
            "Sem fidelidade, cancele quando quiser."
        ),
        "features": [
            "1 par de lentes asféricas mensais",
            "Entrega em casa",
            "Sem fidelidade - cancele quando quiser",
            "Acompanhamento via WhatsApp",
            "Troca gratuita em caso de defeito",
            "Atendimento em todo o Brasil",
        ],
        "recommended": False,
    },
    "padrao": {
        "name": "Plano VIP Anual",
        "badge": "RECOMENDADO",
        "price_monthly": 91.00,
        "price_annual": 1091.00,
        "description": (
            "Plano anual com máxima economia. 12 pares de lentes + acessórios + frete grátis."
        ),
        "features": [
            "12 pares de lentes asféricas (1 ano completo)",
            "3 estojos protetores",
            "3 soluções multiuso 300ml",
            "Frete grátis (2 envios/ano)",
            "Desconto de 29% vs plano mensal",
            "Suporte via WhatsApp 24/7",
        ],
        "recommended": True,
    },
    "premium": {
        "name": "Plano Saúde Ocular Anual",
        "badge": "Premium com Telemedicina",
        "price_monthly": 138.00,
        "price_annual": 1661.00,
        "description": (
            "Acompanhamento preventivo completo com 4 consultas de telemedicina/ano."
        ),
        "features": [
            "4 consultas por telemedicina/ano (1 por trimestre)",
            "12 pares de lentes asféricas",
            "3 estojos protetores",
            "3 soluções multiuso 300ml",
            "Frete grátis (2 envios/ano)",
            "Ajustes de grau ilimitados",
            "Prioridade no atendimento",
        ],
        "recommended": False,
    },
}


def get_plan(plan_id: str) -> dict:
    """Return the plan config for ``plan_id``.

    Raises:
        ValueError: If the plan does not exist.
    """
    plan = PLANS.get(plan_id)
    if plan is None:
        raise ValueError(f"Unknown plan: {plan_id}")
    return plan


def get_plan_price(plan_id: str, interval: str) -> float:
    """Price charged per billing cycle for a plan and interval."""
    if interval not in BILLING_INTERVALS:
        raise ValueError(f"Invalid billing interval: {interval}")
    plan = get_plan(plan_id)
    return plan["price_monthly"] if interval == "monthly" else plan["price_annual"]


def monthly_recurring_value(plan_id: str, interval: str) -> float:
    """Normalise a plan price to a monthly figure for MRR reporting."""
    price = get_plan_price(plan_id, interval)
    return price if interval == "monthly" else round(price / 12, 2)
