"""
Checkout route: creates the Asaas customer, subscription and first charge.
"""

import logging
from datetime import date, timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.payments.asaas_adapter import AsaasError, create_asaas_adapter
from api.middleware.rate_limit import get_rate_limit, limiter
from api.routes.auth import send_account_claim_link
from api.schemas.checkout import (
    CheckoutPayment,
    CheckoutPlan,
    CheckoutRequest,
    CheckoutResponse,
    CheckoutSubscription,
)
from core.calculator import format_currency
from core.plans import ASAAS_CYCLES, PLANS, get_plan_price
from core.validators import clean_numeric, validate_cpf_or_cnpj, validate_phone
from infrastructure.database.connection import get_db
from infrastructure.database.models.subscription import (
    Payment,
    PaymentStatus,
    Subscription,
    SubscriptionStatus,
)
from infrastructure.database.models.user import User, UserStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkout", tags=["Checkout"])

FIRST_DUE_IN_DAYS = 7


@router.post("", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("checkout"))
async def create_checkout(
    request: Request,
    body: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Start a subscription.

    The customer is matched by email, in Asaas and locally. New local
    accounts are created without a password and the owner is emailed a
    link to set one.
    """
    plan = PLANS.get(body.plan_id)
    if plan is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid plan",
        )

    customer_data = body.customer
    if not validate_cpf_or_cnpj(customer_data.cpf_cnpj):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid CPF or CNPJ",
        )
    if not validate_phone(customer_data.phone):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid phone number",
        )

    email = customer_data.email.lower()
    cpf_cnpj = clean_numeric(customer_data.cpf_cnpj)
    phone = clean_numeric(customer_data.phone)
    address = customer_data.address.model_dump() if customer_data.address else None
    amount = get_plan_price(body.plan_id, body.billing_interval)
    next_due_date = date.today() + timedelta(days=FIRST_DUE_IN_DAYS)

    asaas = create_asaas_adapter()
    try:
        customer = await asaas.get_or_create_customer(
            name=customer_data.name,
            email=email,
            cpf_cnpj=cpf_cnpj,
            phone=phone,
            address=address,
        )
        asaas_subscription = await asaas.create_subscription(
            customer_id=customer.id,
            billing_type=body.billing_type,
            value=amount,
            next_due_date=next_due_date,
            cycle=ASAAS_CYCLES[body.billing_interval],
            description=f"Assinatura {plan['name']} - SV Lentes",
        )
        payments = await asaas.list_subscription_payments(asaas_subscription.id)
        first_payment = payments[0] if payments else None
        pix = None
        if first_payment and body.billing_type == "PIX":
            pix = await asaas.get_pix_qr_code(first_payment.id)
    except AsaasError as e:
        logger.error("Checkout failed at the payment gateway for %s: %s", email, e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Payment gateway error",
        )

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    new_account = user is None
    if new_account:
        user = User(
            email=email,
            name=customer_data.name,
            status=UserStatus.PENDING.value,
        )
        db.add(user)
    user.phone = user.phone or phone
    user.whatsapp = user.whatsapp or phone
    user.cpf_cnpj = user.cpf_cnpj or cpf_cnpj
    if not user.asaas_customer_id:
        user.asaas_customer_id = customer.id
    await db.flush()

    subscription = Subscription(
        user_id=user.id,
        plan_id=body.plan_id,
        billing_interval=body.billing_interval,
        status=SubscriptionStatus.PENDING.value,
        payment_method=body.billing_type,
        amount=amount,
        asaas_subscription_id=asaas_subscription.id,
        next_billing_date=asaas_subscription.next_due_date or next_due_date,
        shipping_address=address,
    )
    db.add(subscription)
    await db.flush()

    payment = None
    if first_payment:
        payment = Payment(
            user_id=user.id,
            subscription_id=subscription.id,
            asaas_payment_id=first_payment.id,
            status=first_payment.status or PaymentStatus.PENDING.value,
            billing_type=first_payment.billing_type or body.billing_type,
            value=first_payment.value,
            due_date=first_payment.due_date,
            invoice_url=first_payment.invoice_url,
            bank_slip_url=first_payment.bank_slip_url,
            pix_payload=pix.payload if pix else None,
            description=first_payment.description,
        )
        db.add(payment)

    await db.commit()

    logger.info(
        "Checkout completed: user=%s plan=%s interval=%s asaas_subscription=%s",
        user.id,
        body.plan_id,
        body.billing_interval,
        asaas_subscription.id,
    )

    if new_account:
        await send_account_claim_link(user)

    return CheckoutResponse(
        customer=customer.to_dict(),
        subscription=CheckoutSubscription(
            id=subscription.id,
            asaas_subscription_id=subscription.asaas_subscription_id,
            status=subscription.status,
            plan_id=subscription.plan_id,
            billing_interval=subscription.billing_interval,
            amount=subscription.amount,
            next_billing_date=subscription.next_billing_date,
        ),
        payment=CheckoutPayment(
            id=payment.asaas_payment_id,
            status=payment.status,
            billing_type=payment.billing_type,
            value=payment.value,
            due_date=payment.due_date,
            invoice_url=payment.invoice_url,
            bank_slip_url=payment.bank_slip_url,
            pix_qr_code=pix.encoded_image if pix else None,
            pix_payload=payment.pix_payload,
        )
        if payment
        else None,
        plan=CheckoutPlan(
            id=body.plan_id,
            name=plan["name"],
            price=amount,
            price_formatted=format_currency(amount),
        ),
    )
