"""
Resend email service adapter.
"""

import logging
from datetime import date
from html import escape
from typing import Optional

import resend

from core.calculator import format_currency as _brl
from infrastructure.config.settings import settings
from services.reminder_templates import (
    USER_AREA_URL,
    ReminderMessage,
    ReminderType,
    build_email_reminder,
    render_email_layout,
)

logger = logging.getLogger(__name__)


class ResendEmailService:
    """Email service using Resend API."""

    def __init__(self):
        if settings.resend_api_key:
            resend.api_key = settings.resend_api_key
        self._from_email = settings.resend_from_email

    @property
    def is_configured(self) -> bool:
        return bool(settings.resend_api_key)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html: str,
        text: Optional[str] = None,
        tags: Optional[dict[str, str]] = None,
    ) -> bool:
        """
        Send a single email.

        Without an API key the message is logged and treated as sent so
        local development works without Resend credentials.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.is_configured:
            logger.info("[DEV] Email to %s: %s", to_email, subject)
            return True

        params: dict = {
            "from": self._from_email,
            "to": to_email,
            "subject": subject,
            "html": html,
        }
        if text:
            params["text"] = text
        if tags:
            params["tags"] = [{"name": k, "value": v} for k, v in tags.items()]

        try:
            result = resend.Emails.send(params)
        except Exception as e:
            logger.error("Failed to send email '%s' to %s: %s", subject, to_email, e)
            return False

        if isinstance(result, dict) and not result.get("id"):
            logger.warning("Resend returned no message id for '%s'", subject)
            return False
        return True

    async def send_reminder_email(
        self,
        to_email: str,
        user_name: Optional[str],
        reminder: ReminderMessage,
    ) -> bool:
        subject, html = build_email_reminder(user_name, reminder)
        return await self.send_email(
            to_email,
            subject,
            html,
            text=reminder.message,
            tags={"category": "reminder", "type": ReminderType(reminder.type).value},
        )

    async def send_payment_confirmation_email(
        self,
        to_email: str,
        user_name: str,
        amount: float,
        plan_name: str,
        payment_date: Optional[date] = None,
    ) -> bool:
        """Confirm a received payment and the activated subscription."""
        paid_on = (payment_date or date.today()).strftime("%d/%m/%Y")
        message = (
            f"Recebemos o pagamento de {_brl(amount)} referente ao {escape(plan_name)} "
            f"em {paid_on}.<br><br>Sua assinatura está ativa e seu próximo envio de lentes "
            "já está sendo preparado."
        )
        html = render_email_layout(
            escape(user_name or "Cliente"),
            "✅",
            message,
            "Ver Minha Assinatura",
            f"{USER_AREA_URL}?tab=assinatura",
        )
        return await self.send_email(
            to_email,
            "✅ Pagamento confirmado - SV Lentes",
            html,
            tags={"category": "payment_confirmation"},
        )

    async def send_payment_overdue_email(
        self,
        to_email: str,
        user_name: str,
        amount: float,
        due_date: Optional[date],
        days_overdue: int,
        invoice_url: Optional[str] = None,
    ) -> bool:
        """Warn the customer that a payment is overdue."""
        due = due_date.strftime("%d/%m/%Y") if due_date else "-"
        plural = "dia" if days_overdue == 1 else "dias"
        message = (
            f"O pagamento de {_brl(amount)} com vencimento em {due} está em atraso há "
            f"{days_overdue} {plural}.<br><br>Regularize para não interromper o envio "
            "das suas lentes."
        )
        html = render_email_layout(
            escape(user_name or "Cliente"),
            "⚠️",
            message,
            "Pagar Agora",
            invoice_url or f"{USER_AREA_URL}?tab=pagamentos",
        )
        return await self.send_email(
            to_email,
            "⚠️ Pagamento em atraso - SV Lentes",
            html,
            tags={"category": "payment_overdue"},
        )

    async def send_refund_email(
        self,
        to_email: str,
        user_name: str,
        amount: float,
    ) -> bool:
        """Notify the customer that a payment was refunded."""
        message = (
            f"O reembolso de {_brl(amount)} foi processado.<br><br>"
            "O valor será devolvido pela mesma forma de pagamento utilizada."
        )
        html = render_email_layout(
            escape(user_name or "Cliente"),
            "💸",
            message,
            "Acessar Minha Conta",
            USER_AREA_URL,
        )
        return await self.send_email(
            to_email,
            "Reembolso processado - SV Lentes",
            html,
            tags={"category": "refund"},
        )

    async def send_account_claim_email(
        self,
        to_email: str,
        user_name: Optional[str],
        claim_token: str,
    ) -> bool:
        """Send the link that sets the first password on a checkout account."""
        claim_url = f"{settings.frontend_url}/criar-senha?token={claim_token}"
        message = (
            "Sua assinatura foi criada. Para acompanhar pedidos e pagamentos, "
            "defina a senha da sua conta pelo link abaixo.<br><br>"
            "O link é válido por 24 horas."
        )
        html = render_email_layout(
            escape(user_name or "Cliente"),
            "🔑",
            message,
            "Definir Minha Senha",
            claim_url,
        )
        return await self.send_email(
            to_email,
            "Defina sua senha - SV Lentes",
            html,
            tags={"category": "account_claim"},
        )


# Singleton instance
email_service = ResendEmailService()
