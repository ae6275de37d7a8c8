"""
Reminder message templates for email and WhatsApp.

Rendering is pure: no I/O, no database. Senders call
``build_email_reminder`` / ``build_whatsapp_reminder`` and hand the result to
the channel adapters.
"""

from dataclasses import dataclass, field
from enum import Enum
from html import escape
from typing import Optional

USER_AREA_URL = "https://svlentes.com.br/area-usuario"
WHATSAPP_FOOTER = "_SV Lentes - Lentes de Contato com Acompanhamento Médico_"

SUPPORT_CONTACTS = (
    ("WhatsApp", "(33) 99898-0026", "https://wa.me/5533998980026"),
    ("Email", "contato@svlentes.com.br", "mailto:contato@svlentes.com.br"),
)


class ReminderType(str, Enum):
    SUBSCRIPTION_RENEWAL = "subscription_renewal"
    ORDER_DELIVERY = "order_delivery"
    APPOINTMENT = "appointment"
    GENERAL = "general"


@dataclass(frozen=True)
class ReminderTemplate:
    icon: str
    default_subject: str
    action_label: str
    action_url: str
    whatsapp_extras: tuple[tuple[str, ...], ...] = ()


TEMPLATES = {
    ReminderType.SUBSCRIPTION_RENEWAL: ReminderTemplate(
        icon="🔔",
        default_subject="🔔 Lembrete: Renovação da sua assinatura SV Lentes",
        action_label="Ver Minha Assinatura",
        action_url=f"{USER_AREA_URL}?tab=assinatura",
        whatsapp_extras=(
            ("📱 *Precisa de ajuda?*", "Responda esta mensagem ou acesse:", USER_AREA_URL),
        ),
    ),
    ReminderType.ORDER_DELIVERY: ReminderTemplate(
        icon="📦",
        default_subject="📦 Seu pedido SV Lentes está a caminho!",
        action_label="Rastrear Pedido",
        action_url=f"{USER_AREA_URL}?tab=pedidos",
        whatsapp_extras=(("📦 *Rastreie seu pedido:*", f"{USER_AREA_URL}?tab=pedidos"),),
    ),
    ReminderType.APPOINTMENT: ReminderTemplate(
        icon="👓",
        default_subject="👓 Lembrete: Consulta de acompanhamento SV Lentes",
        action_label="Ver Minhas Consultas",
        action_url=f"{USER_AREA_URL}?tab=consultas",
        whatsapp_extras=(
            (
                "💡 *Precisa reagendar?*",
                "Responda esta mensagem e nossa equipe cuida de tudo para você.",
            ),
        ),
    ),
    ReminderType.GENERAL: ReminderTemplate(
        icon="💬",
        default_subject="🔔 Lembrete - SV Lentes",
        action_label="Acessar Minha Conta",
        action_url=USER_AREA_URL,
    ),
}


@dataclass
class ReminderMessage:
    type: ReminderType
    message: str
    subject: Optional[str] = None
    metadata: dict = field(default_factory=dict)


def get_template(reminder_type: ReminderType | str) -> ReminderTemplate:
    try:
        return TEMPLATES[ReminderType(reminder_type)]
    except ValueError:
        return TEMPLATES[ReminderType.GENERAL]


def _render_support_section() -> str:
    lines = [
        '<div style="margin-top: 35px; padding: 20px; background-color: #f8fafc; '
        'border-radius: 8px; border: 1px solid #e2e8f0;">',
        '<p style="font-size: 14px; color: #64748b; margin: 0 0 10px 0; font-weight: 600;">'
        "📞 Precisa de ajuda?</p>",
    ]
    for label, value, href in SUPPORT_CONTACTS:
        lines.append(
            f'<p style="font-size: 14px; color: #64748b; margin: 5px 0;">{label}: '
            f'<a href="{href}" style="color: #0891b2; text-decoration: none;">{value}</a></p>'
        )
    lines.append("</div>")
    return "".join(lines)


def render_email_layout(greeting_name: str, icon: str, message_html: str, action_label: str, action_url: str) -> str:
    """Wrap already-escaped message HTML in the branded email layout."""
    return "".join(
        [
            "<!DOCTYPE html>",
            '<html lang="pt-BR">',
            '<head><meta charset="UTF-8">',
            '<meta name="viewport" content="width=device-width, initial-scale=1.0">',
            "<title>Lembrete - SV Lentes</title></head>",
            "<body style=\"font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; "
            'line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px; '
            'background-color: #f5f5f5;">',
            '<div style="background: linear-gradient(135deg, #06b6d4 0%, #0891b2 100%); padding: 30px; '
            'text-align: center; border-radius: 10px 10px 0 0;">',
            '<h1 style="color: white; margin: 0; font-size: 28px;">SV Lentes</h1>',
            '<p style="color: white; margin: 10px 0 0 0; font-size: 16px;">'
            "Lentes de Contato com Acompanhamento Médico</p>",
            "</div>",
            '<div style="background: white; padding: 40px 30px; border-radius: 0 0 10px 10px;">',
            f'<p style="font-size: 18px; margin-bottom: 20px; color: #0891b2;">Olá, {greeting_name}!</p>',
            '<div style="background-color: #f0f9ff; border-left: 4px solid #06b6d4; padding: 20px; '
            'margin: 25px 0; border-radius: 4px;">',
            f'<p style="font-size: 16px; margin: 0; color: #0c4a6e;">{icon} {message_html}</p>',
            "</div>",
            '<div style="text-align: center; margin: 30px 0;">',
            f'<a href="{action_url}" style="background: #06b6d4; color: white; padding: 14px 32px; '
            'text-decoration: none; border-radius: 6px; font-weight: 600; display: inline-block;">',
            action_label,
            "</a></div>",
            _render_support_section(),
            '<hr style="border: none; border-top: 1px solid #e2e8f0; margin: 30px 0;">',
            '<div style="text-align: center;">',
            '<p style="font-size: 12px; color: #cbd5e1;">Você está recebendo este email porque é '
            f'assinante da SV Lentes.<br><a href="{USER_AREA_URL}?tab=preferencias" '
            'style="color: #0891b2;">Alterar preferências de notificação</a></p>',
            "</div></div></body></html>",
        ]
    )


def build_email_reminder(name: Optional[str], reminder: ReminderMessage) -> tuple[str, str]:
    """Return ``(subject, html)`` for a reminder email."""
    template = get_template(reminder.type)
    greeting_name = escape(name or "Cliente")
    message_html = escape(reminder.message).replace("\n", "<br>")
    html = render_email_layout(
        greeting_name,
        template.icon,
        message_html,
        template.action_label,
        template.action_url,
    )
    return reminder.subject or template.default_subject, html


def build_whatsapp_reminder(name: Optional[str], reminder: ReminderMessage) -> str:
    template = get_template(reminder.type)
    greeting = f"Olá, {name}!" if name else "Olá!"
    sections = [
        f"{template.icon} *SV Lentes - Lembrete*",
        greeting,
        reminder.message.strip(),
        *("\n".join(block) for block in template.whatsapp_extras),
        WHATSAPP_FOOTER,
    ]
    return "\n\n".join(s for s in sections if s)


def renewal_message(days_until_renewal: int, renewal_date: str) -> str:
    if days_until_renewal == 0:
        return (
            "Hoje é o dia da renovação da sua assinatura! 🎉\n\n"
            "Sua próxima entrega será processada automaticamente."
        )
    if days_until_renewal == 1:
        return (
            "Amanhã sua assinatura será renovada! 📅\n\n"
            f"Data da renovação: {renewal_date}\n\n"
            "Suas lentes serão enviadas em breve."
        )
    return (
        f"Faltam apenas {days_until_renewal} dias para a renovação da sua assinatura! 📅\n\n"
        f"Data da renovação: {renewal_date}\n\n"
        "Você receberá suas lentes no prazo previsto."
    )


def order_delivery_message(
    tracking_code: Optional[str] = None, estimated_delivery: Optional[str] = None
) -> str:
    message = "Seu pedido está a caminho! 📦\n\n"
    if tracking_code:
        message += f"Código de rastreio: {tracking_code}\n\n"
    if estimated_delivery:
        message += f"Previsão de entrega: {estimated_delivery}\n\n"
    return message + "Acompanhe seu pedido em tempo real pela sua área de usuário."


def appointment_message(appointment_date: str, appointment_time: str) -> str:
    return (
        "Lembrete de consulta de acompanhamento! 👓\n\n"
        f"Data: {appointment_date}\nHorário: {appointment_time}\n\n"
        "Sua saúde ocular é nossa prioridade. Não esqueça de comparecer!"
    )
