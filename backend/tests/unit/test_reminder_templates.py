"""Unit tests for reminder message rendering."""

from services.reminder_templates import (
    TEMPLATES,
    WHATSAPP_FOOTER,
    ReminderMessage,
    ReminderType,
    appointment_message,
    build_email_reminder,
    build_whatsapp_reminder,
    get_template,
    order_delivery_message,
    renewal_message,
)


class TestTemplates:
    def test_lookup_by_value(self):
        assert get_template("order_delivery") is TEMPLATES[ReminderType.ORDER_DELIVERY]

    def test_unknown_type_uses_general(self):
        assert get_template("birthday") is TEMPLATES[ReminderType.GENERAL]


class TestEmail:
    def test_default_subject_and_layout(self):
        reminder = ReminderMessage(type=ReminderType.SUBSCRIPTION_RENEWAL, message="Linha 1\nLinha 2")
        subject, html = build_email_reminder("Maria", reminder)

        assert subject == "🔔 Lembrete: Renovação da sua assinatura SV Lentes"
        assert "Olá, Maria!" in html
        assert "Linha 1<br>Linha 2" in html
        assert "Ver Minha Assinatura" in html
        assert "?tab=assinatura" in html

    def test_custom_subject(self):
        reminder = ReminderMessage(type=ReminderType.GENERAL, message="Oi", subject="Assunto")
        subject, _ = build_email_reminder(None, reminder)
        assert subject == "Assunto"

    def test_user_input_is_escaped(self):
        reminder = ReminderMessage(type=ReminderType.GENERAL, message="<script>alert(1)</script>")
        _, html = build_email_reminder("<b>Eve</b>", reminder)

        assert "<script>" not in html
        assert "&lt;script&gt;" in html
        assert "Olá, &lt;b&gt;Eve&lt;/b&gt;!" in html

    def test_missing_name(self):
        _, html = build_email_reminder(None, ReminderMessage(type=ReminderType.GENERAL, message="x"))
        assert "Olá, Cliente!" in html


class TestWhatsApp:
    def test_sections(self):
        reminder = ReminderMessage(type=ReminderType.ORDER_DELIVERY, message="  A caminho  ")
        text = build_whatsapp_reminder("João", reminder)

        parts = text.split("\n\n")
        assert parts[0] == "📦 *SV Lentes - Lembrete*"
        assert parts[1] == "Olá, João!"
        assert parts[2] == "A caminho"
        assert "Rastreie seu pedido" in text
        assert text.endswith(WHATSAPP_FOOTER)

    def test_without_name(self):
        text = build_whatsapp_reminder(None, ReminderMessage(type=ReminderType.GENERAL, message="x"))
        assert "\n\nOlá!\n\n" in text


class TestMessages:
    def test_renewal_today(self):
        assert renewal_message(0, "10/03/2026").startswith("Hoje é o dia")

    def test_renewal_tomorrow(self):
        message = renewal_message(1, "10/03/2026")
        assert message.startswith("Amanhã")
        assert "10/03/2026" in message

    def test_renewal_in_days(self):
        assert renewal_message(5, "10/03/2026").startswith("Faltam apenas 5 dias")

    def test_order_delivery(self):
        message = order_delivery_message("BR123", "15/03/2026")
        assert "Código de rastreio: BR123" in message
        assert "Previsão de entrega: 15/03/2026" in message
        assert "Código de rastreio" not in order_delivery_message()

    def test_appointment(self):
        message = appointment_message("20/03/2026", "14:30")
        assert "Data: 20/03/2026\nHorário: 14:30" in message
