"""
Direct subscription reminders over email and WhatsApp.

Unlike the orchestrator these reminders skip scheduling and ML selection:
they are sent immediately on the channel the caller asks for.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.email.resend_adapter import ResendEmailService, email_service
from adapters.messaging.sendpulse_adapter import (
    SendPulseAdapter,
    SendPulseError,
    get_sendpulse_adapter,
)
from core.plans import PLANS
from infrastructure.database.models.subscription import Subscription, SubscriptionStatus
from infrastructure.database.models.user import User
from services.reminder_templates import (
    ReminderMessage,
    ReminderType,
    appointment_message,
    build_whatsapp_reminder,
    order_delivery_message,
    renewal_message,
)

logger = logging.getLogger(__name__)


class ReminderChannel(str, Enum):
    EMAIL = "EMAIL"
    WHATSAPP = "WHATSAPP"
    BOTH = "BOTH"


@dataclass
class ReminderRecipient:
    user_id: str
    email: str
    phone: Optional[str] = None
    name: Optional[str] = None
    preferred_channel: ReminderChannel = ReminderChannel.EMAIL

    @classmethod
    def from_user(
        cls, user: User, channel: Optional[ReminderChannel] = None
    ) -> "ReminderRecipient":
        return cls(
            user_id=user.id,
            email=user.email,
            phone=user.whatsapp or user.phone,
            name=user.first_name,
            preferred_channel=channel or ReminderChannel.EMAIL,
        )


class MultiChannelReminderService:
    """Send templated reminders by email, WhatsApp or both."""

    def __init__(
        self,
        email: Optional[ResendEmailService] = None,
        messaging: Optional[SendPulseAdapter] = None,
    ):
        self.email = email or email_service
        self.messaging = messaging or get_sendpulse_adapter()

    async def send_reminder(
        self, recipient: ReminderRecipient, reminder: ReminderMessage
    ) -> Dict[str, bool]:
        """
        Send on the recipient's channel. WhatsApp is skipped without a phone.

        Returns:
            ``{"email": bool, "whatsapp": bool}``
        """
        channel = ReminderChannel(recipient.preferred_channel or ReminderChannel.EMAIL)
        results = {"email": False, "whatsapp": False}

        if channel in (ReminderChannel.EMAIL, ReminderChannel.BOTH):
            results["email"] = await self.email.send_reminder_email(
                recipient.email, recipient.name, reminder
            )

        if channel in (ReminderChannel.WHATSAPP, ReminderChannel.BOTH) and recipient.phone:
            results["whatsapp"] = await self._send_whatsapp(recipient, reminder)

        return results

    async def _send_whatsapp(self, recipient: ReminderRecipient, reminder: ReminderMessage) -> bool:
        text = build_whatsapp_reminder(recipient.name, reminder)
        try:
            await self.messaging.send_message(recipient.phone, text)
        except SendPulseError as e:
            logger.error("WhatsApp reminder for user %s failed: %s", recipient.user_id, e)
            return False
        return True

    async def send_subscription_renewal_reminder(
        self,
        recipient: ReminderRecipient,
        days_until_renewal: int,
        renewal_date: str,
        plan_name: Optional[str] = None,
    ) -> Dict[str, bool]:
        return await self.send_reminder(
            recipient,
            ReminderMessage(
                type=ReminderType.SUBSCRIPTION_RENEWAL,
                message=renewal_message(days_until_renewal, renewal_date),
                metadata={
                    "days_until_renewal": days_until_renewal,
                    "renewal_date": renewal_date,
                    "plan_name": plan_name,
                },
            ),
        )

    async def send_order_delivery_reminder(
        self,
        recipient: ReminderRecipient,
        tracking_code: Optional[str] = None,
        estimated_delivery: Optional[str] = None,
    ) -> Dict[str, bool]:
        return await self.send_reminder(
            recipient,
            ReminderMessage(
                type=ReminderType.ORDER_DELIVERY,
                message=order_delivery_message(tracking_code, estimated_delivery),
                metadata={"tracking_code": tracking_code, "estimated_delivery": estimated_delivery},
            ),
        )

    async def send_appointment_reminder(
        self,
        recipient: ReminderRecipient,
        appointment_date: str,
        appointment_time: str,
    ) -> Dict[str, bool]:
        return await self.send_reminder(
            recipient,
            ReminderMessage(
                type=ReminderType.APPOINTMENT,
                message=appointment_message(appointment_date, appointment_time),
                metadata={"appointment_date": appointment_date, "appointment_time": appointment_time},
            ),
        )

    async def send_bulk_reminders(
        self,
        recipients: List[ReminderRecipient],
        reminder: ReminderMessage,
    ) -> Dict[str, int]:
        """
        Send the same reminder to many recipients.

        A recipient counts as sent when at least one channel succeeded.
        """
        sent = 0
        for recipient in recipients:
            results = await self.send_reminder(recipient, reminder)
            if any(results.values()):
                sent += 1
        failed = len(recipients) - sent
        logger.info("Bulk reminders: %d sent, %d failed", sent, failed)
        return {"sent": sent, "failed": failed, "total": len(recipients)}

    async def send_renewal_reminders(
        self,
        db: AsyncSession,
        days_ahead: int,
        channel: ReminderChannel = ReminderChannel.BOTH,
    ) -> Dict[str, int]:
        """Remind every active subscriber whose renewal is ``days_ahead`` days away."""
        subscriptions = await find_upcoming_renewals(db, days_ahead)
        sent = 0
        for subscription in subscriptions:
            plan = PLANS.get(subscription.plan_id, {})
            results = await self.send_subscription_renewal_reminder(
                ReminderRecipient.from_user(subscription.user, channel),
                days_ahead,
                subscription.next_billing_date.strftime("%d/%m/%Y"),
                plan.get("name"),
            )
            if any(results.values()):
                sent += 1
        return {"sent": sent, "failed": len(subscriptions) - sent, "total": len(subscriptions)}


async def find_upcoming_renewals(db: AsyncSession, days_ahead: int) -> List[Subscription]:
    """Active subscriptions billing exactly ``days_ahead`` days from today."""
    target = date.today() + timedelta(days=days_ahead)
    result = await db.execute(
        select(Subscription).where(
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.next_billing_date == target,
        )
    )
    return list(result.scalars().unique().all())


multichannel_reminder_service = MultiChannelReminderService()
