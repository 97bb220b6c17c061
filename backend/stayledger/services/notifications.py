"""Outbound booking notifications.

The core only depends on the :class:`Notifier` protocol.  The default
:class:`LoggingNotifier` renders a templated message and logs it (simulated
delivery); deployments plug a real transport in through
:func:`stayledger.api.deps.get_notifier`.

Delivery is best-effort: :func:`notify_booking_event` never raises, it
returns a warning string for the API response instead.
"""

import enum
import logging
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.config import settings
from stayledger.models.booking import Booking
from stayledger.models.user import User

logger = logging.getLogger(__name__)


class BookingEvent(str, enum.Enum):
    CREATED = "booking_created"
    UPDATED = "booking_updated"
    CANCELLED = "booking_cancelled"
    STATUS_CHANGED = "status_changed"
    PAYMENT_STATUS_CHANGED = "payment_status_changed"
    DELETED = "booking_deleted"


TEMPLATES: dict[BookingEvent, dict[str, str]] = {
    BookingEvent.CREATED: {
        "subject": "Booking received: {resource_title}",
        "body": (
            "Dear {guest_name},\n\n"
            "We have received your booking for {resource_title}.\n\n"
            "- Check-in: {check_in}\n"
            "- Check-out: {check_out}\n"
            "- Guests: {guests}\n"
            "- Total price: ${total_price}\n"
            "- Status: {status} (payment {payment_status})\n\n"
            "Best regards,\nStayLedger"
        ),
    },
    BookingEvent.UPDATED: {
        "subject": "Booking updated: {resource_title}",
        "body": (
            "Dear {guest_name},\n\n"
            "Your booking has been updated.\n\n"
            "- Dates: {check_in} to {check_out}\n"
            "- Guests: {guests}\n"
            "- Status: {status} (payment {payment_status})\n\n"
            "Best regards,\nStayLedger"
        ),
    },
    BookingEvent.CANCELLED: {
        "subject": "Booking cancelled: {resource_title}",
        "body": (
            "Dear {guest_name},\n\n"
            "Your booking from {check_in} to {check_out} has been cancelled.\n"
            "Reason: {cancellation_reason}\n"
            "Payment status: {payment_status}\n\n"
            "If you have any questions, please contact us.\n\n"
            "Best regards,\nStayLedger"
        ),
    },
    BookingEvent.STATUS_CHANGED: {
        "subject": "Booking {status}: {resource_title}",
        "body": (
            "Dear {guest_name},\n\n"
            "Your booking status changed from {previous_status} to {status}.\n"
            "Payment status: {payment_status}\n"
            "Dates: {check_in} to {check_out}\n\n"
            "Best regards,\nStayLedger"
        ),
    },
    BookingEvent.PAYMENT_STATUS_CHANGED: {
        "subject": "Payment {payment_status}: {resource_title}",
        "body": (
            "Dear {guest_name},\n\n"
            "The payment status of your booking changed from "
            "{previous_payment_status} to {payment_status}.\n"
            "Booking status: {status}\n"
            "Total amount: ${total_price}\n\n"
            "Best regards,\nStayLedger"
        ),
    },
    BookingEvent.DELETED: {
        "subject": "Booking removed: {resource_title}",
        "body": (
            "Dear {guest_name},\n\n"
            "Your booking from {check_in} to {check_out} has been removed by an administrator.\n"
            "If you have any questions, please contact our support team.\n\n"
            "Best regards,\nStayLedger"
        ),
    },
}


class Notifier(Protocol):
    async def notify(self, address: str, event: BookingEvent, context: dict[str, Any]) -> None:
        """Deliver one message; raise on failure."""
        ...


def render(event: BookingEvent, context: dict[str, Any]) -> tuple[str, str]:
    """Render the subject and body for ``event``; unknown keys render as ``N/A``."""
    values = _Defaulting(context)
    template = TEMPLATES[event]
    return template["subject"].format_map(values), template["body"].format_map(values)


class _Defaulting(dict):
    def __missing__(self, key: str) -> str:
        return "N/A"


class LoggingNotifier:
    """Simulated delivery: render the message and log it."""

    def __init__(self, sender: str | None = None) -> None:
        self.sender = sender or settings.notification_sender

    async def notify(self, address: str, event: BookingEvent, context: dict[str, Any]) -> None:
        subject, _body = render(event, context)
        logger.info("Notification [%s] from %s to %s: %s", event.value, self.sender, address, subject)


class DisabledNotifier:
    """Drops every message; used when ``settings.notifications_enabled`` is off."""

    async def notify(self, address: str, event: BookingEvent, context: dict[str, Any]) -> None:
        logger.debug("Notifications disabled, skipping %s to %s", event.value, address)


def booking_context(booking: Booking, recipient: User | None, resource_title: str | None) -> dict[str, Any]:
    return {
        "booking_id": str(booking.id),
        "guest_name": recipient.name if recipient else "guest",
        "resource_title": resource_title or "your reservation",
        "check_in": booking.check_in.isoformat(),
        "check_out": booking.check_out.isoformat(),
        "guests": booking.guests,
        "total_price": str(booking.total_price),
        "status": booking.status.value,
        "payment_status": booking.payment_status.value,
        "cancellation_reason": booking.cancellation_reason or "N/A",
    }


async def notify_booking_event(
    db: AsyncSession,
    notifier: Notifier,
    booking: Booking,
    event: BookingEvent,
    *,
    resource_title: str | None = None,
    extra: dict[str, Any] | None = None,
) -> str | None:
    """Notify the booking's requesting user about ``event``.

    Returns:
        ``None`` on success, otherwise a warning describing why the
        notification was not delivered.
    """
    recipient = await db.get(User, booking.user_id)
    if recipient is None or not recipient.email:
        logger.warning("No recipient for %s on booking %s", event.value, booking.id)
        return f"Notification '{event.value}' not sent: requesting user has no address"

    context = booking_context(booking, recipient, resource_title)
    context.update(extra or {})
    try:
        await notifier.notify(recipient.email, event, context)
    except Exception as exc:
        logger.warning(
            "Notification %s for booking %s to %s failed: %s",
            event.value,
            booking.id,
            recipient.email,
            exc,
            exc_info=True,
        )
        return f"Notification '{event.value}' could not be delivered"
    return None
