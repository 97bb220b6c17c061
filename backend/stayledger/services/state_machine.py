"""Booking and payment state machines.

The two machines are coupled:

* payment ``paid`` while the booking is ``pending`` confirms the booking;
* cancelling a booking whose payment is ``paid`` refunds it.

:func:`plan_transition` computes the next ``(status, payment_status)`` pair
as a whole, and :func:`apply_transition` writes that pair to a booking in a
single step, so a half-applied coupling is never observable.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

from stayledger.config import settings
from stayledger.exceptions import InvalidTransition
from stayledger.models.booking import Booking
from stayledger.models.enums import BookingStatus, PaymentStatus

BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.COMPLETED}
    ),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in BOOKING_TRANSITIONS.items() if not targets)


@dataclass(frozen=True)
class BookingState:
    status: BookingStatus
    payment_status: PaymentStatus

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @classmethod
    def of(cls, booking: Booking) -> "BookingState":
        return cls(BookingStatus(booking.status), PaymentStatus(booking.payment_status))


@dataclass(frozen=True)
class Transition:
    previous: BookingState
    next: BookingState

    @property
    def changed(self) -> bool:
        return self.previous != self.next

    @property
    def status_changed(self) -> bool:
        return self.previous.status != self.next.status

    @property
    def payment_changed(self) -> bool:
        return self.previous.payment_status != self.next.payment_status

    @property
    def cancels(self) -> bool:
        return self.status_changed and self.next.status is BookingStatus.CANCELLED


def ensure_open(state: BookingState) -> None:
    """Reject any change to a cancelled or completed booking."""
    if state.is_terminal:
        raise InvalidTransition(
            f"Booking is {state.status.value} and can no longer be changed",
            {"status": state.status.value},
        )


def _next_for_status(state: BookingState, target: BookingStatus) -> BookingState:
    ensure_open(state)
    if target == state.status:
        return state
    if target not in BOOKING_TRANSITIONS[state.status]:
        raise InvalidTransition(
            f"Cannot change booking status from {state.status.value} to {target.value}",
            {"from": state.status.value, "to": target.value},
        )
    payment = state.payment_status
    if target is BookingStatus.CANCELLED and payment is PaymentStatus.PAID:
        payment = PaymentStatus.REFUNDED
    return BookingState(target, payment)


def _next_for_payment(state: BookingState, target: PaymentStatus) -> BookingState:
    # A completed booking is settled; only a cancelled one may still be refunded.
    if state.status is BookingStatus.COMPLETED:
        ensure_open(state)
    if target == state.payment_status:
        return state
    if state.status is BookingStatus.CANCELLED and not (
        state.payment_status is PaymentStatus.PAID and target is PaymentStatus.REFUNDED
    ):
        raise InvalidTransition(
            f"Cannot set payment status to {target.value} on a cancelled booking",
            {"status": state.status.value, "payment_status": target.value},
        )
    if target not in PAYMENT_TRANSITIONS[state.payment_status]:
        raise InvalidTransition(
            f"Cannot change payment status from {state.payment_status.value} to {target.value}",
            {"from": state.payment_status.value, "to": target.value},
        )
    status = state.status
    if target is PaymentStatus.PAID and status is BookingStatus.PENDING:
        status = BookingStatus.CONFIRMED
    return BookingState(status, target)


def plan_transition(
    state: BookingState,
    status: BookingStatus | None = None,
    payment_status: PaymentStatus | None = None,
) -> Transition:
    """Compute the next state pair for the requested changes.

    A payment change is evaluated before a status change so that e.g.
    ``payment=paid, status=cancelled`` on a pending booking ends up
    cancelled and refunded.

    Raises:
        InvalidTransition: If either requested change is illegal.
    """
    current = state
    if payment_status is not None:
        current = _next_for_payment(current, payment_status)
    if status is not None:
        current = _next_for_status(current, status)
    return Transition(previous=state, next=current)


def apply_transition(
    booking: Booking,
    transition: Transition,
    reason: str | None = None,
    now: datetime | None = None,
) -> Booking:
    """Write ``transition.next`` onto ``booking``.

    Cancellation stamps ``cancelled_at`` and defaults the reason.
    """
    if transition.cancels:
        booking.cancelled_at = now or datetime.now(timezone.utc)
        booking.cancellation_reason = (reason or "").strip() or settings.default_cancellation_reason
    booking.status, booking.payment_status = transition.next.status, transition.next.payment_status
    return booking
