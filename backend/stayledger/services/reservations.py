"""Reservation transaction: atomic check-and-insert / check-and-move.

Both :func:`reserve` and :func:`modify_dates` run their availability check
and write inside one per-resource critical section:

1. the in-process keyed lock from :mod:`stayledger.services.locking`
   (bounded wait, raises ``ReservationTimeout``), then
2. a ``SELECT ... FOR UPDATE`` on the resource row, which serializes workers
   in other processes on databases with row locks (also a bounded wait),

and commit before leaving it.  Nothing is persisted on any failure path, so
callers can retry the same request safely.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.config import settings
from stayledger.exceptions import Conflict, NotFound, ValidationError
from stayledger.models.booking import Booking
from stayledger.models.enums import BookingStatus, PaymentStatus, ResourceKind
from stayledger.services.actor import Actor
from stayledger.services.availability import find_conflicts, validate_stay
from stayledger.services.locking import resource_locks
from stayledger.services.registry import Resource, ResourceRef, get_resource, is_bookable
from stayledger.services.state_machine import BookingState, ensure_open

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReservationRequest:
    """Everything a guest supplies to reserve a resource."""

    check_in: date
    check_out: date
    guests: int
    total_price: Decimal
    property_id: uuid.UUID | None = None
    tour_package_id: uuid.UUID | None = None
    payment_details: str | None = None


def resolve_reference(property_id: uuid.UUID | None, tour_package_id: uuid.UUID | None) -> ResourceRef:
    """Turn the two optional ids into exactly one resource reference.

    Raises:
        ValidationError: If both or neither are set.
    """
    if property_id is None and tour_package_id is None:
        raise ValidationError("Either a property or a tour package must be specified")
    if property_id is not None and tour_package_id is not None:
        raise ValidationError("Cannot book both a property and a tour package in the same booking")
    if property_id is not None:
        return ResourceRef(ResourceKind.PROPERTY, property_id)
    return ResourceRef(ResourceKind.TOUR, tour_package_id)  # type: ignore[arg-type]


def validate_guests(guests: int) -> None:
    limit = settings.max_guests_per_booking
    if not 1 <= guests <= limit:
        raise ValidationError(
            f"Number of guests must be between 1 and {limit}",
            {"guests": guests},
        )


def validate_price(total_price: Decimal) -> None:
    if total_price <= 0:
        raise ValidationError(
            "Total price must be greater than zero",
            {"total_price": str(total_price)},
        )


def check_capacity(resource: Resource, guests: int) -> None:
    if resource.max_guests is not None and guests > resource.max_guests:
        raise ValidationError(
            f"This {resource.kind.value} accepts at most {resource.max_guests} guests",
            {"guests": guests, "max_guests": resource.max_guests},
        )


def validate_request(request: ReservationRequest) -> ResourceRef:
    """Validate request shape and ranges, returning the target resource."""
    ref = resolve_reference(request.property_id, request.tour_package_id)
    validate_stay(request.check_in, request.check_out)
    validate_guests(request.guests)
    validate_price(request.total_price)
    return ref


async def _lock_bookable(db: AsyncSession, ref: ResourceRef) -> Resource:
    resource = await get_resource(db, ref, for_update=True)
    if resource is None:
        raise NotFound(ref.label, ref.id)
    if not is_bookable(resource):
        raise Conflict(
            f"{ref.label} is not available for booking",
            {"resource": str(ref), "status": resource.status.value},
        )
    return resource


async def _ensure_free(
    db: AsyncSession,
    ref: ResourceRef,
    check_in: date,
    check_out: date,
    exclude_booking_id: uuid.UUID | None = None,
) -> None:
    conflicts = await find_conflicts(db, ref, check_in, check_out, exclude_booking_id)
    if conflicts:
        logger.info("Rejected %s..%s on %s: %d overlapping booking(s)", check_in, check_out, ref, len(conflicts))
        raise Conflict(
            f"{ref.label} is not available for the selected dates",
            {
                "resource": str(ref),
                "blocked": [
                    {"check_in": b.check_in.isoformat(), "check_out": b.check_out.isoformat()} for b in conflicts
                ],
            },
        )


async def reserve(db: AsyncSession, actor: Actor, request: ReservationRequest) -> Booking:
    """Atomically check availability and persist a new pending booking.

    Raises:
        ValidationError: Malformed dates, guests out of range, non-positive
            price, missing/ambiguous resource reference, or over capacity.
        NotFound: The resource does not exist.
        Conflict: The resource is not bookable or the dates overlap an
            active booking.
        ReservationTimeout: The critical section could not be entered in time.
    """
    ref = validate_request(request)

    async with resource_locks.hold(ref):
        resource = await _lock_bookable(db, ref)
        check_capacity(resource, request.guests)
        await _ensure_free(db, ref, request.check_in, request.check_out)

        booking = Booking(
            user_id=actor.id,
            property_id=request.property_id,
            tour_package_id=request.tour_package_id,
            check_in=request.check_in,
            check_out=request.check_out,
            guests=request.guests,
            total_price=request.total_price,
            status=BookingStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            payment_details=(request.payment_details or "").strip() or None,
            payment_images=[],
        )
        db.add(booking)
        await db.flush()
        await db.commit()

    await db.refresh(booking)
    logger.info(
        "Booking %s reserved %s for %s..%s by user %s",
        booking.id, ref, booking.check_in, booking.check_out, actor.id,
    )
    return booking


async def modify_dates(
    db: AsyncSession,
    booking: Booking,
    check_in: date,
    check_out: date,
    guests: int | None = None,
    before_commit: Callable[[Booking], None] | None = None,
) -> Booking:
    """Move an open booking to new dates under the same atomic check.

    The booking's own current stay is excluded from its conflict set.
    ``before_commit`` runs on the moved booking inside the critical section,
    so whatever it writes lands in the same commit as the new dates.

    Raises:
        InvalidTransition: The booking is cancelled or completed.
        ValidationError / NotFound / Conflict / ReservationTimeout: As for
            :func:`reserve`.
    """
    ensure_open(BookingState.of(booking))
    validate_stay(check_in, check_out)
    if guests is not None:
        validate_guests(guests)

    ref = ResourceRef.of_booking(booking)
    async with resource_locks.hold(ref):
        resource = await _lock_bookable(db, ref)
        check_capacity(resource, guests if guests is not None else booking.guests)
        await _ensure_free(db, ref, check_in, check_out, exclude_booking_id=booking.id)

        previous = (booking.check_in, booking.check_out)
        booking.check_in = check_in
        booking.check_out = check_out
        if guests is not None:
            booking.guests = guests
        if before_commit is not None:
            before_commit(booking)
        await db.flush()
        await db.commit()

    await db.refresh(booking)
    logger.info("Booking %s moved from %s..%s to %s..%s", booking.id, previous[0], previous[1], check_in, check_out)
    return booking
