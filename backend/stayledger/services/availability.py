"""Availability engine — the single source of truth for date conflicts.

Two half-open stays ``[a, b)`` and ``[c, d)`` overlap iff ``a < d and c < b``.
:func:`overlaps` is the Python form of that predicate and
:func:`overlap_clause` renders the very same comparison as SQL; creation,
date changes and every availability listing go through these two.
"""

import logging
import uuid
from datetime import date

from sqlalchemy import ColumnElement, and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.exceptions import NotFound, ValidationError
from stayledger.models.booking import Booking
from stayledger.models.enums import ACTIVE_BOOKING_STATUSES, PropertyStatus, ResourceKind
from stayledger.models.property import Property
from stayledger.services.registry import ResourceRef, get_resource, is_bookable

logger = logging.getLogger(__name__)


def today() -> date:
    """Current calendar date, evaluated on every call."""
    return date.today()


def overlaps(a: date, b: date, c: date, d: date) -> bool:
    """Return True when ``[a, b)`` and ``[c, d)`` share at least one night."""
    return a < d and c < b


def overlap_clause(check_in: date, check_out: date) -> ColumnElement[bool]:
    """SQL form of :func:`overlaps` against ``Booking.check_in/check_out``."""
    return and_(Booking.check_in < check_out, check_in < Booking.check_out)


def resource_clause(ref: ResourceRef) -> ColumnElement[bool]:
    """Match bookings that reference ``ref``."""
    if ref.kind is ResourceKind.PROPERTY:
        return Booking.property_id == ref.id
    return Booking.tour_package_id == ref.id


def validate_stay(check_in: date, check_out: date) -> None:
    """Reject inverted, empty, or past date ranges.

    Raises:
        ValidationError: If ``check_in >= check_out`` or ``check_in`` is
            before today.
    """
    if check_in >= check_out:
        raise ValidationError(
            "Check-out date must be after check-in date",
            {"check_in": check_in.isoformat(), "check_out": check_out.isoformat()},
        )
    if check_in < today():
        raise ValidationError(
            "Check-in date cannot be in the past",
            {"check_in": check_in.isoformat()},
        )


async def find_conflicts(
    db: AsyncSession,
    ref: ResourceRef,
    check_in: date,
    check_out: date,
    exclude_booking_id: uuid.UUID | None = None,
) -> list[Booking]:
    """Active bookings on ``ref`` whose stay overlaps ``[check_in, check_out)``."""
    query = select(Booking).where(
        resource_clause(ref),
        Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        overlap_clause(check_in, check_out),
    )
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)
    result = await db.execute(query.order_by(Booking.check_in))
    return list(result.scalars().all())


async def is_available(
    db: AsyncSession,
    ref: ResourceRef,
    check_in: date,
    check_out: date,
    exclude_booking_id: uuid.UUID | None = None,
) -> bool:
    """Whether ``ref`` can take a reservation for ``[check_in, check_out)``.

    A missing resource, or one whose status does not accept bookings, is
    reported as unavailable rather than raised.
    """
    resource = await get_resource(db, ref)
    if not is_bookable(resource):
        return False
    conflicts = await find_conflicts(db, ref, check_in, check_out, exclude_booking_id)
    return not conflicts


async def blocking_intervals(
    db: AsyncSession,
    ref: ResourceRef,
    range_start: date,
    range_end: date,
) -> list[tuple[date, date]]:
    """Occupied ``(check_in, check_out)`` intervals on ``ref`` intersecting the range.

    Raises:
        NotFound: If the resource does not exist.
        ValidationError: If ``range_start >= range_end``.
    """
    if range_start >= range_end:
        raise ValidationError("Range end must be after range start")
    if await get_resource(db, ref) is None:
        raise NotFound(ref.label, ref.id)
    bookings = await find_conflicts(db, ref, range_start, range_end)
    return [(b.check_in, b.check_out) for b in bookings]


async def find_available_properties(
    db: AsyncSession,
    check_in: date,
    check_out: date,
    city: str | None = None,
) -> list[Property]:
    """Bookable properties with no active booking overlapping the stay."""
    validate_stay(check_in, check_out)

    busy = (
        select(Booking.property_id)
        .where(
            Booking.property_id.is_not(None),
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            overlap_clause(check_in, check_out),
        )
    )
    query = select(Property).where(
        Property.status == PropertyStatus.AVAILABLE,
        Property.id.not_in(busy),
    )
    if city:
        query = query.where(Property.city.ilike(f"%{city}%"))

    result = await db.execute(query.order_by(Property.created_at.desc()))
    properties = list(result.scalars().all())
    logger.debug("Found %d available properties for %s..%s", len(properties), check_in, check_out)
    return properties
