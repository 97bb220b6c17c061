"""Booking orchestration: the flows behind the bookings API.

Each flow resolves the booking through the scoping layer, delegates date
changes to the reservation transaction and status changes to the state
machine, commits, and only then talks to collaborators (notifier, media
store).  Collaborator failures never undo a committed write; they come back
as ``warnings`` on the :class:`BookingOutcome`.
"""

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from fastapi import UploadFile
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.config import settings
from stayledger.exceptions import Forbidden, Unavailable, ValidationError
from stayledger.models.booking import Booking
from stayledger.models.enums import BookingStatus, PaymentStatus, ResourceKind
from stayledger.models.user import User
from stayledger.services.actor import Actor
from stayledger.services.media import MediaStore, remove_best_effort
from stayledger.services.notifications import BookingEvent, Notifier, notify_booking_event
from stayledger.services.registry import ResourceRef, collect_host_resources, get_resource, load_resources
from stayledger.services.reports import BookingReportRow
from stayledger.services.reservations import (
    ReservationRequest,
    check_capacity,
    modify_dates,
    reserve,
    validate_guests,
    validate_price,
)
from stayledger.services.scoping import (
    BookingAction,
    authorize_booking,
    ensure_allowed,
    host_bookings_clause,
    visible_bookings,
)
from stayledger.services.state_machine import (
    BookingState,
    Transition,
    apply_transition,
    ensure_open,
    plan_transition,
)

logger = logging.getLogger(__name__)


@dataclass
class BookingOutcome:
    booking: Booking
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class BookingFilters:
    status: BookingStatus | None = None
    payment_status: PaymentStatus | None = None
    resource_type: ResourceKind | None = None
    resource_id: uuid.UUID | None = None
    host_id: uuid.UUID | None = None
    date_from: date | None = None
    date_to: date | None = None


@dataclass(frozen=True)
class BookingChanges:
    """Partial update of a booking; ``None`` means "leave unchanged"."""

    check_in: date | None = None
    check_out: date | None = None
    guests: int | None = None
    payment_details: str | None = None
    total_price: Decimal | None = None
    status: BookingStatus | None = None
    payment_status: PaymentStatus | None = None

    @property
    def touches_dates(self) -> bool:
        return self.check_in is not None or self.check_out is not None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _resource_title(db: AsyncSession, booking: Booking) -> str | None:
    resource = await get_resource(db, ResourceRef.of_booking(booking))
    return resource.title if resource is not None else None


async def _notify(
    db: AsyncSession,
    notifier: Notifier,
    booking: Booking,
    events: Sequence[tuple[BookingEvent, dict[str, Any]]],
) -> list[str]:
    title = await _resource_title(db, booking)
    warnings = []
    for event, extra in events:
        warning = await notify_booking_event(db, notifier, booking, event, resource_title=title, extra=extra)
        if warning:
            warnings.append(warning)
    return warnings


def _transition_events(transition: Transition) -> list[tuple[BookingEvent, dict[str, Any]]]:
    extra = {
        "previous_status": transition.previous.status.value,
        "previous_payment_status": transition.previous.payment_status.value,
    }
    events = []
    if transition.cancels:
        events.append((BookingEvent.CANCELLED, extra))
    elif transition.status_changed:
        events.append((BookingEvent.STATUS_CHANGED, extra))
    if transition.payment_changed:
        events.append((BookingEvent.PAYMENT_STATUS_CHANGED, extra))
    return events


def _log_transition(booking: Booking, transition: Transition) -> None:
    logger.info(
        "Booking %s: %s/%s -> %s/%s",
        booking.id,
        transition.previous.status.value,
        transition.previous.payment_status.value,
        transition.next.status.value,
        transition.next.payment_status.value,
    )


async def _commit_transition(
    db: AsyncSession,
    booking: Booking,
    transition: Transition,
    reason: str | None = None,
) -> None:
    apply_transition(booking, transition, reason=reason)
    await db.flush()
    await db.commit()
    await db.refresh(booking)
    _log_transition(booking, transition)


async def _apply_filters(db: AsyncSession, actor: Actor, query, filters: BookingFilters):
    query = query.where(await visible_bookings(db, actor))

    if filters.host_id is not None:
        if not actor.is_admin and filters.host_id != actor.id:
            raise Forbidden("Only administrators can filter by another host")
        owned = await collect_host_resources(db, filters.host_id)
        query = query.where(host_bookings_clause(owned))
    if filters.status is not None:
        query = query.where(Booking.status == filters.status)
    if filters.payment_status is not None:
        query = query.where(Booking.payment_status == filters.payment_status)
    if filters.resource_type is ResourceKind.PROPERTY:
        query = query.where(Booking.property_id.is_not(None))
    elif filters.resource_type is ResourceKind.TOUR:
        query = query.where(Booking.tour_package_id.is_not(None))
    if filters.resource_id is not None:
        query = query.where(
            (Booking.property_id == filters.resource_id) | (Booking.tour_package_id == filters.resource_id)
        )
    if filters.date_from is not None:
        query = query.where(Booking.check_in >= filters.date_from)
    if filters.date_to is not None:
        query = query.where(Booking.check_out <= filters.date_to)
    return query


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_booking(db: AsyncSession, actor: Actor, booking_id: uuid.UUID) -> Booking:
    return await authorize_booking(db, actor, booking_id, BookingAction.VIEW)


async def list_bookings(
    db: AsyncSession,
    actor: Actor,
    filters: BookingFilters,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Booking], int]:
    """Return one page of the actor's visible bookings (newest first) and the total count."""
    count_query = await _apply_filters(db, actor, select(func.count()).select_from(Booking), filters)
    total = (await db.execute(count_query)).scalar_one()

    items_query = await _apply_filters(db, actor, select(Booking), filters)
    items_query = items_query.order_by(Booking.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(items_query)
    return list(result.scalars().all()), total


async def booking_summary(db: AsyncSession, actor: Actor) -> dict[str, Any]:
    """Counts per booking status and payment status over the actor's visible bookings."""
    scope = await visible_bookings(db, actor)

    status_rows = await db.execute(
        select(Booking.status, func.count()).where(scope).group_by(Booking.status)
    )
    payment_rows = await db.execute(
        select(Booking.payment_status, func.count()).where(scope).group_by(Booking.payment_status)
    )
    revenue = await db.execute(
        select(func.coalesce(func.sum(Booking.total_price), 0)).where(
            scope, Booking.payment_status == PaymentStatus.PAID
        )
    )

    by_status = {s.value: 0 for s in BookingStatus}
    for status_value, count in status_rows.all():
        by_status[BookingStatus(status_value).value] = count
    by_payment = {p.value: 0 for p in PaymentStatus}
    for payment_value, count in payment_rows.all():
        by_payment[PaymentStatus(payment_value).value] = count

    return {
        "total_bookings": sum(by_status.values()),
        "by_status": by_status,
        "by_payment_status": by_payment,
        "paid_revenue": Decimal(str(revenue.scalar_one())),
    }


async def report_rows(db: AsyncSession, actor: Actor, filters: BookingFilters) -> list[BookingReportRow]:
    """Flatten the actor's visible bookings into export rows."""
    query = await _apply_filters(db, actor, select(Booking), filters)
    result = await db.execute(query.order_by(Booking.check_in, Booking.created_at))
    bookings = list(result.scalars().all())

    resources = await load_resources(db, bookings)
    user_ids = {b.user_id for b in bookings}
    users: dict[uuid.UUID, User] = {}
    if user_ids:
        user_result = await db.execute(select(User).where(User.id.in_(user_ids)))
        users = {u.id: u for u in user_result.scalars().all()}

    rows = []
    for booking in bookings:
        resource = resources.get(ResourceRef.of_booking(booking))
        user = users.get(booking.user_id)
        rows.append(
            BookingReportRow(
                booking_id=str(booking.id),
                resource_type=booking.resource_kind.value,
                resource_title=resource.title if resource is not None else "(removed)",
                guest_name=user.name if user else "",
                guest_email=user.email if user else "",
                check_in=booking.check_in,
                check_out=booking.check_out,
                guests=booking.guests,
                total_price=booking.total_price,
                status=booking.status.value,
                payment_status=booking.payment_status.value,
                created_at=booking.created_at,
            )
        )
    return rows


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def create_booking(
    db: AsyncSession,
    actor: Actor,
    request: ReservationRequest,
    notifier: Notifier,
) -> BookingOutcome:
    """Reserve on behalf of a guest.

    Hosts and admins manage bookings through resource ownership, which never
    covers bookings they would request themselves, so they cannot book.

    Raises:
        Forbidden: The actor is not a guest.
    """
    if not actor.is_guest:
        logger.warning("Actor %s (%s) denied booking creation", actor.id, actor.role.value)
        raise Forbidden("Only guests can create bookings", {"role": actor.role.value})
    booking = await reserve(db, actor, request)
    warnings = await _notify(db, notifier, booking, [(BookingEvent.CREATED, {})])
    return BookingOutcome(booking, warnings)


async def update_booking(
    db: AsyncSession,
    actor: Actor,
    booking_id: uuid.UUID,
    changes: BookingChanges,
    notifier: Notifier,
) -> BookingOutcome:
    """Apply a partial update.

    Dates go through :func:`modify_dates` (atomic availability re-check);
    price and status changes need the host or admin role; status and
    payment status are planned together by the state machine.

    Raises:
        Forbidden: A guest tried to change price or status.
        InvalidTransition: The booking is closed or the status move is illegal.
        ValidationError / Conflict / ReservationTimeout: From the
            reservation transaction.
    """
    wants_transition = changes.status is not None or changes.payment_status is not None
    # The row lock is held until the single commit below.
    booking = await authorize_booking(
        db, actor, booking_id, BookingAction.MODIFY, for_update=wants_transition or changes.touches_dates
    )

    if changes.status is not None:
        ensure_allowed(actor, BookingAction.CHANGE_STATUS, booking_id)
    if changes.payment_status is not None or changes.total_price is not None:
        ensure_allowed(actor, BookingAction.CHANGE_PAYMENT, booking_id)

    transition = plan_transition(
        BookingState.of(booking),
        status=changes.status,
        payment_status=changes.payment_status,
    )
    field_changes = (
        changes.touches_dates
        or changes.guests is not None
        or changes.payment_details is not None
        or changes.total_price is not None
    )
    if field_changes:
        ensure_open(BookingState.of(booking))
    if changes.total_price is not None:
        validate_price(changes.total_price)
    if changes.guests is not None:
        validate_guests(changes.guests)

    def write_remaining(target: Booking) -> None:
        # Validated already; cannot fail.
        if changes.payment_details is not None:
            target.payment_details = changes.payment_details.strip() or None
        if changes.total_price is not None:
            target.total_price = changes.total_price
        if transition.changed:
            apply_transition(target, transition)

    if changes.touches_dates:
        booking = await modify_dates(
            db,
            booking,
            changes.check_in or booking.check_in,
            changes.check_out or booking.check_out,
            guests=changes.guests,
            before_commit=write_remaining,
        )
    elif field_changes or transition.changed:
        if changes.guests is not None:
            resource = await get_resource(db, ResourceRef.of_booking(booking))
            if resource is not None:
                check_capacity(resource, changes.guests)
            booking.guests = changes.guests
        write_remaining(booking)
        await db.flush()
        await db.commit()
        await db.refresh(booking)
    if transition.changed:
        _log_transition(booking, transition)

    events = _transition_events(transition)
    if field_changes:
        events.insert(0, (BookingEvent.UPDATED, {}))
        logger.info("Booking %s updated by %s", booking.id, actor.id)
    warnings = await _notify(db, notifier, booking, events) if events else []
    return BookingOutcome(booking, warnings)


async def cancel_booking(
    db: AsyncSession,
    actor: Actor,
    booking_id: uuid.UUID,
    reason: str | None,
    notifier: Notifier,
) -> BookingOutcome:
    """Cancel a booking; a paid booking is refunded in the same step."""
    booking = await authorize_booking(db, actor, booking_id, BookingAction.CANCEL, for_update=True)
    transition = plan_transition(BookingState.of(booking), status=BookingStatus.CANCELLED)
    await _commit_transition(db, booking, transition, reason=reason)
    logger.info("Booking %s cancelled by %s (%s)", booking.id, actor.id, booking.cancellation_reason)

    warnings = await _notify(db, notifier, booking, _transition_events(transition))
    return BookingOutcome(booking, warnings)


async def change_status(
    db: AsyncSession,
    actor: Actor,
    booking_id: uuid.UUID,
    status: BookingStatus,
    notifier: Notifier,
    reason: str | None = None,
) -> BookingOutcome:
    booking = await authorize_booking(db, actor, booking_id, BookingAction.CHANGE_STATUS, for_update=True)
    transition = plan_transition(BookingState.of(booking), status=status)
    if not transition.changed:
        return BookingOutcome(booking)

    await _commit_transition(db, booking, transition, reason=reason)
    warnings = await _notify(db, notifier, booking, _transition_events(transition))
    return BookingOutcome(booking, warnings)


async def change_payment_status(
    db: AsyncSession,
    actor: Actor,
    booking_id: uuid.UUID,
    payment_status: PaymentStatus,
    notifier: Notifier,
) -> BookingOutcome:
    booking = await authorize_booking(db, actor, booking_id, BookingAction.CHANGE_PAYMENT, for_update=True)
    transition = plan_transition(BookingState.of(booking), payment_status=payment_status)
    if not transition.changed:
        return BookingOutcome(booking)

    await _commit_transition(db, booking, transition)
    warnings = await _notify(db, notifier, booking, _transition_events(transition))
    return BookingOutcome(booking, warnings)


async def delete_booking(
    db: AsyncSession,
    actor: Actor,
    booking_id: uuid.UUID,
    notifier: Notifier,
    media: MediaStore,
) -> BookingOutcome:
    """Hard-delete a booking (admin only); evidence media is removed best-effort."""
    booking = await authorize_booking(db, actor, booking_id, BookingAction.DELETE)
    title = await _resource_title(db, booking)
    evidence = list(booking.payment_images or [])

    await db.delete(booking)
    await db.flush()
    await db.commit()
    logger.info("Booking %s deleted by admin %s", booking_id, actor.id)

    _removed, warnings = await remove_best_effort(media, evidence)
    warning = await notify_booking_event(db, notifier, booking, BookingEvent.DELETED, resource_title=title)
    if warning:
        warnings.append(warning)
    return BookingOutcome(booking, warnings)


async def attach_payment_evidence(
    db: AsyncSession,
    actor: Actor,
    booking_id: uuid.UUID,
    files: Sequence[UploadFile],
    media: MediaStore,
) -> BookingOutcome:
    """Store payment evidence files and attach their references.

    Raises:
        ValidationError: No files, or the per-booking cap would be exceeded.
        Unavailable: None of the files could be stored.
    """
    booking = await authorize_booking(db, actor, booking_id, BookingAction.MANAGE_EVIDENCE)
    ensure_open(BookingState.of(booking))

    if not files:
        raise ValidationError("At least one payment evidence file is required")
    existing = list(booking.payment_images or [])
    limit = settings.max_payment_images
    if len(existing) + len(files) > limit:
        raise ValidationError(
            f"A booking can hold at most {limit} payment evidence files",
            {"existing": len(existing), "uploaded": len(files), "limit": limit},
        )

    stored = await media.store(files, folder=f"payments/{booking.id}")
    if not stored:
        raise Unavailable("Payment evidence could not be stored")
    warnings = []
    if len(stored) < len(files):
        warnings.append(f"{len(files) - len(stored)} file(s) could not be stored")

    booking.payment_images = existing + stored
    await db.flush()
    await db.commit()
    await db.refresh(booking)
    logger.info("Attached %d evidence file(s) to booking %s", len(stored), booking.id)
    return BookingOutcome(booking, warnings)


async def remove_payment_evidence(
    db: AsyncSession,
    actor: Actor,
    booking_id: uuid.UUID,
    references: Sequence[str],
    media: MediaStore,
) -> BookingOutcome:
    """Detach evidence references whose media was removed.

    A reference stays attached when its media could not be removed; the
    failure is reported as a warning.
    """
    booking = await authorize_booking(db, actor, booking_id, BookingAction.MANAGE_EVIDENCE)
    existing = list(booking.payment_images or [])
    unknown = [r for r in references if r not in existing]
    if unknown:
        raise ValidationError("Reference(s) not attached to this booking", {"references": unknown})

    removed, warnings = await remove_best_effort(media, list(dict.fromkeys(references)))
    if removed:
        booking.payment_images = [r for r in existing if r not in removed]
        await db.flush()
        await db.commit()
        await db.refresh(booking)
        logger.info("Removed %d evidence file(s) from booking %s", len(removed), booking.id)
    return BookingOutcome(booking, warnings)
