"""Bookings API router.

Scoping rule: guests reach the bookings they made, hosts the bookings on
resources they own, admins everything.  Bookings outside the caller's scope
answer 404; in-scope actions the caller's role may not take answer 403.
All rules live in :mod:`stayledger.services.scoping`; the routes only
translate HTTP to service calls.
"""

import uuid
from datetime import date

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.api.deps import get_current_actor, get_db, get_media_store, get_notifier
from stayledger.models.enums import BookingStatus, PaymentStatus, ResourceKind
from stayledger.schemas.auth import MessageResponse
from stayledger.schemas.booking import (
    BookingCancelRequest,
    BookingCreate,
    BookingListResponse,
    BookingOperationResponse,
    BookingResponse,
    BookingStatusUpdate,
    BookingSummaryResponse,
    BookingUpdate,
    EvidenceRemoveRequest,
    PaymentStatusUpdate,
)
from stayledger.services import booking_service
from stayledger.services.actor import Actor
from stayledger.services.booking_service import BookingChanges, BookingFilters, BookingOutcome
from stayledger.services.media import MediaStore
from stayledger.services.notifications import Notifier
from stayledger.services.reports import render_csv, render_pdf
from stayledger.services.reservations import ReservationRequest

router = APIRouter(prefix="/api/v1/bookings", tags=["bookings"])


def _filters(
    status_filter: BookingStatus | None = Query(None, alias="status"),
    payment_status: PaymentStatus | None = Query(None),
    resource_type: ResourceKind | None = Query(None, alias="type"),
    resource_id: uuid.UUID | None = Query(None),
    host_id: uuid.UUID | None = Query(None, description="Admin only"),
    date_from: date | None = Query(None, alias="from", description="check_in >= this date"),
    date_to: date | None = Query(None, alias="to", description="check_out <= this date"),
) -> BookingFilters:
    return BookingFilters(
        status=status_filter,
        payment_status=payment_status,
        resource_type=resource_type,
        resource_id=resource_id,
        host_id=host_id,
        date_from=date_from,
        date_to=date_to,
    )


def _operation(outcome: BookingOutcome) -> BookingOperationResponse:
    return BookingOperationResponse(
        booking=BookingResponse.model_validate(outcome.booking),
        warnings=outcome.warnings,
    )


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=BookingOperationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Reserve a property or tour package",
)
async def create_booking(
    body: BookingCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    notifier: Notifier = Depends(get_notifier),
) -> BookingOperationResponse:
    """Atomically check availability and create a pending booking.

    Returns 409 when the dates overlap an active booking, 422 for invalid
    dates, guest counts or prices.
    """
    request = ReservationRequest(**body.model_dump())
    outcome = await booking_service.create_booking(db, actor, request, notifier)
    return _operation(outcome)


@router.get("", response_model=BookingListResponse, summary="List bookings visible to the caller")
async def list_bookings(
    filters: BookingFilters = Depends(_filters),
    skip: int = Query(0, ge=0, description="Pagination offset"),
    limit: int = Query(20, ge=1, le=100, description="Pagination limit"),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> BookingListResponse:
    items, total = await booking_service.list_bookings(db, actor, filters, skip=skip, limit=limit)
    return BookingListResponse(
        items=[BookingResponse.model_validate(b) for b in items],
        total=total,
    )


@router.get("/summary", response_model=BookingSummaryResponse, summary="Booking and payment status counts")
async def booking_summary(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> BookingSummaryResponse:
    return BookingSummaryResponse(**await booking_service.booking_summary(db, actor))


@router.get("/export/csv", summary="Export visible bookings as CSV")
async def export_csv(
    filters: BookingFilters = Depends(_filters),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> Response:
    rows = await booking_service.report_rows(db, actor, filters)
    return Response(
        content=render_csv(rows),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="bookings.csv"'},
    )


@router.get("/export/pdf", summary="Export visible bookings as PDF")
async def export_pdf(
    filters: BookingFilters = Depends(_filters),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> Response:
    rows = await booking_service.report_rows(db, actor, filters)
    return Response(
        content=render_pdf(rows, title="Booking report"),
        media_type="application/pdf",
        headers={"Content-Disposition": 'attachment; filename="bookings.pdf"'},
    )


# ---------------------------------------------------------------------------
# Single booking
# ---------------------------------------------------------------------------


@router.get("/{booking_id}", response_model=BookingResponse, summary="Get a booking")
async def get_booking(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> BookingResponse:
    booking = await booking_service.get_booking(db, actor, booking_id)
    return BookingResponse.model_validate(booking)


@router.patch("/{booking_id}", response_model=BookingOperationResponse, summary="Update a booking")
async def update_booking(
    booking_id: uuid.UUID,
    body: BookingUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    notifier: Notifier = Depends(get_notifier),
) -> BookingOperationResponse:
    """Partially update a booking.

    Date changes re-run the availability check atomically.  Price, status and
    payment status are host/admin only.
    """
    changes = BookingChanges(**body.model_dump(exclude_none=True))
    outcome = await booking_service.update_booking(db, actor, booking_id, changes, notifier)
    return _operation(outcome)


@router.post("/{booking_id}/cancel", response_model=BookingOperationResponse, summary="Cancel a booking")
async def cancel_booking(
    booking_id: uuid.UUID,
    body: BookingCancelRequest | None = None,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    notifier: Notifier = Depends(get_notifier),
) -> BookingOperationResponse:
    """Cancel a booking; a paid booking moves to refunded in the same step."""
    reason = body.reason if body else None
    outcome = await booking_service.cancel_booking(db, actor, booking_id, reason, notifier)
    return _operation(outcome)


@router.patch("/{booking_id}/status", response_model=BookingOperationResponse, summary="Change booking status")
async def change_status(
    booking_id: uuid.UUID,
    body: BookingStatusUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    notifier: Notifier = Depends(get_notifier),
) -> BookingOperationResponse:
    outcome = await booking_service.change_status(db, actor, booking_id, body.status, notifier, reason=body.reason)
    return _operation(outcome)


@router.patch(
    "/{booking_id}/payment-status",
    response_model=BookingOperationResponse,
    summary="Change payment status",
)
async def change_payment_status(
    booking_id: uuid.UUID,
    body: PaymentStatusUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    notifier: Notifier = Depends(get_notifier),
) -> BookingOperationResponse:
    """Marking a pending booking paid also confirms it."""
    outcome = await booking_service.change_payment_status(db, actor, booking_id, body.payment_status, notifier)
    return _operation(outcome)


@router.post(
    "/{booking_id}/payment-evidence",
    response_model=BookingOperationResponse,
    summary="Upload payment evidence",
)
async def attach_payment_evidence(
    booking_id: uuid.UUID,
    files: list[UploadFile] = File(...),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    media: MediaStore = Depends(get_media_store),
) -> BookingOperationResponse:
    outcome = await booking_service.attach_payment_evidence(db, actor, booking_id, files, media)
    return _operation(outcome)


@router.delete(
    "/{booking_id}/payment-evidence",
    response_model=BookingOperationResponse,
    summary="Remove payment evidence",
)
async def remove_payment_evidence(
    booking_id: uuid.UUID,
    body: EvidenceRemoveRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    media: MediaStore = Depends(get_media_store),
) -> BookingOperationResponse:
    outcome = await booking_service.remove_payment_evidence(db, actor, booking_id, body.references, media)
    return _operation(outcome)


@router.delete("/{booking_id}", response_model=MessageResponse, summary="Delete a booking (admin)")
async def delete_booking(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    notifier: Notifier = Depends(get_notifier),
    media: MediaStore = Depends(get_media_store),
) -> MessageResponse:
    outcome = await booking_service.delete_booking(db, actor, booking_id, notifier, media)
    return MessageResponse(message="Booking deleted", warnings=outcome.warnings)
