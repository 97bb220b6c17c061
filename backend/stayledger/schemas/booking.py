"""Pydantic v2 request/response schemas for booking endpoints.

Request schemas check shape only; ranges (dates, guests, price) are
validated by the booking core so every entry point reports them the same way.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from stayledger.models.enums import BookingStatus, PaymentStatus, ResourceKind

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class BookingCreate(BaseModel):
    """Schema for reserving a property or a tour package (exactly one)."""

    property_id: uuid.UUID | None = None
    tour_package_id: uuid.UUID | None = None
    check_in: date
    check_out: date
    guests: int
    total_price: Decimal
    payment_details: str | None = Field(None, max_length=500)


class BookingUpdate(BaseModel):
    """Schema for partially updating a booking. All fields optional.

    ``total_price``, ``status`` and ``payment_status`` are host/admin only.
    """

    check_in: date | None = None
    check_out: date | None = None
    guests: int | None = None
    payment_details: str | None = Field(None, max_length=500)
    total_price: Decimal | None = None
    status: BookingStatus | None = None
    payment_status: PaymentStatus | None = None


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    reason: str | None = Field(None, max_length=500)


class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus


class BookingCancelRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class EvidenceRemoveRequest(BaseModel):
    references: list[str] = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BookingResponse(BaseModel):
    """Standard booking response returned from CRUD operations."""

    id: uuid.UUID
    user_id: uuid.UUID
    property_id: uuid.UUID | None = None
    tour_package_id: uuid.UUID | None = None
    resource_kind: ResourceKind
    check_in: date
    check_out: date
    guests: int
    total_price: Decimal
    status: BookingStatus
    payment_status: PaymentStatus
    payment_details: str | None = None
    payment_images: list[str] = []
    cancellation_reason: str | None = None
    cancelled_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookingOperationResponse(BaseModel):
    """A booking after a write, with any non-fatal warnings."""

    booking: BookingResponse
    warnings: list[str] = []


class BookingListResponse(BaseModel):
    """Paginated list of bookings."""

    items: list[BookingResponse]
    total: int


class BookingSummaryResponse(BaseModel):
    total_bookings: int
    by_status: dict[str, int]
    by_payment_status: dict[str, int]
    paid_revenue: Decimal
