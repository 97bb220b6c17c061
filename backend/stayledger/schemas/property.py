"""Pydantic v2 request/response schemas for property endpoints."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from stayledger.models.enums import PropertyStatus, ResourceKind

MAX_AMENITIES = 20

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class PropertyCreate(BaseModel):
    """Fields for a new property; images arrive as multipart files alongside."""

    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=120)
    price_per_night: Decimal = Field(..., gt=0)
    max_guests: int | None = Field(None, ge=1, le=20)
    amenities: list[str] = Field(default_factory=list, max_length=MAX_AMENITIES)


class PropertyUpdate(BaseModel):
    """Schema for partially updating a property. All fields optional."""

    title: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, min_length=1)
    address: str | None = Field(None, min_length=1, max_length=255)
    city: str | None = Field(None, min_length=1, max_length=120)
    price_per_night: Decimal | None = Field(None, gt=0)
    max_guests: int | None = Field(None, ge=1, le=20)
    amenities: list[str] | None = Field(None, max_length=MAX_AMENITIES)
    status: PropertyStatus | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class PropertyResponse(BaseModel):
    """Public property information returned from the API."""

    id: uuid.UUID
    host_id: uuid.UUID
    title: str
    description: str
    address: str
    city: str
    price_per_night: Decimal
    max_guests: int | None = None
    amenities: list[str] = []
    image_urls: list[str] = []
    status: PropertyStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PropertyCreatedResponse(PropertyResponse):
    warnings: list[str] = []


class PropertyListResponse(BaseModel):
    """Paginated list of properties."""

    items: list[PropertyResponse]
    total: int


class AvailabilityResponse(BaseModel):
    """Whether a resource can take a stay, with the intervals blocking it."""

    resource_type: ResourceKind
    resource_id: uuid.UUID
    check_in: date
    check_out: date
    available: bool
    blocked: list[tuple[date, date]] = []


class BlockedDatesResponse(BaseModel):
    """Occupied half-open ``[check_in, check_out)`` intervals in a range."""

    resource_type: ResourceKind
    resource_id: uuid.UUID
    start: date
    end: date
    blocked: list[tuple[date, date]]
