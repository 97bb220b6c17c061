"""Pydantic v2 request/response schemas for tour package endpoints."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from stayledger.models.enums import TourPackageStatus


class TourPackageCreate(BaseModel):
    """Fields for a new tour package; images arrive as multipart files alongside."""

    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1)
    price: Decimal = Field(..., gt=0)
    duration_days: int | None = Field(None, ge=1)
    max_guests: int | None = Field(None, ge=1, le=20)


class TourPackageUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, min_length=1)
    price: Decimal | None = Field(None, gt=0)
    duration_days: int | None = Field(None, ge=1)
    max_guests: int | None = Field(None, ge=1, le=20)
    status: TourPackageStatus | None = None


class TourPackageResponse(BaseModel):
    id: uuid.UUID
    host_id: uuid.UUID
    title: str
    description: str
    price: Decimal
    duration_days: int | None = None
    max_guests: int | None = None
    image_urls: list[str] = []
    status: TourPackageStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TourPackageCreatedResponse(TourPackageResponse):
    warnings: list[str] = []


class TourPackageListResponse(BaseModel):
    items: list[TourPackageResponse]
    total: int
