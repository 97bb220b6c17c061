"""Properties API routes — public catalog for guests, ownership-scoped for hosts."""

import uuid
from datetime import date, timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.api.deps import get_current_actor, get_db, get_media_store
from stayledger.models.enums import PropertyStatus, ResourceKind
from stayledger.schemas.auth import MessageResponse
from stayledger.schemas.property import (
    AvailabilityResponse,
    BlockedDatesResponse,
    PropertyCreate,
    PropertyCreatedResponse,
    PropertyListResponse,
    PropertyResponse,
    PropertyUpdate,
)
from stayledger.services import resources
from stayledger.services.actor import Actor
from stayledger.services.availability import find_available_properties, today, validate_stay
from stayledger.services.media import MediaStore
from stayledger.services.registry import ResourceRef

router = APIRouter(prefix="/api/v1/properties", tags=["properties"])


def _ref(property_id: uuid.UUID) -> ResourceRef:
    return ResourceRef(ResourceKind.PROPERTY, property_id)


@router.post(
    "",
    response_model=PropertyCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a property (multipart form with images)",
)
async def create_property(
    body: Annotated[PropertyCreate, Form()],
    images: list[UploadFile] = File(..., description="1 to 10 images"),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    media: MediaStore = Depends(get_media_store),
) -> PropertyCreatedResponse:
    """Create a property owned by the authenticated host."""
    outcome = await resources.create_resource(
        db, actor, ResourceKind.PROPERTY, body.model_dump(), images, media
    )
    return PropertyCreatedResponse(
        **PropertyResponse.model_validate(outcome.resource).model_dump(),
        warnings=outcome.warnings,
    )


@router.get(
    "",
    response_model=PropertyListResponse,
    summary="List properties visible to the caller",
)
async def list_properties(
    city: str | None = Query(None, description="Case-insensitive city match"),
    status_filter: PropertyStatus | None = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> PropertyListResponse:
    """Guests see the open catalog, hosts their own listings, admins everything."""
    items, total = await resources.list_resources(
        db, actor, ResourceKind.PROPERTY, city=city, status=status_filter, skip=skip, limit=limit
    )
    return PropertyListResponse(
        items=[PropertyResponse.model_validate(p) for p in items],
        total=total,
    )


@router.get(
    "/available",
    response_model=PropertyListResponse,
    summary="Search properties free for a stay",
)
async def search_available(
    check_in: date = Query(...),
    check_out: date = Query(...),
    city: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(get_current_actor),
) -> PropertyListResponse:
    validate_stay(check_in, check_out)
    items = await find_available_properties(db, check_in, check_out, city=city)
    return PropertyListResponse(
        items=[PropertyResponse.model_validate(p) for p in items],
        total=len(items),
    )


@router.get("/{property_id}", response_model=PropertyResponse, summary="Get a property")
async def get_property(
    property_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> PropertyResponse:
    prop = await resources.get_listing(db, actor, _ref(property_id))
    return PropertyResponse.model_validate(prop)


@router.put("/{property_id}", response_model=PropertyResponse, summary="Update a property")
async def update_property(
    property_id: uuid.UUID,
    body: PropertyUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> PropertyResponse:
    """Partially update a property owned by the caller (or any, for admins)."""
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    prop = await resources.update_resource(db, actor, _ref(property_id), changes)
    return PropertyResponse.model_validate(prop)


@router.delete("/{property_id}", response_model=MessageResponse, summary="Deactivate or delete a property")
async def delete_property(
    property_id: uuid.UUID,
    hard: bool = Query(False, description="Permanently delete (admin only)"),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    media: MediaStore = Depends(get_media_store),
) -> MessageResponse:
    """Deactivate by default; ``?hard=true`` removes the row and its images."""
    if hard:
        warnings = await resources.delete_resource(db, actor, _ref(property_id), media)
        return MessageResponse(message="Property deleted", warnings=warnings)
    await resources.deactivate_resource(db, actor, _ref(property_id))
    return MessageResponse(message="Property deactivated")


@router.get(
    "/{property_id}/availability",
    response_model=AvailabilityResponse,
    summary="Check a property for a stay",
)
async def property_availability(
    property_id: uuid.UUID,
    check_in: date = Query(...),
    check_out: date = Query(...),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> AvailabilityResponse:
    result = await resources.check_availability(db, actor, _ref(property_id), check_in, check_out)
    return AvailabilityResponse(**result)


@router.get(
    "/{property_id}/blocked-dates",
    response_model=BlockedDatesResponse,
    summary="Occupied intervals of a property",
)
async def property_blocked_dates(
    property_id: uuid.UUID,
    start: date | None = Query(None, description="Defaults to today"),
    end: date | None = Query(None, description="Defaults to start + 365 days"),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> BlockedDatesResponse:
    start = start or today()
    end = end or start + timedelta(days=365)
    blocked = await resources.blocked_dates(db, actor, _ref(property_id), start, end)
    return BlockedDatesResponse(
        resource_type=ResourceKind.PROPERTY,
        resource_id=property_id,
        start=start,
        end=end,
        blocked=blocked,
    )
