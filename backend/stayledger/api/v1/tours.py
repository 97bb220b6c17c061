"""Tour package API routes."""

import uuid
from datetime import date, timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.api.deps import get_current_actor, get_db, get_media_store
from stayledger.models.enums import ResourceKind, TourPackageStatus
from stayledger.schemas.auth import MessageResponse
from stayledger.schemas.property import AvailabilityResponse, BlockedDatesResponse
from stayledger.schemas.tour import (
    TourPackageCreate,
    TourPackageCreatedResponse,
    TourPackageListResponse,
    TourPackageResponse,
    TourPackageUpdate,
)
from stayledger.services import resources
from stayledger.services.actor import Actor
from stayledger.services.availability import today
from stayledger.services.media import MediaStore
from stayledger.services.registry import ResourceRef

router = APIRouter(prefix="/api/v1/tours", tags=["tours"])


def _ref(tour_id: uuid.UUID) -> ResourceRef:
    return ResourceRef(ResourceKind.TOUR, tour_id)


@router.post(
    "",
    response_model=TourPackageCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a tour package (multipart form with images)",
)
async def create_tour(
    body: Annotated[TourPackageCreate, Form()],
    images: list[UploadFile] = File(...),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    media: MediaStore = Depends(get_media_store),
) -> TourPackageCreatedResponse:
    outcome = await resources.create_resource(db, actor, ResourceKind.TOUR, body.model_dump(), images, media)
    return TourPackageCreatedResponse(
        **TourPackageResponse.model_validate(outcome.resource).model_dump(),
        warnings=outcome.warnings,
    )


@router.get("", response_model=TourPackageListResponse, summary="List tour packages visible to the caller")
async def list_tours(
    status_filter: TourPackageStatus | None = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> TourPackageListResponse:
    items, total = await resources.list_resources(
        db, actor, ResourceKind.TOUR, status=status_filter, skip=skip, limit=limit
    )
    return TourPackageListResponse(
        items=[TourPackageResponse.model_validate(t) for t in items],
        total=total,
    )


@router.get("/{tour_id}", response_model=TourPackageResponse, summary="Get a tour package")
async def get_tour(
    tour_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> TourPackageResponse:
    tour = await resources.get_listing(db, actor, _ref(tour_id))
    return TourPackageResponse.model_validate(tour)


@router.put("/{tour_id}", response_model=TourPackageResponse, summary="Update a tour package")
async def update_tour(
    tour_id: uuid.UUID,
    body: TourPackageUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> TourPackageResponse:
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    tour = await resources.update_resource(db, actor, _ref(tour_id), changes)
    return TourPackageResponse.model_validate(tour)


@router.delete("/{tour_id}", response_model=MessageResponse, summary="Cancel or delete a tour package")
async def delete_tour(
    tour_id: uuid.UUID,
    hard: bool = Query(False, description="Permanently delete (admin only)"),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    media: MediaStore = Depends(get_media_store),
) -> MessageResponse:
    """Mark the tour cancelled by default; ``?hard=true`` removes it."""
    if hard:
        warnings = await resources.delete_resource(db, actor, _ref(tour_id), media)
        return MessageResponse(message="Tour package deleted", warnings=warnings)
    await resources.deactivate_resource(db, actor, _ref(tour_id))
    return MessageResponse(message="Tour package cancelled")


@router.get("/{tour_id}/availability", response_model=AvailabilityResponse, summary="Check a tour for dates")
async def tour_availability(
    tour_id: uuid.UUID,
    check_in: date = Query(...),
    check_out: date = Query(...),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> AvailabilityResponse:
    result = await resources.check_availability(db, actor, _ref(tour_id), check_in, check_out)
    return AvailabilityResponse(**result)


@router.get("/{tour_id}/blocked-dates", response_model=BlockedDatesResponse, summary="Occupied intervals of a tour")
async def tour_blocked_dates(
    tour_id: uuid.UUID,
    start: date | None = Query(None),
    end: date | None = Query(None),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> BlockedDatesResponse:
    start = start or today()
    end = end or start + timedelta(days=365)
    blocked = await resources.blocked_dates(db, actor, _ref(tour_id), start, end)
    return BlockedDatesResponse(
        resource_type=ResourceKind.TOUR,
        resource_id=tour_id,
        start=start,
        end=end,
        blocked=blocked,
    )
