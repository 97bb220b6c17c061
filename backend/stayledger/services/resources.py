"""Resource catalog: host-managed properties and tour packages.

Create, list, update, deactivate and delete go through the scoping layer;
images are persisted by the media store before the row is written.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from fastapi import UploadFile
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.config import settings
from stayledger.exceptions import Forbidden, Unavailable, ValidationError
from stayledger.models.enums import ResourceKind
from stayledger.services.actor import Actor
from stayledger.services.availability import blocking_intervals, find_conflicts, is_available, validate_stay
from stayledger.services.media import MediaStore, remove_best_effort
from stayledger.services.registry import RESOURCE_MODELS, Resource, ResourceRef
from stayledger.services.scoping import ResourceAction, authorize_resource, visible_resources

logger = logging.getLogger(__name__)

# Columns a host may change after creation, per kind.
EDITABLE_FIELDS: dict[ResourceKind, frozenset[str]] = {
    ResourceKind.PROPERTY: frozenset(
        {"title", "description", "address", "city", "price_per_night", "max_guests", "amenities", "status"}
    ),
    ResourceKind.TOUR: frozenset(
        {"title", "description", "price", "duration_days", "max_guests", "status"}
    ),
}


@dataclass
class ResourceOutcome:
    resource: Resource
    warnings: list[str] = field(default_factory=list)


def _require_host_role(actor: Actor) -> None:
    if actor.is_guest:
        raise Forbidden("Only hosts and administrators can manage listings", {"role": actor.role.value})


async def create_resource(
    db: AsyncSession,
    actor: Actor,
    kind: ResourceKind,
    data: dict[str, Any],
    images: Sequence[UploadFile],
    media: MediaStore,
) -> ResourceOutcome:
    """Store the images, then create the listing owned by ``actor``.

    Raises:
        Forbidden: The actor is a guest.
        ValidationError: No images, or too many.
        Unavailable: None of the images could be stored.
    """
    _require_host_role(actor)
    limit = settings.max_resource_images
    if not images:
        raise ValidationError("At least one image is required")
    if len(images) > limit:
        raise ValidationError(f"At most {limit} images are allowed", {"uploaded": len(images), "limit": limit})

    stored = await media.store(images, folder=f"{kind.value}/{actor.id}")
    if not stored:
        raise Unavailable("Image upload failed")
    warnings = []
    if len(stored) < len(images):
        warnings.append(f"{len(images) - len(stored)} image(s) could not be stored")

    model = RESOURCE_MODELS[kind]
    resource = model(host_id=actor.id, image_urls=stored, **data)
    db.add(resource)
    await db.flush()
    await db.commit()
    await db.refresh(resource)
    logger.info("%s %s created by %s with %d image(s)", kind.value, resource.id, actor.id, len(stored))
    return ResourceOutcome(resource, warnings)


async def list_resources(
    db: AsyncSession,
    actor: Actor,
    kind: ResourceKind,
    *,
    city: str | None = None,
    status: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Resource], int]:
    model = RESOURCE_MODELS[kind]
    conditions = [visible_resources(actor, model)]
    if city and kind is ResourceKind.PROPERTY:
        conditions.append(model.city.ilike(f"%{city}%"))
    if status is not None:
        conditions.append(model.status == status)

    total = (await db.execute(select(func.count()).select_from(model).where(*conditions))).scalar_one()
    result = await db.execute(
        select(model).where(*conditions).order_by(model.created_at.desc()).offset(skip).limit(limit)
    )
    return list(result.scalars().all()), total


async def get_listing(db: AsyncSession, actor: Actor, ref: ResourceRef) -> Resource:
    return await authorize_resource(db, actor, ref, ResourceAction.VIEW)


async def update_resource(
    db: AsyncSession,
    actor: Actor,
    ref: ResourceRef,
    changes: dict[str, Any],
) -> Resource:
    resource = await authorize_resource(db, actor, ref, ResourceAction.MANAGE)
    unknown = set(changes) - EDITABLE_FIELDS[ref.kind]
    if unknown:
        raise ValidationError("Fields cannot be updated", {"fields": sorted(unknown)})

    for name, value in changes.items():
        setattr(resource, name, value)
    await db.flush()
    await db.commit()
    await db.refresh(resource)
    logger.info("%s updated by %s: %s", ref, actor.id, sorted(changes))
    return resource


async def deactivate_resource(db: AsyncSession, actor: Actor, ref: ResourceRef) -> Resource:
    """Take the listing off the market; existing bookings are untouched."""
    resource = await authorize_resource(db, actor, ref, ResourceAction.MANAGE)
    resource.status = resource.deactivated_status
    await db.flush()
    await db.commit()
    await db.refresh(resource)
    logger.info("%s deactivated by %s", ref, actor.id)
    return resource


async def delete_resource(
    db: AsyncSession,
    actor: Actor,
    ref: ResourceRef,
    media: MediaStore,
) -> list[str]:
    """Hard-delete a listing (admin only).

    Bookings keep their now dangling reference.  Images are removed
    best-effort; failures come back as warnings.
    """
    resource = await authorize_resource(db, actor, ref, ResourceAction.DELETE)
    images = list(resource.image_urls or [])
    await db.delete(resource)
    await db.flush()
    await db.commit()
    logger.info("%s hard-deleted by admin %s", ref, actor.id)

    _removed, warnings = await remove_best_effort(media, images)
    return warnings


async def check_availability(
    db: AsyncSession,
    actor: Actor,
    ref: ResourceRef,
    check_in: date,
    check_out: date,
) -> dict[str, Any]:
    """Availability of one visible resource for a stay, with the blocking intervals."""
    await authorize_resource(db, actor, ref, ResourceAction.VIEW)
    validate_stay(check_in, check_out)

    available = await is_available(db, ref, check_in, check_out)
    conflicts = await find_conflicts(db, ref, check_in, check_out)
    return {
        "resource_type": ref.kind,
        "resource_id": ref.id,
        "check_in": check_in,
        "check_out": check_out,
        "available": available,
        "blocked": [(b.check_in, b.check_out) for b in conflicts],
    }


async def blocked_dates(
    db: AsyncSession,
    actor: Actor,
    ref: ResourceRef,
    range_start: date,
    range_end: date,
) -> list[tuple[date, date]]:
    await authorize_resource(db, actor, ref, ResourceAction.VIEW)
    return await blocking_intervals(db, ref, range_start, range_end)