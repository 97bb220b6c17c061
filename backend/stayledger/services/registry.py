"""Read-side lookups over properties and tour packages.

The booking core only ever sees resources through this module: resolving a
reference, asking whether it currently accepts reservations, and collecting
the identities a host owns.
"""

import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.models.booking import Booking
from stayledger.models.enums import ResourceKind
from stayledger.models.property import Property
from stayledger.models.tour_package import TourPackage
from stayledger.services.locking import select_for_update

Resource = Property | TourPackage

RESOURCE_MODELS: dict[ResourceKind, type[Property] | type[TourPackage]] = {
    ResourceKind.PROPERTY: Property,
    ResourceKind.TOUR: TourPackage,
}

RESOURCE_LABELS = {
    ResourceKind.PROPERTY: "Property",
    ResourceKind.TOUR: "Tour package",
}


@dataclass(frozen=True)
class ResourceRef:
    """Typed pointer to exactly one bookable resource."""

    kind: ResourceKind
    id: uuid.UUID

    @property
    def model(self) -> type[Property] | type[TourPackage]:
        return RESOURCE_MODELS[self.kind]

    @property
    def label(self) -> str:
        return RESOURCE_LABELS[self.kind]

    @classmethod
    def of_booking(cls, booking: Booking) -> "ResourceRef":
        return cls(booking.resource_kind, booking.resource_id)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


@dataclass(frozen=True)
class HostResources:
    """Identities of every resource a host owns, split by kind."""

    property_ids: frozenset[uuid.UUID]
    tour_ids: frozenset[uuid.UUID]

    def owns(self, ref: ResourceRef) -> bool:
        ids = self.property_ids if ref.kind is ResourceKind.PROPERTY else self.tour_ids
        return ref.id in ids


async def get_resource(
    db: AsyncSession,
    ref: ResourceRef,
    *,
    for_update: bool = False,
) -> Resource | None:
    """Load the referenced resource, or ``None`` when it has vanished.

    ``for_update`` takes a row lock (``SELECT ... FOR UPDATE``) that is held
    until the surrounding transaction ends; dialects without row locks
    ignore it.  The wait for that lock is bounded, see
    :func:`~stayledger.services.locking.select_for_update`.
    """
    model = ref.model
    query = select(model).where(model.id == ref.id)
    result = await (select_for_update(db, query) if for_update else db.execute(query))
    return result.scalar_one_or_none()


def is_bookable(resource: Resource | None) -> bool:
    """Whether the resource exists and its status permits new reservations."""
    return resource is not None and resource.status == resource.bookable_status


async def collect_host_resources(db: AsyncSession, host_id: uuid.UUID) -> HostResources:
    """Collect the property and tour identities owned by ``host_id``."""
    property_rows = await db.execute(select(Property.id).where(Property.host_id == host_id))
    tour_rows = await db.execute(select(TourPackage.id).where(TourPackage.host_id == host_id))
    return HostResources(
        property_ids=frozenset(property_rows.scalars().all()),
        tour_ids=frozenset(tour_rows.scalars().all()),
    )


async def load_resources(
    db: AsyncSession,
    bookings: list[Booking],
) -> dict[ResourceRef, Resource]:
    """Batch-resolve the resources referenced by ``bookings``.

    Vanished resources are simply absent from the returned mapping.
    """
    wanted: dict[ResourceKind, set[uuid.UUID]] = {kind: set() for kind in ResourceKind}
    for booking in bookings:
        wanted[booking.resource_kind].add(booking.resource_id)

    found: dict[ResourceRef, Resource] = {}
    for kind, ids in wanted.items():
        if not ids:
            continue
        model = RESOURCE_MODELS[kind]
        result = await db.execute(select(model).where(model.id.in_(ids)))
        for resource in result.scalars().all():
            found[ResourceRef(kind, resource.id)] = resource
    return found
