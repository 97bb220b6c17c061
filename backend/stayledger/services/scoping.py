"""Ownership scoping — which bookings and resources an actor may see or change.

Visibility rules:

* guest — bookings they requested; resources currently open for booking
* host  — bookings on resources they own (resolved by collecting the host's
  property and tour identities first); resources they own
* admin — everything

Every booking and resource lookup in the service layer goes through
:func:`authorize_booking` / :func:`authorize_resource`.  Records outside the
actor's scope are reported as missing so their existence is not leaked;
records inside the scope but beyond the actor's role raise ``Forbidden``.
"""

import enum
import logging
import uuid

from sqlalchemy import ColumnElement, false, or_, select, true
from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.exceptions import Forbidden, NotFound
from stayledger.models.booking import Booking
from stayledger.models.property import Property
from stayledger.models.tour_package import TourPackage
from stayledger.services.actor import Actor
from stayledger.services.locking import select_for_update
from stayledger.services.registry import (
    HostResources,
    Resource,
    ResourceRef,
    collect_host_resources,
)

logger = logging.getLogger(__name__)


class BookingAction(str, enum.Enum):
    VIEW = "view"
    MODIFY = "modify"
    CANCEL = "cancel"
    CHANGE_STATUS = "change_status"
    CHANGE_PAYMENT = "change_payment"
    MANAGE_EVIDENCE = "manage_evidence"
    DELETE = "delete"


class ResourceAction(str, enum.Enum):
    VIEW = "view"
    MANAGE = "manage"
    DELETE = "delete"


OWNER_ACTIONS = frozenset(
    {
        BookingAction.VIEW,
        BookingAction.MODIFY,
        BookingAction.CANCEL,
        BookingAction.MANAGE_EVIDENCE,
    }
)
HOST_ACTIONS = frozenset(
    {
        BookingAction.VIEW,
        BookingAction.MODIFY,
        BookingAction.CANCEL,
        BookingAction.CHANGE_STATUS,
        BookingAction.CHANGE_PAYMENT,
    }
)
ADMIN_ACTIONS = frozenset(BookingAction)


def host_bookings_clause(owned: HostResources) -> ColumnElement[bool]:
    """Bookings whose resource reference is in the host's identity set."""
    clauses = []
    if owned.property_ids:
        clauses.append(Booking.property_id.in_(owned.property_ids))
    if owned.tour_ids:
        clauses.append(Booking.tour_package_id.in_(owned.tour_ids))
    return or_(*clauses) if clauses else false()


async def visible_bookings(db: AsyncSession, actor: Actor) -> ColumnElement[bool]:
    """Where-clause restricting ``Booking`` rows to the actor's scope."""
    if actor.is_admin:
        return true()
    if actor.is_host:
        owned = await collect_host_resources(db, actor.id)
        return host_bookings_clause(owned)
    return Booking.user_id == actor.id


def visible_resources(
    actor: Actor,
    model: type[Property] | type[TourPackage],
) -> ColumnElement[bool]:
    """Where-clause restricting resource rows of ``model`` to the actor's scope."""
    if actor.is_admin:
        return true()
    if actor.is_host:
        return model.host_id == actor.id
    return model.status == model.bookable_status


def booking_actions_for(actor: Actor) -> frozenset[BookingAction]:
    """Actions the actor's role allows on a booking already in their scope."""
    if actor.is_admin:
        return ADMIN_ACTIONS
    if actor.is_host:
        return HOST_ACTIONS
    return OWNER_ACTIONS


def ensure_allowed(actor: Actor, action: BookingAction, booking_id: uuid.UUID | None = None) -> None:
    """Raise ``Forbidden`` unless the actor's role may perform ``action``."""
    if action in booking_actions_for(actor):
        return
    logger.warning(
        "Actor %s (%s) denied %s on booking %s",
        actor.id,
        actor.role.value,
        action.value,
        booking_id,
    )
    raise Forbidden(
        f"Not allowed to {action.value.replace('_', ' ')} this booking",
        {"action": action.value, "role": actor.role.value},
    )


async def authorize_booking(
    db: AsyncSession,
    actor: Actor,
    booking_id: uuid.UUID,
    action: BookingAction,
    *,
    for_update: bool = False,
) -> Booking:
    """Load a booking the actor may perform ``action`` on.

    Args:
        for_update: Lock the booking row until the transaction ends, used
            before status transitions.

    Raises:
        NotFound: If the booking does not exist or is outside the actor's scope.
        Forbidden: If the booking is visible but ``action`` is not allowed.
        ReservationTimeout: If ``for_update`` waited too long for the row lock.
    """
    query = select(Booking).where(Booking.id == booking_id, await visible_bookings(db, actor))
    result = await (select_for_update(db, query) if for_update else db.execute(query))
    booking = result.scalar_one_or_none()
    if booking is None:
        raise NotFound("Booking", booking_id)

    ensure_allowed(actor, action, booking_id)
    return booking


async def authorize_resource(
    db: AsyncSession,
    actor: Actor,
    ref: ResourceRef,
    action: ResourceAction,
) -> Resource:
    """Load a resource the actor may perform ``action`` on.

    Raises:
        NotFound: If the resource does not exist or is outside the actor's scope.
        Forbidden: If the resource is visible but ``action`` is not allowed.
    """
    model = ref.model
    result = await db.execute(
        select(model).where(model.id == ref.id, visible_resources(actor, model))
    )
    resource = result.scalar_one_or_none()
    if resource is None:
        raise NotFound(ref.label, ref.id)

    if action is ResourceAction.VIEW or actor.is_admin:
        return resource
    if action is ResourceAction.MANAGE and actor.is_host and resource.host_id == actor.id:
        return resource
    raise Forbidden(
        f"Not allowed to {action.value} this {ref.label.lower()}",
        {"action": action.value, "role": actor.role.value},
    )
