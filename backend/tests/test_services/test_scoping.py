"""Ownership scoping tests: who can see and change which bookings and resources."""

import uuid

import pytest

from stayledger.exceptions import Forbidden, NotFound
from stayledger.models.enums import PropertyStatus, ResourceKind, UserRole
from stayledger.services.actor import Actor
from stayledger.services.booking_service import BookingFilters, get_booking, list_bookings
from stayledger.services.registry import ResourceRef, collect_host_resources
from stayledger.services.scoping import (
    BookingAction,
    ResourceAction,
    authorize_booking,
    authorize_resource,
)

pytestmark = pytest.mark.asyncio(loop_scope="session")


@pytest.fixture
async def bookings(guest_user, other_guest, test_property, other_property, test_tour, create_booking):
    """Three bookings: guest on host's property and tour, other guest on other host's property."""
    return {
        "guest_property": await create_booking(guest_user, property_id=test_property.id, offset_start=30),
        "guest_tour": await create_booking(guest_user, tour_package_id=test_tour.id, offset_start=35, nights=1),
        "other": await create_booking(other_guest, property_id=other_property.id, offset_start=30),
    }


class TestBookingVisibility:
    async def test_guest_sees_only_own(self, db_session, guest_actor, bookings):
        items, total = await list_bookings(db_session, guest_actor, BookingFilters())
        assert total == 2
        assert {b.id for b in items} == {bookings["guest_property"].id, bookings["guest_tour"].id}

    async def test_host_sees_bookings_on_owned_resources(self, db_session, host_actor, bookings):
        items, total = await list_bookings(db_session, host_actor, BookingFilters())
        assert total == 2
        assert bookings["other"].id not in {b.id for b in items}

    async def test_host_without_resources_sees_nothing(self, db_session, bookings):
        lonely = Actor(id=uuid.uuid4(), role=UserRole.HOST)
        items, total = await list_bookings(db_session, lonely, BookingFilters())
        assert (items, total) == ([], 0)

    async def test_admin_sees_everything(self, db_session, admin_actor, bookings):
        _items, total = await list_bookings(db_session, admin_actor, BookingFilters())
        assert total >= 3

    async def test_out_of_scope_booking_is_not_found(self, db_session, guest_actor, host_actor, bookings):
        with pytest.raises(NotFound):
            await get_booking(db_session, guest_actor, bookings["other"].id)
        with pytest.raises(NotFound):
            await get_booking(db_session, host_actor, bookings["other"].id)

    async def test_in_scope_but_role_lacks_action_is_forbidden(self, db_session, guest_actor, bookings):
        with pytest.raises(Forbidden):
            await authorize_booking(
                db_session, guest_actor, bookings["guest_property"].id, BookingAction.CHANGE_STATUS
            )

    async def test_host_cannot_delete(self, db_session, host_actor, bookings):
        with pytest.raises(Forbidden):
            await authorize_booking(db_session, host_actor, bookings["guest_property"].id, BookingAction.DELETE)

    async def test_admin_may_delete(self, db_session, admin_actor, bookings):
        booking = await authorize_booking(db_session, admin_actor, bookings["other"].id, BookingAction.DELETE)
        assert booking.id == bookings["other"].id


class TestFilters:
    async def test_filter_by_resource_type(self, db_session, guest_actor, bookings):
        items, total = await list_bookings(db_session, guest_actor, BookingFilters(resource_type=ResourceKind.TOUR))
        assert total == 1
        assert items[0].tour_package_id is not None

    async def test_host_filter_for_other_host_forbidden(self, db_session, host_actor, other_host, bookings):
        with pytest.raises(Forbidden):
            await list_bookings(db_session, host_actor, BookingFilters(host_id=other_host.id))

    async def test_admin_host_filter(self, db_session, admin_actor, other_host, bookings):
        items, total = await list_bookings(db_session, admin_actor, BookingFilters(host_id=other_host.id))
        assert total == 1
        assert items[0].id == bookings["other"].id

    async def test_pagination_keeps_total(self, db_session, guest_actor, bookings):
        items, total = await list_bookings(db_session, guest_actor, BookingFilters(), skip=0, limit=1)
        assert len(items) == 1
        assert total == 2


class TestResourceScoping:
    async def test_collect_host_resources(self, db_session, host_user, test_property, test_tour, other_property):
        owned = await collect_host_resources(db_session, host_user.id)
        assert owned.property_ids == frozenset({test_property.id})
        assert owned.tour_ids == frozenset({test_tour.id})
        assert not owned.owns(ResourceRef(ResourceKind.PROPERTY, other_property.id))

    async def test_host_cannot_see_other_hosts_property(self, db_session, host_actor, other_property):
        ref = ResourceRef(ResourceKind.PROPERTY, other_property.id)
        with pytest.raises(NotFound):
            await authorize_resource(db_session, host_actor, ref, ResourceAction.MANAGE)

    async def test_guest_sees_available_only(self, db_session, guest_actor, host_user, create_property):
        hidden = await create_property(host_user, status=PropertyStatus.INACTIVE)
        shown = await create_property(host_user)
        with pytest.raises(NotFound):
            await authorize_resource(
                db_session, guest_actor, ResourceRef(ResourceKind.PROPERTY, hidden.id), ResourceAction.VIEW
            )
        resource = await authorize_resource(
            db_session, guest_actor, ResourceRef(ResourceKind.PROPERTY, shown.id), ResourceAction.VIEW
        )
        assert resource.id == shown.id

    async def test_guest_cannot_manage(self, db_session, guest_actor, test_property):
        with pytest.raises(Forbidden):
            await authorize_resource(
                db_session, guest_actor, ResourceRef(ResourceKind.PROPERTY, test_property.id), ResourceAction.MANAGE
            )

    async def test_host_cannot_hard_delete_own(self, db_session, host_actor, test_property):
        with pytest.raises(Forbidden):
            await authorize_resource(
                db_session, host_actor, ResourceRef(ResourceKind.PROPERTY, test_property.id), ResourceAction.DELETE
            )
