"""Tests for the availability engine queries."""

import uuid
from datetime import date, timedelta

import pytest

from stayledger.exceptions import NotFound, ValidationError
from stayledger.models.enums import BookingStatus, PropertyStatus, ResourceKind
from stayledger.services.availability import (
    blocking_intervals,
    find_available_properties,
    find_conflicts,
    is_available,
)
from stayledger.services.registry import ResourceRef

pytestmark = pytest.mark.asyncio(loop_scope="session")


def _days(offset: int) -> date:
    return date.today() + timedelta(days=offset)


def _ref(prop) -> ResourceRef:
    return ResourceRef(ResourceKind.PROPERTY, prop.id)


class TestIsAvailable:
    async def test_free_property(self, db_session, test_property):
        assert await is_available(db_session, _ref(test_property), _days(10), _days(12))

    async def test_overlap_blocks(self, db_session, guest_user, test_property, create_booking):
        await create_booking(guest_user, property_id=test_property.id, offset_start=10, nights=5)
        assert not await is_available(db_session, _ref(test_property), _days(14), _days(16))
        assert await is_available(db_session, _ref(test_property), _days(15), _days(17))

    async def test_confirmed_blocks_and_completed_does_not(
        self, db_session, guest_user, test_property, create_booking
    ):
        await create_booking(
            guest_user, property_id=test_property.id, offset_start=20, status=BookingStatus.CONFIRMED
        )
        await create_booking(
            guest_user, property_id=test_property.id, offset_start=30, status=BookingStatus.COMPLETED
        )
        assert not await is_available(db_session, _ref(test_property), _days(20), _days(21))
        assert await is_available(db_session, _ref(test_property), _days(30), _days(31))

    async def test_excluding_own_booking(self, db_session, guest_user, test_property, create_booking):
        booking = await create_booking(guest_user, property_id=test_property.id, offset_start=10, nights=3)
        assert await is_available(
            db_session, _ref(test_property), _days(11), _days(14), exclude_booking_id=booking.id
        )

    async def test_missing_or_inactive_resource_is_unavailable(
        self, db_session, host_user, create_property
    ):
        inactive = await create_property(host_user, status=PropertyStatus.INACTIVE)
        assert not await is_available(db_session, _ref(inactive), _days(5), _days(6))
        missing = ResourceRef(ResourceKind.PROPERTY, uuid.uuid4())
        assert not await is_available(db_session, missing, _days(5), _days(6))


class TestBlockingIntervals:
    async def test_lists_intersecting_stays_in_order(
        self, db_session, guest_user, test_property, create_booking
    ):
        await create_booking(guest_user, property_id=test_property.id, offset_start=40, nights=2)
        await create_booking(guest_user, property_id=test_property.id, offset_start=10, nights=3)
        await create_booking(guest_user, property_id=test_property.id, offset_start=200, nights=3)

        intervals = await blocking_intervals(db_session, _ref(test_property), _days(0), _days(100))

        assert intervals == [(_days(10), _days(13)), (_days(40), _days(42))]

    async def test_tour_bookings_do_not_leak_into_property(
        self, db_session, guest_user, test_property, test_tour, create_booking
    ):
        await create_booking(guest_user, tour_package_id=test_tour.id, offset_start=10, nights=1)
        conflicts = await find_conflicts(db_session, _ref(test_property), _days(0), _days(30))
        assert conflicts == []

    async def test_inverted_range(self, db_session, test_property):
        with pytest.raises(ValidationError):
            await blocking_intervals(db_session, _ref(test_property), _days(10), _days(10))

    async def test_unknown_resource(self, db_session):
        with pytest.raises(NotFound):
            await blocking_intervals(
                db_session, ResourceRef(ResourceKind.TOUR, uuid.uuid4()), _days(0), _days(10)
            )


class TestFindAvailableProperties:
    async def test_excludes_booked_and_inactive(
        self, db_session, guest_user, host_user, create_property, create_booking
    ):
        city = f"Amed-{uuid.uuid4().hex[:6]}"
        free = await create_property(host_user, city=city)
        booked = await create_property(host_user, city=city)
        await create_property(host_user, city=city, status=PropertyStatus.INACTIVE)
        await create_booking(guest_user, property_id=booked.id, offset_start=10, nights=4)

        found = await find_available_properties(db_session, _days(11), _days(12), city=city)

        assert [p.id for p in found] == [free.id]

    async def test_rejects_past_dates(self, db_session):
        with pytest.raises(ValidationError):
            await find_available_properties(db_session, _days(-2), _days(1))
