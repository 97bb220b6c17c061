"""Seed the database with demo accounts, listings and bookings.

Creates one admin, one host and one guest, a few properties and a tour
package owned by the host, and a handful of bookings in different states.
Administrators cannot self-register, so this script is also how the first
admin account is provisioned.

Run:
    python -m scripts.seed_data
"""

import asyncio
import sys
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

# Add backend to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import delete, or_, select

from stayledger.auth.passwords import hash_password
from stayledger.database import async_session_factory
from stayledger.models import Booking, Property, TourPackage, User
from stayledger.models.enums import BookingStatus, PaymentStatus, UserRole

# ---------------------------------------------------------------------------
# Seed data definitions
# ---------------------------------------------------------------------------

ACCOUNTS = [
    {"email": "admin@stayledger.local", "password": "admin1234", "name": "Platform Admin", "role": UserRole.ADMIN},
    {"email": "host@stayledger.local", "password": "host1234", "name": "Dewi Host", "role": UserRole.HOST},
    {"email": "guest@stayledger.local", "password": "guest1234", "name": "Sam Guest", "role": UserRole.GUEST},
]

PROPERTIES = [
    {
        "title": "Le Ayu Villa Canggu",
        "description": "Two-bedroom private pool villa minutes from Canggu's surf breaks.",
        "address": "Jl. Raya Tumbak Bayuh, Pererenan",
        "city": "Canggu",
        "price_per_night": Decimal("129.00"),
        "max_guests": 4,
        "amenities": ["private_pool", "wifi", "ac", "kitchen", "parking"],
        "image_urls": ["/media/property/seed/le-ayu.jpg"],
    },
    {
        "title": "Umah Anyar Villas Ubud",
        "description": "One-bedroom jungle villa with rice field views.",
        "address": "Jl. Raya Sayan, Ubud",
        "city": "Ubud",
        "price_per_night": Decimal("163.00"),
        "max_guests": 2,
        "amenities": ["pool", "wifi", "breakfast", "yoga_deck"],
        "image_urls": ["/media/property/seed/umah-anyar.jpg"],
    },
    {
        "title": "Da Vinci The Villa",
        "description": "Three-bedroom villa with a 20m pool and full staff.",
        "address": "Jl. Pantai Berawa, Canggu",
        "city": "Canggu",
        "price_per_night": Decimal("350.00"),
        "max_guests": 8,
        "amenities": ["private_pool", "wifi", "ac", "chef", "gym"],
        "image_urls": ["/media/property/seed/da-vinci.jpg"],
    },
]

TOURS = [
    {
        "title": "Mount Batur Sunrise Trek",
        "description": "Guided pre-dawn hike with breakfast at the summit.",
        "price": Decimal("65.00"),
        "duration_days": 1,
        "max_guests": 12,
        "image_urls": ["/media/tour/seed/batur.jpg"],
    },
]


def _build_bookings(
    guest: User,
    properties: list[Property],
    tour: TourPackage,
    today: date,
) -> list[Booking]:
    """Non-overlapping bookings spread across states."""
    first, second, third = properties

    def stay(prop: Property, start: int, nights: int, guests: int, **state) -> Booking:
        return Booking(
            user_id=guest.id,
            property_id=prop.id,
            check_in=today + timedelta(days=start),
            check_out=today + timedelta(days=start + nights),
            guests=guests,
            total_price=prop.price_per_night * nights,
            payment_images=[],
            **state,
        )

    return [
        stay(first, 3, 2, 2),
        stay(first, 10, 4, 3, status=BookingStatus.CONFIRMED, payment_status=PaymentStatus.PAID),
        stay(second, 7, 3, 2, status=BookingStatus.CONFIRMED, payment_status=PaymentStatus.PENDING),
        stay(
            third,
            5,
            5,
            6,
            status=BookingStatus.CANCELLED,
            payment_status=PaymentStatus.REFUNDED,
            cancellation_reason="Change of travel plans",
            cancelled_at=datetime.now(timezone.utc),
        ),
        Booking(
            user_id=guest.id,
            tour_package_id=tour.id,
            check_in=today + timedelta(days=12),
            check_out=today + timedelta(days=13),
            guests=2,
            total_price=tour.price * 2,
            payment_images=[],
        ),
    ]


# ---------------------------------------------------------------------------
# Main seed function
# ---------------------------------------------------------------------------


async def seed() -> None:
    """Populate the database with demo data.

    Idempotent: existing demo accounts and everything attached to them are
    deleted and re-created.
    """
    emails = [a["email"] for a in ACCOUNTS]
    async with async_session_factory() as session:
        result = await session.execute(select(User.id).where(User.email.in_(emails)))
        existing_ids = list(result.scalars().all())
        if existing_ids:
            print(f"Demo accounts already exist ({len(existing_ids)}). Deleting and re-seeding...")
            property_ids = select(Property.id).where(Property.host_id.in_(existing_ids))
            tour_ids = select(TourPackage.id).where(TourPackage.host_id.in_(existing_ids))
            await session.execute(
                delete(Booking).where(
                    or_(
                        Booking.user_id.in_(existing_ids),
                        Booking.property_id.in_(property_ids),
                        Booking.tour_package_id.in_(tour_ids),
                    )
                )
            )
            await session.execute(delete(Property).where(Property.host_id.in_(existing_ids)))
            await session.execute(delete(TourPackage).where(TourPackage.host_id.in_(existing_ids)))
            await session.execute(delete(User).where(User.id.in_(existing_ids)))
            await session.flush()

        # 1. Accounts
        users: dict[UserRole, User] = {}
        for account in ACCOUNTS:
            user = User(
                email=account["email"],
                hashed_password=hash_password(account["password"]),
                name=account["name"],
                role=account["role"],
                is_active=True,
            )
            session.add(user)
            users[account["role"]] = user
        await session.flush()
        for account in ACCOUNTS:
            print(f"   {account['role'].value:<6} {account['email']} / {account['password']}")

        # 2. Listings
        host = users[UserRole.HOST]
        properties = [Property(host_id=host.id, **data) for data in PROPERTIES]
        tours = [TourPackage(host_id=host.id, **data) for data in TOURS]
        session.add_all([*properties, *tours])
        await session.flush()
        for prop in properties:
            print(f"   {prop.title} ({prop.city}, ${prop.price_per_night}/night)")
        for tour in tours:
            print(f"   {tour.title} (${tour.price})")

        # 3. Bookings
        bookings = _build_bookings(users[UserRole.GUEST], properties, tours[0], date.today())
        session.add_all(bookings)
        await session.flush()
        await session.commit()

        print()
        print("=" * 60)
        print(f"   Users:         {len(users)}")
        print(f"   Properties:    {len(properties)}")
        print(f"   Tour packages: {len(tours)}")
        print(f"   Bookings:      {len(bookings)}")
        print("=" * 60)
        print("Done. Log in at /api/v1/auth/login")


if __name__ == "__main__":
    asyncio.run(seed())
