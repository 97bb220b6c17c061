"""Shared test configuration and fixtures.

Uses a transactional rollback strategy per test for full isolation:
- Each test gets its own outer transaction that rolls back after the test;
  ``session.commit()`` inside services does not end it.
- The database is ``settings.test_database_url`` when set, otherwise a
  throwaway SQLite file.

Collaborators are swapped through ``app.dependency_overrides``: a recording
notifier and a media store rooted in a temporary directory.
"""

import tempfile
import uuid
from collections.abc import AsyncGenerator
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stayledger.api.deps import get_media_store, get_notifier
from stayledger.auth.jwt import create_token_pair
from stayledger.auth.passwords import hash_password
from stayledger.config import settings
from stayledger.database import Base, build_engine, get_db
from stayledger.main import app
from stayledger.models import Booking, Property, TourPackage, User
from stayledger.models.enums import BookingStatus, PaymentStatus, UserRole
from stayledger.services.actor import Actor
from stayledger.services.media import LocalMediaStore
from stayledger.services.notifications import BookingEvent

# ---------------------------------------------------------------------------
# Test database engine
# ---------------------------------------------------------------------------

_tmp_dir = Path(tempfile.mkdtemp(prefix="stayledger-tests-"))
_test_db_url = settings.test_database_url or f"sqlite+aiosqlite:///{_tmp_dir / 'test.db'}"


# ---------------------------------------------------------------------------
# Session-scoped: create / drop all tables once per test session
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def test_engine():
    """Create a session-scoped engine tied to the session event loop."""
    engine = build_engine(_test_db_url)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def setup_test_db(test_engine):
    """Create all tables at the start of the session and drop them at the end."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def session_factory(test_engine, setup_test_db) -> async_sessionmaker[AsyncSession]:
    """Factory for independent, really-committing sessions (concurrency tests)."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


# ---------------------------------------------------------------------------
# Per-test: transactional rollback for isolation
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_session(test_engine, setup_test_db) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session wrapped in a transaction that always rolls back."""
    async with test_engine.connect() as connection:
        transaction = await connection.begin()
        session = AsyncSession(bind=connection, expire_on_commit=False)

        try:
            yield session
        finally:
            await session.close()
            await transaction.rollback()


class RecordingNotifier:
    """Notifier fake that records every message; can be told to fail."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, BookingEvent, dict[str, Any]]] = []
        self.fail = False

    async def notify(self, address: str, event: BookingEvent, context: dict[str, Any]) -> None:
        if self.fail:
            raise ConnectionError("mail relay unreachable")
        self.sent.append((address, event, context))

    @property
    def events(self) -> list[BookingEvent]:
        return [event for _, event, _ in self.sent]


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def media_store(tmp_path) -> LocalMediaStore:
    return LocalMediaStore(root=tmp_path / "media", url_prefix="/media")


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    notifier: RecordingNotifier,
    media_store: LocalMediaStore,
) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to the test DB session and fakes."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_media_store] = lambda: media_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Convenience fixtures: users per role
# ---------------------------------------------------------------------------


async def _make_user(db: AsyncSession, role: UserRole, name: str) -> User:
    unique = uuid.uuid4().hex[:8]
    user = User(
        email=f"{role.value}-{unique}@test.com",
        hashed_password=hash_password("testpass123"),
        name=name,
        role=role,
        is_active=True,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)
    return user


def _headers(user: User) -> dict[str, str]:
    tokens = create_token_pair(str(user.id), user.role.value)
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest_asyncio.fixture
async def guest_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, UserRole.GUEST, "Test Guest")


@pytest_asyncio.fixture
async def other_guest(db_session: AsyncSession) -> User:
    return await _make_user(db_session, UserRole.GUEST, "Other Guest")


@pytest_asyncio.fixture
async def host_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, UserRole.HOST, "Test Host")


@pytest_asyncio.fixture
async def other_host(db_session: AsyncSession) -> User:
    return await _make_user(db_session, UserRole.HOST, "Other Host")


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, UserRole.ADMIN, "Test Admin")


@pytest.fixture
def guest_headers(guest_user: User) -> dict[str, str]:
    return _headers(guest_user)


@pytest.fixture
def other_guest_headers(other_guest: User) -> dict[str, str]:
    return _headers(other_guest)


@pytest.fixture
def host_headers(host_user: User) -> dict[str, str]:
    return _headers(host_user)


@pytest.fixture
def other_host_headers(other_host: User) -> dict[str, str]:
    return _headers(other_host)


@pytest.fixture
def admin_headers(admin_user: User) -> dict[str, str]:
    return _headers(admin_user)


@pytest.fixture
def guest_actor(guest_user: User) -> Actor:
    return Actor.from_user(guest_user)


@pytest.fixture
def host_actor(host_user: User) -> Actor:
    return Actor.from_user(host_user)


@pytest.fixture
def admin_actor(admin_user: User) -> Actor:
    return Actor.from_user(admin_user)


# ---------------------------------------------------------------------------
# Convenience fixtures: resources and bookings
# ---------------------------------------------------------------------------


def future_dates(offset_start: int = 30, nights: int = 5) -> tuple[date, date]:
    """Return a (check_in, check_out) pair safely in the future."""
    check_in = date.today() + timedelta(days=offset_start)
    return check_in, check_in + timedelta(days=nights)


async def make_property(db: AsyncSession, host: User, **overrides: Any) -> Property:
    data: dict[str, Any] = {
        "title": "Test Villa",
        "description": "A test villa for automated tests.",
        "address": "Jl. Test 1",
        "city": "Ubud",
        "price_per_night": Decimal("150.00"),
        "max_guests": 20,
        "amenities": ["pool", "wifi"],
        "image_urls": ["/media/property/test.jpg"],
    }
    data.update(overrides)
    prop = Property(host_id=host.id, **data)
    db.add(prop)
    await db.flush()
    await db.refresh(prop)
    return prop


async def make_tour(db: AsyncSession, host: User, **overrides: Any) -> TourPackage:
    data: dict[str, Any] = {
        "title": "Sunrise Trek",
        "description": "Guided hike.",
        "price": Decimal("65.00"),
        "duration_days": 1,
        "max_guests": 12,
        "image_urls": ["/media/tour/test.jpg"],
    }
    data.update(overrides)
    tour = TourPackage(host_id=host.id, **data)
    db.add(tour)
    await db.flush()
    await db.refresh(tour)
    return tour


async def make_booking(
    db: AsyncSession,
    user: User,
    *,
    property_id: uuid.UUID | None = None,
    tour_package_id: uuid.UUID | None = None,
    offset_start: int = 30,
    nights: int = 2,
    guests: int = 2,
    status: BookingStatus = BookingStatus.PENDING,
    payment_status: PaymentStatus = PaymentStatus.PENDING,
    payment_images: list[str] | None = None,
) -> Booking:
    check_in, check_out = future_dates(offset_start, nights)
    booking = Booking(
        user_id=user.id,
        property_id=property_id,
        tour_package_id=tour_package_id,
        check_in=check_in,
        check_out=check_out,
        guests=guests,
        total_price=Decimal("300.00"),
        status=status,
        payment_status=payment_status,
        payment_images=payment_images or [],
    )
    db.add(booking)
    await db.flush()
    await db.refresh(booking)
    return booking


@pytest_asyncio.fixture
async def test_property(db_session: AsyncSession, host_user: User) -> Property:
    return await make_property(db_session, host_user)


@pytest_asyncio.fixture
async def other_property(db_session: AsyncSession, other_host: User) -> Property:
    return await make_property(db_session, other_host, title="Other Villa", city="Canggu")


@pytest_asyncio.fixture
async def test_tour(db_session: AsyncSession, host_user: User) -> TourPackage:
    return await make_tour(db_session, host_user)


@pytest.fixture
def create_property(db_session: AsyncSession):
    """``await create_property(host, **overrides)``"""

    async def _create(host: User, **overrides: Any) -> Property:
        return await make_property(db_session, host, **overrides)

    return _create


@pytest.fixture
def create_tour(db_session: AsyncSession):
    async def _create(host: User, **overrides: Any) -> TourPackage:
        return await make_tour(db_session, host, **overrides)

    return _create


@pytest.fixture
def create_booking(db_session: AsyncSession):
    """``await create_booking(user, property_id=..., offset_start=..., status=...)``"""

    async def _create(user: User, **kwargs: Any) -> Booking:
        return await make_booking(db_session, user, **kwargs)

    return _create
