"""Database plumbing: engine construction, sessions, model base and row-lock bounds.

Deployments run on PostgreSQL through asyncpg.  The test suite may point at
SQLite instead, so nothing here assumes a server-side pool or row locks.
"""

import uuid
from datetime import datetime

from sqlalchemy import func, make_url, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from stayledger.config import settings

# SQLSTATE PostgreSQL reports when ``lock_timeout`` expires.
LOCK_NOT_AVAILABLE = "55P03"


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; pool sizing only applies to server databases."""
    options: dict = {"echo": echo}
    if make_url(url).get_backend_name() != "sqlite":
        options.update(pool_pre_ping=True, pool_size=10, max_overflow=20)
    return create_async_engine(url, **options)


engine = build_engine(settings.async_database_url, echo=settings.debug)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    """``created_at`` / ``updated_at`` maintained by the database clock."""

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
    )


class UUIDPrimaryKeyMixin:
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)


def dialect_name(session: AsyncSession) -> str:
    return session.get_bind().dialect.name


async def set_lock_timeout(session: AsyncSession, seconds: float) -> None:
    """Bound every row-lock wait for the rest of the current transaction.

    PostgreSQL only.  ``SET LOCAL`` is undone when the transaction ends, so
    a pooled connection never keeps the setting.
    """
    if dialect_name(session) != "postgresql":
        return
    millis = max(1, int(seconds * 1000))
    await session.execute(text(f"SET LOCAL lock_timeout = {millis}"))


def is_lock_timeout(exc: DBAPIError) -> bool:
    """Whether ``exc`` is PostgreSQL giving up on a row lock."""
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if getattr(candidate, "sqlstate", None) == LOCK_NOT_AVAILABLE:
            return True
    return False


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Request-scoped session for ``Depends(get_db)``.

    Services that need a durable point inside the request (the reservation
    critical section) commit explicitly; whatever is left pending is
    committed here, and any error rolls the request back.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
