"""Booking model — a guest's reservation of one resource for a date range."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from stayledger.database import Base, TimestampMixin, UUIDPrimaryKeyMixin
from stayledger.models.enums import (
    BookingStatus,
    PaymentStatus,
    ResourceKind,
    db_enum_values,
)


class Booking(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A reservation of a property or tour package by a user.

    ``property_id`` / ``tour_package_id`` are deliberately not foreign keys:
    a hard-deleted resource leaves its bookings behind with a dangling
    reference instead of cascading them away.
    """

    __tablename__ = "bookings"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    property_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    tour_package_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)
    guests: Mapped[int] = mapped_column(Integer, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, native_enum=False, length=20, values_callable=db_enum_values),
        default=BookingStatus.PENDING,
        nullable=False,
        index=True,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, native_enum=False, length=20, values_callable=db_enum_values),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True,
    )
    payment_details: Mapped[str | None] = mapped_column(String(500), nullable=True)
    payment_images: Mapped[list] = mapped_column(JSON, default=list)
    cancellation_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("check_out > check_in", name="ck_bookings_date_order"),
        CheckConstraint("guests >= 1 AND guests <= 20", name="ck_bookings_guest_range"),
        CheckConstraint("total_price >= 0", name="ck_bookings_price_non_negative"),
        CheckConstraint(
            "(property_id IS NULL) <> (tour_package_id IS NULL)",
            name="ck_bookings_single_resource",
        ),
        Index("ix_bookings_dates", "check_in", "check_out"),
    )

    @property
    def resource_kind(self) -> ResourceKind:
        return ResourceKind.PROPERTY if self.property_id is not None else ResourceKind.TOUR

    @property
    def resource_id(self) -> uuid.UUID:
        return self.property_id if self.property_id is not None else self.tour_package_id  # type: ignore[return-value]

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    @property
    def price_per_night(self) -> Decimal:
        nights = self.nights
        return self.total_price / nights if nights > 0 else self.total_price

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, {self.resource_kind.value}={self.resource_id}, "
            f"user_id={self.user_id}, status={self.status!r}, payment={self.payment_status!r})>"
        )
