"""TourPackage model — bookable guided tours owned by a host."""

import uuid
from decimal import Decimal

from sqlalchemy import JSON, Enum, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stayledger.database import Base, TimestampMixin, UUIDPrimaryKeyMixin
from stayledger.models.enums import ResourceKind, TourPackageStatus, db_enum_values


class TourPackage(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A tour offered by a host for a fixed price."""

    __tablename__ = "tour_packages"

    kind = ResourceKind.TOUR
    bookable_status = TourPackageStatus.AVAILABLE
    deactivated_status = TourPackageStatus.CANCELLED

    host_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    duration_days: Mapped[int | None] = mapped_column(default=None)
    max_guests: Mapped[int | None] = mapped_column(default=None)
    image_urls: Mapped[list] = mapped_column(JSON, default=list)
    status: Mapped[TourPackageStatus] = mapped_column(
        Enum(TourPackageStatus, native_enum=False, length=20, values_callable=db_enum_values),
        default=TourPackageStatus.AVAILABLE,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<TourPackage(id={self.id}, title={self.title!r}, status={self.status!r})>"
