"""Property model — bookable lodging owned by a host."""

import uuid
from decimal import Decimal

from sqlalchemy import JSON, Enum, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stayledger.database import Base, TimestampMixin, UUIDPrimaryKeyMixin
from stayledger.models.enums import PropertyStatus, ResourceKind, db_enum_values


class Property(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A lodging unit (apartment, villa, room) listed by a host."""

    __tablename__ = "properties"

    kind = ResourceKind.PROPERTY
    bookable_status = PropertyStatus.AVAILABLE
    deactivated_status = PropertyStatus.INACTIVE

    host_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    price_per_night: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    max_guests: Mapped[int | None] = mapped_column(default=None)
    amenities: Mapped[list] = mapped_column(JSON, default=list)
    image_urls: Mapped[list] = mapped_column(JSON, default=list)
    status: Mapped[PropertyStatus] = mapped_column(
        Enum(PropertyStatus, native_enum=False, length=20, values_callable=db_enum_values),
        default=PropertyStatus.AVAILABLE,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, title={self.title!r}, status={self.status!r})>"
