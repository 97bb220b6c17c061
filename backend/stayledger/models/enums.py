"""Enumerations shared by models, schemas, and the booking core."""

import enum


class UserRole(str, enum.Enum):
    GUEST = "guest"
    HOST = "host"
    ADMIN = "admin"


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PropertyStatus(str, enum.Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    CANCELLED = "cancelled"
    CONFIRMED = "confirmed"
    INACTIVE = "inactive"


class TourPackageStatus(str, enum.Enum):
    AVAILABLE = "available"
    SOLD_OUT = "sold_out"
    CANCELLED = "cancelled"
    UPCOMING = "upcoming"


class ResourceKind(str, enum.Enum):
    """Which of the two bookable resource tables a reference points at."""

    PROPERTY = "property"
    TOUR = "tour"


# Bookings in these states occupy their resource's calendar.
ACTIVE_BOOKING_STATUSES: tuple[BookingStatus, ...] = (
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
)


def db_enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Persist enum *values* (``"pending"``) rather than member names."""
    return [member.value for member in enum_cls]
