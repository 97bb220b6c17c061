"""Error taxonomy for the booking core.

Every error the core raises on purpose derives from :class:`BookingError`
and carries a machine-readable ``code`` plus the HTTP status the API layer
renders it with.  Anything else reaching the API boundary is treated as an
internal error.
"""

from typing import Any


class BookingError(Exception):
    """Base class for all expected booking-core failures."""

    status_code: int = 400
    code: str = "booking_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for an API error body."""
        return {
            "detail": self.message,
            "code": self.code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, code={self.code!r})"


class ValidationError(BookingError):
    """Malformed or out-of-range input the caller can correct."""

    status_code = 422
    code = "validation_error"


class Conflict(BookingError):
    """The requested dates overlap an active booking or the resource is not bookable."""

    status_code = 409
    code = "conflict"


class ReservationTimeout(Conflict):
    """The resource-scoped critical section could not be entered in time."""

    code = "reservation_timeout"


class NotFound(BookingError):
    """Resource or booking absent (or not visible to the actor)."""

    status_code = 404
    code = "not_found"

    def __init__(self, entity: str, entity_id: Any = None, message: str | None = None) -> None:
        if message is None:
            message = f"{entity} not found"
        super().__init__(message, {"entity": entity, "id": str(entity_id) if entity_id else None})


class Forbidden(BookingError):
    """Ownership or role violation."""

    status_code = 403
    code = "forbidden"


class InvalidTransition(BookingError):
    """Illegal booking/payment state-machine move."""

    status_code = 409
    code = "invalid_transition"


class Unavailable(BookingError):
    """A collaborator (media store, notifier) failed where its result was required."""

    status_code = 503
    code = "unavailable"
