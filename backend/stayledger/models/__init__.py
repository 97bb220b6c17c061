"""SQLAlchemy models for StayLedger.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from stayledger.models.booking import Booking
from stayledger.models.property import Property
from stayledger.models.tour_package import TourPackage
from stayledger.models.user import User

__all__ = [
    "Booking",
    "Property",
    "TourPackage",
    "User",
]
