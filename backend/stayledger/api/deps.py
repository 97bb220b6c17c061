"""Shared API dependencies, the single import point for all routers.

Re-exports the database session and authentication dependencies, and
provides the collaborator adapters (notifier, media store) so tests can
swap them through ``app.dependency_overrides``::

    from stayledger.api.deps import get_current_actor, get_db, get_notifier
"""

from functools import lru_cache

from stayledger.auth.dependencies import get_current_actor, get_current_user
from stayledger.config import settings
from stayledger.database import get_db
from stayledger.services.media import LocalMediaStore, MediaStore
from stayledger.services.notifications import DisabledNotifier, LoggingNotifier, Notifier


@lru_cache
def get_notifier() -> Notifier:
    if not settings.notifications_enabled:
        return DisabledNotifier()
    return LoggingNotifier()


@lru_cache
def get_media_store() -> MediaStore:
    return LocalMediaStore()


__all__ = [
    "get_db",
    "get_current_user",
    "get_current_actor",
    "get_notifier",
    "get_media_store",
]
