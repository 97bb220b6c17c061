"""The authenticated caller as seen by the booking core."""

import uuid
from dataclasses import dataclass

from stayledger.models.enums import UserRole
from stayledger.models.user import User


@dataclass(frozen=True)
class Actor:
    id: uuid.UUID
    role: UserRole
    email: str = ""
    name: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN

    @property
    def is_host(self) -> bool:
        return self.role is UserRole.HOST

    @property
    def is_guest(self) -> bool:
        return self.role is UserRole.GUEST

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(id=user.id, role=UserRole(user.role), email=user.email, name=user.name)
