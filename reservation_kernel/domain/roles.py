"""
Role hierarchy and acting principals (``reservation_kernel.domain.roles``).

Responsibility
--------------
Defines the closed, totally ordered set of organization roles and the
``Principal`` value issued by the identity provider for every call.

Invariants enforced
-------------------
* Roles compare only through ``rank``: user < manager < admin.  String
  comparison of role values is never used for authorization.
* Only ``manager`` and ``admin`` are privileged; a ``user`` may never
  approve, reject, verify or override anything regardless of policy.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class Role(str, Enum):
    """Organization roles, lowest to highest."""

    USER = "user"
    MANAGER = "manager"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

    @property
    def is_privileged(self) -> bool:
        return self.rank >= _ROLE_RANK[Role.MANAGER]

    def satisfies(self, required: Role) -> bool:
        """True when this role ranks at or above ``required``."""
        return self.rank >= required.rank


_ROLE_RANK: dict[Role, int] = {
    Role.USER: 0,
    Role.MANAGER: 1,
    Role.ADMIN: 2,
}


@dataclass(frozen=True)
class Principal:
    """Authenticated caller: id, role, optional department, organization."""

    actor_id: UUID
    role: Role
    organization_id: UUID
    department: str | None = None

    @property
    def is_privileged(self) -> bool:
        return self.role.is_privileged
