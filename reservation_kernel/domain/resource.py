"""
Resource domain types (``reservation_kernel.domain.resource``).

Responsibility
--------------
Kinds of bookable resources, their operational statuses, ownership scopes,
and the frozen ``ResourceInfo`` snapshot the engines reason about.

Invariants enforced
-------------------
* ``retired`` is valid for assets only; spaces and vehicles never retire
  through this engine.
* ``owner_department`` is meaningful only when ``owner_scope`` is
  ``department``; organization-owned resources carry the
  ``ORGANIZATION_WIDE_DEPARTMENT`` label.
* ``rented`` is the single occupied status for every kind.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from uuid import UUID

ORGANIZATION_WIDE_DEPARTMENT = "organization-wide"


class ResourceKind(str, Enum):
    """Bookable resource kinds.  Also the scope of an approval policy."""

    ASSET = "asset"
    SPACE = "space"
    VEHICLE = "vehicle"


class ResourceStatus(str, Enum):
    AVAILABLE = "available"
    RENTED = "rented"
    REPAIR = "repair"
    LOST = "lost"
    RETIRED = "retired"


class OwnerScope(str, Enum):
    ORGANIZATION = "organization"
    DEPARTMENT = "department"


VALID_STATUSES_BY_KIND: dict[ResourceKind, frozenset[ResourceStatus]] = {
    ResourceKind.ASSET: frozenset(ResourceStatus),
    ResourceKind.SPACE: frozenset(ResourceStatus) - {ResourceStatus.RETIRED},
    ResourceKind.VEHICLE: frozenset(ResourceStatus) - {ResourceStatus.RETIRED},
}

# Statuses under which new reservations may be requested.  Assets and
# vehicles must be free right now; spaces take bookings in any status.
RESERVABLE_STATUSES_BY_KIND: dict[ResourceKind, frozenset[ResourceStatus]] = {
    ResourceKind.ASSET: frozenset({ResourceStatus.AVAILABLE}),
    ResourceKind.SPACE: VALID_STATUSES_BY_KIND[ResourceKind.SPACE],
    ResourceKind.VEHICLE: frozenset({ResourceStatus.AVAILABLE}),
}


@dataclass(frozen=True)
class ResourceInfo:
    """Read-only snapshot of a resource row."""

    resource_id: UUID
    organization_id: UUID
    kind: ResourceKind
    name: str
    owner_scope: OwnerScope
    owner_department: str
    status: ResourceStatus
    loanable: bool = True
    usable_until: date | None = None
    last_used_at: datetime | None = None
    current_odometer: int | None = None

    @property
    def accepts_reservations(self) -> bool:
        return self.status in RESERVABLE_STATUSES_BY_KIND[self.kind]

    @property
    def policy_department(self) -> str | None:
        """Department used for approval-policy lookup; None when org-owned."""
        if self.owner_scope == OwnerScope.DEPARTMENT:
            return self.owner_department
        return None
