"""
Approval policy rows (``reservation_kernel.domain.policy``).

A policy names the minimum role allowed to decide on reservations of one
resource kind, organization-wide (``department is None``) or for one owning
department.  Resolution order lives in ``reservation_engines.approval``.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from reservation_kernel.domain.resource import ResourceKind
from reservation_kernel.domain.roles import Role

DEFAULT_REQUIRED_ROLE = Role.MANAGER

# Stored in place of a NULL department so the unique key covers the
# organization-wide row.
ORGANIZATION_WIDE_KEY = "*"


def department_key(department: str | None) -> str:
    return ORGANIZATION_WIDE_KEY if department is None else department


@dataclass(frozen=True)
class ApprovalPolicyRule:
    organization_id: UUID
    scope: ResourceKind
    required_role: Role
    department: str | None = None

    @property
    def is_organization_wide(self) -> bool:
        return self.department is None
