"""
Approval policy resolution engine (``reservation_engines.approval``).

Responsibility
--------------
Resolves the minimum role required to decide on a resource's reservations
and checks whether an acting principal holds it.  The same resolver feeds
the guard and the "approver" label shown to users, so the two never drift.

Architecture position
---------------------
**Engines layer** -- pure functions.  ZERO I/O.  Policy rows are loaded by
``PolicySelector`` and passed in.

Invariants enforced
-------------------
* Fallback order: exact ``(organization, scope, department)`` row, then the
  organization-wide ``(organization, scope, None)`` row, then ``default``.
  Rows of other organizations or scopes never influence the answer.
* Organization-owned resources resolve with department ``None``.
* A ``user`` never passes the decision guard, whatever the policy says.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from reservation_kernel.domain.policy import DEFAULT_REQUIRED_ROLE, ApprovalPolicyRule
from reservation_kernel.domain.resource import OwnerScope, ResourceInfo, ResourceKind
from reservation_kernel.domain.roles import Principal, Role
from reservation_kernel.exceptions import (
    CrossOrganizationError,
    InsufficientRoleError,
)


def resolve_required_role(
    policies: Iterable[ApprovalPolicyRule],
    organization_id: UUID,
    scope: ResourceKind,
    owner_scope: OwnerScope,
    owner_department: str | None,
    default: Role = DEFAULT_REQUIRED_ROLE,
) -> Role:
    """
    Minimum role allowed to approve/reject/verify for the given resource.

    Postconditions:
        - Deterministic and idempotent for identical inputs.
        - Adding rows for other organizations, scopes or departments does not
          change the result.
    """
    scope = ResourceKind(scope)
    department = (
        owner_department if OwnerScope(owner_scope) == OwnerScope.DEPARTMENT else None
    )

    organization_wide: ApprovalPolicyRule | None = None
    for policy in policies:
        if policy.organization_id != organization_id or policy.scope != scope:
            continue
        if department is not None and policy.department == department:
            return policy.required_role
        if policy.department is None:
            organization_wide = policy

    if organization_wide is not None:
        return organization_wide.required_role
    return default


def resolve_for_resource(
    policies: Iterable[ApprovalPolicyRule],
    resource: ResourceInfo,
    default: Role = DEFAULT_REQUIRED_ROLE,
) -> Role:
    return resolve_required_role(
        policies,
        resource.organization_id,
        resource.kind,
        resource.owner_scope,
        resource.owner_department,
        default,
    )


def check_same_organization(actor: Principal, organization_id: UUID) -> None:
    if actor.organization_id != organization_id:
        raise CrossOrganizationError(str(actor.organization_id), str(organization_id))


def check_decision_authority(
    actor: Principal,
    required_role: Role,
    organization_id: UUID,
) -> None:
    """
    Guard for approve / reject / mark-returned / verify / override.

    Raises:
        CrossOrganizationError: Actor belongs to another organization.
        InsufficientRoleError: Actor is a plain user, or ranks below
            ``required_role``.
    """
    check_same_organization(actor, organization_id)
    if not actor.is_privileged or not actor.role.satisfies(required_role):
        raise InsufficientRoleError(
            str(actor.actor_id), actor.role.value, required_role.value,
        )


def can_manage_transfer(actor: Principal, asset: ResourceInfo) -> bool:
    """Admins, managers, and members of the owning department may decide."""
    if actor.organization_id != asset.organization_id:
        return False
    if actor.is_privileged:
        return True
    return (
        asset.owner_scope == OwnerScope.DEPARTMENT
        and actor.department is not None
        and actor.department == asset.owner_department
    )
