"""
PolicyService -- writes approval policies and return verification policies.

Responsibility:
    Upserts and deletes approval policy rows, seeds the organization-wide
    defaults for every resource kind, and stores an organization's return
    verification policy.

Architecture position:
    Kernel > Services -- imperative shell.  Authorization (admin only) is
    checked by ``reservation_services.policy_admin`` before calling in.

Invariants enforced:
    - At most one row per (organization, scope, department); writes go
      through ``department_key`` so the organization-wide row is unique too.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select

from reservation_kernel.domain.clock import Clock, SystemClock
from reservation_kernel.domain.policy import ApprovalPolicyRule, department_key
from reservation_kernel.domain.reservation import ReturnVerificationPolicy
from reservation_kernel.domain.resource import ResourceKind
from reservation_kernel.domain.roles import Role
from reservation_kernel.exceptions import OrganizationNotFoundError
from reservation_kernel.logging_config import get_logger
from reservation_kernel.models.approval_policy import ApprovalPolicyModel
from reservation_kernel.models.organization import OrganizationModel
from reservation_kernel.services.base import BaseService

logger = get_logger("services.policy")


@dataclass(frozen=True)
class PolicyWrite:
    """Outcome of an upsert or delete."""

    policy_id: UUID
    rule: ApprovalPolicyRule
    previous_role: Role | None


class PolicyService(BaseService[ApprovalPolicyModel]):

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def _find(
        self, organization_id: UUID, scope: ResourceKind, department: str | None,
    ) -> ApprovalPolicyModel | None:
        return self.session.execute(
            select(ApprovalPolicyModel).where(
                ApprovalPolicyModel.organization_id == organization_id,
                ApprovalPolicyModel.scope == ResourceKind(scope).value,
                ApprovalPolicyModel.department_key == department_key(department),
            )
        ).scalar_one_or_none()

    def _organization(self, organization_id: UUID) -> OrganizationModel:
        organization = self.session.get(OrganizationModel, organization_id)
        if organization is None:
            raise OrganizationNotFoundError(str(organization_id))
        return organization

    def upsert(
        self,
        organization_id: UUID,
        scope: ResourceKind,
        required_role: Role,
        department: str | None = None,
    ) -> PolicyWrite:
        self._organization(organization_id)
        model = self._find(organization_id, scope, department)
        previous = Role(model.required_role) if model is not None else None

        if model is None:
            model = ApprovalPolicyModel(
                organization_id=organization_id,
                scope=ResourceKind(scope).value,
                department=department,
                department_key=department_key(department),
                required_role=Role(required_role).value,
                updated_at=self._clock.now_utc(),
            )
            self.session.add(model)
        else:
            model.required_role = Role(required_role).value
            model.updated_at = self._clock.now_utc()
        self.session.flush()

        logger.info(
            "approval_policy_set",
            extra={
                "organization_id": str(organization_id),
                "scope": ResourceKind(scope).value,
                "department": department,
                "required_role": Role(required_role).value,
                "previous_role": previous.value if previous else None,
            },
        )
        return PolicyWrite(model.id, model.to_dto(), previous)

    def delete(
        self,
        organization_id: UUID,
        scope: ResourceKind,
        department: str | None = None,
    ) -> PolicyWrite | None:
        """Remove a row.  Returns None when there was nothing to delete."""
        model = self._find(organization_id, scope, department)
        if model is None:
            return None

        outcome = PolicyWrite(model.id, model.to_dto(), Role(model.required_role))
        self.session.delete(model)
        self.session.flush()

        logger.info(
            "approval_policy_deleted",
            extra={
                "organization_id": str(organization_id),
                "scope": ResourceKind(scope).value,
                "department": department,
            },
        )
        return outcome

    def ensure_defaults(
        self, organization_id: UUID, required_role: Role = Role.ADMIN,
    ) -> list[PolicyWrite]:
        """Create the missing organization-wide row of every resource kind."""
        self._organization(organization_id)
        created: list[PolicyWrite] = []
        for scope in ResourceKind:
            if self._find(organization_id, scope, None) is None:
                created.append(self.upsert(organization_id, scope, required_role))
        return created

    def set_return_policy(
        self, organization_id: UUID, policy: ReturnVerificationPolicy,
    ) -> ReturnVerificationPolicy:
        """Store ``policy``; returns the previously stored one."""
        organization = self._organization(organization_id)
        previous = organization.return_policy()
        organization.return_verification_policy = policy.to_mapping()
        self.session.flush()

        logger.info(
            "return_policy_set",
            extra={"organization_id": str(organization_id), **policy.to_mapping()},
        )
        return previous
