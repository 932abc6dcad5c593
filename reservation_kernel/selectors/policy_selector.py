"""
Module: reservation_kernel.selectors.policy_selector
Responsibility: Approval policy rows for resolution and administration.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from reservation_kernel.domain.policy import ApprovalPolicyRule, department_key
from reservation_kernel.domain.resource import ResourceKind
from reservation_kernel.models.approval_policy import ApprovalPolicyModel
from reservation_kernel.selectors.base import BaseSelector


class PolicySelector(BaseSelector):

    def list_for_scope(
        self, organization_id: UUID, scope: ResourceKind,
    ) -> list[ApprovalPolicyRule]:
        """All rows of one organization and resource kind."""
        models = self.session.execute(
            select(ApprovalPolicyModel)
            .where(
                ApprovalPolicyModel.organization_id == organization_id,
                ApprovalPolicyModel.scope == ResourceKind(scope).value,
            )
            .order_by(ApprovalPolicyModel.department_key)
        ).scalars()
        return [m.to_dto() for m in models]

    def list_for_organization(self, organization_id: UUID) -> list[ApprovalPolicyRule]:
        models = self.session.execute(
            select(ApprovalPolicyModel)
            .where(ApprovalPolicyModel.organization_id == organization_id)
            .order_by(ApprovalPolicyModel.scope, ApprovalPolicyModel.department_key)
        ).scalars()
        return [m.to_dto() for m in models]

    def find(
        self,
        organization_id: UUID,
        scope: ResourceKind,
        department: str | None,
    ) -> ApprovalPolicyRule | None:
        model = self.session.execute(
            select(ApprovalPolicyModel).where(
                ApprovalPolicyModel.organization_id == organization_id,
                ApprovalPolicyModel.scope == ResourceKind(scope).value,
                ApprovalPolicyModel.department_key == department_key(department),
            )
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None
