"""
Module: reservation_kernel.models.approval_policy
Responsibility: ORM persistence for per-organization approval policies.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - At most one row per (organization, scope, department); the
      organization-wide row stores ``department_key = '*'`` so the unique
      constraint covers it even though ``department`` is NULL.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from reservation_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from reservation_kernel.domain.policy import ApprovalPolicyRule


class ApprovalPolicyModel(Base):
    __tablename__ = "approval_policies"

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "scope", "department_key",
            name="uq_approval_policies_scope_department",
        ),
        CheckConstraint(
            "scope IN ('asset', 'space', 'vehicle')",
            name="ck_approval_policies_valid_scope",
        ),
        CheckConstraint(
            "required_role IN ('admin', 'manager', 'user')",
            name="ck_approval_policies_valid_role",
        ),
    )

    organization_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("organizations.id"), nullable=False,
    )
    scope: Mapped[str] = mapped_column(String(20), nullable=False)
    department: Mapped[str | None] = mapped_column(String(100), nullable=True)
    department_key: Mapped[str] = mapped_column(String(100), nullable=False)
    required_role: Mapped[str] = mapped_column(String(20), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ApprovalPolicy {self.scope}/{self.department or '*'} "
            f"requires {self.required_role}>"
        )

    def to_dto(self) -> ApprovalPolicyRule:
        from reservation_kernel.domain.policy import ApprovalPolicyRule
        from reservation_kernel.domain.resource import ResourceKind
        from reservation_kernel.domain.roles import Role

        return ApprovalPolicyRule(
            organization_id=self.organization_id,
            scope=ResourceKind(self.scope),
            required_role=Role(self.required_role),
            department=self.department,
        )
