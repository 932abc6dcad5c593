"""
Module: reservation_kernel.models.resource
Responsibility: ORM persistence for bookable resources (assets, spaces,
    vehicles) in a single table discriminated by ``kind``.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Status values are limited by a check constraint; ``retired`` only for
      assets.
    - Status changes happen only through ResourceStatusService (transition
      side effects and audited administrative overrides).
"""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from reservation_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from reservation_kernel.domain.resource import ResourceInfo


class ResourceModel(Base):
    __tablename__ = "resources"

    __table_args__ = (
        CheckConstraint(
            "kind IN ('asset', 'space', 'vehicle')",
            name="ck_resources_valid_kind",
        ),
        CheckConstraint(
            "status IN ('available', 'rented', 'repair', 'lost', 'retired')",
            name="ck_resources_valid_status",
        ),
        CheckConstraint(
            "status <> 'retired' OR kind = 'asset'",
            name="ck_resources_retired_assets_only",
        ),
        CheckConstraint(
            "owner_scope IN ('organization', 'department')",
            name="ck_resources_valid_owner_scope",
        ),
        Index("ix_resources_org_kind", "organization_id", "kind"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("organizations.id"), nullable=False,
    )
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    owner_scope: Mapped[str] = mapped_column(
        String(20), nullable=False, default="organization",
    )
    owner_department: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="available",
    )
    loanable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    usable_until: Mapped[date | None] = mapped_column(nullable=True)
    last_used_at: Mapped[datetime | None] = mapped_column(nullable=True)
    current_odometer: Mapped[int | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Resource {self.kind}:{self.id} {self.name!r} status={self.status}>"

    def to_dto(self) -> ResourceInfo:
        from reservation_kernel.domain.resource import (
            OwnerScope,
            ResourceInfo,
            ResourceKind,
            ResourceStatus,
        )

        return ResourceInfo(
            resource_id=self.id,
            organization_id=self.organization_id,
            kind=ResourceKind(self.kind),
            name=self.name,
            owner_scope=OwnerScope(self.owner_scope),
            owner_department=self.owner_department,
            status=ResourceStatus(self.status),
            loanable=self.loanable,
            usable_until=self.usable_until,
            last_used_at=self.last_used_at,
            current_odometer=self.current_odometer,
        )
