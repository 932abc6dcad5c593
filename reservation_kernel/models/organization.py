"""
Module: reservation_kernel.models.organization
Responsibility: ORM persistence for organizations and their return
    verification policy.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from reservation_kernel.db.base import Base

if TYPE_CHECKING:
    from reservation_kernel.domain.reservation import ReturnVerificationPolicy


class OrganizationModel(Base):
    """Tenant boundary.  Every resource, reservation and policy belongs to one."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    return_verification_policy: Mapped[dict | None] = mapped_column(
        JSON, nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Organization {self.id} {self.name!r}>"

    def return_policy(
        self, defaults: ReturnVerificationPolicy | None = None,
    ) -> ReturnVerificationPolicy:
        """Effective return policy; missing keys fall back to ``defaults``."""
        from reservation_kernel.domain.reservation import ReturnVerificationPolicy

        return ReturnVerificationPolicy.from_mapping(
            self.return_verification_policy, defaults,
        )
