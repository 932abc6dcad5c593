"""
Module: reservation_kernel.models.transfer_request
Responsibility: ORM persistence for asset ownership transfer requests.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Status values limited by check constraint.
    - One pending request per (asset, requester): partial unique index on
      both PostgreSQL and SQLite.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from reservation_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from reservation_kernel.domain.transfer import TransferRequestRecord


class TransferRequestModel(Base):
    __tablename__ = "transfer_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'cancelled')",
            name="ck_transfer_requests_valid_status",
        ),
        Index(
            "ix_transfer_requests_pending_unique",
            "asset_id", "requester_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("ix_transfer_requests_asset", "asset_id", "created_at"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("organizations.id"), nullable=False,
    )
    asset_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("resources.id"), nullable=False,
    )
    requester_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    from_department: Mapped[str] = mapped_column(String(100), nullable=False)
    to_department: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    resolved_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<TransferRequest {self.id} asset={self.asset_id} "
            f"{self.from_department}->{self.to_department} status={self.status}>"
        )

    def to_dto(self) -> TransferRequestRecord:
        from reservation_kernel.domain.transfer import (
            TransferRequestRecord as TransferRequestDTO,
            TransferStatus,
        )

        return TransferRequestDTO(
            request_id=self.id,
            organization_id=self.organization_id,
            asset_id=self.asset_id,
            requester_id=self.requester_id,
            from_department=self.from_department,
            to_department=self.to_department,
            status=TransferStatus(self.status),
            created_at=self.created_at,
            note=self.note,
            resolved_at=self.resolved_at,
            resolved_by=self.resolved_by,
        )
