"""
Module: reservation_kernel.models.audit_event
Responsibility: ORM persistence for the tamper-evident audit hash chain.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit records are append-only; ORM listeners reject UPDATE and DELETE.
    - Hash chain integrity: hash = H(entity_type | entity_id | action |
      payload_hash | prev_hash).  Validated by AuditorService.
    - seq is unique; values come from the ``audit_event`` sequence counter.

Audit relevance:
    Every reservation transition, return decision, resource override,
    transfer decision and policy change produces one AuditEvent.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, Index, String, event
from sqlalchemy.orm import Mapped, mapped_column

from reservation_kernel.db.base import Base, UUIDString
from reservation_kernel.exceptions import ImmutabilityViolationError


class AuditAction(str, Enum):
    """Types of auditable actions."""

    # Reservation lifecycle
    RESERVATION_CREATED = "reservation_created"
    RESERVATION_STATUS_UPDATE = "asset_reservation_status_update"
    RETURN_SUBMITTED = "reservation_return_submitted"
    RETURN_VERIFIED = "reservation_return_verified"
    RETURN_REJECTED = "reservation_return_rejected"

    # Resource administration
    RESOURCE_STATUS_OVERRIDE = "resource_status_override"

    # Transfer lifecycle
    TRANSFER_REQUEST_CREATE = "asset_transfer_request_create"
    TRANSFER_REQUEST_APPROVED = "asset_transfer_request_approved"
    TRANSFER_REQUEST_REJECTED = "asset_transfer_request_rejected"
    TRANSFER_REQUEST_CANCELLED = "asset_transfer_request_cancelled"

    # Policy administration
    APPROVAL_POLICY_SET = "approval_policy_set"
    APPROVAL_POLICY_DELETED = "approval_policy_deleted"
    RETURN_POLICY_SET = "return_verification_policy_set"


class AuditEvent(Base):
    """
    Audit event with hash chain for tamper evidence.

    Guarantees:
        - seq is globally unique and monotonically increasing.
        - prev_hash is None only for the genesis event.

    Non-goals:
        - This model does NOT enforce hash correctness at INSERT time;
          that is the responsibility of AuditorService.
    """

    __tablename__ = "audit_events"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_action", "action"),
        Index("idx_audit_organization", "organization_id", "occurred_at"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    organization_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    action: Mapped[str] = mapped_column(String(60), nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)
    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEvent #{self.seq} {self.action} on {self.entity_type}:{self.entity_id}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None


@event.listens_for(AuditEvent, "before_update")
def prevent_audit_update(mapper, connection, target):
    """Prevent updates to audit records."""
    raise ImmutabilityViolationError(
        entity_type="AuditEvent",
        entity_id=str(target.id),
        reason="Audit events are append-only -- cannot modify",
    )


@event.listens_for(AuditEvent, "before_delete")
def prevent_audit_delete(mapper, connection, target):
    """Prevent deletion of audit records."""
    raise ImmutabilityViolationError(
        entity_type="AuditEvent",
        entity_id=str(target.id),
        reason="Audit events are append-only -- cannot delete",
    )
