"""
Transfer request domain types (``reservation_kernel.domain.transfer``).

Responsibility
--------------
Lifecycle of a request to move a retired, department-owned asset into the
requester's department.

Invariants enforced
-------------------
* ``TRANSFER_TRANSITIONS`` -- only ``pending`` has outgoing edges.
* ``from_department`` and ``to_department`` are snapshotted at creation;
  later ownership changes do not rewrite the request.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class TransferStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


TRANSFER_TRANSITIONS: dict[TransferStatus, frozenset[TransferStatus]] = {
    TransferStatus.PENDING: frozenset({
        TransferStatus.APPROVED,
        TransferStatus.REJECTED,
        TransferStatus.CANCELLED,
    }),
    TransferStatus.APPROVED: frozenset(),
    TransferStatus.REJECTED: frozenset(),
    TransferStatus.CANCELLED: frozenset(),
}

TERMINAL_TRANSFER_STATUSES: frozenset[TransferStatus] = frozenset({
    TransferStatus.APPROVED,
    TransferStatus.REJECTED,
    TransferStatus.CANCELLED,
})


class TransferDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


@dataclass(frozen=True)
class TransferRequestRecord:
    """Frozen DTO of a persisted transfer request."""

    request_id: UUID
    organization_id: UUID
    asset_id: UUID
    requester_id: UUID
    from_department: str
    to_department: str
    status: TransferStatus
    created_at: datetime
    note: str | None = None
    resolved_at: datetime | None = None
    resolved_by: UUID | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_TRANSFER_STATUSES
