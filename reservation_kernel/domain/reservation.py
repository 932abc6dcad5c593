"""
Reservation domain types (``reservation_kernel.domain.reservation``).

Responsibility
--------------
Pure value objects for the reservation lifecycle: the persisted status and
return-status columns, the composite ``ReservationState`` that is the only
unit the state machine moves, the transition table, return-verification
policy, and the DTOs handed between layers.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``status`` and ``return_status`` are written together, as one
  ``ReservationState``.  Only the six combinations in ``_STATE_COLUMNS``
  exist; every other pairing is unrepresentable.
* ``RESERVATION_TRANSITIONS`` defines the only valid moves.  ``RETURNED``
  and ``REJECTED`` have no outgoing edges.
* A ``DateRange`` always ends strictly after it starts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID

from reservation_kernel.domain.recurrence import RecurrenceRule
from reservation_kernel.domain.resource import ResourceKind
from reservation_kernel.exceptions import InvalidDateRangeError


class ReservationStatus(str, Enum):
    """Persisted primary status."""

    PENDING = "pending"
    APPROVED = "approved"
    RETURNED = "returned"
    REJECTED = "rejected"


class ReturnStatus(str, Enum):
    """Persisted return sub-status."""

    PENDING = "pending"
    RETURNED = "returned"
    VERIFIED = "verified"
    REJECTED = "rejected"


class ReservationState(str, Enum):
    """Composite lifecycle state of a reservation."""

    PENDING = "pending"
    APPROVED = "approved"
    RETURN_SUBMITTED = "return_submitted"
    RETURN_REJECTED = "return_rejected"
    RETURNED = "returned"
    REJECTED = "rejected"

    @property
    def status(self) -> ReservationStatus:
        return _STATE_COLUMNS[self][0]

    @property
    def return_status(self) -> ReturnStatus:
        return _STATE_COLUMNS[self][1]

    @property
    def holds_resource(self) -> bool:
        """True while the resource is physically out with the borrower."""
        return self.status == ReservationStatus.APPROVED

    @classmethod
    def from_columns(
        cls,
        status: ReservationStatus | str,
        return_status: ReturnStatus | str | None,
    ) -> ReservationState:
        """Map persisted columns back to the composite state.

        Raises:
            ValueError: If the pair is not one of the six legal combinations.
        """
        key = (
            ReservationStatus(status),
            ReturnStatus(return_status or ReturnStatus.PENDING),
        )
        try:
            return _COLUMNS_STATE[key]
        except KeyError:
            raise ValueError(
                f"Illegal reservation column pair: status={key[0].value}, "
                f"return_status={key[1].value}"
            ) from None


_STATE_COLUMNS: dict[ReservationState, tuple[ReservationStatus, ReturnStatus]] = {
    ReservationState.PENDING: (ReservationStatus.PENDING, ReturnStatus.PENDING),
    ReservationState.APPROVED: (ReservationStatus.APPROVED, ReturnStatus.PENDING),
    ReservationState.RETURN_SUBMITTED: (ReservationStatus.APPROVED, ReturnStatus.RETURNED),
    ReservationState.RETURN_REJECTED: (ReservationStatus.APPROVED, ReturnStatus.REJECTED),
    ReservationState.RETURNED: (ReservationStatus.RETURNED, ReturnStatus.VERIFIED),
    ReservationState.REJECTED: (ReservationStatus.REJECTED, ReturnStatus.PENDING),
}

_COLUMNS_STATE: dict[tuple[ReservationStatus, ReturnStatus], ReservationState] = {
    columns: state for state, columns in _STATE_COLUMNS.items()
}


RESERVATION_TRANSITIONS: dict[ReservationState, frozenset[ReservationState]] = {
    ReservationState.PENDING: frozenset({
        ReservationState.APPROVED,
        ReservationState.REJECTED,
    }),
    ReservationState.APPROVED: frozenset({
        ReservationState.RETURNED,
        ReservationState.RETURN_SUBMITTED,
    }),
    ReservationState.RETURN_SUBMITTED: frozenset({
        ReservationState.RETURNED,
        ReservationState.RETURN_REJECTED,
    }),
    ReservationState.RETURN_REJECTED: frozenset({
        ReservationState.RETURNED,
        ReservationState.RETURN_SUBMITTED,
    }),
    ReservationState.RETURNED: frozenset(),
    ReservationState.REJECTED: frozenset(),
}

TERMINAL_RESERVATION_STATES: frozenset[ReservationState] = frozenset({
    ReservationState.RETURNED,
    ReservationState.REJECTED,
})

# Statuses that block the calendar for other borrowers.
BLOCKING_STATUSES: frozenset[ReservationStatus] = frozenset({
    ReservationStatus.PENDING,
    ReservationStatus.APPROVED,
})


class ReturnDecision(str, Enum):
    VERIFIED = "verified"
    REJECTED = "rejected"


class ReturnCondition(str, Enum):
    """Condition reported by the verifier.  Informational only."""

    GOOD = "good"
    DAMAGED = "damaged"
    MISSING_PARTS = "missing_parts"
    DIRTY = "dirty"
    OTHER = "other"


@dataclass(frozen=True)
class ReturnVerificationPolicy:
    """Per-organization return policy.

    ``require_photo`` and ``require_verification`` only take effect while
    ``enabled`` is set.
    """

    enabled: bool = False
    require_photo: bool = True
    require_verification: bool = True

    @property
    def photo_required(self) -> bool:
        return self.enabled and self.require_photo

    @property
    def verification_required(self) -> bool:
        return self.enabled and self.require_verification

    @classmethod
    def from_mapping(
        cls,
        data: dict | None,
        defaults: ReturnVerificationPolicy | None = None,
    ) -> ReturnVerificationPolicy:
        base = defaults or cls()
        if not data:
            return base
        return cls(
            enabled=bool(data.get("enabled", base.enabled)),
            require_photo=bool(data.get("require_photo", base.require_photo)),
            require_verification=bool(
                data.get("require_verification", base.require_verification)
            ),
        )

    def to_mapping(self) -> dict[str, bool]:
        return {
            "enabled": self.enabled,
            "require_photo": self.require_photo,
            "require_verification": self.require_verification,
        }


@dataclass(frozen=True)
class DateRange:
    """Closed reservation window ``[start, end]`` with ``end > start``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise InvalidDateRangeError(self.start.isoformat(), self.end.isoformat())

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


@dataclass(frozen=True)
class BookedRange:
    """An existing reservation as seen by the availability checker."""

    reservation_id: UUID
    status: ReservationStatus
    block_start: datetime
    block_end: datetime


@dataclass(frozen=True)
class ReservationRecord:
    """Frozen DTO of a persisted reservation."""

    reservation_id: UUID
    organization_id: UUID
    resource_id: UUID
    resource_kind: ResourceKind
    borrower_id: UUID
    start: datetime
    end: datetime
    state: ReservationState
    note: str | None = None
    recurrence: RecurrenceRule | None = None
    parent_reservation_id: UUID | None = None
    is_recurring_instance: bool = False
    return_images: tuple[str, ...] = ()
    return_note: str | None = None
    return_condition: ReturnCondition | None = None
    return_verified_by: UUID | None = None
    return_verified_at: datetime | None = None
    start_odometer_reading: int | None = None
    odometer_reading: int | None = None
    distance_traveled: int | None = None

    @property
    def status(self) -> ReservationStatus:
        return self.state.status

    @property
    def return_status(self) -> ReturnStatus:
        return self.state.return_status
