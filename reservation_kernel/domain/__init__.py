"""
Pure domain layer.

Value objects, state tables and DTOs for reservations, resources, approval
policies and transfer requests.  NO dependencies on the ORM, the database,
or wall-clock time (time enters only through an injected ``Clock``).

All domain objects are immutable and deterministic.
"""

from reservation_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from reservation_kernel.domain.policy import (
    DEFAULT_REQUIRED_ROLE,
    ApprovalPolicyRule,
)
from reservation_kernel.domain.recurrence import RecurrenceRule, RecurrenceType
from reservation_kernel.domain.reservation import (
    RESERVATION_TRANSITIONS,
    TERMINAL_RESERVATION_STATES,
    BookedRange,
    DateRange,
    ReservationRecord,
    ReservationState,
    ReservationStatus,
    ReturnCondition,
    ReturnDecision,
    ReturnStatus,
    ReturnVerificationPolicy,
)
from reservation_kernel.domain.resource import (
    ORGANIZATION_WIDE_DEPARTMENT,
    OwnerScope,
    ResourceInfo,
    ResourceKind,
    ResourceStatus,
)
from reservation_kernel.domain.roles import Principal, Role
from reservation_kernel.domain.transfer import (
    TERMINAL_TRANSFER_STATUSES,
    TRANSFER_TRANSITIONS,
    TransferDecision,
    TransferRequestRecord,
    TransferStatus,
)

__all__ = [
    "ApprovalPolicyRule",
    "BookedRange",
    "Clock",
    "DEFAULT_REQUIRED_ROLE",
    "DateRange",
    "DeterministicClock",
    "ORGANIZATION_WIDE_DEPARTMENT",
    "OwnerScope",
    "Principal",
    "RESERVATION_TRANSITIONS",
    "RecurrenceRule",
    "RecurrenceType",
    "ReservationRecord",
    "ReservationState",
    "ReservationStatus",
    "ResourceInfo",
    "ResourceKind",
    "ResourceStatus",
    "ReturnCondition",
    "ReturnDecision",
    "ReturnStatus",
    "ReturnVerificationPolicy",
    "Role",
    "SystemClock",
    "TERMINAL_RESERVATION_STATES",
    "TERMINAL_TRANSFER_STATUSES",
    "TRANSFER_TRANSITIONS",
    "TransferDecision",
    "TransferRequestRecord",
    "TransferStatus",
]
