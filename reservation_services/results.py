"""
Result types returned by ``ReservationWorkflow``.

Every mutating operation returns a result instead of raising, so callers
branch on ``ok`` / ``error_kind``.  ``reason`` is prefixed by the kind
(``"conflict: ..."``).  ``warnings`` lists post-commit side effects (audit,
notification) that failed; the mutation itself stays committed.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from reservation_kernel.domain.policy import ApprovalPolicyRule
from reservation_kernel.domain.reservation import (
    ReservationRecord,
    ReservationState,
    ReturnVerificationPolicy,
)
from reservation_kernel.domain.resource import ResourceStatus
from reservation_kernel.domain.transfer import TransferStatus
from reservation_kernel.exceptions import ErrorKind, ReservationKernelError


def format_reason(exc: ReservationKernelError) -> str:
    return f"{exc.kind.value}: {exc}"


@dataclass(frozen=True)
class CreateReservationResult:
    """Outcome of ``create_reservation``.

    On rejection nothing was persisted; ``rejected_instance_index`` names
    the first colliding instance of a recurring request when the rejection
    is a conflict.
    """

    created: tuple[ReservationRecord, ...] = ()
    rejected_instance_index: int | None = None
    reason: str | None = None
    error_kind: ErrorKind | None = None
    warnings: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @property
    def parent_reservation_id(self) -> UUID | None:
        return self.created[0].reservation_id if self.created else None

    @classmethod
    def rejected(
        cls, exc: ReservationKernelError, instance_index: int | None = None,
    ) -> CreateReservationResult:
        return cls(
            rejected_instance_index=instance_index,
            reason=format_reason(exc),
            error_kind=exc.kind,
        )


@dataclass(frozen=True)
class WorkflowResult:
    """Outcome of a reservation transition or a resource override."""

    ok: bool
    reason: str | None = None
    error_kind: ErrorKind | None = None
    warnings: tuple[str, ...] = ()
    state: ReservationState | None = None
    reservation: ReservationRecord | None = None
    resource_status: ResourceStatus | None = None

    @classmethod
    def rejected(cls, exc: ReservationKernelError) -> WorkflowResult:
        return cls(ok=False, reason=format_reason(exc), error_kind=exc.kind)


@dataclass(frozen=True)
class TransferResult:
    """Outcome of a transfer request operation."""

    ok: bool
    request_id: UUID | None = None
    reason: str | None = None
    error_kind: ErrorKind | None = None
    warnings: tuple[str, ...] = ()
    status: TransferStatus | None = None

    @classmethod
    def rejected(cls, exc: ReservationKernelError) -> TransferResult:
        return cls(ok=False, reason=format_reason(exc), error_kind=exc.kind)


@dataclass(frozen=True)
class PolicyResult:
    """Outcome of an approval or return policy change."""

    ok: bool
    reason: str | None = None
    error_kind: ErrorKind | None = None
    warnings: tuple[str, ...] = ()
    rules: tuple[ApprovalPolicyRule, ...] = ()
    return_policy: ReturnVerificationPolicy | None = None

    @classmethod
    def rejected(cls, exc: ReservationKernelError) -> PolicyResult:
        return cls(ok=False, reason=format_reason(exc), error_kind=exc.kind)
