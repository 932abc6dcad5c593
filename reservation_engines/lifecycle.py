"""
Lifecycle planning engine (``reservation_engines.lifecycle``).

Responsibility
--------------
Maps a requested action (status change, return submission, return decision,
transfer decision) onto a target state, validates the edge against the
domain transition tables, and names the side effects the service layer must
apply: resource occupancy change and the notification to send.

Architecture position
---------------------
**Engines layer** -- pure functions.  ZERO I/O.

Invariants enforced
-------------------
* Every accepted move is an edge of ``RESERVATION_TRANSITIONS`` /
  ``TRANSFER_TRANSITIONS``; terminal states reject everything.
* Entering ``APPROVED`` occupies the resource; entering ``RETURNED`` releases
  it; every other move leaves resource status alone.
* When the organization requires return verification, neither the borrower
  nor an administrator can jump straight to ``RETURNED``; the reservation
  waits in ``RETURN_SUBMITTED`` for a verifier.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from reservation_kernel.domain.notification import NotificationType
from reservation_kernel.domain.reservation import (
    RESERVATION_TRANSITIONS,
    ReservationState,
    ReservationStatus,
    ReturnDecision,
    ReturnVerificationPolicy,
)
from reservation_kernel.domain.resource import OwnerScope, ResourceInfo, ResourceKind, ResourceStatus
from reservation_kernel.domain.roles import Principal
from reservation_kernel.domain.transfer import (
    TRANSFER_TRANSITIONS,
    TransferDecision,
    TransferStatus,
)
from reservation_kernel.exceptions import (
    CrossOrganizationError,
    InvalidTransitionError,
    TransferNotEligibleError,
)


class ReservationAction(str, Enum):
    CHANGE_STATUS = "change_status"
    SUBMIT_RETURN = "submit_return"
    DECIDE_RETURN = "decide_return"


class ResourceEffect(str, Enum):
    NONE = "none"
    OCCUPY = "occupy"
    RELEASE = "release"


@dataclass(frozen=True)
class ReservationTransitionPlan:
    action: ReservationAction
    from_state: ReservationState
    to_state: ReservationState
    resource_effect: ResourceEffect
    notification_type: NotificationType


# ---------------------------------------------------------------------------
# Reservation targets
# ---------------------------------------------------------------------------


def target_for_status_change(
    current: ReservationState,
    next_status: ReservationStatus,
    verification: ReturnVerificationPolicy,
) -> ReservationState:
    """
    Target state for ``ChangeReservationStatus(next_status)``.

    ``returned`` lands in ``RETURN_SUBMITTED`` while verification is
    required, so the resource stays occupied until a verifier decides.
    """
    next_status = ReservationStatus(next_status)
    if next_status == ReservationStatus.APPROVED:
        return ReservationState.APPROVED
    if next_status == ReservationStatus.REJECTED:
        return ReservationState.REJECTED
    if next_status == ReservationStatus.RETURNED:
        if verification.verification_required:
            return ReservationState.RETURN_SUBMITTED
        return ReservationState.RETURNED
    raise InvalidTransitionError("Reservation", current.value, next_status.value)


def target_for_return_submission(
    current: ReservationState,
    verification: ReturnVerificationPolicy,
) -> ReservationState:
    if current not in (ReservationState.APPROVED, ReservationState.RETURN_REJECTED):
        raise InvalidTransitionError(
            "Reservation", current.value, ReservationState.RETURN_SUBMITTED.value,
        )
    if verification.verification_required:
        return ReservationState.RETURN_SUBMITTED
    return ReservationState.RETURNED


def target_for_return_decision(
    current: ReservationState,
    decision: ReturnDecision,
) -> ReservationState:
    target = (
        ReservationState.RETURNED
        if ReturnDecision(decision) == ReturnDecision.VERIFIED
        else ReservationState.RETURN_REJECTED
    )
    if current != ReservationState.RETURN_SUBMITTED:
        raise InvalidTransitionError("Reservation", current.value, target.value)
    return target


# ---------------------------------------------------------------------------
# Reservation plan
# ---------------------------------------------------------------------------


def _resource_effect(to_state: ReservationState) -> ResourceEffect:
    if to_state == ReservationState.APPROVED:
        return ResourceEffect.OCCUPY
    if to_state == ReservationState.RETURNED:
        return ResourceEffect.RELEASE
    return ResourceEffect.NONE


def _notification_type(
    action: ReservationAction, to_state: ReservationState,
) -> NotificationType:
    if to_state == ReservationState.RETURN_SUBMITTED:
        return NotificationType.RETURN_SUBMITTED
    if to_state == ReservationState.RETURN_REJECTED:
        return NotificationType.RETURN_REJECTED
    if action == ReservationAction.DECIDE_RETURN:
        return NotificationType.RETURN_VERIFIED
    return NotificationType.RESERVATION_STATUS_CHANGED


def plan_reservation_transition(
    action: ReservationAction,
    current: ReservationState,
    target: ReservationState,
) -> ReservationTransitionPlan:
    """
    Validate ``current -> target`` and attach its side effects.

    Raises:
        InvalidTransitionError: If the edge is not in the transition table.
    """
    if target not in RESERVATION_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError("Reservation", current.value, target.value)
    return ReservationTransitionPlan(
        action=action,
        from_state=current,
        to_state=target,
        resource_effect=_resource_effect(target),
        notification_type=_notification_type(action, target),
    )


# ---------------------------------------------------------------------------
# Transfer requests
# ---------------------------------------------------------------------------


_TRANSFER_TARGET: dict[TransferDecision, TransferStatus] = {
    TransferDecision.APPROVE: TransferStatus.APPROVED,
    TransferDecision.REJECT: TransferStatus.REJECTED,
}

_TRANSFER_NOTIFICATION: dict[TransferStatus, NotificationType] = {
    TransferStatus.PENDING: NotificationType.ASSET_TRANSFER_REQUEST_CREATED,
    TransferStatus.APPROVED: NotificationType.ASSET_TRANSFER_REQUEST_APPROVED,
    TransferStatus.REJECTED: NotificationType.ASSET_TRANSFER_REQUEST_REJECTED,
    TransferStatus.CANCELLED: NotificationType.ASSET_TRANSFER_REQUEST_CANCELLED,
}


def transfer_target(decision: TransferDecision) -> TransferStatus:
    return _TRANSFER_TARGET[TransferDecision(decision)]


def transfer_notification_type(status: TransferStatus) -> NotificationType:
    return _TRANSFER_NOTIFICATION[TransferStatus(status)]


def plan_transfer_transition(
    current: TransferStatus, target: TransferStatus,
) -> TransferStatus:
    if target not in TRANSFER_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError("TransferRequest", current.value, target.value)
    return target


def check_transfer_eligibility(
    asset: ResourceInfo, requester: Principal,
) -> tuple[str, str]:
    """
    Validate a new transfer request and return ``(from_department, to_department)``.

    Raises:
        CrossOrganizationError: Requester is outside the asset's organization.
        TransferNotEligibleError: Not a retired, department-owned asset, or
            the requester has no department / already owns it.
    """
    asset_id = str(asset.resource_id)
    if requester.organization_id != asset.organization_id:
        raise CrossOrganizationError(
            str(requester.organization_id), str(asset.organization_id),
        )
    if asset.kind != ResourceKind.ASSET:
        raise TransferNotEligibleError(asset_id, f"{asset.kind.value} resources are not transferable")
    if asset.status != ResourceStatus.RETIRED:
        raise TransferNotEligibleError(asset_id, "only retired assets can be transferred")
    if asset.owner_scope != OwnerScope.DEPARTMENT:
        raise TransferNotEligibleError(asset_id, "organization-wide assets need no transfer")
    if not requester.department:
        raise TransferNotEligibleError(asset_id, "requester has no department")
    if requester.department == asset.owner_department:
        raise TransferNotEligibleError(
            asset_id, f"asset already belongs to {requester.department}",
        )
    return asset.owner_department, requester.department
