"""
Module: reservation_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines: recurrence expansion, availability checking,
    approval policy resolution and lifecycle planning.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import reservation_kernel.domain, reservation_kernel.exceptions
    and reservation_kernel.logging_config.  MUST NOT import the ORM, models,
    services, selectors or config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()``.  Current time and stored
      bookings are passed in by the services layer.
    - Determinism: identical inputs always produce identical outputs.
"""

from reservation_engines.approval import (
    can_manage_transfer,
    check_decision_authority,
    check_same_organization,
    resolve_for_resource,
    resolve_required_role,
)
from reservation_engines.availability import (
    BatchAvailability,
    BlockedInterval,
    ConflictGranularity,
    blocked_days,
    blocked_interval,
    check_batch,
    find_conflicts,
    is_available,
)
from reservation_engines.lifecycle import (
    ReservationAction,
    ReservationTransitionPlan,
    ResourceEffect,
    check_transfer_eligibility,
    plan_reservation_transition,
    plan_transfer_transition,
    target_for_return_decision,
    target_for_return_submission,
    target_for_status_change,
    transfer_notification_type,
    transfer_target,
)
from reservation_engines.recurrence import (
    describe_recurrence,
    expand_recurrence,
    sunday_based_weekday,
)

__all__ = [
    "BatchAvailability",
    "BlockedInterval",
    "ConflictGranularity",
    "ReservationAction",
    "ReservationTransitionPlan",
    "ResourceEffect",
    "blocked_days",
    "blocked_interval",
    "can_manage_transfer",
    "check_batch",
    "check_decision_authority",
    "check_same_organization",
    "check_transfer_eligibility",
    "describe_recurrence",
    "expand_recurrence",
    "find_conflicts",
    "is_available",
    "plan_reservation_transition",
    "plan_transfer_transition",
    "resolve_for_resource",
    "resolve_required_role",
    "sunday_based_weekday",
    "target_for_return_decision",
    "target_for_return_submission",
    "target_for_status_change",
    "transfer_notification_type",
    "transfer_target",
]
