"""
Reservation Services -- stateful orchestration over the kernel and engines.

``ReservationWorkflow`` is the single entry point for reservation, return,
transfer and override operations.  ``ApprovalPolicyAdministrator`` holds
the admin-only policy writes.  ``build_reservation_runtime`` wires both
from settings.
"""

from reservation_services.bootstrap import ReservationRuntime, build_reservation_runtime
from reservation_services.policy_admin import ApprovalPolicyAdministrator
from reservation_services.results import (
    CreateReservationResult,
    PolicyResult,
    TransferResult,
    WorkflowResult,
    format_reason,
)
from reservation_services.workflow_orchestrator import ReservationWorkflow

__all__ = [
    "ApprovalPolicyAdministrator",
    "CreateReservationResult",
    "PolicyResult",
    "ReservationRuntime",
    "ReservationWorkflow",
    "TransferResult",
    "WorkflowResult",
    "build_reservation_runtime",
    "format_reason",
]
