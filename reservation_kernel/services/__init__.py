"""
Kernel services -- the imperative shell around the pure engines.

Every service receives the caller's ``Session`` and flushes; the workflow
orchestrator owns commit and rollback.
"""

from reservation_kernel.services.auditor_service import AuditorService, AuditTrace
from reservation_kernel.services.outbox_service import SqlNotificationOutbox
from reservation_kernel.services.policy_service import PolicyService, PolicyWrite
from reservation_kernel.services.reservation_service import ReservationService
from reservation_kernel.services.resource_status_service import ResourceStatusService
from reservation_kernel.services.sequence_service import SequenceService
from reservation_kernel.services.transfer_service import TransferService

__all__ = [
    "AuditTrace",
    "AuditorService",
    "PolicyService",
    "PolicyWrite",
    "ReservationService",
    "ResourceStatusService",
    "SequenceService",
    "SqlNotificationOutbox",
    "TransferService",
]
