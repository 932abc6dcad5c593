"""ORM models.  Importing this package registers every table on ``Base.metadata``."""

from reservation_kernel.models.approval_policy import ApprovalPolicyModel
from reservation_kernel.models.audit_event import AuditAction, AuditEvent
from reservation_kernel.models.notification import NotificationModel
from reservation_kernel.models.organization import OrganizationModel
from reservation_kernel.models.reservation import ReservationModel
from reservation_kernel.models.resource import ResourceModel
from reservation_kernel.models.sequence_counter import SequenceCounter
from reservation_kernel.models.transfer_request import TransferRequestModel

__all__ = [
    "ApprovalPolicyModel",
    "AuditAction",
    "AuditEvent",
    "NotificationModel",
    "OrganizationModel",
    "ReservationModel",
    "ResourceModel",
    "SequenceCounter",
    "TransferRequestModel",
]
