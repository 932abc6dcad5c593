"""
Outbound notification value objects (``reservation_kernel.domain.notification``).

Notifications are enqueued on an at-least-once outbox after the state change
they describe has committed.  Delivery (push, messenger, e-mail) is outside
the kernel.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

from reservation_kernel.domain.resource import ResourceKind

DEFAULT_CHANNEL = "kakao"


class NotificationType(str, Enum):
    RESERVATION_CREATED = "reservation_created"
    SPACE_RESERVATION_CREATED = "space_reservation_created"
    VEHICLE_RESERVATION_CREATED = "vehicle_reservation_created"
    RESERVATION_STATUS_CHANGED = "reservation_status_changed"
    RETURN_SUBMITTED = "return_submitted"
    RETURN_VERIFIED = "return_verified"
    RETURN_REJECTED = "return_rejected"
    ASSET_TRANSFER_REQUEST_CREATED = "asset_transfer_request_created"
    ASSET_TRANSFER_REQUEST_APPROVED = "asset_transfer_request_approved"
    ASSET_TRANSFER_REQUEST_REJECTED = "asset_transfer_request_rejected"
    ASSET_TRANSFER_REQUEST_CANCELLED = "asset_transfer_request_cancelled"


_CREATED_TYPE_BY_KIND: dict[ResourceKind, NotificationType] = {
    ResourceKind.ASSET: NotificationType.RESERVATION_CREATED,
    ResourceKind.SPACE: NotificationType.SPACE_RESERVATION_CREATED,
    ResourceKind.VEHICLE: NotificationType.VEHICLE_RESERVATION_CREATED,
}


def created_notification_type(kind: ResourceKind) -> NotificationType:
    return _CREATED_TYPE_BY_KIND[kind]


@dataclass(frozen=True)
class OutboundNotification:
    organization_id: UUID
    user_id: UUID
    type: NotificationType
    payload: dict[str, Any] = field(default_factory=dict)
    channel: str = DEFAULT_CHANNEL


class NotificationOutbox(Protocol):
    """Sink for outbound notifications.

    Implementations raise ``NotificationDispatchError`` when a message cannot
    be accepted; they must not raise for duplicates (delivery is
    at-least-once).
    """

    def enqueue(self, notification: OutboundNotification) -> None:
        ...
