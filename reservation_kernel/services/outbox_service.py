"""
SqlNotificationOutbox -- default NotificationOutbox backed by the
``notifications`` table.

Responsibility:
    Accepts ``OutboundNotification`` values and writes them as ``pending``
    rows for an external dispatcher (messenger, push, e-mail) to drain.

Architecture position:
    Kernel > Services.  Implements the ``NotificationOutbox`` protocol from
    ``reservation_kernel.domain.notification``.

Invariants enforced:
    - Each ``enqueue`` runs in its own short transaction, so a notification
      failure can never roll back the state change it announces.

Failure modes:
    - NotificationDispatchError wraps any SQLAlchemy error.  Callers report
      it as a warning.
"""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from reservation_kernel.domain.clock import Clock, SystemClock
from reservation_kernel.domain.notification import OutboundNotification
from reservation_kernel.exceptions import NotificationDispatchError
from reservation_kernel.logging_config import get_logger
from reservation_kernel.models.notification import NotificationModel
from reservation_kernel.utils.hashing import to_json_safe

logger = get_logger("services.outbox")


class SqlNotificationOutbox:
    """At-least-once outbox writing one ``notifications`` row per message."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def enqueue(self, notification: OutboundNotification) -> None:
        """
        Raises:
            NotificationDispatchError: If the row could not be written.
        """
        try:
            with self._session_factory.begin() as session:
                session.add(
                    NotificationModel(
                        organization_id=notification.organization_id,
                        user_id=notification.user_id,
                        type=notification.type.value,
                        channel=notification.channel,
                        status="pending",
                        payload=to_json_safe(notification.payload),
                        created_at=self._clock.now_utc(),
                    )
                )
        except SQLAlchemyError as exc:
            raise NotificationDispatchError(notification.type.value, str(exc)) from exc

        logger.debug(
            "notification_enqueued",
            extra={
                "notification_type": notification.type.value,
                "user_id": str(notification.user_id),
                "channel": notification.channel,
            },
        )
