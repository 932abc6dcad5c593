"""
AuditorService -- tamper-evident audit trail and hash chain maintenance.

Responsibility:
    Creates immutable, hash-chained audit events for every reservation
    transition, return decision, resource override, transfer decision and
    policy change.  Provides chain validation for tamper detection and trace
    queries for forensic review.

Architecture position:
    Kernel > Services -- imperative shell, called by the workflow
    orchestrator after the state change it describes has committed.

Invariants enforced:
    - Sequence monotonicity: seq comes from the locked ``audit_event``
      counter row (SequenceService).  The unique constraint on
      ``audit_events.seq`` turns any remaining race into an IntegrityError
      instead of a fork in the chain.
    - Chain integrity: ``hash = H(entity_type | entity_id | action |
      payload_hash | prev_hash)``.  Every event links to its predecessor.
    - Append-only: audit events are never modified or deleted (ORM
      listeners on the AuditEvent model).

Failure modes:
    - AuditChainBrokenError: Recomputed hash does not match stored hash,
      or prev_hash does not match the predecessor's hash.
    - IntegrityError: Concurrent append raced on seq.
      ``append_in_new_transaction`` retries it in a fresh transaction up
      to AUDIT_APPEND_ATTEMPTS times before giving up.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from reservation_kernel.domain.clock import Clock, SystemClock
from reservation_kernel.exceptions import AuditChainBrokenError
from reservation_kernel.logging_config import get_logger
from reservation_kernel.models.audit_event import AuditAction, AuditEvent
from reservation_kernel.services.sequence_service import SequenceService
from reservation_kernel.utils.hashing import hash_audit_event, hash_payload, to_json_safe

logger = get_logger("services.auditor")

T = TypeVar("T")

AUDIT_APPEND_ATTEMPTS = 3


@dataclass(frozen=True)
class AuditTraceEntry:
    """A single entry in an audit trace."""

    seq: int
    action: AuditAction
    occurred_at: datetime
    actor_id: UUID
    payload: dict[str, Any]
    hash: str


@dataclass(frozen=True)
class AuditTrace:
    """
    Complete audit trace for an entity.

    Contains all audit events in chronological order.
    """

    entity_type: str
    entity_id: UUID
    entries: tuple[AuditTraceEntry, ...]

    @property
    def is_empty(self) -> bool:
        return len(self.entries) == 0

    @property
    def first_action(self) -> AuditAction | None:
        return self.entries[0].action if self.entries else None

    @property
    def last_action(self) -> AuditAction | None:
        return self.entries[-1].action if self.entries else None

    @property
    def actions(self) -> tuple[AuditAction, ...]:
        return tuple(entry.action for entry in self.entries)


class AuditorService:
    """
    Service for creating and validating tamper-evident audit events.

    Contract:
        Accepts domain-specific recording requests (reservation created,
        status changed, transfer resolved, policy set, ...) and creates
        append-only ``AuditEvent`` rows with hash chain linkage.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT interpret or act on audit events (that is forensic tooling).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()

    def _get_predecessor(self, seq: int) -> AuditEvent | None:
        return self._session.execute(
            select(AuditEvent)
            .where(AuditEvent.seq < seq)
            .order_by(AuditEvent.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def _create_audit_event(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        organization_id: UUID | None = None,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """
        Create a new audit event with hash chain linkage.

        Public callers should use the domain-specific recording methods.

        Postconditions:
            - A new ``AuditEvent`` row is flushed with ``seq`` taken from
              the locked counter and ``prev_hash`` equal to the hash of
              the event before it.

        Raises:
            IntegrityError: On a concurrent append racing for the same seq.
        """
        seq = SequenceService(self._session).next_value(SequenceService.AUDIT_EVENT)
        last_event = self._get_predecessor(seq)
        prev_hash = last_event.hash if last_event else None

        payload_data = to_json_safe(payload or {})
        computed_payload_hash = hash_payload(payload_data)

        event_hash = hash_audit_event(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action.value,
            payload_hash=computed_payload_hash,
            prev_hash=prev_hash,
        )

        audit_event = AuditEvent(
            seq=seq,
            organization_id=organization_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action.value,
            actor_id=actor_id,
            occurred_at=self._clock.now_utc(),
            payload=payload_data,
            payload_hash=computed_payload_hash,
            prev_hash=prev_hash,
            hash=event_hash,
        )

        self._session.add(audit_event)
        self._session.flush()

        logger.info(
            "audit_event_created",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action.value,
                "seq": seq,
            },
        )

        return audit_event

    # Reservation lifecycle

    def record_reservation_created(
        self,
        reservation_id: UUID,
        organization_id: UUID,
        resource_id: UUID,
        actor_id: UUID,
        instance_count: int,
        recurrence_type: str,
    ) -> AuditEvent:
        """
        Record a create request.  One event per request, keyed on the
        first (parent) instance.
        """
        return self._create_audit_event(
            entity_type="Reservation",
            entity_id=reservation_id,
            action=AuditAction.RESERVATION_CREATED,
            actor_id=actor_id,
            organization_id=organization_id,
            payload={
                "resource_id": resource_id,
                "instance_count": instance_count,
                "recurrence_type": recurrence_type,
            },
        )

    def record_reservation_transition(
        self,
        reservation_id: UUID,
        organization_id: UUID,
        resource_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        previous_state: str,
        next_state: str,
        details: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """
        Record an accepted reservation transition.

        Preconditions:
            - ``action`` is one of the reservation lifecycle actions.
        """
        return self._create_audit_event(
            entity_type="Reservation",
            entity_id=reservation_id,
            action=action,
            actor_id=actor_id,
            organization_id=organization_id,
            payload={
                "resource_id": resource_id,
                "previous_state": previous_state,
                "next_state": next_state,
                **(details or {}),
            },
        )

    # Resource administration

    def record_resource_override(
        self,
        resource_id: UUID,
        organization_id: UUID,
        actor_id: UUID,
        previous_status: str,
        next_status: str,
    ) -> AuditEvent:
        return self._create_audit_event(
            entity_type="Resource",
            entity_id=resource_id,
            action=AuditAction.RESOURCE_STATUS_OVERRIDE,
            actor_id=actor_id,
            organization_id=organization_id,
            payload={
                "previous_status": previous_status,
                "next_status": next_status,
            },
        )

    # Transfer lifecycle

    def record_transfer(
        self,
        request_id: UUID,
        organization_id: UUID,
        asset_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        from_department: str,
        to_department: str,
    ) -> AuditEvent:
        """Record a transfer request being created, approved, rejected or cancelled."""
        return self._create_audit_event(
            entity_type="AssetTransferRequest",
            entity_id=request_id,
            action=action,
            actor_id=actor_id,
            organization_id=organization_id,
            payload={
                "asset_id": asset_id,
                "from_department": from_department,
                "to_department": to_department,
            },
        )

    # Policy administration

    def record_policy_change(
        self,
        entity_type: str,
        entity_id: UUID,
        organization_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        payload: dict[str, Any],
    ) -> AuditEvent:
        return self._create_audit_event(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            organization_id=organization_id,
            payload=payload,
        )

    # Chain validation

    def validate_chain(self) -> bool:
        """
        Validate the entire audit chain.

        Postconditions:
            - Returns ``True`` only if every event's stored ``hash``
              matches the recomputed value and every event's ``prev_hash``
              matches its predecessor's ``hash``.

        Raises:
            AuditChainBrokenError: If chain validation fails at any point.
        """
        events = self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq)
        ).scalars().all()

        if not events:
            return True

        if events[0].prev_hash is not None:
            logger.critical("audit_chain_broken", extra={"seq": events[0].seq})
            raise AuditChainBrokenError(
                str(events[0].id),
                "None",
                events[0].prev_hash,
            )

        for i, event in enumerate(events):
            expected_hash = hash_audit_event(
                entity_type=event.entity_type,
                entity_id=str(event.entity_id),
                action=event.action,
                payload_hash=event.payload_hash,
                prev_hash=event.prev_hash,
            )

            if event.hash != expected_hash or hash_payload(event.payload or {}) != event.payload_hash:
                logger.critical("audit_chain_broken", extra={"seq": event.seq})
                raise AuditChainBrokenError(
                    str(event.id),
                    expected_hash,
                    event.hash,
                )

            if i > 0:
                expected_prev = events[i - 1].hash
                if event.prev_hash != expected_prev:
                    logger.critical("audit_chain_broken", extra={"seq": event.seq})
                    raise AuditChainBrokenError(
                        str(event.id),
                        expected_prev,
                        event.prev_hash or "None",
                    )

        logger.info(
            "audit_chain_valid",
            extra={"event_count": len(events)},
        )
        return True

    # Trace and query methods

    def get_trace(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> AuditTrace:
        """Complete audit trace for an entity, in chronological order."""
        events = self._session.execute(
            select(AuditEvent)
            .where(
                AuditEvent.entity_type == entity_type,
                AuditEvent.entity_id == entity_id,
            )
            .order_by(AuditEvent.seq)
        ).scalars().all()

        entries = tuple(
            AuditTraceEntry(
                seq=event.seq,
                action=AuditAction(event.action),
                occurred_at=event.occurred_at,
                actor_id=event.actor_id,
                payload=event.payload or {},
                hash=event.hash,
            )
            for event in events
        )

        return AuditTrace(
            entity_type=entity_type,
            entity_id=entity_id,
            entries=entries,
        )

    def get_recent_events(
        self, organization_id: UUID | None = None, limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent audit events first, optionally for one organization."""
        stmt = select(AuditEvent)
        if organization_id is not None:
            stmt = stmt.where(AuditEvent.organization_id == organization_id)
        result = self._session.execute(
            stmt.order_by(AuditEvent.seq.desc()).limit(limit)
        )
        return list(result.scalars().all())


def append_in_new_transaction(
    session_factory: sessionmaker[Session],
    record: Callable[[AuditorService], T],
    clock: Clock | None = None,
    attempts: int = AUDIT_APPEND_ATTEMPTS,
) -> T:
    """
    Run ``record`` in its own transaction, retrying a seq collision.

    A collision means another writer appended between our counter read
    and our insert.  The losing transaction rolls back whole, so the
    retry re-reads the counter and the chain head.

    Raises:
        IntegrityError: Still colliding after ``attempts`` tries.
        SQLAlchemyError: Any other store failure, unchanged.
    """
    for attempt in range(1, attempts + 1):
        try:
            with session_factory.begin() as session:
                return record(AuditorService(session, clock))
        except IntegrityError:
            if attempt == attempts:
                raise
            logger.warning("audit_append_retry", extra={"attempt": attempt})
    raise ValueError(f"attempts must be positive, got {attempts}")
