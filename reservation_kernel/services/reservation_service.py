"""
ReservationService -- persistence of reservation batches and transitions.

Responsibility:
    Inserts every instance of a create request inside the caller's
    transaction and applies state-machine transitions with a conditional
    UPDATE guarded by the expected prior state.

Architecture position:
    Kernel > Services -- imperative shell.  The availability decision is
    taken by ``reservation_engines.availability`` before this service is
    called; this service is the last line of defence for the no-overlap
    invariant.

Invariants enforced:
    - All-or-nothing batches: instances are flushed one by one so the
      ``before_insert`` listener sees the earlier instances, and any failure
      propagates so the caller rolls back the whole batch.
    - No overlap: a listener conflict or a PostgreSQL exclusion violation is
      reported as ReservationConflictError carrying the instance index.
    - Stale decisions: a transition whose prior (status, return_status) no
      longer matches the row updates nothing and raises StaleStateError.

Failure modes:
    - ReservationConflictError: instance overlaps a pending/approved booking.
    - StaleStateError: concurrent decision already moved the reservation.
    - IntegrityError: any other constraint violation, re-raised unchanged.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from reservation_kernel.db.constraints import is_overlap_violation
from reservation_kernel.domain.clock import Clock, SystemClock
from reservation_kernel.domain.recurrence import RecurrenceRule, RecurrenceType
from reservation_kernel.domain.reservation import (
    DateRange,
    ReservationRecord,
    ReservationState,
)
from reservation_kernel.domain.resource import ResourceInfo
from reservation_kernel.exceptions import (
    ReservationConflictError,
    ReservationNotFoundError,
    StaleStateError,
)
from reservation_kernel.logging_config import get_logger
from reservation_kernel.models.reservation import ReservationModel
from reservation_kernel.services.base import BaseService

logger = get_logger("services.reservation")


class ReservationService(BaseService[ReservationModel]):
    """
    Writes reservations.

    Contract:
        ``insert_instances`` receives windows already expanded and checked,
        together with the blocked interval of each window.  The first window
        becomes the parent of a recurring batch.
    """

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def insert_instances(
        self,
        resource: ResourceInfo,
        borrower_id: UUID,
        windows: Sequence[DateRange],
        blocks: Sequence[Any],
        note: str | None = None,
        recurrence: RecurrenceRule | None = None,
        start_odometer_reading: int | None = None,
    ) -> list[ReservationRecord]:
        """
        Persist one pending reservation per window.

        Preconditions:
            - ``len(windows) == len(blocks)`` and ``windows`` is non-empty.
            - ``blocks[i]`` has ``start``/``end`` (the blocked interval).

        Raises:
            ReservationConflictError: with ``instance_index`` of the first
                instance the store refused.
        """
        if len(windows) != len(blocks):
            raise ValueError("Every window needs its blocked interval")

        now = self._clock.now_utc()
        rule = recurrence if recurrence is not None and recurrence.is_recurring else None
        parent_id: UUID | None = None
        created: list[ReservationModel] = []

        for index, (window, block) in enumerate(zip(windows, blocks)):
            model = ReservationModel(
                organization_id=resource.organization_id,
                resource_id=resource.resource_id,
                resource_kind=resource.kind.value,
                borrower_id=borrower_id,
                start_date=window.start,
                end_date=window.end,
                block_start=block.start,
                block_end=block.end,
                status=ReservationState.PENDING.status.value,
                return_status=ReservationState.PENDING.return_status.value,
                note=note,
                recurrence_type=(rule.type.value if rule else RecurrenceType.NONE.value),
                recurrence_interval=(rule.interval if rule else 1),
                recurrence_end_date=(rule.end_date if rule else None),
                recurrence_days_of_week=(list(rule.days_of_week) if rule else None),
                recurrence_day_of_month=(rule.day_of_month if rule else None),
                parent_reservation_id=parent_id,
                is_recurring_instance=parent_id is not None,
                start_odometer_reading=start_odometer_reading,
                created_at=now,
                updated_at=now,
            )
            self.session.add(model)
            try:
                self.session.flush()
            except ReservationConflictError as exc:
                logger.warning(
                    "reservation_insert_conflict",
                    extra={
                        "resource_id": str(resource.resource_id),
                        "instance_index": index,
                        "conflicting_reservation_id": exc.conflicting_reservation_id,
                    },
                )
                raise ReservationConflictError(
                    str(resource.resource_id),
                    window.start.isoformat(),
                    window.end.isoformat(),
                    instance_index=index,
                    conflicting_reservation_id=exc.conflicting_reservation_id,
                ) from exc
            except IntegrityError as exc:
                if not is_overlap_violation(exc):
                    raise
                logger.warning(
                    "reservation_exclusion_violation",
                    extra={
                        "resource_id": str(resource.resource_id),
                        "instance_index": index,
                    },
                )
                raise ReservationConflictError(
                    str(resource.resource_id),
                    window.start.isoformat(),
                    window.end.isoformat(),
                    instance_index=index,
                ) from exc

            if rule is not None and parent_id is None:
                parent_id = model.id
            created.append(model)

        logger.info(
            "reservations_inserted",
            extra={
                "resource_id": str(resource.resource_id),
                "instance_count": len(created),
                "parent_reservation_id": str(created[0].id) if created else None,
            },
        )
        return [m.to_dto() for m in created]

    def apply_transition(
        self,
        reservation_id: UUID,
        from_state: ReservationState,
        to_state: ReservationState,
        **changes: Any,
    ) -> ReservationRecord:
        """
        Move a reservation from ``from_state`` to ``to_state``.

        ``changes`` are extra column values written by the same UPDATE
        (return evidence, verifier, odometer readings).

        Raises:
            StaleStateError: The row is no longer in ``from_state``.
        """
        now = self._clock.now_utc()
        result = self.session.execute(
            update(ReservationModel)
            .where(
                ReservationModel.id == reservation_id,
                ReservationModel.status == from_state.status.value,
                ReservationModel.return_status == from_state.return_status.value,
            )
            .values(
                status=to_state.status.value,
                return_status=to_state.return_status.value,
                updated_at=now,
                **changes,
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            logger.warning(
                "reservation_transition_stale",
                extra={
                    "reservation_id": str(reservation_id),
                    "expected_state": from_state.value,
                    "target_state": to_state.value,
                },
            )
            raise StaleStateError("Reservation", str(reservation_id), from_state.value)

        model = self.session.get(ReservationModel, reservation_id, populate_existing=True)
        if model is None:
            raise ReservationNotFoundError(str(reservation_id))

        logger.info(
            "reservation_transitioned",
            extra={
                "reservation_id": str(reservation_id),
                "from_state": from_state.value,
                "to_state": to_state.value,
            },
        )
        return model.to_dto()
