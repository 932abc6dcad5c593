"""
reservation_services.workflow_orchestrator -- the reservation workflow facade.

Responsibility:
    Exposes every reservation, return, transfer and override operation as
    one method that runs as one unit of work: load, guard, plan, write,
    commit.  Audit entries and notifications are emitted after the commit,
    in their own transactions, and reported as warnings when they fail.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes the pure engines (recurrence, availability, approval,
    lifecycle) with kernel selectors and services.  Holds the only
    ``sessionmaker``; kernel services only ever see a ``Session``.

Invariants enforced:
    - All-or-nothing creates: every instance of a recurring request is
      inserted in one transaction or none is.
    - No overlap: engine check under the resource row lock, then the ORM
      insert listener, then (PostgreSQL) the exclusion constraint.  All
      three report the same ReservationConflictError.
    - Guarded decisions: approve / reject / mark returned / verify /
      override require a privileged actor of the same organization whose
      role satisfies the resolved approval policy.
    - Stale decisions: transitions are conditional on the prior state.
    - Side effects never undo a committed transition.

Failure modes:
    Every ``ReservationKernelError`` becomes a result with ``ok=False``,
    ``error_kind`` and a ``reason`` prefixed by the kind.  Store outages
    during a mutation are reported as ``dependency``.  Read-only helpers
    (``resolve_required_role``) raise StoreUnavailableError instead.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from reservation_config.schema import EngineSettings
from reservation_engines.approval import (
    can_manage_transfer,
    check_decision_authority,
    check_same_organization,
    resolve_for_resource,
    resolve_required_role,
)
from reservation_engines.availability import ConflictGranularity, check_batch
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
from reservation_engines.recurrence import expand_recurrence
from reservation_kernel.domain.clock import Clock, SystemClock
from reservation_kernel.domain.notification import (
    NotificationOutbox,
    OutboundNotification,
    created_notification_type,
)
from reservation_kernel.domain.recurrence import RecurrenceRule
from reservation_kernel.domain.reservation import (
    DateRange,
    ReservationRecord,
    ReservationState,
    ReservationStatus,
    ReturnCondition,
    ReturnDecision,
)
from reservation_kernel.domain.resource import (
    OwnerScope,
    ResourceInfo,
    ResourceKind,
    ResourceStatus,
)
from reservation_kernel.domain.roles import Principal, Role
from reservation_kernel.domain.transfer import TransferDecision, TransferStatus
from reservation_kernel.exceptions import (
    AuditWriteError,
    DependencyError,
    EmptyRecurrenceError,
    InsufficientRoleError,
    InvalidChoiceError,
    InvalidOdometerReadingError,
    MissingReturnEvidenceError,
    NotRequesterError,
    ReservationConflictError,
    ReservationKernelError,
    ResourceNotReservableError,
    StoreUnavailableError,
)
from reservation_kernel.logging_config import LogContext, get_logger
from reservation_kernel.models.audit_event import AuditAction
from reservation_kernel.selectors.policy_selector import PolicySelector
from reservation_kernel.selectors.reservation_selector import ReservationSelector
from reservation_kernel.selectors.resource_selector import ResourceSelector
from reservation_kernel.selectors.transfer_selector import TransferSelector
from reservation_kernel.services.auditor_service import (
    AuditorService,
    append_in_new_transaction,
)
from reservation_kernel.services.outbox_service import SqlNotificationOutbox
from reservation_kernel.services.reservation_service import ReservationService
from reservation_kernel.services.resource_status_service import ResourceStatusService
from reservation_kernel.services.transfer_service import TransferService
from reservation_services.results import (
    CreateReservationResult,
    TransferResult,
    WorkflowResult,
    format_reason,
)

logger = get_logger("services.workflow")

# Trace message and outcome codes for structured logging and traceability
TRACE_TYPE_RESERVATION_WORKFLOW = "RESERVATION_WORKFLOW"
OUTCOME_SUCCESS = "success"
OUTCOME_REJECTED = "rejected"

E = TypeVar("E", bound=Enum)


def _emit_workflow_trace(
    operation: str,
    entity_type: str,
    entity_id: Any,
    outcome: str,
    duration_ms: float,
    reason: str | None = None,
    from_state: str | None = None,
    to_state: str | None = None,
    warnings: Sequence[str] = (),
) -> None:
    """Emit one structured record per workflow call."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_RESERVATION_WORKFLOW,
        "operation": operation,
        "entity_type": entity_type,
        "entity_id": str(entity_id) if entity_id is not None else None,
        "outcome": outcome,
        "duration_ms": round(duration_ms, 3),
    }
    if reason is not None:
        record["reason"] = reason
    if from_state is not None:
        record["from_state"] = from_state
    if to_state is not None:
        record["to_state"] = to_state
    if warnings:
        record["warnings"] = list(warnings)
    logger.info("workflow_operation", extra=record)


def _coerce(enum_cls: type[E], value: Any, field: str) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidChoiceError(
            field, str(value), tuple(m.value for m in enum_cls),
        ) from None


_RETURN_DECISION_AUDIT: dict[ReservationState, AuditAction] = {
    ReservationState.RETURNED: AuditAction.RETURN_VERIFIED,
    ReservationState.RETURN_REJECTED: AuditAction.RETURN_REJECTED,
}

_TRANSFER_AUDIT: dict[TransferStatus, AuditAction] = {
    TransferStatus.PENDING: AuditAction.TRANSFER_REQUEST_CREATE,
    TransferStatus.APPROVED: AuditAction.TRANSFER_REQUEST_APPROVED,
    TransferStatus.REJECTED: AuditAction.TRANSFER_REQUEST_REJECTED,
    TransferStatus.CANCELLED: AuditAction.TRANSFER_REQUEST_CANCELLED,
}


def _audit_action(plan: ReservationTransitionPlan) -> AuditAction:
    if plan.action == ReservationAction.SUBMIT_RETURN:
        return AuditAction.RETURN_SUBMITTED
    if plan.action == ReservationAction.DECIDE_RETURN:
        return _RETURN_DECISION_AUDIT[plan.to_state]
    return AuditAction.RESERVATION_STATUS_UPDATE


class ReservationWorkflow:
    """
    Facade over the reservation and approval workflow.

    Contract:
        Receives a ``sessionmaker``, ``EngineSettings``, a ``Clock`` and a
        ``NotificationOutbox`` via constructor injection.  Every public
        mutating method opens exactly one transaction for the state change.

    Non-goals:
        - Authentication: callers pass an already verified ``Principal``.
        - Delivering notifications: the outbox only records them.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        settings: EngineSettings | None = None,
        clock: Clock | None = None,
        outbox: NotificationOutbox | None = None,
    ):
        self._session_factory = session_factory
        self._settings = settings or EngineSettings()
        self._clock = clock or SystemClock()
        self._outbox = outbox or SqlNotificationOutbox(session_factory, self._clock)
        self._granularity = ConflictGranularity(self._settings.conflict_granularity)
        self._tz = self._settings.timezone

    # ------------------------------------------------------------------
    # Infrastructure
    # ------------------------------------------------------------------

    @contextmanager
    def _unit_of_work(self, operation: str) -> Iterator[Session]:
        """One transaction; store outages surface as StoreUnavailableError."""
        try:
            with self._session_factory.begin() as session:
                yield session
        except OperationalError as exc:
            logger.error("store_unavailable", extra={"operation": operation}, exc_info=True)
            raise StoreUnavailableError(operation, str(exc.orig or exc)) from exc

    def _after_commit(
        self,
        audit_action: AuditAction | None,
        record_audit: Callable[[AuditorService], object] | None,
        notifications: Sequence[OutboundNotification],
    ) -> tuple[str, ...]:
        """Write audit and notifications; failures become warnings."""
        warnings: list[str] = []

        if record_audit is not None and audit_action is not None:
            try:
                append_in_new_transaction(self._session_factory, record_audit, self._clock)
            except SQLAlchemyError as exc:
                failure = AuditWriteError(audit_action.value, str(exc))
                logger.warning(
                    "audit_write_failed",
                    extra={"action": audit_action.value, "detail": str(exc)},
                )
                warnings.append(format_reason(failure))

        for notification in notifications:
            try:
                self._outbox.enqueue(notification)
            except DependencyError as exc:
                logger.warning(
                    "notification_enqueue_failed",
                    extra={"notification_type": notification.type.value, "detail": str(exc)},
                )
                warnings.append(format_reason(exc))

        return tuple(warnings)

    def _aware(self, moment: datetime) -> datetime:
        """Naive datetimes are wall-clock times in the calendar timezone."""
        if moment.tzinfo is None:
            return moment.replace(tzinfo=self._tz)
        return moment

    def _required_role(self, session: Session, resource: ResourceInfo) -> Role:
        policies = PolicySelector(session).list_for_scope(
            resource.organization_id, resource.kind,
        )
        return resolve_for_resource(
            policies, resource, self._settings.default_required_role,
        )

    def _check_reservable(self, resource: ResourceInfo, windows: Sequence[DateRange]) -> None:
        resource_id = str(resource.resource_id)
        if not resource.loanable:
            raise ResourceNotReservableError(resource_id, "resource is not loanable")
        if not resource.accepts_reservations:
            raise ResourceNotReservableError(
                resource_id, f"resource is {resource.status.value}",
            )
        if resource.usable_until is not None:
            last_day = max(w.end for w in windows).astimezone(self._tz).date()
            if last_day > resource.usable_until:
                raise ResourceNotReservableError(
                    resource_id,
                    f"resource is usable until {resource.usable_until.isoformat()}",
                )

    def _apply_resource_effect(
        self,
        session: Session,
        plan: ReservationTransitionPlan,
        reservation: ReservationRecord,
    ) -> ResourceStatus | None:
        status_service = ResourceStatusService(session, self._clock)
        if plan.resource_effect == ResourceEffect.OCCUPY:
            return status_service.occupy(reservation.resource_id).status
        if plan.resource_effect == ResourceEffect.RELEASE:
            return status_service.release(
                reservation.resource_id, reservation.odometer_reading,
            ).status
        return None

    def _reservation_notification(
        self,
        plan: ReservationTransitionPlan,
        reservation: ReservationRecord,
        resource: ResourceInfo,
        extra: dict[str, Any] | None = None,
    ) -> OutboundNotification:
        return OutboundNotification(
            organization_id=reservation.organization_id,
            user_id=reservation.borrower_id,
            type=plan.notification_type,
            payload={
                "reservation_id": reservation.reservation_id,
                "resource_id": resource.resource_id,
                "resource_name": resource.name,
                "resource_kind": resource.kind,
                "previous_state": plan.from_state,
                "state": plan.to_state,
                "status": plan.to_state.status,
                "return_status": plan.to_state.return_status,
                **(extra or {}),
            },
        )

    def _finish_transition(
        self,
        operation: str,
        actor_id: UUID,
        plan: ReservationTransitionPlan,
        reservation: ReservationRecord,
        resource: ResourceInfo,
        resource_status: ResourceStatus | None,
        started: float,
        details: dict[str, Any] | None = None,
    ) -> WorkflowResult:
        action = _audit_action(plan)
        warnings = self._after_commit(
            action,
            lambda auditor: auditor.record_reservation_transition(
                reservation_id=reservation.reservation_id,
                organization_id=reservation.organization_id,
                resource_id=reservation.resource_id,
                action=action,
                actor_id=actor_id,
                previous_state=plan.from_state.value,
                next_state=plan.to_state.value,
                details=details,
            ),
            [self._reservation_notification(plan, reservation, resource, details)],
        )
        _emit_workflow_trace(
            operation, "Reservation", reservation.reservation_id, OUTCOME_SUCCESS,
            (time.perf_counter() - started) * 1000,
            from_state=plan.from_state.value, to_state=plan.to_state.value,
            warnings=warnings,
        )
        return WorkflowResult(
            ok=True,
            warnings=warnings,
            state=reservation.state,
            reservation=reservation,
            resource_status=resource_status,
        )

    def _rejected(
        self,
        operation: str,
        entity_type: str,
        entity_id: Any,
        exc: ReservationKernelError,
        started: float,
    ) -> None:
        logger.info(
            "workflow_rejected",
            extra={
                "operation": operation,
                "error_code": exc.code,
                "error_kind": exc.kind.value,
            },
        )
        _emit_workflow_trace(
            operation, entity_type, entity_id, OUTCOME_REJECTED,
            (time.perf_counter() - started) * 1000,
            reason=format_reason(exc),
        )

    # ------------------------------------------------------------------
    # Reservations
    # ------------------------------------------------------------------

    def create_reservation(
        self,
        resource_id: UUID,
        borrower: Principal,
        start: datetime,
        end: datetime,
        note: str | None = None,
        recurrence: RecurrenceRule | None = None,
        start_odometer_reading: int | None = None,
    ) -> CreateReservationResult:
        """
        Create one reservation, or every instance of a recurring one.

        Postconditions:
            - On success all instances are ``pending``; the first is the
              parent of the others.
            - On rejection nothing was persisted.  A conflict names the
              first colliding instance in ``rejected_instance_index``.
        """
        started = time.perf_counter()
        with LogContext.bind(
            actor_id=borrower.actor_id,
            organization_id=borrower.organization_id,
            resource_id=resource_id,
        ):
            try:
                windows = expand_recurrence(
                    self._aware(start),
                    self._aware(end),
                    recurrence,
                    self._settings.max_recurrence_instances,
                    tz=self._tz,
                )
                if not windows:
                    raise EmptyRecurrenceError(
                        recurrence.type.value if recurrence else "none",
                        recurrence.end_date.isoformat()
                        if recurrence and recurrence.end_date else None,
                    )
                if start_odometer_reading is not None and start_odometer_reading < 0:
                    raise InvalidOdometerReadingError(
                        "new", start_odometer_reading, "reading cannot be negative",
                    )

                with self._unit_of_work("create_reservation") as session:
                    resource = ResourceStatusService(session, self._clock).lock(
                        resource_id,
                    ).to_dto()
                    check_same_organization(borrower, resource.organization_id)
                    self._check_reservable(resource, windows)

                    existing = ReservationSelector(session).list_blocking(resource_id)
                    availability = check_batch(
                        windows, existing, self._granularity, self._tz,
                    )
                    if not availability.available:
                        index = availability.conflict_index
                        window = windows[index]
                        conflicting = availability.conflicting_reservation_id
                        raise ReservationConflictError(
                            str(resource_id),
                            window.start.isoformat(),
                            window.end.isoformat(),
                            instance_index=index,
                            conflicting_reservation_id=(
                                str(conflicting) if conflicting else None
                            ),
                        )

                    created = ReservationService(session, self._clock).insert_instances(
                        resource,
                        borrower.actor_id,
                        windows,
                        availability.blocks,
                        note=note,
                        recurrence=recurrence,
                        start_odometer_reading=start_odometer_reading,
                    )
            except ReservationConflictError as exc:
                self._rejected("create_reservation", "Resource", resource_id, exc, started)
                return CreateReservationResult.rejected(exc, exc.instance_index)
            except ReservationKernelError as exc:
                self._rejected("create_reservation", "Resource", resource_id, exc, started)
                return CreateReservationResult.rejected(exc)

            parent = created[0]
            warnings = self._after_commit(
                AuditAction.RESERVATION_CREATED,
                lambda auditor: auditor.record_reservation_created(
                    reservation_id=parent.reservation_id,
                    organization_id=parent.organization_id,
                    resource_id=resource.resource_id,
                    actor_id=borrower.actor_id,
                    instance_count=len(created),
                    recurrence_type=(
                        recurrence.type.value if recurrence else "none"
                    ),
                ),
                [
                    OutboundNotification(
                        organization_id=resource.organization_id,
                        user_id=borrower.actor_id,
                        type=created_notification_type(resource.kind),
                        payload={
                            "reservation_id": parent.reservation_id,
                            "resource_id": resource.resource_id,
                            "resource_name": resource.name,
                            "start_date": parent.start,
                            "end_date": parent.end,
                            "instance_count": len(created),
                        },
                    )
                ],
            )
            _emit_workflow_trace(
                "create_reservation", "Reservation", parent.reservation_id,
                OUTCOME_SUCCESS, (time.perf_counter() - started) * 1000,
                to_state=ReservationState.PENDING.value, warnings=warnings,
            )
            return CreateReservationResult(created=tuple(created), warnings=warnings)

    def change_reservation_status(
        self,
        reservation_id: UUID,
        next_status: ReservationStatus | str,
        actor: Principal,
    ) -> WorkflowResult:
        """Approve, reject or mark returned.  Requires decision authority."""
        started = time.perf_counter()
        with LogContext.bind(
            actor_id=actor.actor_id,
            organization_id=actor.organization_id,
            reservation_id=reservation_id,
        ):
            try:
                status = _coerce(ReservationStatus, next_status, "next_status")
                with self._unit_of_work("change_reservation_status") as session:
                    reservation = ReservationSelector(session).get(reservation_id)
                    resources = ResourceSelector(session)
                    resource = resources.get(reservation.resource_id)
                    check_decision_authority(
                        actor,
                        self._required_role(session, resource),
                        reservation.organization_id,
                    )
                    policy = resources.return_policy(
                        reservation.organization_id,
                        self._settings.default_return_verification,
                    )
                    plan = plan_reservation_transition(
                        ReservationAction.CHANGE_STATUS,
                        reservation.state,
                        target_for_status_change(reservation.state, status, policy),
                    )

                    changes: dict[str, Any] = {}
                    if plan.to_state == ReservationState.RETURNED:
                        changes["return_verified_by"] = actor.actor_id
                        changes["return_verified_at"] = self._clock.now_utc()
                    updated = ReservationService(session, self._clock).apply_transition(
                        reservation_id, plan.from_state, plan.to_state, **changes,
                    )
                    resource_status = self._apply_resource_effect(session, plan, updated)
            except ReservationKernelError as exc:
                self._rejected(
                    "change_reservation_status", "Reservation", reservation_id, exc, started,
                )
                return WorkflowResult.rejected(exc)

            return self._finish_transition(
                "change_reservation_status", actor.actor_id, plan, updated,
                resource, resource_status, started,
            )

    def submit_return(
        self,
        reservation_id: UUID,
        evidence: Sequence[str] = (),
        note: str | None = None,
        actor: Principal | None = None,
        odometer_reading: int | None = None,
    ) -> WorkflowResult:
        """
        Borrower hands the resource back with photo evidence.

        With verification required the reservation waits in
        ``RETURN_SUBMITTED`` and the resource stays occupied; otherwise it
        is ``RETURNED`` at once.
        """
        started = time.perf_counter()
        with LogContext.bind(
            actor_id=actor.actor_id if actor else None,
            reservation_id=reservation_id,
        ):
            try:
                with self._unit_of_work("submit_return") as session:
                    reservation = ReservationSelector(session).get(reservation_id)
                    resources = ResourceSelector(session)
                    resource = resources.get(reservation.resource_id)

                    submitter_id = reservation.borrower_id
                    if actor is not None:
                        check_same_organization(actor, reservation.organization_id)
                        if actor.actor_id != reservation.borrower_id and not actor.is_privileged:
                            raise NotRequesterError(
                                str(actor.actor_id), str(reservation.reservation_id),
                            )
                        submitter_id = actor.actor_id

                    policy = resources.return_policy(
                        reservation.organization_id,
                        self._settings.default_return_verification,
                    )
                    plan = plan_reservation_transition(
                        ReservationAction.SUBMIT_RETURN,
                        reservation.state,
                        target_for_return_submission(reservation.state, policy),
                    )

                    images = [str(item) for item in evidence if item]
                    if policy.photo_required and not images:
                        raise MissingReturnEvidenceError(str(reservation_id))

                    changes: dict[str, Any] = {
                        "return_images": images,
                        "return_note": note,
                    }
                    if resource.kind == ResourceKind.VEHICLE and odometer_reading is not None:
                        changes.update(
                            self._odometer_changes(reservation, odometer_reading)
                        )
                    if plan.to_state == ReservationState.RETURNED:
                        changes["return_verified_by"] = submitter_id
                        changes["return_verified_at"] = self._clock.now_utc()

                    updated = ReservationService(session, self._clock).apply_transition(
                        reservation_id, plan.from_state, plan.to_state, **changes,
                    )
                    resource_status = self._apply_resource_effect(session, plan, updated)
            except ReservationKernelError as exc:
                self._rejected("submit_return", "Reservation", reservation_id, exc, started)
                return WorkflowResult.rejected(exc)

            details: dict[str, Any] = {"image_count": len(images)}
            if updated.distance_traveled is not None:
                details["distance_traveled"] = updated.distance_traveled
            return self._finish_transition(
                "submit_return", submitter_id, plan, updated, resource,
                resource_status, started, details,
            )

    @staticmethod
    def _odometer_changes(
        reservation: ReservationRecord, odometer_reading: int,
    ) -> dict[str, Any]:
        reservation_id = str(reservation.reservation_id)
        if odometer_reading < 0:
            raise InvalidOdometerReadingError(
                reservation_id, odometer_reading, "reading cannot be negative",
            )
        start_reading = reservation.start_odometer_reading
        if start_reading is not None and odometer_reading < start_reading:
            raise InvalidOdometerReadingError(
                reservation_id,
                odometer_reading,
                f"below the start reading {start_reading}",
            )
        return {
            "odometer_reading": odometer_reading,
            "distance_traveled": (
                odometer_reading - start_reading if start_reading is not None else None
            ),
        }

    def verify_return(
        self,
        reservation_id: UUID,
        decision: ReturnDecision | str,
        condition: ReturnCondition | str,
        actor: Principal,
        note: str | None = None,
    ) -> WorkflowResult:
        """Verifier accepts or rejects a submitted return."""
        started = time.perf_counter()
        with LogContext.bind(
            actor_id=actor.actor_id,
            organization_id=actor.organization_id,
            reservation_id=reservation_id,
        ):
            try:
                verdict = _coerce(ReturnDecision, decision, "decision")
                reported = _coerce(ReturnCondition, condition, "condition")
                with self._unit_of_work("verify_return") as session:
                    reservation = ReservationSelector(session).get(reservation_id)
                    resource = ResourceSelector(session).get(reservation.resource_id)
                    check_decision_authority(
                        actor,
                        self._required_role(session, resource),
                        reservation.organization_id,
                    )
                    plan = plan_reservation_transition(
                        ReservationAction.DECIDE_RETURN,
                        reservation.state,
                        target_for_return_decision(reservation.state, verdict),
                    )
                    updated = ReservationService(session, self._clock).apply_transition(
                        reservation_id,
                        plan.from_state,
                        plan.to_state,
                        return_condition=reported.value,
                        return_verified_by=actor.actor_id,
                        return_verified_at=self._clock.now_utc(),
                    )
                    resource_status = self._apply_resource_effect(session, plan, updated)
            except ReservationKernelError as exc:
                self._rejected("verify_return", "Reservation", reservation_id, exc, started)
                return WorkflowResult.rejected(exc)

            details: dict[str, Any] = {"condition": reported.value}
            if note:
                details["verification_note"] = note
            return self._finish_transition(
                "verify_return", actor.actor_id, plan, updated, resource,
                resource_status, started, details,
            )

    # ------------------------------------------------------------------
    # Approval policy resolution (read-only)
    # ------------------------------------------------------------------

    def resolve_required_role(
        self,
        resource_scope: ResourceKind | str,
        organization_id: UUID,
        owner_scope: OwnerScope | str,
        owner_department: str | None,
    ) -> Role:
        """
        Minimum role that may decide on the described resource.

        Raises:
            InvalidChoiceError: unknown scope or owner scope.
            StoreUnavailableError: policies could not be read.
        """
        scope = _coerce(ResourceKind, resource_scope, "resource_scope")
        owner = _coerce(OwnerScope, owner_scope, "owner_scope")
        with self._unit_of_work("resolve_required_role") as session:
            policies = PolicySelector(session).list_for_scope(organization_id, scope)
        return resolve_required_role(
            policies,
            organization_id,
            scope,
            owner,
            owner_department,
            self._settings.default_required_role,
        )

    def required_role_for_resource(self, resource_id: UUID) -> Role:
        """The approver label shown next to a resource."""
        with self._unit_of_work("required_role_for_resource") as session:
            resource = ResourceSelector(session).get(resource_id)
            return self._required_role(session, resource)

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    def override_resource_status(
        self,
        resource_id: UUID,
        status: ResourceStatus | str,
        actor: Principal,
    ) -> WorkflowResult:
        """Set a resource status directly, e.g. ``repair`` or ``retired``."""
        started = time.perf_counter()
        with LogContext.bind(
            actor_id=actor.actor_id,
            organization_id=actor.organization_id,
            resource_id=resource_id,
        ):
            try:
                with self._unit_of_work("override_resource_status") as session:
                    resource = ResourceSelector(session).get(resource_id)
                    check_decision_authority(
                        actor,
                        self._required_role(session, resource),
                        resource.organization_id,
                    )
                    previous, updated = ResourceStatusService(
                        session, self._clock,
                    ).override_status(resource_id, status)
            except ReservationKernelError as exc:
                self._rejected(
                    "override_resource_status", "Resource", resource_id, exc, started,
                )
                return WorkflowResult.rejected(exc)

            warnings = self._after_commit(
                AuditAction.RESOURCE_STATUS_OVERRIDE,
                lambda auditor: auditor.record_resource_override(
                    resource_id=resource_id,
                    organization_id=updated.organization_id,
                    actor_id=actor.actor_id,
                    previous_status=previous.value,
                    next_status=updated.status.value,
                ),
                (),
            )
            _emit_workflow_trace(
                "override_resource_status", "Resource", resource_id, OUTCOME_SUCCESS,
                (time.perf_counter() - started) * 1000,
                from_state=previous.value, to_state=updated.status.value,
                warnings=warnings,
            )
            return WorkflowResult(
                ok=True, warnings=warnings, resource_status=updated.status,
            )

    # ------------------------------------------------------------------
    # Transfer requests
    # ------------------------------------------------------------------

    def _finish_transfer(
        self,
        operation: str,
        actor_id: UUID,
        request: Any,
        resource_name: str | None,
        started: float,
    ) -> TransferResult:
        action = _TRANSFER_AUDIT[request.status]
        warnings = self._after_commit(
            action,
            lambda auditor: auditor.record_transfer(
                request_id=request.request_id,
                organization_id=request.organization_id,
                asset_id=request.asset_id,
                action=action,
                actor_id=actor_id,
                from_department=request.from_department,
                to_department=request.to_department,
            ),
            [
                OutboundNotification(
                    organization_id=request.organization_id,
                    user_id=request.requester_id,
                    type=transfer_notification_type(request.status),
                    payload={
                        "request_id": request.request_id,
                        "asset_id": request.asset_id,
                        "resource_id": request.asset_id,
                        "resource_name": resource_name,
                        "from_department": request.from_department,
                        "to_department": request.to_department,
                    },
                )
            ],
        )
        _emit_workflow_trace(
            operation, "AssetTransferRequest", request.request_id, OUTCOME_SUCCESS,
            (time.perf_counter() - started) * 1000,
            to_state=request.status.value, warnings=warnings,
        )
        return TransferResult(
            ok=True,
            request_id=request.request_id,
            warnings=warnings,
            status=request.status,
        )

    def create_transfer_request(
        self,
        asset_id: UUID,
        requester: Principal,
        note: str | None = None,
    ) -> TransferResult:
        """Ask for a retired asset of another department to move to the requester's."""
        started = time.perf_counter()
        with LogContext.bind(
            actor_id=requester.actor_id,
            organization_id=requester.organization_id,
            resource_id=asset_id,
        ):
            try:
                with self._unit_of_work("create_transfer_request") as session:
                    asset = ResourceStatusService(session, self._clock).lock(asset_id).to_dto()
                    from_department, to_department = check_transfer_eligibility(
                        asset, requester,
                    )
                    request = TransferService(session, self._clock).create(
                        organization_id=asset.organization_id,
                        asset_id=asset_id,
                        requester_id=requester.actor_id,
                        from_department=from_department,
                        to_department=to_department,
                        note=note,
                    )
            except ReservationKernelError as exc:
                self._rejected("create_transfer_request", "Resource", asset_id, exc, started)
                return TransferResult.rejected(exc)

            return self._finish_transfer(
                "create_transfer_request", requester.actor_id, request, asset.name, started,
            )

    def resolve_transfer_request(
        self,
        request_id: UUID,
        decision: TransferDecision | str,
        actor: Principal,
    ) -> TransferResult:
        """Approve (ownership moves) or reject a pending transfer request."""
        started = time.perf_counter()
        with LogContext.bind(
            actor_id=actor.actor_id,
            organization_id=actor.organization_id,
            request_id=request_id,
        ):
            try:
                target = transfer_target(_coerce(TransferDecision, decision, "decision"))
                with self._unit_of_work("resolve_transfer_request") as session:
                    pending = TransferSelector(session).get(request_id)
                    status_service = ResourceStatusService(session, self._clock)
                    asset = status_service.lock(pending.asset_id).to_dto()
                    check_same_organization(actor, pending.organization_id)
                    if not can_manage_transfer(actor, asset):
                        raise InsufficientRoleError(
                            str(actor.actor_id), actor.role.value, Role.MANAGER.value,
                        )
                    plan_transfer_transition(pending.status, target)
                    request = TransferService(session, self._clock).resolve(
                        request_id, target, actor.actor_id,
                    )
                    if request.status == TransferStatus.APPROVED:
                        status_service.transfer_ownership(
                            request.asset_id, request.to_department,
                        )
            except ReservationKernelError as exc:
                self._rejected(
                    "resolve_transfer_request", "AssetTransferRequest", request_id, exc, started,
                )
                return TransferResult.rejected(exc)

            return self._finish_transfer(
                "resolve_transfer_request", actor.actor_id, request, asset.name, started,
            )

    def cancel_transfer_request(
        self,
        asset_id: UUID,
        requester_id: UUID,
    ) -> TransferResult:
        """Requester withdraws their pending request for ``asset_id``."""
        started = time.perf_counter()
        with LogContext.bind(actor_id=requester_id, resource_id=asset_id):
            try:
                with self._unit_of_work("cancel_transfer_request") as session:
                    asset = ResourceSelector(session).get(asset_id)
                    request = TransferService(session, self._clock).cancel(
                        asset_id, requester_id,
                    )
            except ReservationKernelError as exc:
                self._rejected("cancel_transfer_request", "Resource", asset_id, exc, started)
                return TransferResult.rejected(exc)

            return self._finish_transfer(
                "cancel_transfer_request", requester_id, request, asset.name, started,
            )
