"""
reservation_services.policy_admin -- administrative writes to approval policy.

Responsibility:
    Lets organization admins set, delete and list approval policy rows,
    seed the organization-wide defaults, and change the return
    verification policy.  The workflow engine only ever reads these rows.

Architecture position:
    Services -- orchestration over ``PolicyService`` and ``AuditorService``.

Invariants enforced:
    - Admin only: every write requires an ``admin`` of the same
      organization.
    - Every committed change leaves one audit entry.  A failed audit
      write is reported as a warning, the change stays committed.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from uuid import UUID

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from reservation_config.schema import EngineSettings
from reservation_engines.approval import check_decision_authority, check_same_organization
from reservation_kernel.domain.clock import Clock, SystemClock
from reservation_kernel.domain.policy import ApprovalPolicyRule
from reservation_kernel.domain.reservation import ReturnVerificationPolicy
from reservation_kernel.domain.resource import ResourceKind
from reservation_kernel.domain.roles import Principal, Role
from reservation_kernel.exceptions import (
    AuditWriteError,
    InvalidChoiceError,
    ReservationKernelError,
    StoreUnavailableError,
)
from reservation_kernel.logging_config import LogContext, get_logger
from reservation_kernel.models.audit_event import AuditAction
from reservation_kernel.selectors.policy_selector import PolicySelector
from reservation_kernel.services.auditor_service import (
    AuditorService,
    append_in_new_transaction,
)
from reservation_kernel.services.policy_service import PolicyService, PolicyWrite
from reservation_services.results import PolicyResult, format_reason

logger = get_logger("services.policy_admin")


def _choice(enum_cls, value, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidChoiceError(
            field, str(value), tuple(m.value for m in enum_cls),
        ) from None


def _write_payload(write: PolicyWrite) -> dict[str, Any]:
    return {
        "scope": write.rule.scope,
        "department": write.rule.department,
        "required_role": write.rule.required_role,
        "previous_role": write.previous_role,
    }


class ApprovalPolicyAdministrator:
    """Admin-facing policy configuration."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        settings: EngineSettings | None = None,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._settings = settings or EngineSettings()
        self._clock = clock or SystemClock()

    @contextmanager
    def _unit_of_work(self, operation: str) -> Iterator[Session]:
        try:
            with self._session_factory.begin() as session:
                yield session
        except OperationalError as exc:
            logger.error("store_unavailable", extra={"operation": operation}, exc_info=True)
            raise StoreUnavailableError(operation, str(exc.orig or exc)) from exc

    def _audit(
        self,
        action: AuditAction,
        actor: Principal,
        entries: list[tuple[str, UUID, dict[str, Any]]],
    ) -> tuple[str, ...]:
        if not entries:
            return ()

        def record_all(auditor: AuditorService) -> None:
            for entity_type, entity_id, payload in entries:
                auditor.record_policy_change(
                    entity_type=entity_type,
                    entity_id=entity_id,
                    organization_id=actor.organization_id,
                    action=action,
                    actor_id=actor.actor_id,
                    payload=payload,
                )

        try:
            append_in_new_transaction(self._session_factory, record_all, self._clock)
        except SQLAlchemyError as exc:
            logger.warning(
                "audit_write_failed",
                extra={"action": action.value, "detail": str(exc)},
            )
            return (format_reason(AuditWriteError(action.value, str(exc))),)
        return ()

    def _reject(self, operation: str, exc: ReservationKernelError) -> PolicyResult:
        logger.info(
            "policy_change_rejected",
            extra={"operation": operation, "error_code": exc.code},
        )
        return PolicyResult.rejected(exc)

    def set_policy(
        self,
        actor: Principal,
        scope: ResourceKind | str,
        required_role: Role | str,
        department: str | None = None,
    ) -> PolicyResult:
        """Create or replace the rule for (scope, department) in the actor's organization."""
        with LogContext.bind(actor_id=actor.actor_id, organization_id=actor.organization_id):
            try:
                kind = _choice(ResourceKind, scope, "scope")
                role = _choice(Role, required_role, "required_role")
                check_decision_authority(actor, Role.ADMIN, actor.organization_id)
                with self._unit_of_work("set_policy") as session:
                    write = PolicyService(session, self._clock).upsert(
                        actor.organization_id, kind, role, department or None,
                    )
            except ReservationKernelError as exc:
                return self._reject("set_policy", exc)

            warnings = self._audit(
                AuditAction.APPROVAL_POLICY_SET,
                actor,
                [("ApprovalPolicy", write.policy_id, _write_payload(write))],
            )
            return PolicyResult(ok=True, warnings=warnings, rules=(write.rule,))

    def delete_policy(
        self,
        actor: Principal,
        scope: ResourceKind | str,
        department: str | None = None,
    ) -> PolicyResult:
        """Remove a rule; resolution falls back to the next broader rule."""
        with LogContext.bind(actor_id=actor.actor_id, organization_id=actor.organization_id):
            try:
                kind = _choice(ResourceKind, scope, "scope")
                check_decision_authority(actor, Role.ADMIN, actor.organization_id)
                with self._unit_of_work("delete_policy") as session:
                    write = PolicyService(session, self._clock).delete(
                        actor.organization_id, kind, department or None,
                    )
            except ReservationKernelError as exc:
                return self._reject("delete_policy", exc)

            if write is None:
                return PolicyResult(ok=True)
            warnings = self._audit(
                AuditAction.APPROVAL_POLICY_DELETED,
                actor,
                [("ApprovalPolicy", write.policy_id, _write_payload(write))],
            )
            return PolicyResult(ok=True, warnings=warnings, rules=(write.rule,))

    def list_policies(self, actor: Principal, organization_id: UUID) -> list[ApprovalPolicyRule]:
        """
        Every rule of the organization.  Read-only: errors propagate.

        Raises:
            CrossOrganizationError: actor belongs to another organization.
            StoreUnavailableError: policies could not be read.
        """
        check_same_organization(actor, organization_id)
        with self._unit_of_work("list_policies") as session:
            return PolicySelector(session).list_for_organization(organization_id)

    def ensure_default_policies(self, actor: Principal) -> PolicyResult:
        """Seed the missing organization-wide rule of every resource kind."""
        with LogContext.bind(actor_id=actor.actor_id, organization_id=actor.organization_id):
            try:
                check_decision_authority(actor, Role.ADMIN, actor.organization_id)
                with self._unit_of_work("ensure_default_policies") as session:
                    writes = PolicyService(session, self._clock).ensure_defaults(
                        actor.organization_id, self._settings.default_policy_role,
                    )
            except ReservationKernelError as exc:
                return self._reject("ensure_default_policies", exc)

            warnings = self._audit(
                AuditAction.APPROVAL_POLICY_SET,
                actor,
                [("ApprovalPolicy", w.policy_id, _write_payload(w)) for w in writes],
            )
            return PolicyResult(
                ok=True, warnings=warnings, rules=tuple(w.rule for w in writes),
            )

    def set_return_verification_policy(
        self,
        actor: Principal,
        policy: ReturnVerificationPolicy,
    ) -> PolicyResult:
        """Switch photo evidence and verifier sign-off on or off."""
        with LogContext.bind(actor_id=actor.actor_id, organization_id=actor.organization_id):
            try:
                check_decision_authority(actor, Role.ADMIN, actor.organization_id)
                with self._unit_of_work("set_return_verification_policy") as session:
                    previous = PolicyService(session, self._clock).set_return_policy(
                        actor.organization_id, policy,
                    )
            except ReservationKernelError as exc:
                return self._reject("set_return_verification_policy", exc)

            warnings = self._audit(
                AuditAction.RETURN_POLICY_SET,
                actor,
                [(
                    "Organization",
                    actor.organization_id,
                    {"previous": previous.to_mapping(), "policy": policy.to_mapping()},
                )],
            )
            return PolicyResult(ok=True, warnings=warnings, return_policy=policy)
