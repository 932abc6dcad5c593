"""
Typed Exception Hierarchy for the Reservation Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the workflow engine (HTTP handlers, batch jobs, tests) must react
to a rejected request without parsing message strings.  Every error in this
module therefore carries:
  1. a TYPED class (catch by type, not message)
  2. a CODE class attribute (machine-readable, API-safe)
  3. a KIND class attribute (one of the five error kinds below)
  4. structured DATA as instance attributes

Example - WRONG way to handle errors:
    try:
        workflow.create_reservation(...)
    except Exception as e:
        if "overlap" in str(e):  # FRAGILE - message might change
            show_calendar()

Example - RIGHT way (what this module enables):
    try:
        service.insert_instances(...)
    except ReservationConflictError as e:
        show_calendar(highlight=e.instance_index)
        api_response(code=e.code, kind=e.kind.value)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ReservationKernelError (base)
    |
    +-- ValidationError                    kind=validation
    |   +-- InvalidDateRangeError
    |   +-- InvalidRecurrenceRuleError
    |   +-- EmptyRecurrenceError
    |   +-- RecurrenceLimitExceededError
    |   +-- MissingReturnEvidenceError
    |   +-- InvalidOdometerReadingError
    |   +-- InvalidChoiceError
    |   +-- InvalidTransitionError
    |   +-- ResourceNotReservableError
    |   +-- InvalidResourceStatusError
    |   +-- TransferNotEligibleError
    |   +-- ReservationNotFoundError
    |   +-- ResourceNotFoundError
    |   +-- TransferRequestNotFoundError
    |   +-- OrganizationNotFoundError
    |
    +-- ConflictError                      kind=conflict
    |   +-- ReservationConflictError
    |   +-- DuplicatePendingTransferError
    |
    +-- PermissionDeniedError              kind=permission
    |   +-- InsufficientRoleError
    |   +-- NotRequesterError
    |   +-- CrossOrganizationError
    |
    +-- StaleStateError                    kind=stale_state
    |
    +-- DependencyError                    kind=dependency
        +-- StoreUnavailableError
        +-- NotificationDispatchError
        +-- AuditWriteError

    ImmutabilityViolationError is raised by ORM listeners on append-only
    tables.  It is a programming error and carries kind=validation.

===============================================================================
ERROR KINDS
===============================================================================

Kind        | Caller reaction
------------|-----------------------------------------------------------------
validation  | Fix the input and resubmit.
conflict    | Pick another slot / wait for the pending request to resolve.
permission  | Escalate to a member with a sufficient role.
stale_state | Reload the record and retry the decision.
dependency  | Retry later; for committed mutations the result carries a warning.

===============================================================================
DESIGN DECISIONS
===============================================================================

1. PermissionDeniedError is not named PermissionError so the builtin is never
   shadowed by a star import.
2. Not-found errors are validation errors: the caller referenced an id that
   does not exist in its organization, and must resubmit with a valid one.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Closed taxonomy of rejection kinds reported to callers."""

    VALIDATION = "validation"
    CONFLICT = "conflict"
    PERMISSION = "permission"
    STALE_STATE = "stale_state"
    DEPENDENCY = "dependency"


class ReservationKernelError(Exception):
    """
    Base exception for all reservation kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification and a `kind` from ``ErrorKind``.
    """

    code: str = "RESERVATION_KERNEL_ERROR"
    kind: ErrorKind = ErrorKind.VALIDATION


# Validation errors


class ValidationError(ReservationKernelError):
    """Base exception for malformed or unsatisfiable requests."""

    code: str = "VALIDATION_ERROR"
    kind: ErrorKind = ErrorKind.VALIDATION


class InvalidDateRangeError(ValidationError):
    """Reservation end does not come after its start."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start: str, end: str):
        self.start = start
        self.end = end
        super().__init__(f"End {end} must be after start {start}")


class InvalidRecurrenceRuleError(ValidationError):
    """Recurrence rule is structurally invalid."""

    code: str = "INVALID_RECURRENCE_RULE"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid recurrence {field}: {reason}")


class EmptyRecurrenceError(ValidationError):
    """Recurrence expansion produced no instances."""

    code: str = "EMPTY_RECURRENCE"

    def __init__(self, rule_type: str, end_date: str | None):
        self.rule_type = rule_type
        self.end_date = end_date
        super().__init__(
            f"Nothing to schedule: {rule_type} recurrence ending {end_date} "
            f"yields no instances"
        )


class RecurrenceLimitExceededError(ValidationError):
    """Recurrence expansion produced more instances than allowed."""

    code: str = "RECURRENCE_LIMIT_EXCEEDED"

    def __init__(self, instance_count: int, limit: int):
        self.instance_count = instance_count
        self.limit = limit
        super().__init__(
            f"Recurrence yields {instance_count} instances; limit is {limit}"
        )


class MissingReturnEvidenceError(ValidationError):
    """Return submitted without the photo evidence the policy requires."""

    code: str = "MISSING_RETURN_EVIDENCE"

    def __init__(self, reservation_id: str):
        self.reservation_id = reservation_id
        super().__init__(
            f"Return for reservation {reservation_id} requires at least one photo"
        )


class InvalidOdometerReadingError(ValidationError):
    """Vehicle odometer reading is negative or below the start reading."""

    code: str = "INVALID_ODOMETER_READING"

    def __init__(self, reservation_id: str, reading: int | None, reason: str):
        self.reservation_id = reservation_id
        self.reading = reading
        self.reason = reason
        super().__init__(
            f"Odometer reading {reading} rejected for {reservation_id}: {reason}"
        )


class InvalidChoiceError(ValidationError):
    """Value is not a member of a closed vocabulary (status, decision, role)."""

    code: str = "INVALID_CHOICE"

    def __init__(self, field: str, value: str, allowed: tuple[str, ...]):
        self.field = field
        self.value = value
        self.allowed = allowed
        super().__init__(
            f"Invalid {field} {value!r}; expected one of {', '.join(allowed)}"
        )


class InvalidTransitionError(ValidationError):
    """Requested state change is not an edge of the state machine."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, entity_type: str, from_state: str, to_state: str):
        self.entity_type = entity_type
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid {entity_type} transition: {from_state} -> {to_state}"
        )


class ResourceNotReservableError(ValidationError):
    """Resource cannot be booked (not loanable, out of service, expired)."""

    code: str = "RESOURCE_NOT_RESERVABLE"

    def __init__(self, resource_id: str, reason: str):
        self.resource_id = resource_id
        self.reason = reason
        super().__init__(f"Resource {resource_id} cannot be reserved: {reason}")


class InvalidResourceStatusError(ValidationError):
    """Status is not valid for the resource kind."""

    code: str = "INVALID_RESOURCE_STATUS"

    def __init__(self, resource_kind: str, status: str):
        self.resource_kind = resource_kind
        self.status = status
        super().__init__(f"Status {status!r} is not valid for a {resource_kind}")


class TransferNotEligibleError(ValidationError):
    """Asset or requester does not satisfy transfer preconditions."""

    code: str = "TRANSFER_NOT_ELIGIBLE"

    def __init__(self, asset_id: str, reason: str):
        self.asset_id = asset_id
        self.reason = reason
        super().__init__(f"Asset {asset_id} cannot be transferred: {reason}")


class ReservationNotFoundError(ValidationError):
    """Reservation with given ID was not found."""

    code: str = "RESERVATION_NOT_FOUND"

    def __init__(self, reservation_id: str):
        self.reservation_id = reservation_id
        super().__init__(f"Reservation not found: {reservation_id}")


class ResourceNotFoundError(ValidationError):
    """Resource with given ID was not found."""

    code: str = "RESOURCE_NOT_FOUND"

    def __init__(self, resource_id: str):
        self.resource_id = resource_id
        super().__init__(f"Resource not found: {resource_id}")


class TransferRequestNotFoundError(ValidationError):
    """Transfer request was not found."""

    code: str = "TRANSFER_REQUEST_NOT_FOUND"

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Transfer request not found: {reference}")


class OrganizationNotFoundError(ValidationError):
    """Organization with given ID was not found."""

    code: str = "ORGANIZATION_NOT_FOUND"

    def __init__(self, organization_id: str):
        self.organization_id = organization_id
        super().__init__(f"Organization not found: {organization_id}")


# Conflict errors


class ConflictError(ReservationKernelError):
    """Base exception for requests colliding with existing state."""

    code: str = "CONFLICT"
    kind: ErrorKind = ErrorKind.CONFLICT


class ReservationConflictError(ConflictError):
    """A reservation instance overlaps a pending or approved booking."""

    code: str = "RESERVATION_CONFLICT"

    def __init__(
        self,
        resource_id: str,
        start: str,
        end: str,
        instance_index: int | None = None,
        conflicting_reservation_id: str | None = None,
    ):
        self.resource_id = resource_id
        self.start = start
        self.end = end
        self.instance_index = instance_index
        self.conflicting_reservation_id = conflicting_reservation_id
        where = f" for instance #{instance_index}" if instance_index is not None else ""
        super().__init__(
            f"Resource {resource_id} is already booked{where} ({start} - {end})"
        )


class DuplicatePendingTransferError(ConflictError):
    """Requester already has a pending transfer request for the asset."""

    code: str = "DUPLICATE_PENDING_TRANSFER"

    def __init__(self, asset_id: str, requester_id: str):
        self.asset_id = asset_id
        self.requester_id = requester_id
        super().__init__(
            f"Requester {requester_id} already has a pending transfer "
            f"request for asset {asset_id}"
        )


# Permission errors


class PermissionDeniedError(ReservationKernelError):
    """Base exception for actors lacking authority."""

    code: str = "PERMISSION_DENIED"
    kind: ErrorKind = ErrorKind.PERMISSION


class InsufficientRoleError(PermissionDeniedError):
    """Actor's role ranks below the role the policy requires."""

    code: str = "INSUFFICIENT_ROLE"

    def __init__(self, actor_id: str, actor_role: str, required_role: str):
        self.actor_id = actor_id
        self.actor_role = actor_role
        self.required_role = required_role
        super().__init__(
            f"Actor {actor_id} with role {actor_role} cannot act; "
            f"{required_role} required"
        )


class NotRequesterError(PermissionDeniedError):
    """Only the original requester or borrower may perform this action."""

    code: str = "NOT_REQUESTER"

    def __init__(self, actor_id: str, entity_id: str):
        self.actor_id = actor_id
        self.entity_id = entity_id
        super().__init__(f"Actor {actor_id} did not originate {entity_id}")


class CrossOrganizationError(PermissionDeniedError):
    """Actor and target belong to different organizations."""

    code: str = "CROSS_ORGANIZATION"

    def __init__(self, actor_organization_id: str, target_organization_id: str):
        self.actor_organization_id = actor_organization_id
        self.target_organization_id = target_organization_id
        super().__init__(
            f"Organization {actor_organization_id} cannot act on records of "
            f"organization {target_organization_id}"
        )


# Stale state


class StaleStateError(ReservationKernelError):
    """The record changed between read and conditional write."""

    code: str = "STALE_STATE"
    kind: ErrorKind = ErrorKind.STALE_STATE

    def __init__(self, entity_type: str, entity_id: str, expected_state: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_state = expected_state
        super().__init__(
            f"{entity_type} {entity_id} is no longer in state {expected_state}"
        )


# Dependency errors


class DependencyError(ReservationKernelError):
    """Base exception for failing collaborators (store, outbox, audit)."""

    code: str = "DEPENDENCY_ERROR"
    kind: ErrorKind = ErrorKind.DEPENDENCY


class StoreUnavailableError(DependencyError):
    """Relational store could not be reached."""

    code: str = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Store unavailable during {operation}: {detail}")


class NotificationDispatchError(DependencyError):
    """Notification outbox rejected a message."""

    code: str = "NOTIFICATION_DISPATCH_FAILED"

    def __init__(self, notification_type: str, detail: str):
        self.notification_type = notification_type
        self.detail = detail
        super().__init__(f"Could not enqueue {notification_type}: {detail}")


class AuditWriteError(DependencyError):
    """Audit entry could not be appended."""

    code: str = "AUDIT_WRITE_FAILED"

    def __init__(self, action: str, detail: str):
        self.action = action
        self.detail = detail
        super().__init__(f"Could not record audit action {action}: {detail}")


class AuditChainBrokenError(ReservationKernelError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_event_id: str, expected_hash: str, actual_hash: str):
        self.audit_event_id = audit_event_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_event_id}: "
            f"expected {expected_hash}, got {actual_hash}"
        )


class ImmutabilityViolationError(ReservationKernelError):
    """Attempt to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )
