"""
ReservationWorkflow -- creating reservations and changing their status.

Covers:
- create_reservation(): single, recurring (parent/instances), conflicts
  against stored bookings and within the batch, all-or-nothing, resource
  reservability, organization boundary, empty expansion, notification and
  audit side effects
- change_reservation_status(): approve occupies the resource, reject,
  return frees it, permission guards, policy-driven admin requirement,
  terminal states, unknown status values
"""

from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from reservation_config.schema import EngineSettings
from reservation_kernel.domain.recurrence import RecurrenceRule, RecurrenceType
from reservation_kernel.domain.reservation import ReservationState
from reservation_kernel.domain.resource import ResourceKind, ResourceStatus
from reservation_kernel.domain.roles import Principal, Role
from reservation_kernel.exceptions import ErrorKind
from reservation_kernel.models.audit_event import AuditAction
from reservation_kernel.models.reservation import ReservationModel
from reservation_kernel.selectors.reservation_selector import ReservationSelector
from reservation_kernel.selectors.resource_selector import ResourceSelector
from reservation_kernel.services.auditor_service import AuditorService
from reservation_services.workflow_orchestrator import ReservationWorkflow

UTC = timezone.utc


def at(day: int, hour: int, month: int = 3) -> datetime:
    return datetime(2025, month, day, hour, tzinfo=UTC)


def resource_status(session_factory, resource_id) -> ResourceStatus:
    with session_factory() as session:
        return ResourceSelector(session).get(resource_id).status


def reservation_count(session_factory, resource_id) -> int:
    with session_factory() as session:
        return session.execute(
            select(func.count())
            .select_from(ReservationModel)
            .where(ReservationModel.resource_id == resource_id)
        ).scalar_one()


def audit_actions(session_factory, entity_id, entity_type="Reservation"):
    with session_factory() as session:
        return AuditorService(session).get_trace(entity_type, entity_id).actions


@pytest.fixture
def approved_reservation(workflow, asset_id, borrower, manager):
    """Mar 10-12 approved on the default asset."""
    created = workflow.create_reservation(asset_id, borrower, at(10, 9), at(12, 18))
    assert created.ok
    reservation_id = created.parent_reservation_id
    assert workflow.change_reservation_status(reservation_id, "approved", manager).ok
    return reservation_id


@pytest.fixture
def room_id(make_resource, organization_id):
    return make_resource(organization_id, kind=ResourceKind.SPACE, name="Room 4")


@pytest.fixture
def approved_room_booking(workflow, room_id, borrower, manager):
    """Mar 10-12 approved on a space, which keeps taking bookings while rented."""
    created = workflow.create_reservation(room_id, borrower, at(10, 9), at(12, 18))
    assert created.ok
    assert workflow.change_reservation_status(created.parent_reservation_id, "approved", manager).ok
    return created.parent_reservation_id


# ---------------------------------------------------------------------------
# create_reservation
# ---------------------------------------------------------------------------


class TestCreateReservation:

    def test_single_reservation_is_pending(self, workflow, asset_id, borrower):
        result = workflow.create_reservation(asset_id, borrower, at(10, 9), at(10, 18), note="demo")

        assert result.ok
        assert result.warnings == ()
        (reservation,) = result.created
        assert reservation.state == ReservationState.PENDING
        assert reservation.borrower_id == borrower.actor_id
        assert reservation.note == "demo"
        assert reservation.parent_reservation_id is None

    def test_naive_times_are_calendar_local(self, workflow, asset_id, borrower):
        result = workflow.create_reservation(
            asset_id, borrower, datetime(2025, 3, 10, 9), datetime(2025, 3, 10, 18),
        )
        assert result.ok
        assert result.created[0].start == at(10, 9)

    def test_recurring_instances_share_parent(self, workflow, asset_id, borrower, session_factory):
        rule = RecurrenceRule(
            type=RecurrenceType.WEEKLY, end_date=date(2025, 1, 27), days_of_week=(1,),
        )
        result = workflow.create_reservation(
            asset_id, borrower, at(6, 9, month=1), at(6, 18, month=1), recurrence=rule,
        )

        assert result.ok
        assert [r.start.day for r in result.created] == [6, 13, 20, 27]
        parent, *children = result.created
        assert parent.parent_reservation_id is None
        assert not parent.is_recurring_instance
        assert all(c.parent_reservation_id == parent.reservation_id for c in children)
        assert all(c.is_recurring_instance for c in children)
        assert parent.recurrence == rule

        with session_factory() as session:
            instances = ReservationSelector(session).list_instances(parent.reservation_id)
        assert len(instances) == 3

    def test_overlapping_request_rejected(self, workflow, room_id, borrower, approved_room_booking):
        result = workflow.create_reservation(room_id, borrower, at(11, 9), at(13, 18))

        assert not result.ok
        assert result.error_kind == ErrorKind.CONFLICT
        assert result.reason.startswith("conflict:")
        assert result.rejected_instance_index == 0
        assert result.created == ()

    def test_following_days_accepted(self, workflow, room_id, borrower, approved_room_booking):
        assert workflow.create_reservation(room_id, borrower, at(13, 9), at(15, 18)).ok

    def test_pending_reservation_also_blocks(self, workflow, asset_id, borrower):
        assert workflow.create_reservation(asset_id, borrower, at(10, 9), at(10, 12)).ok
        result = workflow.create_reservation(asset_id, borrower, at(10, 14), at(10, 16))
        assert result.error_kind == ErrorKind.CONFLICT

    def test_rejected_reservation_frees_the_days(self, workflow, asset_id, borrower, manager):
        created = workflow.create_reservation(asset_id, borrower, at(10, 9), at(10, 12))
        workflow.change_reservation_status(created.parent_reservation_id, "rejected", manager)
        assert workflow.create_reservation(asset_id, borrower, at(10, 14), at(10, 16)).ok

    def test_recurring_conflict_creates_nothing(
        self, workflow, asset_id, borrower, manager, session_factory,
    ):
        blocker = workflow.create_reservation(asset_id, borrower, at(20, 9, 1), at(20, 10, 1))
        assert blocker.ok

        rule = RecurrenceRule(
            type=RecurrenceType.WEEKLY, end_date=date(2025, 1, 27), days_of_week=(1,),
        )
        result = workflow.create_reservation(
            asset_id, borrower, at(6, 9, 1), at(6, 18, 1), recurrence=rule,
        )

        assert result.error_kind == ErrorKind.CONFLICT
        assert result.rejected_instance_index == 2
        assert reservation_count(session_factory, asset_id) == 1

    def test_batch_overlapping_itself_rejected(self, workflow, asset_id, borrower):
        # Two-week windows repeated weekly collide with each other.
        rule = RecurrenceRule(type=RecurrenceType.WEEKLY, end_date=date(2025, 1, 20))
        result = workflow.create_reservation(
            asset_id, borrower, at(6, 9, 1), at(20, 9, 1), recurrence=rule,
        )
        assert result.error_kind == ErrorKind.CONFLICT
        assert result.rejected_instance_index == 1

    def test_empty_recurrence_rejected(self, workflow, asset_id, borrower):
        rule = RecurrenceRule(type=RecurrenceType.WEEKLY, end_date=date(2025, 3, 1))
        result = workflow.create_reservation(
            asset_id, borrower, at(10, 9), at(10, 18), recurrence=rule,
        )
        assert result.error_kind == ErrorKind.VALIDATION
        assert "Nothing to schedule" in result.reason

    def test_recurrence_cap(self, session_factory, deterministic_clock, outbox, asset_id, borrower):
        capped = ReservationWorkflow(
            session_factory, EngineSettings(max_recurrence_instances=3), deterministic_clock, outbox,
        )
        rule = RecurrenceRule(type=RecurrenceType.WEEKLY, end_date=date(2025, 12, 31))
        result = capped.create_reservation(asset_id, borrower, at(6, 9, 1), at(6, 10, 1), recurrence=rule)
        assert result.error_kind == ErrorKind.VALIDATION

    def test_recurrence_end_date_in_calendar_zone(
        self, session_factory, deterministic_clock, outbox, asset_id, borrower,
    ):
        seoul = ReservationWorkflow(
            session_factory, EngineSettings(calendar_timezone="Asia/Seoul"), deterministic_clock, outbox,
        )
        # Monday 23:30 UTC is Tuesday morning in Seoul; the next Tuesday is past Mar 10.
        start = datetime(2025, 3, 3, 23, 30, tzinfo=UTC)
        rule = RecurrenceRule(type=RecurrenceType.WEEKLY, end_date=date(2025, 3, 10))

        result = seoul.create_reservation(
            asset_id, borrower, start, start + timedelta(hours=1), recurrence=rule,
        )

        assert result.ok, result.reason
        assert [r.start for r in result.created] == [start]

    def test_inverted_range_rejected(self, workflow, asset_id, borrower):
        result = workflow.create_reservation(asset_id, borrower, at(12, 9), at(10, 9))
        assert result.error_kind == ErrorKind.VALIDATION

    def test_unknown_resource(self, workflow, borrower):
        result = workflow.create_reservation(uuid4(), borrower, at(10, 9), at(10, 18))
        assert result.error_kind == ErrorKind.VALIDATION

    def test_borrower_from_other_organization(self, workflow, asset_id, make_organization):
        outsider = Principal(uuid4(), Role.ADMIN, make_organization("Other"))
        result = workflow.create_reservation(asset_id, outsider, at(10, 9), at(10, 18))
        assert result.error_kind == ErrorKind.PERMISSION

    @pytest.mark.parametrize(
        "status", [ResourceStatus.REPAIR, ResourceStatus.LOST, ResourceStatus.RETIRED],
    )
    def test_unavailable_resource_rejected(
        self, workflow, make_resource, organization_id, borrower, status,
    ):
        resource_id = make_resource(organization_id, status=status)
        result = workflow.create_reservation(resource_id, borrower, at(10, 9), at(10, 18))
        assert result.error_kind == ErrorKind.VALIDATION

    def test_rented_asset_refused(
        self, workflow, asset_id, borrower, approved_reservation, session_factory,
    ):
        result = workflow.create_reservation(asset_id, borrower, at(20, 9), at(21, 18))

        assert result.error_kind == ErrorKind.VALIDATION
        assert "rented" in result.reason
        assert reservation_count(session_factory, asset_id) == 1

    def test_rented_vehicle_refused(
        self, workflow, make_resource, organization_id, borrower, manager,
    ):
        van = make_resource(organization_id, kind=ResourceKind.VEHICLE, name="Van")
        created = workflow.create_reservation(van, borrower, at(10, 9), at(12, 18))
        workflow.change_reservation_status(created.parent_reservation_id, "approved", manager)

        result = workflow.create_reservation(van, borrower, at(20, 9), at(21, 18))
        assert result.error_kind == ErrorKind.VALIDATION

    def test_asset_reservable_again_after_return(
        self, workflow, asset_id, borrower, manager, approved_reservation,
    ):
        workflow.change_reservation_status(approved_reservation, "returned", manager)
        assert workflow.create_reservation(asset_id, borrower, at(20, 9), at(21, 18)).ok

    @pytest.mark.parametrize(
        "status", [ResourceStatus.RENTED, ResourceStatus.REPAIR, ResourceStatus.LOST],
    )
    def test_space_takes_bookings_in_any_status(
        self, workflow, make_resource, organization_id, borrower, status,
    ):
        room = make_resource(organization_id, kind=ResourceKind.SPACE, status=status)
        assert workflow.create_reservation(room, borrower, at(10, 9), at(10, 18)).ok

    def test_rented_space_still_reservable(
        self, workflow, room_id, borrower, approved_room_booking,
    ):
        assert workflow.create_reservation(room_id, borrower, at(20, 9), at(20, 18)).ok

    def test_non_loanable_rejected(self, workflow, make_resource, organization_id, borrower):
        resource_id = make_resource(organization_id, loanable=False)
        result = workflow.create_reservation(resource_id, borrower, at(10, 9), at(10, 18))
        assert result.error_kind == ErrorKind.VALIDATION

    def test_usability_deadline(self, workflow, make_resource, organization_id, borrower):
        resource_id = make_resource(organization_id, usable_until=date(2025, 3, 11))
        assert workflow.create_reservation(resource_id, borrower, at(10, 9), at(11, 18)).ok
        late = workflow.create_reservation(resource_id, borrower, at(12, 9), at(12, 18))
        assert late.error_kind == ErrorKind.VALIDATION

    def test_notification_per_resource_kind(
        self, workflow, make_resource, organization_id, borrower, outbox,
    ):
        vehicle_id = make_resource(organization_id, kind=ResourceKind.VEHICLE, name="Van")
        workflow.create_reservation(vehicle_id, borrower, at(10, 9), at(10, 18))

        (notification,) = outbox.sent
        assert notification.type.value == "vehicle_reservation_created"
        assert notification.user_id == borrower.actor_id
        assert notification.payload["resource_name"] == "Van"

    def test_audit_entry_written(self, workflow, asset_id, borrower, session_factory):
        result = workflow.create_reservation(asset_id, borrower, at(10, 9), at(10, 18))
        assert audit_actions(session_factory, result.parent_reservation_id) == (
            AuditAction.RESERVATION_CREATED,
        )

    def test_rejection_is_logged_with_kind(self, workflow, asset_id, borrower, captured_logs):
        workflow.create_reservation(asset_id, borrower, at(12, 9), at(10, 9))
        traces = [
            r for r in captured_logs()
            if r["message"] == "workflow_operation" and r["operation"] == "create_reservation"
        ]
        assert traces[-1]["outcome"] == "rejected"
        assert traces[-1]["reason"].startswith("validation:")


# ---------------------------------------------------------------------------
# change_reservation_status
# ---------------------------------------------------------------------------


class TestChangeReservationStatus:

    def test_approve_rents_resource(
        self, workflow, asset_id, borrower, manager, session_factory, deterministic_clock,
    ):
        created = workflow.create_reservation(asset_id, borrower, at(10, 9), at(10, 18))
        result = workflow.change_reservation_status(created.parent_reservation_id, "approved", manager)

        assert result.ok
        assert result.state == ReservationState.APPROVED
        assert result.resource_status == ResourceStatus.RENTED
        with session_factory() as session:
            resource = ResourceSelector(session).get(asset_id)
        assert resource.status == ResourceStatus.RENTED
        assert resource.last_used_at == deterministic_clock.now_utc()

    def test_reject_leaves_resource_alone(self, workflow, asset_id, borrower, manager, session_factory):
        created = workflow.create_reservation(asset_id, borrower, at(10, 9), at(10, 18))
        result = workflow.change_reservation_status(created.parent_reservation_id, "rejected", manager)

        assert result.ok
        assert result.state == ReservationState.REJECTED
        assert resource_status(session_factory, asset_id) == ResourceStatus.AVAILABLE

    def test_return_frees_resource(self, workflow, asset_id, manager, approved_reservation, session_factory):
        result = workflow.change_reservation_status(approved_reservation, "returned", manager)

        assert result.ok
        assert result.state == ReservationState.RETURNED
        assert result.reservation.return_verified_by == manager.actor_id
        assert resource_status(session_factory, asset_id) == ResourceStatus.AVAILABLE

    def test_resource_stays_rented_while_another_approval_holds(
        self, workflow, asset_id, borrower, manager, session_factory,
    ):
        first = workflow.create_reservation(asset_id, borrower, at(10, 9), at(12, 18))
        second = workflow.create_reservation(asset_id, borrower, at(20, 9), at(20, 18))
        workflow.change_reservation_status(first.parent_reservation_id, "approved", manager)
        workflow.change_reservation_status(second.parent_reservation_id, "approved", manager)

        workflow.change_reservation_status(first.parent_reservation_id, "returned", manager)
        assert resource_status(session_factory, asset_id) == ResourceStatus.RENTED

    @pytest.mark.parametrize("policy_role", list(Role))
    def test_plain_user_never_decides(
        self, workflow, asset_id, borrower, make_policy, organization_id, policy_role,
    ):
        make_policy(organization_id, ResourceKind.ASSET, policy_role)
        created = workflow.create_reservation(asset_id, borrower, at(10, 9), at(10, 18))

        result = workflow.change_reservation_status(created.parent_reservation_id, "approved", borrower)

        assert not result.ok
        assert result.error_kind == ErrorKind.PERMISSION

    def test_admin_policy_rejects_manager(
        self, workflow, make_resource, make_policy, organization_id, borrower, manager, admin,
    ):
        resource_id = make_resource(organization_id, department="Design")
        make_policy(organization_id, ResourceKind.ASSET, Role.ADMIN, department="Design")
        created = workflow.create_reservation(resource_id, borrower, at(10, 9), at(10, 18))

        denied = workflow.change_reservation_status(created.parent_reservation_id, "approved", manager)
        assert denied.error_kind == ErrorKind.PERMISSION
        assert workflow.change_reservation_status(created.parent_reservation_id, "approved", admin).ok

    def test_manager_of_other_organization(self, workflow, asset_id, borrower, make_organization):
        created = workflow.create_reservation(asset_id, borrower, at(10, 9), at(10, 18))
        outsider = Principal(uuid4(), Role.ADMIN, make_organization("Other"))
        result = workflow.change_reservation_status(created.parent_reservation_id, "approved", outsider)
        assert result.error_kind == ErrorKind.PERMISSION

    @pytest.mark.parametrize("final", ["returned", "rejected"])
    @pytest.mark.parametrize("target", ["approved", "rejected", "returned"])
    def test_terminal_reservations_are_final(
        self, workflow, asset_id, borrower, manager, final, target,
    ):
        created = workflow.create_reservation(asset_id, borrower, at(10, 9), at(10, 18))
        reservation_id = created.parent_reservation_id
        if final == "returned":
            workflow.change_reservation_status(reservation_id, "approved", manager)
        assert workflow.change_reservation_status(reservation_id, final, manager).ok

        result = workflow.change_reservation_status(reservation_id, target, manager)
        assert not result.ok
        assert result.error_kind == ErrorKind.VALIDATION

    def test_cannot_return_pending(self, workflow, asset_id, borrower, manager):
        created = workflow.create_reservation(asset_id, borrower, at(10, 9), at(10, 18))
        result = workflow.change_reservation_status(created.parent_reservation_id, "returned", manager)
        assert result.error_kind == ErrorKind.VALIDATION

    def test_unknown_status_value(self, workflow, approved_reservation, manager):
        result = workflow.change_reservation_status(approved_reservation, "archived", manager)
        assert result.error_kind == ErrorKind.VALIDATION
        assert "archived" in result.reason

    def test_unknown_reservation(self, workflow, manager):
        result = workflow.change_reservation_status(uuid4(), "approved", manager)
        assert result.error_kind == ErrorKind.VALIDATION

    def test_borrower_notified_and_audited(
        self, workflow, asset_id, borrower, manager, outbox, session_factory,
    ):
        created = workflow.create_reservation(asset_id, borrower, at(10, 9), at(10, 18))
        reservation_id = created.parent_reservation_id
        workflow.change_reservation_status(reservation_id, "approved", manager)

        notification = outbox.sent[-1]
        assert notification.type.value == "reservation_status_changed"
        assert notification.user_id == borrower.actor_id
        assert notification.payload["status"] == "approved"
        assert audit_actions(session_factory, reservation_id) == (
            AuditAction.RESERVATION_CREATED,
            AuditAction.RESERVATION_STATUS_UPDATE,
        )

    def test_required_role_helpers(
        self, workflow, make_resource, make_policy, organization_id,
    ):
        resource_id = make_resource(organization_id, department="Design")
        assert workflow.required_role_for_resource(resource_id) == Role.MANAGER
        make_policy(organization_id, ResourceKind.ASSET, Role.ADMIN, department="Design")
        assert workflow.required_role_for_resource(resource_id) == Role.ADMIN
        assert workflow.resolve_required_role(
            "asset", organization_id, "department", "Design",
        ) == Role.ADMIN
        assert workflow.resolve_required_role(
            "asset", organization_id, "department", "Finance",
        ) == Role.MANAGER

    def test_required_role_for_unknown_scope(self, workflow, organization_id):
        from reservation_kernel.exceptions import InvalidChoiceError

        with pytest.raises(InvalidChoiceError):
            workflow.resolve_required_role("boat", organization_id, "organization", None)

    def test_multi_day_reservation_blocks_each_day(
        self, workflow, room_id, borrower, approved_room_booking,
    ):
        start = at(1, 9)
        for offset in range(9, 12):
            attempt = workflow.create_reservation(
                room_id, borrower, start + timedelta(days=offset), start + timedelta(days=offset, hours=1),
            )
            assert attempt.error_kind == ErrorKind.CONFLICT
