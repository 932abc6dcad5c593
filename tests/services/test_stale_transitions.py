"""
Conditional writes.

Transitions only apply when the row is still in the state the decision was
planned against.  A concurrent decision that already moved the row turns
the later one into ``stale_state``.
"""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from reservation_kernel.domain.reservation import ReservationState
from reservation_kernel.domain.resource import ResourceStatus
from reservation_kernel.domain.roles import Principal, Role
from reservation_kernel.domain.transfer import TransferStatus
from reservation_kernel.exceptions import ErrorKind, StaleStateError
from reservation_kernel.selectors.reservation_selector import ReservationSelector
from reservation_kernel.services.reservation_service import ReservationService
from reservation_kernel.services.transfer_service import TransferService

UTC = timezone.utc


@pytest.fixture
def pending_id(workflow, asset_id, borrower):
    result = workflow.create_reservation(
        asset_id, borrower,
        datetime(2025, 3, 10, 9, tzinfo=UTC), datetime(2025, 3, 10, 17, tzinfo=UTC),
    )
    return result.parent_reservation_id


class TestReservationService:

    def test_wrong_prior_state_is_stale(self, session, pending_id, deterministic_clock):
        service = ReservationService(session, deterministic_clock)
        with pytest.raises(StaleStateError) as exc_info:
            service.apply_transition(
                pending_id, ReservationState.APPROVED, ReservationState.RETURNED,
            )
        assert exc_info.value.expected_state == "approved"

    def test_second_identical_transition_is_stale(self, session, pending_id, deterministic_clock):
        service = ReservationService(session, deterministic_clock)
        service.apply_transition(pending_id, ReservationState.PENDING, ReservationState.APPROVED)
        with pytest.raises(StaleStateError):
            service.apply_transition(
                pending_id, ReservationState.PENDING, ReservationState.REJECTED,
            )

    def test_writes_both_columns(self, session, pending_id, deterministic_clock):
        updated = ReservationService(session, deterministic_clock).apply_transition(
            pending_id, ReservationState.PENDING, ReservationState.APPROVED,
        )
        assert updated.state == ReservationState.APPROVED


class TestTransferService:

    def test_resolving_twice_is_stale(
        self, session, make_resource, organization_id, deterministic_clock,
    ):
        asset = make_resource(organization_id, department="Design", status=ResourceStatus.RETIRED)
        service = TransferService(session, deterministic_clock)
        request = service.create(organization_id, asset, uuid4(), "Design", "Finance")
        decider = uuid4()

        service.resolve(request.request_id, TransferStatus.APPROVED, decider)
        with pytest.raises(StaleStateError):
            service.resolve(request.request_id, TransferStatus.REJECTED, decider)


class TestRacingDecisions:
    """Two managers decide on the same pending reservation."""

    def test_loser_gets_stale_state(
        self, workflow, pending_id, manager, organization_id, session_factory, monkeypatch,
    ):
        with session_factory() as session:
            snapshot = ReservationSelector(session).get(pending_id)

        first = workflow.change_reservation_status(pending_id, "approved", manager)
        assert first.ok

        # Second manager read the row before the first decision committed.
        monkeypatch.setattr(ReservationSelector, "get", lambda self, reservation_id: snapshot)
        rival = Principal(uuid4(), Role.MANAGER, organization_id)
        second = workflow.change_reservation_status(pending_id, "rejected", rival)

        assert second.error_kind == ErrorKind.STALE_STATE
        assert second.reason.startswith("stale_state:")

    def test_stale_loser_leaves_winner_intact(
        self, workflow, pending_id, manager, organization_id, session_factory, monkeypatch,
    ):
        with session_factory() as session:
            snapshot = ReservationSelector(session).get(pending_id)
        workflow.change_reservation_status(pending_id, "approved", manager)

        monkeypatch.setattr(ReservationSelector, "get", lambda self, reservation_id: snapshot)
        workflow.change_reservation_status(
            pending_id, "rejected", Principal(uuid4(), Role.MANAGER, organization_id),
        )
        monkeypatch.undo()

        with session_factory() as session:
            assert ReservationSelector(session).get(pending_id).state == ReservationState.APPROVED
