"""
Module: reservation_kernel.selectors.reservation_selector
Responsibility: Read paths over reservations: single lookup, the blocking
    ranges fed to the availability checker, and borrower/resource listings.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, select

from reservation_kernel.domain.reservation import (
    BLOCKING_STATUSES,
    BookedRange,
    ReservationRecord,
    ReservationStatus,
    ReturnStatus,
)
from reservation_kernel.exceptions import ReservationNotFoundError
from reservation_kernel.models.reservation import ReservationModel
from reservation_kernel.selectors.base import BaseSelector


class ReservationSelector(BaseSelector):
    """Read-only reservation queries."""

    def get(self, reservation_id: UUID) -> ReservationRecord:
        """
        Raises:
            ReservationNotFoundError: If no reservation has this id.
        """
        model = self.session.get(ReservationModel, reservation_id)
        if model is None:
            raise ReservationNotFoundError(str(reservation_id))
        return model.to_dto()

    def list_blocking(
        self,
        resource_id: UUID,
        statuses: Iterable[ReservationStatus] = BLOCKING_STATUSES,
    ) -> list[BookedRange]:
        """Bookings of ``resource_id`` whose status is in ``statuses``, by start."""
        status_values = [ReservationStatus(s).value for s in statuses]
        rows = self.session.execute(
            select(
                ReservationModel.id,
                ReservationModel.status,
                ReservationModel.block_start,
                ReservationModel.block_end,
            )
            .where(
                ReservationModel.resource_id == resource_id,
                ReservationModel.status.in_(status_values),
            )
            .order_by(ReservationModel.block_start)
        ).all()
        return [
            BookedRange(
                reservation_id=row.id,
                status=ReservationStatus(row.status),
                block_start=row.block_start,
                block_end=row.block_end,
            )
            for row in rows
        ]

    def count_holding(self, resource_id: UUID) -> int:
        """Number of approved (not yet returned) reservations on the resource."""
        return self.session.execute(
            select(func.count())
            .select_from(ReservationModel)
            .where(
                ReservationModel.resource_id == resource_id,
                ReservationModel.status == ReservationStatus.APPROVED.value,
            )
        ).scalar_one()

    def list_by_borrower(self, borrower_id: UUID) -> list[ReservationRecord]:
        models = self.session.execute(
            select(ReservationModel)
            .where(ReservationModel.borrower_id == borrower_id)
            .order_by(ReservationModel.start_date)
        ).scalars()
        return [m.to_dto() for m in models]

    def list_by_resource(
        self,
        resource_id: UUID,
        statuses: Iterable[ReservationStatus] | None = None,
    ) -> list[ReservationRecord]:
        stmt = select(ReservationModel).where(ReservationModel.resource_id == resource_id)
        if statuses is not None:
            stmt = stmt.where(
                ReservationModel.status.in_([ReservationStatus(s).value for s in statuses])
            )
        models = self.session.execute(stmt.order_by(ReservationModel.start_date)).scalars()
        return [m.to_dto() for m in models]

    def list_instances(self, parent_reservation_id: UUID) -> list[ReservationRecord]:
        """The parent of a recurring batch followed by its instances, by start."""
        models = self.session.execute(
            select(ReservationModel)
            .where(
                (ReservationModel.id == parent_reservation_id)
                | (ReservationModel.parent_reservation_id == parent_reservation_id)
            )
            .order_by(ReservationModel.start_date)
        ).scalars()
        return [m.to_dto() for m in models]

    def list_awaiting_verification(self, organization_id: UUID) -> list[ReservationRecord]:
        """Returns submitted by borrowers that a verifier has not decided yet."""
        models = self.session.execute(
            select(ReservationModel)
            .where(
                ReservationModel.organization_id == organization_id,
                ReservationModel.status == ReservationStatus.APPROVED.value,
                ReservationModel.return_status == ReturnStatus.RETURNED.value,
            )
            .order_by(ReservationModel.updated_at)
        ).scalars()
        return [m.to_dto() for m in models]
