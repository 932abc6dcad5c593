"""
Module: reservation_kernel.models.reservation
Responsibility: ORM persistence for reservations, including recurrence
    metadata, return-verification artifacts and vehicle odometer readings.

Architecture position: Kernel > Models.  May import from db/base.py,
    domain/ (lazily, for DTO conversion) and exceptions.

Invariants enforced:
    - Only the six legal (status, return_status) pairs are storable
      (check constraint mirrors ``ReservationState``).
    - ``block_end > block_start`` and ``end_date > start_date``.
    - No overlap among pending/approved reservations of one resource:
      ORM ``before_insert`` listener on every dialect, GiST exclusion
      constraint on PostgreSQL (db/constraints.py).

Failure modes:
    - ReservationConflictError from the before_insert listener.
    - IntegrityError from the exclusion constraint on a racing insert.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    event,
    select,
)
from sqlalchemy.orm import Mapped, mapped_column

from reservation_kernel.db.base import Base, UUIDString
from reservation_kernel.exceptions import ReservationConflictError

if TYPE_CHECKING:
    from reservation_kernel.domain.reservation import ReservationRecord

_BLOCKING_STATUS_VALUES = ("pending", "approved")


class ReservationModel(Base):
    """Persistent reservation.

    Contract:
        ``status``/``return_status`` are only written through
        ReservationService, which applies a conditional UPDATE guarded by
        the expected prior pair.

    Guarantees:
        - ``block_start``/``block_end`` is the half-open interval the
          reservation occupies on the resource calendar.
        - The first instance of a recurring batch has
          ``parent_reservation_id`` None; the others point at it.
    """

    __tablename__ = "reservations"

    __table_args__ = (
        CheckConstraint(
            "(status = 'pending' AND return_status = 'pending') OR "
            "(status = 'approved' AND return_status IN ('pending', 'returned', 'rejected')) OR "
            "(status = 'returned' AND return_status = 'verified') OR "
            "(status = 'rejected' AND return_status = 'pending')",
            name="ck_reservations_valid_state",
        ),
        CheckConstraint("end_date > start_date", name="ck_reservations_range"),
        CheckConstraint("block_end > block_start", name="ck_reservations_block_range"),
        CheckConstraint(
            "recurrence_type IN ('none', 'weekly', 'monthly')",
            name="ck_reservations_recurrence_type",
        ),
        Index(
            "ix_reservations_resource_blocking",
            "resource_id", "status", "block_start", "block_end",
        ),
        Index("ix_reservations_borrower", "borrower_id", "start_date"),
        Index("ix_reservations_parent", "parent_reservation_id"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("organizations.id"), nullable=False,
    )
    resource_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("resources.id"), nullable=False,
    )
    resource_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    borrower_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    start_date: Mapped[datetime] = mapped_column(nullable=False)
    end_date: Mapped[datetime] = mapped_column(nullable=False)
    block_start: Mapped[datetime] = mapped_column(nullable=False)
    block_end: Mapped[datetime] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    return_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending",
    )
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    recurrence_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="none",
    )
    recurrence_interval: Mapped[int] = mapped_column(nullable=False, default=1)
    recurrence_end_date: Mapped[date | None] = mapped_column(nullable=True)
    recurrence_days_of_week: Mapped[list | None] = mapped_column(JSON, nullable=True)
    recurrence_day_of_month: Mapped[int | None] = mapped_column(nullable=True)
    parent_reservation_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("reservations.id"), nullable=True,
    )
    is_recurring_instance: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )

    return_images: Mapped[list | None] = mapped_column(JSON, nullable=True)
    return_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    return_condition: Mapped[str | None] = mapped_column(String(20), nullable=True)
    return_verified_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    return_verified_at: Mapped[datetime | None] = mapped_column(nullable=True)

    start_odometer_reading: Mapped[int | None] = mapped_column(nullable=True)
    odometer_reading: Mapped[int | None] = mapped_column(nullable=True)
    distance_traveled: Mapped[int | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<Reservation {self.id} resource={self.resource_id} "
            f"status={self.status}/{self.return_status}>"
        )

    def to_dto(self) -> ReservationRecord:
        """Convert ORM model to frozen domain DTO."""
        from reservation_kernel.domain.recurrence import RecurrenceRule, RecurrenceType
        from reservation_kernel.domain.reservation import (
            ReservationRecord as ReservationRecordDTO,
            ReservationState,
            ReturnCondition,
        )
        from reservation_kernel.domain.resource import ResourceKind

        recurrence = None
        if self.recurrence_type and self.recurrence_type != RecurrenceType.NONE.value:
            recurrence = RecurrenceRule(
                type=RecurrenceType(self.recurrence_type),
                interval=self.recurrence_interval,
                end_date=self.recurrence_end_date,
                days_of_week=tuple(self.recurrence_days_of_week or ()),
                day_of_month=self.recurrence_day_of_month,
            )

        return ReservationRecordDTO(
            reservation_id=self.id,
            organization_id=self.organization_id,
            resource_id=self.resource_id,
            resource_kind=ResourceKind(self.resource_kind),
            borrower_id=self.borrower_id,
            start=self.start_date,
            end=self.end_date,
            state=ReservationState.from_columns(self.status, self.return_status),
            note=self.note,
            recurrence=recurrence,
            parent_reservation_id=self.parent_reservation_id,
            is_recurring_instance=self.is_recurring_instance,
            return_images=tuple(self.return_images or ()),
            return_note=self.return_note,
            return_condition=(
                ReturnCondition(self.return_condition) if self.return_condition else None
            ),
            return_verified_by=self.return_verified_by,
            return_verified_at=self.return_verified_at,
            start_odometer_reading=self.start_odometer_reading,
            odometer_reading=self.odometer_reading,
            distance_traveled=self.distance_traveled,
        )


@event.listens_for(ReservationModel, "before_insert")
def _reject_overlapping_insert(mapper, connection, target: ReservationModel) -> None:
    """Re-check overlap on the inserting connection, inside its transaction."""
    if target.status not in _BLOCKING_STATUS_VALUES:
        return

    table = ReservationModel.__table__
    existing_id = connection.execute(
        select(table.c.id)
        .where(
            table.c.resource_id == target.resource_id,
            table.c.status.in_(_BLOCKING_STATUS_VALUES),
            table.c.block_start < target.block_end,
            table.c.block_end > target.block_start,
        )
        .limit(1)
    ).scalar_one_or_none()

    if existing_id is not None:
        raise ReservationConflictError(
            str(target.resource_id),
            target.start_date.isoformat(),
            target.end_date.isoformat(),
            conflicting_reservation_id=str(existing_id),
        )
