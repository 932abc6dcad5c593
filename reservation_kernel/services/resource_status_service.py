"""
ResourceStatusService -- resource status side effects and overrides.

Responsibility:
    Applies the resource-side effects of reservation transitions (occupy on
    approval, recompute on return), administrative status overrides, and
    ownership changes from approved transfer requests.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the workflow
    orchestrator inside the same transaction as the reservation or
    transfer transition that causes the change.

Invariants enforced:
    - A returned reservation frees the resource only when no other approved
      reservation still holds it, and only if it was ``rented``; a resource
      put in ``repair`` meanwhile stays in ``repair``.
    - ``retired`` is accepted for assets only.
    - Vehicles carry the last verified odometer reading forward.

Failure modes:
    - ResourceNotFoundError: unknown resource id.
    - InvalidResourceStatusError: status not valid for the resource kind.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select

from reservation_kernel.domain.clock import Clock, SystemClock
from reservation_kernel.domain.reservation import ReservationStatus
from reservation_kernel.domain.resource import (
    VALID_STATUSES_BY_KIND,
    OwnerScope,
    ResourceInfo,
    ResourceKind,
    ResourceStatus,
)
from reservation_kernel.exceptions import (
    InvalidResourceStatusError,
    ResourceNotFoundError,
)
from reservation_kernel.logging_config import get_logger
from reservation_kernel.models.reservation import ReservationModel
from reservation_kernel.models.resource import ResourceModel
from reservation_kernel.services.base import BaseService

logger = get_logger("services.resource_status")


class ResourceStatusService(BaseService[ResourceModel]):

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def lock(self, resource_id: UUID) -> ResourceModel:
        """
        Load the resource row ``FOR UPDATE``.

        Serializes concurrent creators and deciders of one resource on
        PostgreSQL.  SQLite ignores the clause; its writers are serialized
        by the database lock.
        """
        model = self.session.get(
            ResourceModel, resource_id, with_for_update=True, populate_existing=True,
        )
        if model is None:
            raise ResourceNotFoundError(str(resource_id))
        return model

    def occupy(self, resource_id: UUID) -> ResourceInfo:
        """Reservation approved: mark the resource rented."""
        model = self.lock(resource_id)
        previous = model.status
        model.status = ResourceStatus.RENTED.value
        if model.kind == ResourceKind.ASSET.value:
            model.last_used_at = self._clock.now_utc()
        self.session.flush()

        logger.info(
            "resource_occupied",
            extra={"resource_id": str(resource_id), "previous_status": previous},
        )
        return model.to_dto()

    def release(
        self,
        resource_id: UUID,
        odometer_reading: int | None = None,
    ) -> ResourceInfo:
        """
        Reservation returned: recompute the resource status.

        Postconditions:
            - ``available`` iff the resource was ``rented`` and no approved
              reservation remains; otherwise unchanged.
            - Vehicles: ``current_odometer`` takes ``odometer_reading``
              when given.
        """
        model = self.lock(resource_id)
        still_holding = self.session.execute(
            select(func.count())
            .select_from(ReservationModel)
            .where(
                ReservationModel.resource_id == resource_id,
                ReservationModel.status == ReservationStatus.APPROVED.value,
            )
        ).scalar_one()

        previous = model.status
        if still_holding == 0 and model.status == ResourceStatus.RENTED.value:
            model.status = ResourceStatus.AVAILABLE.value
        if model.kind == ResourceKind.VEHICLE.value and odometer_reading is not None:
            model.current_odometer = odometer_reading
        self.session.flush()

        logger.info(
            "resource_released",
            extra={
                "resource_id": str(resource_id),
                "previous_status": previous,
                "status": model.status,
                "still_holding": still_holding,
            },
        )
        return model.to_dto()

    def override_status(
        self, resource_id: UUID, status: ResourceStatus | str,
    ) -> tuple[ResourceStatus, ResourceInfo]:
        """
        Set a resource status directly (administrative override).

        Returns:
            ``(previous_status, updated_resource)``.

        Raises:
            InvalidResourceStatusError: status unknown or not valid for the kind.
        """
        model = self.lock(resource_id)
        kind = ResourceKind(model.kind)
        try:
            target = ResourceStatus(status)
        except ValueError:
            raise InvalidResourceStatusError(kind.value, str(status)) from None
        if target not in VALID_STATUSES_BY_KIND[kind]:
            raise InvalidResourceStatusError(kind.value, target.value)

        previous = ResourceStatus(model.status)
        model.status = target.value
        self.session.flush()

        logger.info(
            "resource_status_overridden",
            extra={
                "resource_id": str(resource_id),
                "previous_status": previous.value,
                "status": target.value,
            },
        )
        return previous, model.to_dto()

    def transfer_ownership(self, asset_id: UUID, to_department: str) -> ResourceInfo:
        """Approved transfer: the asset becomes owned by ``to_department``."""
        model = self.lock(asset_id)
        model.owner_scope = OwnerScope.DEPARTMENT.value
        model.owner_department = to_department
        self.session.flush()

        logger.info(
            "resource_ownership_transferred",
            extra={"resource_id": str(asset_id), "to_department": to_department},
        )
        return model.to_dto()
