"""
TransferService -- persistence of asset transfer requests.

Responsibility:
    Creates pending transfer requests and moves them to approved, rejected
    or cancelled with a conditional UPDATE on ``status = 'pending'``.

Architecture position:
    Kernel > Services -- imperative shell.  Eligibility and authority are
    decided by ``reservation_engines`` before this service is called.
    Ownership changes on approval are applied by ResourceStatusService in
    the same transaction.

Invariants enforced:
    - One pending request per (asset, requester), checked here and by the
      partial unique index ``ix_transfer_requests_pending_unique``.
    - Only pending requests move; a request resolved concurrently yields
      StaleStateError.

Failure modes:
    - DuplicatePendingTransferError, StaleStateError,
      TransferRequestNotFoundError, NotRequesterError.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from reservation_kernel.domain.clock import Clock, SystemClock
from reservation_kernel.domain.transfer import TransferRequestRecord, TransferStatus
from reservation_kernel.exceptions import (
    DuplicatePendingTransferError,
    NotRequesterError,
    StaleStateError,
    TransferRequestNotFoundError,
)
from reservation_kernel.logging_config import get_logger
from reservation_kernel.models.transfer_request import TransferRequestModel
from reservation_kernel.services.base import BaseService

logger = get_logger("services.transfer")


class TransferService(BaseService[TransferRequestModel]):

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def _pending_for(self, asset_id: UUID, requester_id: UUID) -> TransferRequestModel | None:
        return self.session.execute(
            select(TransferRequestModel).where(
                TransferRequestModel.asset_id == asset_id,
                TransferRequestModel.requester_id == requester_id,
                TransferRequestModel.status == TransferStatus.PENDING.value,
            )
        ).scalar_one_or_none()

    def create(
        self,
        organization_id: UUID,
        asset_id: UUID,
        requester_id: UUID,
        from_department: str,
        to_department: str,
        note: str | None = None,
    ) -> TransferRequestRecord:
        """
        Raises:
            DuplicatePendingTransferError: requester already has a pending
                request for the asset.
        """
        if self._pending_for(asset_id, requester_id) is not None:
            raise DuplicatePendingTransferError(str(asset_id), str(requester_id))

        model = TransferRequestModel(
            organization_id=organization_id,
            asset_id=asset_id,
            requester_id=requester_id,
            from_department=from_department,
            to_department=to_department,
            status=TransferStatus.PENDING.value,
            note=note,
            created_at=self._clock.now_utc(),
        )
        self.session.add(model)
        try:
            self.session.flush()
        except IntegrityError as exc:
            # Lost the race against a concurrent create for the same pair.
            raise DuplicatePendingTransferError(str(asset_id), str(requester_id)) from exc

        logger.info(
            "transfer_request_created",
            extra={
                "request_id": str(model.id),
                "asset_id": str(asset_id),
                "from_department": from_department,
                "to_department": to_department,
            },
        )
        return model.to_dto()

    def resolve(
        self,
        request_id: UUID,
        target: TransferStatus,
        actor_id: UUID,
    ) -> TransferRequestRecord:
        """
        Move a pending request to ``target``.

        Raises:
            StaleStateError: The request is no longer pending.
        """
        result = self.session.execute(
            update(TransferRequestModel)
            .where(
                TransferRequestModel.id == request_id,
                TransferRequestModel.status == TransferStatus.PENDING.value,
            )
            .values(
                status=TransferStatus(target).value,
                resolved_at=self._clock.now_utc(),
                resolved_by=actor_id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StaleStateError(
                "TransferRequest", str(request_id), TransferStatus.PENDING.value,
            )

        model = self.session.get(TransferRequestModel, request_id, populate_existing=True)
        if model is None:
            raise TransferRequestNotFoundError(str(request_id))

        logger.info(
            "transfer_request_resolved",
            extra={"request_id": str(request_id), "status": model.status},
        )
        return model.to_dto()

    def cancel(self, asset_id: UUID, requester_id: UUID) -> TransferRequestRecord:
        """
        Cancel the requester's pending request for ``asset_id``.

        Raises:
            NotRequesterError: The asset has pending requests, none of them
                from ``requester_id``.
            TransferRequestNotFoundError: No pending request for the asset.
        """
        model = self._pending_for(asset_id, requester_id)
        if model is None:
            others = self.session.execute(
                select(TransferRequestModel.id).where(
                    TransferRequestModel.asset_id == asset_id,
                    TransferRequestModel.status == TransferStatus.PENDING.value,
                ).limit(1)
            ).scalar_one_or_none()
            if others is not None:
                raise NotRequesterError(str(requester_id), str(others))
            raise TransferRequestNotFoundError(f"pending request for asset {asset_id}")

        return self.resolve(model.id, TransferStatus.CANCELLED, requester_id)
