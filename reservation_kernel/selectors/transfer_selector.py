"""
Module: reservation_kernel.selectors.transfer_selector
Responsibility: Transfer request lookups.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from reservation_kernel.domain.transfer import TransferRequestRecord, TransferStatus
from reservation_kernel.exceptions import TransferRequestNotFoundError
from reservation_kernel.models.transfer_request import TransferRequestModel
from reservation_kernel.selectors.base import BaseSelector


class TransferSelector(BaseSelector):

    def get(self, request_id: UUID) -> TransferRequestRecord:
        model = self.session.get(TransferRequestModel, request_id)
        if model is None:
            raise TransferRequestNotFoundError(str(request_id))
        return model.to_dto()

    def find_pending(
        self, asset_id: UUID, requester_id: UUID,
    ) -> TransferRequestRecord | None:
        model = self.session.execute(
            select(TransferRequestModel).where(
                TransferRequestModel.asset_id == asset_id,
                TransferRequestModel.requester_id == requester_id,
                TransferRequestModel.status == TransferStatus.PENDING.value,
            )
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def list_by_asset(self, asset_id: UUID) -> list[TransferRequestRecord]:
        models = self.session.execute(
            select(TransferRequestModel)
            .where(TransferRequestModel.asset_id == asset_id)
            .order_by(TransferRequestModel.created_at.desc())
        ).scalars()
        return [m.to_dto() for m in models]
