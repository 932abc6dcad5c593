"""
Module: reservation_kernel.selectors.resource_selector
Responsibility: Resource and organization lookups.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from uuid import UUID

from reservation_kernel.domain.reservation import ReturnVerificationPolicy
from reservation_kernel.domain.resource import ResourceInfo
from reservation_kernel.exceptions import (
    OrganizationNotFoundError,
    ResourceNotFoundError,
)
from reservation_kernel.models.organization import OrganizationModel
from reservation_kernel.models.resource import ResourceModel
from reservation_kernel.selectors.base import BaseSelector


class ResourceSelector(BaseSelector):

    def get(self, resource_id: UUID) -> ResourceInfo:
        model = self.session.get(ResourceModel, resource_id)
        if model is None:
            raise ResourceNotFoundError(str(resource_id))
        return model.to_dto()

    def return_policy(
        self,
        organization_id: UUID,
        defaults: ReturnVerificationPolicy | None = None,
    ) -> ReturnVerificationPolicy:
        """Effective return-verification policy of an organization."""
        organization = self.session.get(OrganizationModel, organization_id)
        if organization is None:
            raise OrganizationNotFoundError(str(organization_id))
        return organization.return_policy(defaults)
