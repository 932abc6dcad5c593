"""Read-only selectors returning frozen domain DTOs."""

from reservation_kernel.selectors.policy_selector import PolicySelector
from reservation_kernel.selectors.reservation_selector import ReservationSelector
from reservation_kernel.selectors.resource_selector import ResourceSelector
from reservation_kernel.selectors.transfer_selector import TransferSelector

__all__ = [
    "PolicySelector",
    "ReservationSelector",
    "ResourceSelector",
    "TransferSelector",
]
