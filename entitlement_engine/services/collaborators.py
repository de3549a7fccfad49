"""
Collaborator Protocols - Interfaces the restore flow depends on.

Concrete SDK bindings (subscription platform, device billing library,
purchase-validation callable) live outside this package and are injected.
"""

from collections.abc import Sequence
from typing import Protocol

from entitlement_engine.models.domain import (
    CustomerInfo,
    PurchaseRecord,
    ValidationRequest,
    ValidationResponse,
)


class SubscriptionPlatformClient(Protocol):
    """Subscription-management platform SDK (e.g. RevenueCat Purchases)."""

    async def restore_purchases(self) -> CustomerInfo:
        """
        Ask the platform to restore the store account's purchases.

        Returns:
            Customer info after the restore

        Raises:
            Exception: Any SDK error; its message may describe the transaction
        """
        ...


class DeviceBillingClient(Protocol):
    """Native device billing library (e.g. Google Play Billing)."""

    async def init_connection(self) -> bool:
        """Open the billing connection."""
        ...

    async def end_connection(self) -> None:
        """Close the billing connection."""
        ...

    async def get_available_purchases(self) -> Sequence[PurchaseRecord]:
        """List purchases known to the store account."""
        ...


class PurchaseValidator(Protocol):
    """Server-side purchase-validation callable."""

    async def validate_purchase(self, request: ValidationRequest) -> ValidationResponse:
        """
        Validate a purchase token and grant premium server-side.

        Raises:
            CallableError: Structured rejection (code, message, details.reason)
        """
        ...
