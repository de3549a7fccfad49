"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.
"""

from dataclasses import dataclass

LEGACY_RESTORE_PENDING_CODE = "LEGACY_RESTORE_PENDING"


class EntitlementError(Exception):
    """Base exception for all entitlement errors."""

    pass


class LegacyRestorePendingError(EntitlementError):
    """
    Raised when a legacy restore found no usable purchase but saw a pending payment.

    Callers should present "try again later" rather than "no purchase found".
    """

    code = LEGACY_RESTORE_PENDING_CODE

    def __init__(self, message: str = "Legacy lifetime purchase is pending") -> None:
        self.message = message
        super().__init__(message)


@dataclass(frozen=True)
class CallableErrorDetails:
    """Structured details attached to a callable rejection."""

    reason: str | None = None
    retryable: bool | None = None
    code: str | None = None


class CallableError(EntitlementError):
    """Raised when the purchase-validation callable rejects a request."""

    def __init__(
        self,
        code: str,
        message: str,
        details: CallableErrorDetails | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)


class SubscriberLookupError(EntitlementError):
    """Raised when a RevenueCat subscriber lookup returns an unusable response."""

    def __init__(self, app_user_id: str, message: str, status_code: int | None = None) -> None:
        self.app_user_id = app_user_id
        self.status_code = status_code
        self.message = message
        super().__init__(f"Subscriber lookup failed for {app_user_id}: {message}")


class ProviderNotConfiguredError(EntitlementError):
    """Raised when an external provider is used without credentials."""

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f"Provider not configured: {provider}")
