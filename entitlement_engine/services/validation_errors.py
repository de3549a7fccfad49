"""
Purchase validation error mapping.

Server side: map a Google Play / upstream failure into a callable error code
and reason. Client side: read {reason, retryable} back out of a callable
rejection and schedule re-validation of pending purchases.
"""

from collections.abc import Mapping
from dataclasses import dataclass

from entitlement_engine.services.error_classification import (
    error_message,
    is_transient_error,
    normalized_error_code,
)

REASON_PLAY_API_PERMISSION = "PLAY_API_PERMISSION"
REASON_PURCHASE_NOT_FOUND_OR_EXPIRED = "PURCHASE_NOT_FOUND_OR_EXPIRED"
REASON_PLAY_TEMPORARY_FAILURE = "PLAY_TEMPORARY_FAILURE"
REASON_PURCHASE_VALIDATION_FAILED = "PURCHASE_VALIDATION_FAILED"
REASON_LIFETIME_PURCHASE_PENDING = "LIFETIME_PURCHASE_PENDING"

CODE_FAILED_PRECONDITION = "failed-precondition"
CODE_INTERNAL = "internal"
CODE_UNAVAILABLE = "unavailable"

PENDING_VALIDATION_RETRY_BASE_MS = 5000
PENDING_VALIDATION_RETRY_MAX_MS = 5 * 60 * 1000

_DEFINITIVE_ERROR_NAMES = frozenset({"NotFoundError", "SubscriptionExpiredError"})


@dataclass(frozen=True)
class PurchaseValidationErrorMapping:
    """Callable error an upstream validation failure maps to."""

    code: str
    reason: str
    retryable: bool
    status_code: int | None


@dataclass(frozen=True)
class ValidationErrorDetails:
    """Reason and retryability read from a callable rejection."""

    reason: str | None
    retryable: bool


def error_status_code(error: object) -> int | None:
    """
    Extract an HTTP status from an error.

    Looks at ``response.status_code``/``response.status``, ``status_code``,
    ``status`` and finally a numeric ``code``.
    """
    response = getattr(error, "response", None)
    for candidate in (
        getattr(response, "status_code", None),
        getattr(response, "status", None),
        getattr(error, "status_code", None),
        getattr(error, "status", None),
    ):
        if isinstance(candidate, int) and not isinstance(candidate, bool):
            return candidate

    code = getattr(error, "code", None)
    if isinstance(code, int) and not isinstance(code, bool):
        return code
    if isinstance(code, str):
        try:
            return int(code.strip())
        except ValueError:
            return None
    return None


def is_definitive_subscription_error(error: object) -> bool:
    """Check if an upstream error proves the purchase is gone or expired."""
    if error_status_code(error) in (404, 410):
        return True

    if type(error).__name__ in _DEFINITIVE_ERROR_NAMES:
        return True

    message = error_message(error).lower()
    return "subscriptionexpired" in message or "subscription expired" in message


def is_transient_subscription_error(error: object) -> bool:
    """Check if an upstream validation error is worth retrying."""
    if getattr(error, "is_transient", None) is True or getattr(error, "transient", None) is True:
        return True

    if normalized_error_code(error) == "DEADLINE_EXCEEDED":
        return True

    return is_transient_error(error, error_status_code(error))


def map_purchase_validation_error(error: object) -> PurchaseValidationErrorMapping:
    """Map an upstream validation failure to a callable error."""
    status_code = error_status_code(error)

    if status_code in (401, 403):
        return PurchaseValidationErrorMapping(
            code=CODE_FAILED_PRECONDITION,
            reason=REASON_PLAY_API_PERMISSION,
            retryable=False,
            status_code=status_code,
        )

    if is_definitive_subscription_error(error):
        return PurchaseValidationErrorMapping(
            code=CODE_FAILED_PRECONDITION,
            reason=REASON_PURCHASE_NOT_FOUND_OR_EXPIRED,
            retryable=False,
            status_code=status_code,
        )

    if is_transient_subscription_error(error):
        return PurchaseValidationErrorMapping(
            code=CODE_UNAVAILABLE,
            reason=REASON_PLAY_TEMPORARY_FAILURE,
            retryable=True,
            status_code=status_code,
        )

    return PurchaseValidationErrorMapping(
        code=CODE_INTERNAL,
        reason=REASON_PURCHASE_VALIDATION_FAILED,
        retryable=False,
        status_code=status_code,
    )


def _detail(details: object, name: str) -> object:
    if details is None:
        return None
    if isinstance(details, Mapping):
        return details.get(name)
    return getattr(details, name, None)


def get_validation_error_details(error: object) -> ValidationErrorDetails:
    """Read reason and retryability from a callable rejection."""
    code = str(getattr(error, "code", None) or "").lower()
    details = getattr(error, "details", None)

    reason_value = _detail(details, "reason")
    detail_code = _detail(details, "code")
    if isinstance(reason_value, str):
        reason: str | None = reason_value
    elif isinstance(detail_code, str):
        reason = detail_code
    else:
        reason = None

    if _detail(details, "retryable") is True:
        return ValidationErrorDetails(reason=reason, retryable=True)

    if code in ("functions/unavailable", CODE_UNAVAILABLE):
        return ValidationErrorDetails(reason=reason, retryable=True)

    return ValidationErrorDetails(reason=reason, retryable=False)


def pending_validation_retry_delay_ms(attempt: int) -> int:
    """Exponential back-off for re-validating a pending purchase."""
    normalized_attempt = attempt if attempt > 0 else 1
    delay = PENDING_VALIDATION_RETRY_BASE_MS * 2 ** (normalized_attempt - 1)
    return min(delay, PENDING_VALIDATION_RETRY_MAX_MS)
