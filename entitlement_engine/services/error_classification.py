"""
Error classification for upstream billing and subscription calls.

Two heuristics live here:
- is_transient_error: is a failed call worth retrying?
- looks_pending: does a failure actually mean "payment not yet cleared"?

Both depend on upstream wording that is not contractually stable. Keep any
change to that wording confined to this module and its tests.
"""

import errno
import socket

import httpx

TRANSIENT_ERROR_CODES = frozenset(
    {
        "ECONNABORTED",
        "ECONNRESET",
        "ENETUNREACH",
        "ENOTFOUND",
        "ETIMEDOUT",
        "EAI_AGAIN",
    }
)

TRANSIENT_MESSAGE_MARKERS = (
    "network",
    "timeout",
    "temporarily unavailable",
    "rate limit",
)

PENDING_MESSAGE_MARKER = "pending"


def error_message(error: object) -> str:
    """Best-effort message text of an error-like object."""
    if error is None:
        return ""
    if isinstance(error, str):
        return error
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(error)


def normalized_error_code(error: object) -> str:
    """
    Normalize an error into an upper-case POSIX-style code.

    Checks, in order: an explicit string ``code`` attribute, getaddrinfo
    failures, an OSError errno, and httpx transport exceptions.
    """
    if error is None:
        return ""

    code = getattr(error, "code", None)
    if isinstance(code, str) and code.strip():
        return code.strip().upper()

    if isinstance(error, socket.gaierror):
        if error.errno == socket.EAI_AGAIN:
            return "EAI_AGAIN"
        if error.errno == socket.EAI_NONAME:
            return "ENOTFOUND"

    if isinstance(error, OSError) and isinstance(error.errno, int):
        name = errno.errorcode.get(error.errno)
        if name:
            return name

    if isinstance(error, httpx.TimeoutException):
        return "ETIMEDOUT"
    if isinstance(error, httpx.NetworkError):
        return "ENETUNREACH"

    return ""


def is_transient_error(error: object, status_code: int | None = None) -> bool:
    """
    Decide whether a failed upstream call is worth retrying.

    Args:
        error: Raised exception (or None when only a status is known)
        status_code: HTTP status of the failed response, if any

    Returns:
        True for rate limiting, server errors and network failures
    """
    if isinstance(status_code, int) and not isinstance(status_code, bool):
        if status_code == 429 or status_code >= 500:
            return True

    if normalized_error_code(error) in TRANSIENT_ERROR_CODES:
        return True

    message = error_message(error).lower()
    return any(marker in message for marker in TRANSIENT_MESSAGE_MARKERS)


def looks_pending(error: object) -> bool:
    """
    Decide whether a caught error means the payment is still pending.

    Matches plain messages ("Payment is pending") as well as structured SDK
    descriptions embedded in a message, e.g.
    ``PurchasesError(code=PaymentPendingError, message='The payment is pending.')``.
    """
    return PENDING_MESSAGE_MARKER in error_message(error).lower()
