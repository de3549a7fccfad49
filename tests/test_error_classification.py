"""
Tests for transient and pending error heuristics.
"""

import errno
import socket

import httpx
import pytest

from entitlement_engine.exceptions import CallableError
from entitlement_engine.services.error_classification import (
    error_message,
    is_transient_error,
    looks_pending,
    normalized_error_code,
)


class CodedError(Exception):
    """Error carrying a string code like SDK and Node-style errors."""

    def __init__(self, code: str, message: str = "failed") -> None:
        self.code = code
        super().__init__(message)


class TestErrorMessage:
    """Tests for error_message."""

    def test_string(self):
        assert error_message("boom") == "boom"

    def test_message_attribute(self):
        error = CallableError(code="functions/internal", message="validation failed")
        assert error_message(error) == "validation failed"

    def test_str_fallback(self):
        assert error_message(ValueError("bad value")) == "bad value"

    def test_none(self):
        assert error_message(None) == ""


class TestNormalizedErrorCode:
    """Tests for normalized_error_code."""

    def test_string_code(self):
        """Explicit codes are upper-cased."""
        assert normalized_error_code(CodedError("econnreset")) == "ECONNRESET"

    def test_gaierror_again(self):
        """Temporary DNS failure."""
        error = socket.gaierror(socket.EAI_AGAIN, "Temporary failure in name resolution")
        assert normalized_error_code(error) == "EAI_AGAIN"

    def test_gaierror_noname(self):
        """Unknown host maps to ENOTFOUND."""
        error = socket.gaierror(socket.EAI_NONAME, "Name or service not known")
        assert normalized_error_code(error) == "ENOTFOUND"

    def test_os_error_errno(self):
        """OSError errno maps to its symbolic name."""
        error = ConnectionResetError(errno.ECONNRESET, "Connection reset by peer")
        assert normalized_error_code(error) == "ECONNRESET"

    def test_httpx_timeout(self):
        """httpx timeouts map to ETIMEDOUT."""
        assert normalized_error_code(httpx.ReadTimeout("timed out")) == "ETIMEDOUT"

    def test_httpx_network_error(self):
        """httpx connect failures map to ENETUNREACH."""
        assert normalized_error_code(httpx.ConnectError("refused")) == "ENETUNREACH"

    def test_unknown(self):
        assert normalized_error_code(ValueError("x")) == ""


class TestIsTransientError:
    """Tests for is_transient_error."""

    @pytest.mark.parametrize("status_code", [429, 500, 502, 503, 504])
    def test_retryable_statuses(self, status_code):
        """Rate limiting and server errors are transient."""
        assert is_transient_error(None, status_code) is True

    @pytest.mark.parametrize("status_code", [400, 401, 403, 404, 410])
    def test_client_statuses(self, status_code):
        """Client errors are not transient."""
        assert is_transient_error(ValueError("bad request"), status_code) is False

    @pytest.mark.parametrize(
        "code", ["ECONNABORTED", "ECONNRESET", "ENETUNREACH", "ENOTFOUND", "ETIMEDOUT", "EAI_AGAIN"]
    )
    def test_network_codes(self, code):
        """Network-level codes are transient."""
        assert is_transient_error(CodedError(code)) is True

    @pytest.mark.parametrize(
        "message",
        [
            "Network request failed",
            "Request TIMEOUT",
            "Service temporarily unavailable",
            "Rate limit exceeded",
        ],
    )
    def test_message_markers(self, message):
        """Known wording marks an error transient."""
        assert is_transient_error(RuntimeError(message)) is True

    def test_permanent_error(self):
        """Other failures are not transient."""
        assert is_transient_error(RuntimeError("Invalid purchase token")) is False

    def test_httpx_transport_error(self):
        """httpx transport failures are transient."""
        assert is_transient_error(httpx.ConnectTimeout("connect")) is True


class TestLooksPending:
    """Tests for looks_pending."""

    def test_plain_message(self):
        assert looks_pending(RuntimeError("Payment is pending")) is True

    def test_structured_sdk_description(self):
        """Pending wording embedded in a structured SDK error."""
        error = RuntimeError(
            "PurchasesError(code=PaymentPendingError, message='The payment is pending.')"
        )
        assert looks_pending(error) is True

    def test_not_pending(self):
        assert looks_pending(RuntimeError("Purchase cancelled")) is False
        assert looks_pending(None) is False
