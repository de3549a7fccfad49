"""
Tests for exception classes.

Covers all exception types and their string representations.
"""

import pytest

from entitlement_engine.exceptions import (
    LEGACY_RESTORE_PENDING_CODE,
    CallableError,
    CallableErrorDetails,
    EntitlementError,
    LegacyRestorePendingError,
    ProviderNotConfiguredError,
    SubscriberLookupError,
)


class TestEntitlementError:
    """Tests for base EntitlementError."""

    def test_is_exception(self):
        """EntitlementError is a subclass of Exception."""
        assert issubclass(EntitlementError, Exception)

    @pytest.mark.parametrize(
        "error_class",
        [
            LegacyRestorePendingError,
            CallableError,
            SubscriberLookupError,
            ProviderNotConfiguredError,
        ],
    )
    def test_hierarchy(self, error_class):
        """All custom errors derive from EntitlementError."""
        assert issubclass(error_class, EntitlementError)


class TestLegacyRestorePendingError:
    """Tests for LegacyRestorePendingError."""

    def test_code(self):
        """Callers recognize the error by its code."""
        error = LegacyRestorePendingError()
        assert error.code == LEGACY_RESTORE_PENDING_CODE == "LEGACY_RESTORE_PENDING"

    def test_default_message(self):
        error = LegacyRestorePendingError()
        assert "pending" in str(error).lower()
        assert error.message == str(error)

    def test_custom_message(self):
        error = LegacyRestorePendingError("Payment still processing")
        assert str(error) == "Payment still processing"


class TestCallableError:
    """Tests for CallableError."""

    def test_attributes(self):
        details = CallableErrorDetails(reason="LIFETIME_PURCHASE_PENDING", retryable=True)
        error = CallableError(
            code="functions/failed-precondition",
            message="Purchase pending",
            details=details,
        )

        assert error.code == "functions/failed-precondition"
        assert error.message == "Purchase pending"
        assert error.details is details
        assert str(error) == "Purchase pending"

    def test_details_optional(self):
        assert CallableError(code="functions/internal", message="x").details is None


class TestSubscriberLookupError:
    """Tests for SubscriberLookupError."""

    def test_message(self):
        error = SubscriberLookupError("uid-1", "Unexpected status 500", 500)

        assert error.app_user_id == "uid-1"
        assert error.status_code == 500
        assert error.message == "Unexpected status 500"
        assert str(error) == "Subscriber lookup failed for uid-1: Unexpected status 500"


class TestProviderNotConfiguredError:
    """Tests for ProviderNotConfiguredError."""

    def test_message(self):
        error = ProviderNotConfiguredError("revenuecat")
        assert error.provider == "revenuecat"
        assert "revenuecat" in str(error)
