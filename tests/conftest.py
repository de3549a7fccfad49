"""
Pytest Configuration and Centralized Fixtures.

Provides reusable fixtures for testing:
- Product catalog and fixed evaluation time
- Subscriber snapshot builders
- Restore collaborators (platform SDK, billing library, validation callable)
"""

import os
from unittest.mock import AsyncMock

import pytest

# Set environment variables BEFORE importing package modules
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("TRACING_ENABLED", "false")
os.environ.setdefault("LEGACY_LIFETIME_PRODUCT_IDS", "premium_unlock")
os.environ.setdefault("MONTHLY_SUBSCRIPTION_PRODUCT_ID", "monthly_showseek_sub")
os.environ.setdefault("YEARLY_SUBSCRIPTION_PRODUCT_ID", "showseek_yearly_sub")

from entitlement_engine.models.domain import (
    CustomerInfo,
    EntitlementInfo,
    ValidationResponse,
)
from entitlement_engine.services.products import ProductCatalog

# 2024-01-15T12:00:00Z
NOW_MS = 1_705_320_000_000

LEGACY_PRODUCT_ID = "premium_unlock"
MONTHLY_PRODUCT_ID = "monthly_showseek_sub"
YEARLY_PRODUCT_ID = "showseek_yearly_sub"


# ============================================================================
# Catalog Fixtures
# ============================================================================


@pytest.fixture
def catalog() -> ProductCatalog:
    """Standard test product catalog."""
    return ProductCatalog(
        premium_entitlement_id="premium",
        legacy_lifetime_product_ids=frozenset({LEGACY_PRODUCT_ID}),
        monthly_subscription_product_id=MONTHLY_PRODUCT_ID,
        yearly_subscription_product_id=YEARLY_PRODUCT_ID,
    )


@pytest.fixture
def now_ms() -> int:
    """Fixed evaluation time."""
    return NOW_MS


# ============================================================================
# Restore Collaborator Fixtures
# ============================================================================


@pytest.fixture
def platform_client() -> AsyncMock:
    """Subscription platform SDK whose restore finds no entitlement."""
    client = AsyncMock()
    client.restore_purchases = AsyncMock(return_value=CustomerInfo())
    return client


@pytest.fixture
def billing_client() -> AsyncMock:
    """Device billing library with empty purchase history."""
    client = AsyncMock()
    client.init_connection = AsyncMock(return_value=True)
    client.end_connection = AsyncMock(return_value=None)
    client.get_available_purchases = AsyncMock(return_value=[])
    return client


@pytest.fixture
def validator() -> AsyncMock:
    """Validation callable that grants lifetime premium."""
    callable_client = AsyncMock()
    callable_client.validate_purchase = AsyncMock(
        return_value=ValidationResponse(success=True, is_premium=True, entitlement_type="lifetime")
    )
    return callable_client


@pytest.fixture
def premium_customer_info() -> CustomerInfo:
    """Customer info with an active premium entitlement."""
    return CustomerInfo(
        entitlements={
            "premium": EntitlementInfo(
                identifier="premium", is_active=True, product_id=MONTHLY_PRODUCT_ID
            )
        }
    )
