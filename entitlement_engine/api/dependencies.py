"""
API Dependencies - FastAPI dependency providers.
"""

from collections.abc import AsyncGenerator

from fastapi import HTTPException, status
from structlog import get_logger

from entitlement_engine.config import settings
from entitlement_engine.services.products import ProductCatalog, default_catalog
from entitlement_engine.services.revenuecat_client import RevenueCatClient

logger = get_logger(__name__)


def get_catalog() -> ProductCatalog:
    """Product catalog built from settings."""
    return default_catalog()


async def get_revenuecat_client() -> AsyncGenerator[RevenueCatClient, None]:
    """
    Per-request RevenueCat client.

    Raises:
        HTTPException: 503 when no RevenueCat API key is configured
    """
    if not settings.revenuecat_api_key:
        logger.warning("revenuecat_not_configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="RevenueCat provider not configured",
        )

    client = RevenueCatClient.from_settings(settings, catalog=default_catalog())
    try:
        yield client
    finally:
        await client.aclose()
