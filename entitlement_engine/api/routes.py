"""
Premium API routes.

- POST /v1/premium/resolve: resolve a RevenueCat subscriber payload
- GET  /v1/premium/subscribers/{app_user_id}: live lookup and resolve
"""

import time

import httpx
from fastapi import APIRouter, Depends, HTTPException, status
from structlog import get_logger

from entitlement_engine.api.dependencies import get_catalog, get_revenuecat_client
from entitlement_engine.exceptions import SubscriberLookupError
from entitlement_engine.models.api import PremiumStateResponse, ResolvePremiumRequest
from entitlement_engine.observability.logging import log_context
from entitlement_engine.observability.metrics import metrics
from entitlement_engine.services.entitlement_resolver import resolve_premium_state
from entitlement_engine.services.error_classification import is_transient_error
from entitlement_engine.services.products import ProductCatalog
from entitlement_engine.services.revenuecat_client import RevenueCatClient

logger = get_logger(__name__)
router = APIRouter(prefix="/v1/premium", tags=["premium"])


@router.post("/resolve", response_model=PremiumStateResponse)
async def resolve_premium(
    request: ResolvePremiumRequest,
    catalog: ProductCatalog = Depends(get_catalog),
) -> PremiumStateResponse:
    """
    Resolve a subscriber snapshot into the canonical premium state.

    Pure computation: nothing is fetched or stored.
    """
    now_ms = request.now_ms if request.now_ms is not None else int(time.time() * 1000)
    state = resolve_premium_state(request.subscriber.to_snapshot(), now_ms, catalog)
    metrics.record_resolution(state.entitlement_type.value)
    return PremiumStateResponse.from_state(state)


@router.get("/subscribers/{app_user_id}", response_model=PremiumStateResponse)
async def get_subscriber_premium(
    app_user_id: str,
    client: RevenueCatClient = Depends(get_revenuecat_client),
) -> PremiumStateResponse:
    """
    Look up a subscriber in RevenueCat and resolve its premium state.

    Returns 404 for unknown subscribers, 503 for transient upstream failures
    and 502 for any other upstream failure.
    """
    try:
        with log_context(app_user_id=app_user_id):
            state = await client.resolve_subscriber(app_user_id)
    except SubscriberLookupError as exc:
        transient = is_transient_error(exc, exc.status_code)
        metrics.record_error(type(exc).__name__, "subscriber_lookup")
        raise HTTPException(
            status_code=(
                status.HTTP_503_SERVICE_UNAVAILABLE if transient else status.HTTP_502_BAD_GATEWAY
            ),
            detail=exc.message,
        ) from exc
    except httpx.HTTPError as exc:
        transient = is_transient_error(exc)
        metrics.record_error(type(exc).__name__, "subscriber_lookup")
        logger.error("subscriber_lookup_transport_error", app_user_id=app_user_id, error=str(exc))
        raise HTTPException(
            status_code=(
                status.HTTP_503_SERVICE_UNAVAILABLE if transient else status.HTTP_502_BAD_GATEWAY
            ),
            detail="RevenueCat unavailable" if transient else "RevenueCat request failed",
        ) from exc

    if state is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subscriber not found")

    return PremiumStateResponse.from_state(state)
