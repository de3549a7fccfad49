"""
API Models - Pydantic request/response bodies for the HTTP surface.
"""

from pydantic import BaseModel, Field

from entitlement_engine.models.domain import (
    EntitlementType,
    ResolutionSource,
    ResolvedPremiumState,
    SubscriptionState,
    SubscriptionType,
)
from entitlement_engine.models.revenuecat import RevenueCatSubscriber


class ResolvePremiumRequest(BaseModel):
    """POST /v1/premium/resolve request body."""

    subscriber: RevenueCatSubscriber
    now_ms: int | None = Field(
        None, ge=0, description="Evaluation time in epoch millis (defaults to now)"
    )


class PremiumStateResponse(BaseModel):
    """Resolved premium state."""

    entitlement_type: EntitlementType
    is_premium: bool
    source: ResolutionSource
    product_id: str | None = None
    expires_at_ms: int | None = None
    purchase_at_ms: int | None = None
    is_in_trial: bool = False
    trial_start_ms: int | None = None
    trial_end_ms: int | None = None
    has_used_trial: bool = False
    subscription_type: SubscriptionType | None = None
    subscription_state: SubscriptionState | None = None
    original_app_user_id: str | None = None

    @classmethod
    def from_state(cls, state: ResolvedPremiumState) -> "PremiumStateResponse":
        return cls(
            entitlement_type=state.entitlement_type,
            is_premium=state.is_premium,
            source=state.source,
            product_id=state.product_id,
            expires_at_ms=state.expires_at_ms,
            purchase_at_ms=state.purchase_at_ms,
            is_in_trial=state.is_in_trial,
            trial_start_ms=state.trial_start_ms,
            trial_end_ms=state.trial_end_ms,
            has_used_trial=state.has_used_trial,
            subscription_type=state.subscription_type,
            subscription_state=state.subscription_state,
            original_app_user_id=state.original_app_user_id,
        )


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str
    version: str
    revenuecat_configured: bool
