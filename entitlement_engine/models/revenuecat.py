"""
RevenueCat REST API models.

Pydantic models for the ``GET /v1/subscribers/{app_user_id}`` payload and
their conversion into the immutable domain SubscriberSnapshot.
"""

from pydantic import BaseModel, ConfigDict, Field

from entitlement_engine.models.domain import (
    EntitlementRecord,
    NonSubscriptionPurchase,
    RawTimestamp,
    SubscriberSnapshot,
    SubscriptionRecord,
)
from entitlement_engine.services.entitlement_resolver import parse_timestamp_ms

# Millis may arrive as numbers or numeric strings; dates as ISO strings.
MillisValue = int | float | str | None


def _pick_timestamp(millis: MillisValue, date: str | None) -> RawTimestamp:
    """Prefer the millis field when parseable, else the ISO date."""
    if parse_timestamp_ms(millis) is not None:
        return millis
    return date


class RevenueCatEntitlement(BaseModel):
    """Entitlement entry of a RevenueCat subscriber."""

    model_config = ConfigDict(extra="ignore")

    expires_date: str | None = None
    expires_date_ms: MillisValue = None
    period_type: str | None = None
    product_identifier: str | None = None
    purchase_date: str | None = None
    purchase_date_ms: MillisValue = None

    def to_domain(self) -> EntitlementRecord:
        return EntitlementRecord(
            product_id=self.product_identifier,
            purchase_at=_pick_timestamp(self.purchase_date_ms, self.purchase_date),
            expires_at=_pick_timestamp(self.expires_date_ms, self.expires_date),
            period_type=self.period_type,
        )


class RevenueCatSubscription(BaseModel):
    """Subscription entry of a RevenueCat subscriber."""

    model_config = ConfigDict(extra="ignore")

    expires_date: str | None = None
    expires_date_ms: MillisValue = None
    period_type: str | None = None
    purchase_date: str | None = None
    purchase_date_ms: MillisValue = None

    def to_domain(self) -> SubscriptionRecord:
        return SubscriptionRecord(
            purchase_at=_pick_timestamp(self.purchase_date_ms, self.purchase_date),
            expires_at=_pick_timestamp(self.expires_date_ms, self.expires_date),
            period_type=self.period_type,
        )


class RevenueCatNonSubscription(BaseModel):
    """One-time purchase entry of a RevenueCat subscriber."""

    model_config = ConfigDict(extra="ignore")

    purchase_date: str | None = None
    purchase_date_ms: MillisValue = None
    store_transaction_id: str | None = None
    transaction_id: str | None = None

    def to_domain(self) -> NonSubscriptionPurchase:
        return NonSubscriptionPurchase(
            purchase_at=_pick_timestamp(self.purchase_date_ms, self.purchase_date),
            transaction_id=self.store_transaction_id or self.transaction_id,
        )


class RevenueCatSubscriber(BaseModel):
    """RevenueCat subscriber object."""

    model_config = ConfigDict(extra="ignore")

    entitlements: dict[str, RevenueCatEntitlement] = Field(default_factory=dict)
    subscriptions: dict[str, RevenueCatSubscription] = Field(default_factory=dict)
    non_subscriptions: dict[str, list[RevenueCatNonSubscription]] = Field(default_factory=dict)
    original_app_user_id: str | None = None

    def to_snapshot(self) -> SubscriberSnapshot:
        """Convert to the immutable domain snapshot."""
        return SubscriberSnapshot(
            entitlements={key: value.to_domain() for key, value in self.entitlements.items()},
            subscriptions={key: value.to_domain() for key, value in self.subscriptions.items()},
            non_subscriptions={
                key: tuple(purchase.to_domain() for purchase in purchases)
                for key, purchases in self.non_subscriptions.items()
            },
            original_app_user_id=self.original_app_user_id,
        )


class RevenueCatSubscriberResponse(BaseModel):
    """Top-level subscriber lookup response."""

    model_config = ConfigDict(extra="ignore")

    subscriber: RevenueCatSubscriber | None = None
