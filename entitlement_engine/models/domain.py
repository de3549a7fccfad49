"""
Domain Models - Internal business logic models using dataclasses.

NO DICTIONARIES - All data structures are strongly typed immutable dataclasses.
Mapping-valued fields hold read-only views keyed by provider identifiers.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

# Raw timestamp as delivered by an upstream provider: epoch millis, a numeric or
# ISO-8601 string, or a datetime. Parsing happens in the resolver.
RawTimestamp = int | float | str | datetime | None


class EntitlementType(str, Enum):
    """Kind of premium access a user holds."""

    LIFETIME = "lifetime"
    SUBSCRIPTION = "subscription"
    NONE = "none"


class SubscriptionType(str, Enum):
    """Billing period of a subscription product."""

    MONTHLY = "monthly"
    YEARLY = "yearly"


class SubscriptionState(str, Enum):
    """Whether the resolved subscription is currently running."""

    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"


class ResolutionSource(str, Enum):
    """Where the resolved premium state came from."""

    REVENUECAT = "revenuecat"
    NONE = "none"


class Platform(str, Enum):
    """Client platform a restore runs on."""

    ANDROID = "android"
    IOS = "ios"
    WEB = "web"


# ============================================================================
# Subscriber snapshot (subscription platform's view of one user)
# ============================================================================


@dataclass(frozen=True)
class EntitlementRecord:
    """One named entitlement grant."""

    product_id: str | None = None
    purchase_at: RawTimestamp = None
    expires_at: RawTimestamp = None
    period_type: str | None = None


@dataclass(frozen=True)
class SubscriptionRecord:
    """One subscription product in the subscriber's history."""

    purchase_at: RawTimestamp = None
    expires_at: RawTimestamp = None
    period_type: str | None = None


@dataclass(frozen=True)
class NonSubscriptionPurchase:
    """One one-time purchase of a non-subscription product."""

    purchase_at: RawTimestamp = None
    transaction_id: str | None = None


@dataclass(frozen=True)
class SubscriberSnapshot:
    """Immutable subscriber record fetched fresh per resolution."""

    entitlements: Mapping[str, EntitlementRecord] = field(default_factory=dict)
    subscriptions: Mapping[str, SubscriptionRecord] = field(default_factory=dict)
    non_subscriptions: Mapping[str, tuple[NonSubscriptionPurchase, ...]] = field(
        default_factory=dict
    )
    original_app_user_id: str | None = None


@dataclass(frozen=True)
class ResolvedPremiumState:
    """Canonical premium state - a value, recomputed on every resolution."""

    entitlement_type: EntitlementType
    is_premium: bool
    source: ResolutionSource
    product_id: str | None
    expires_at_ms: int | None
    purchase_at_ms: int | None
    is_in_trial: bool
    trial_start_ms: int | None
    trial_end_ms: int | None
    has_used_trial: bool
    subscription_type: SubscriptionType | None
    subscription_state: SubscriptionState | None
    original_app_user_id: str | None

    def __post_init__(self) -> None:
        """Validate premium state invariants."""
        if self.is_premium != (self.entitlement_type != EntitlementType.NONE):
            raise ValueError("is_premium must match entitlement_type")
        if self.entitlement_type == EntitlementType.LIFETIME:
            if self.expires_at_ms is not None:
                raise ValueError("Lifetime entitlement cannot expire")
            if self.is_in_trial:
                raise ValueError("Lifetime entitlement cannot be in trial")
        if not self.is_in_trial and (
            self.trial_start_ms is not None or self.trial_end_ms is not None
        ):
            raise ValueError("Trial window is only set while in trial")


# ============================================================================
# Device billing and restore flow
# ============================================================================


@dataclass(frozen=True)
class PurchaseRecord:
    """Purchase from the device billing library's purchase history."""

    product_id: str
    purchase_token: str
    transaction_date: RawTimestamp
    transaction_id: str | None = None
    purchase_state: str | None = None


@dataclass(frozen=True)
class LegacyCandidate:
    """A purchase token considered for legacy lifetime validation."""

    product_id: str
    purchase_token: str

    @property
    def token_prefix(self) -> str:
        """Redacted token prefix safe for logs."""
        return self.purchase_token[:8]


@dataclass(frozen=True)
class EntitlementInfo:
    """Entitlement as reported by the subscription platform's SDK."""

    identifier: str
    is_active: bool
    product_id: str | None = None


@dataclass(frozen=True)
class CustomerInfo:
    """Subscription platform's customer view returned by a restore."""

    entitlements: Mapping[str, EntitlementInfo] = field(default_factory=dict)
    original_app_user_id: str | None = None

    def has_active_entitlement(self, entitlement_id: str) -> bool:
        """Check whether the named entitlement is active (case-insensitive)."""
        wanted = entitlement_id.strip().lower()
        for key, entitlement in self.entitlements.items():
            if key.strip().lower() == wanted and entitlement.is_active:
                return True
        return False


@dataclass(frozen=True)
class ValidationRequest:
    """Request body for the purchase-validation callable."""

    product_id: str
    purchase_token: str
    purchase_type: str = "in-app"
    source: str = "restore"


@dataclass(frozen=True)
class ValidationResponse:
    """Successful response from the purchase-validation callable."""

    success: bool = False
    is_premium: bool = False
    entitlement_type: str | None = None

    def grants_lifetime(self) -> bool:
        """Check if the response confirms lifetime premium."""
        return (
            self.success is True
            and self.is_premium is True
            and self.entitlement_type == EntitlementType.LIFETIME.value
        )
