"""
Entitlement Resolver - Reconcile a subscriber snapshot into one premium state.

Pure and deterministic: no I/O, no mutation, never raises. Malformed dates
degrade to None so callers always get a usable state.

Precedence (first match wins):
    1. Lifetime   - active lifetime entitlement, or any legacy lifetime purchase
    2. Subscription - active premium entitlement, or any unexpired subscription
    3. None       - best-effort details carried from expired data
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime

from entitlement_engine.models.domain import (
    EntitlementRecord,
    EntitlementType,
    NonSubscriptionPurchase,
    RawTimestamp,
    ResolutionSource,
    ResolvedPremiumState,
    SubscriberSnapshot,
    SubscriptionRecord,
    SubscriptionState,
)
from entitlement_engine.services.products import ProductCatalog, default_catalog

TRIAL_PERIOD_TYPE = "TRIAL"


@dataclass(frozen=True)
class ActiveSubscription:
    """Unexpired subscription selected from the subscriber's history."""

    product_id: str
    expires_at_ms: int | None
    subscription: SubscriptionRecord


@dataclass(frozen=True)
class LifetimePurchase:
    """Most recent legacy lifetime purchase."""

    product_id: str
    purchase_at_ms: int | None


def parse_timestamp_ms(value: RawTimestamp | object) -> int | None:
    """
    Parse a provider timestamp into epoch milliseconds.

    Accepts epoch millis (int, float or numeric string), ISO-8601 strings and
    datetimes. Naive values are taken as UTC. Anything else returns None.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        try:
            return int(value.timestamp() * 1000)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None

    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    try:
        return int(text)
    except ValueError:
        pass

    try:
        numeric = float(text)
    except ValueError:
        numeric = None
    if numeric is not None:
        return int(numeric) if math.isfinite(numeric) else None

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    try:
        return int(parsed.timestamp() * 1000)
    except (OverflowError, OSError, ValueError):
        return None


def _normalize_period_type(period_type: object) -> str:
    return str(period_type or "").strip().upper()


def find_premium_entitlement(
    entitlements: Mapping[str, EntitlementRecord] | None,
    entitlement_id: str,
) -> EntitlementRecord | None:
    """Find the premium entitlement by exact, then case-insensitive, key."""
    if not entitlements:
        return None

    if entitlement_id in entitlements:
        return entitlements[entitlement_id]

    wanted = entitlement_id.strip().lower()
    for key, entitlement in entitlements.items():
        if key.strip().lower() == wanted:
            return entitlement

    return None


def _latest_subscription(
    subscriptions: Mapping[str, SubscriptionRecord] | None,
    now_ms: int | None,
) -> ActiveSubscription | None:
    if not subscriptions:
        return None

    best: ActiveSubscription | None = None
    for product_id, subscription in subscriptions.items():
        expires_at_ms = parse_timestamp_ms(subscription.expires_at)
        if expires_at_ms is None:
            continue
        if now_ms is not None and expires_at_ms <= now_ms:
            continue
        if best is None or expires_at_ms > (best.expires_at_ms or 0):
            best = ActiveSubscription(
                product_id=product_id,
                expires_at_ms=expires_at_ms,
                subscription=subscription,
            )
    return best


def find_active_subscription(
    subscriptions: Mapping[str, SubscriptionRecord] | None,
    now_ms: int,
) -> ActiveSubscription | None:
    """Pick the unexpired subscription with the greatest expiry."""
    return _latest_subscription(subscriptions, now_ms)


def find_lifetime_purchase(
    non_subscriptions: Mapping[str, tuple[NonSubscriptionPurchase, ...]] | None,
    catalog: ProductCatalog,
) -> LifetimePurchase | None:
    """Pick the most recent legacy lifetime purchase; ties favour the later entry."""
    if not non_subscriptions:
        return None

    resolved: LifetimePurchase | None = None
    for product_id, purchases in non_subscriptions.items():
        if not catalog.is_legacy_lifetime_product(product_id) or not purchases:
            continue

        timestamps = [parse_timestamp_ms(purchase.purchase_at) for purchase in purchases]
        parsed = [ts for ts in timestamps if ts is not None]
        latest = max(parsed) if parsed else None

        if resolved is None or (latest or 0) >= (resolved.purchase_at_ms or 0):
            resolved = LifetimePurchase(product_id=product_id, purchase_at_ms=latest)

    return resolved


def has_trial_history(subscriptions: Mapping[str, SubscriptionRecord] | None) -> bool:
    """Check whether any subscription in history was a trial period."""
    if not subscriptions:
        return False
    return any(
        _normalize_period_type(subscription.period_type) == TRIAL_PERIOD_TYPE
        for subscription in subscriptions.values()
    )


def _subscription_state(
    product_id: str | None,
    expires_at_ms: int | None,
    purchase_at_ms: int | None,
    period_type: str | None,
    trial_history: bool,
    original_app_user_id: str | None,
    catalog: ProductCatalog,
) -> ResolvedPremiumState:
    is_in_trial = _normalize_period_type(period_type) == TRIAL_PERIOD_TYPE
    return ResolvedPremiumState(
        entitlement_type=EntitlementType.SUBSCRIPTION,
        is_premium=True,
        source=ResolutionSource.REVENUECAT,
        product_id=product_id,
        expires_at_ms=expires_at_ms,
        purchase_at_ms=purchase_at_ms,
        is_in_trial=is_in_trial,
        trial_start_ms=purchase_at_ms if is_in_trial else None,
        trial_end_ms=expires_at_ms if is_in_trial else None,
        has_used_trial=is_in_trial or trial_history,
        subscription_type=catalog.subscription_type_for(product_id),
        subscription_state=SubscriptionState.ACTIVE,
        original_app_user_id=original_app_user_id,
    )


def resolve_premium_state(
    subscriber: SubscriberSnapshot,
    now_ms: int,
    catalog: ProductCatalog | None = None,
) -> ResolvedPremiumState:
    """
    Resolve a subscriber snapshot into the canonical premium state.

    Args:
        subscriber: Immutable subscriber snapshot
        now_ms: Evaluation timestamp in epoch milliseconds
        catalog: Product catalog (defaults to the configured catalog)

    Returns:
        Resolved premium state
    """
    catalog = catalog or default_catalog()

    entitlement = find_premium_entitlement(subscriber.entitlements, catalog.premium_entitlement_id)
    entitlement_expires_at_ms = parse_timestamp_ms(entitlement.expires_at) if entitlement else None
    entitlement_purchase_at_ms = (
        parse_timestamp_ms(entitlement.purchase_at) if entitlement else None
    )
    entitlement_active = entitlement is not None and (
        entitlement_expires_at_ms is None or entitlement_expires_at_ms > now_ms
    )
    entitlement_product_id = None
    if entitlement is not None and isinstance(entitlement.product_id, str):
        entitlement_product_id = entitlement.product_id.strip() or None

    active_subscription = find_active_subscription(subscriber.subscriptions, now_ms)
    lifetime_purchase = find_lifetime_purchase(subscriber.non_subscriptions, catalog)
    trial_history = has_trial_history(subscriber.subscriptions)
    original_app_user_id = str(subscriber.original_app_user_id or "").strip() or None

    has_lifetime_entitlement = entitlement_active and catalog.is_legacy_lifetime_product(
        entitlement_product_id
    )

    if has_lifetime_entitlement or lifetime_purchase is not None:
        product_id = entitlement_product_id
        purchase_at_ms = entitlement_purchase_at_ms
        if lifetime_purchase is not None:
            product_id = product_id or lifetime_purchase.product_id
            if purchase_at_ms is None:
                purchase_at_ms = lifetime_purchase.purchase_at_ms

        return ResolvedPremiumState(
            entitlement_type=EntitlementType.LIFETIME,
            is_premium=True,
            source=ResolutionSource.REVENUECAT,
            product_id=product_id,
            expires_at_ms=None,
            purchase_at_ms=purchase_at_ms,
            is_in_trial=False,
            trial_start_ms=None,
            trial_end_ms=None,
            has_used_trial=trial_history,
            subscription_type=None,
            subscription_state=None,
            original_app_user_id=original_app_user_id,
        )

    if entitlement is not None and entitlement_active:
        return _subscription_state(
            product_id=entitlement_product_id,
            expires_at_ms=entitlement_expires_at_ms,
            purchase_at_ms=entitlement_purchase_at_ms,
            period_type=entitlement.period_type,
            trial_history=trial_history,
            original_app_user_id=original_app_user_id,
            catalog=catalog,
        )

    if active_subscription is not None:
        return _subscription_state(
            product_id=active_subscription.product_id,
            expires_at_ms=active_subscription.expires_at_ms,
            purchase_at_ms=parse_timestamp_ms(active_subscription.subscription.purchase_at),
            period_type=active_subscription.subscription.period_type,
            trial_history=trial_history,
            original_app_user_id=original_app_user_id,
            catalog=catalog,
        )

    # Best effort: expired entitlement first, then the last subscription to lapse
    last_subscription = _latest_subscription(subscriber.subscriptions, None)
    product_id = entitlement_product_id
    expires_at_ms = entitlement_expires_at_ms
    purchase_at_ms = entitlement_purchase_at_ms
    if last_subscription is not None:
        product_id = product_id or last_subscription.product_id
        if expires_at_ms is None:
            expires_at_ms = last_subscription.expires_at_ms
        if purchase_at_ms is None:
            purchase_at_ms = parse_timestamp_ms(last_subscription.subscription.purchase_at)

    return ResolvedPremiumState(
        entitlement_type=EntitlementType.NONE,
        is_premium=False,
        source=ResolutionSource.NONE,
        product_id=product_id,
        expires_at_ms=expires_at_ms,
        purchase_at_ms=purchase_at_ms,
        is_in_trial=False,
        trial_start_ms=None,
        trial_end_ms=None,
        has_used_trial=trial_history,
        subscription_type=catalog.subscription_type_for(product_id),
        subscription_state=SubscriptionState.EXPIRED,
        original_app_user_id=original_app_user_id,
    )
