"""
Tests for RevenueCat payload models and snapshot conversion.
"""

from entitlement_engine.models.revenuecat import (
    RevenueCatEntitlement,
    RevenueCatSubscriber,
    RevenueCatSubscriberResponse,
)


class TestRevenueCatEntitlement:
    """Tests for entitlement conversion."""

    def test_prefers_millis(self):
        """Parseable millis win over the ISO date."""
        entitlement = RevenueCatEntitlement(
            expires_date="2024-02-14T12:00:00Z",
            expires_date_ms=1_707_912_000_123,
            product_identifier="monthly_showseek_sub",
        )

        record = entitlement.to_domain()

        assert record.expires_at == 1_707_912_000_123
        assert record.product_id == "monthly_showseek_sub"

    def test_falls_back_to_date(self):
        """Unusable millis fall back to the ISO date."""
        entitlement = RevenueCatEntitlement(
            purchase_date="2024-01-14T12:00:00Z",
            purchase_date_ms="not-a-number",
        )

        assert entitlement.to_domain().purchase_at == "2024-01-14T12:00:00Z"

    def test_lifetime_has_no_expiry(self):
        entitlement = RevenueCatEntitlement(expires_date=None, product_identifier="premium_unlock")
        assert entitlement.to_domain().expires_at is None


class TestRevenueCatSubscriber:
    """Tests for subscriber snapshot conversion."""

    def test_unknown_fields_ignored(self):
        """Extra provider fields do not break parsing."""
        response = RevenueCatSubscriberResponse.model_validate(
            {
                "request_date_ms": 1,
                "subscriber": {
                    "first_seen": "2023-01-01T00:00:00Z",
                    "management_url": None,
                    "entitlements": {
                        "premium": {"product_identifier": "premium_unlock", "grace": True}
                    },
                },
            }
        )

        assert response.subscriber is not None
        assert response.subscriber.entitlements["premium"].product_identifier == "premium_unlock"

    def test_missing_subscriber(self):
        assert RevenueCatSubscriberResponse.model_validate({}).subscriber is None

    def test_to_snapshot(self):
        subscriber = RevenueCatSubscriber.model_validate(
            {
                "original_app_user_id": "uid-1",
                "subscriptions": {
                    "showseek_yearly_sub": {
                        "expires_date": "2025-01-01T00:00:00Z",
                        "period_type": "trial",
                    }
                },
                "non_subscriptions": {
                    "premium_unlock": [
                        {"purchase_date": "2022-05-01T00:00:00Z", "store_transaction_id": "GPA.1"},
                        {"purchase_date": "2023-05-01T00:00:00Z", "id": "rc-2"},
                    ]
                },
            }
        )

        snapshot = subscriber.to_snapshot()

        assert snapshot.original_app_user_id == "uid-1"
        assert snapshot.subscriptions["showseek_yearly_sub"].period_type == "trial"
        purchases = snapshot.non_subscriptions["premium_unlock"]
        assert isinstance(purchases, tuple)
        assert [p.transaction_id for p in purchases] == ["GPA.1", None]
        assert purchases[1].purchase_at == "2023-05-01T00:00:00Z"

    def test_empty_subscriber(self):
        snapshot = RevenueCatSubscriber().to_snapshot()

        assert snapshot.entitlements == {}
        assert snapshot.subscriptions == {}
        assert snapshot.non_subscriptions == {}
