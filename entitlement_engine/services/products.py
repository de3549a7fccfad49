"""
Premium product catalog.

Static product configuration consumed by the resolver and the restore flow:
which product ids are legacy lifetime unlocks, which are subscriptions, and
the name of the premium entitlement.
"""

from dataclasses import dataclass

from entitlement_engine.config import Settings, settings
from entitlement_engine.models.domain import SubscriptionType

PURCHASE_TYPE_IN_APP = "in-app"


def _normalize(product_id: str | None) -> str:
    return (product_id or "").strip().lower()


@dataclass(frozen=True)
class ProductCatalog:
    """Immutable product catalog."""

    premium_entitlement_id: str
    legacy_lifetime_product_ids: frozenset[str]
    monthly_subscription_product_id: str
    yearly_subscription_product_id: str

    def __post_init__(self) -> None:
        """Validate catalog fields."""
        if not self.premium_entitlement_id:
            raise ValueError("Premium entitlement id required")
        if not self.legacy_lifetime_product_ids:
            raise ValueError("At least one legacy lifetime product id required")

    @classmethod
    def from_settings(cls, config: Settings) -> "ProductCatalog":
        """Build a catalog from application settings."""
        return cls(
            premium_entitlement_id=config.premium_entitlement_id.strip(),
            legacy_lifetime_product_ids=frozenset(config.legacy_lifetime_product_id_list),
            monthly_subscription_product_id=config.monthly_subscription_product_id.strip(),
            yearly_subscription_product_id=config.yearly_subscription_product_id.strip(),
        )

    def is_legacy_lifetime_product(self, product_id: str | None) -> bool:
        """Check if product id is a legacy lifetime unlock (case-insensitive)."""
        normalized = _normalize(product_id)
        if not normalized:
            return False
        return any(normalized == _normalize(pid) for pid in self.legacy_lifetime_product_ids)

    def subscription_type_for(self, product_id: str | None) -> SubscriptionType | None:
        """Map a subscription product id to its billing period."""
        if not product_id:
            return None
        product_id = product_id.strip()
        if product_id == self.monthly_subscription_product_id:
            return SubscriptionType.MONTHLY
        if product_id == self.yearly_subscription_product_id:
            return SubscriptionType.YEARLY
        return None


def default_catalog() -> ProductCatalog:
    """Catalog built from the global settings."""
    return ProductCatalog.from_settings(settings)
