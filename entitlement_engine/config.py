"""
Application Configuration - Pydantic Settings for type-safe config.

NO DICTIONARIES - All configuration is strongly typed.
FAIL FAST - An inconsistent product catalog is rejected at startup.
"""

import sys

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_title: str = "Entitlement Engine API"
    api_version: str = "0.1.0"
    api_description: str = "Premium entitlement reconciliation service"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    # Observability - Tracing
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "entitlement-engine"

    # RevenueCat REST API
    revenuecat_api_key: str = ""  # Secret API key (sk_...)
    revenuecat_base_url: str = "https://api.revenuecat.com"
    revenuecat_timeout_seconds: float = 10.0
    revenuecat_max_attempts: int = 3
    revenuecat_retry_backoff_seconds: float = 0.5

    # Product catalog
    premium_entitlement_id: str = "premium"
    legacy_lifetime_product_ids: str = "premium_unlock"  # Comma-separated
    monthly_subscription_product_id: str = "monthly_showseek_sub"
    yearly_subscription_product_id: str = "showseek_yearly_sub"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def legacy_lifetime_product_id_list(self) -> list[str]:
        """Get normalized list of legacy lifetime product ids."""
        ids: list[str] = []
        for product_id in self.legacy_lifetime_product_ids.split(","):
            product_id = product_id.strip()
            if product_id and product_id not in ids:
                ids.append(product_id)
        return ids

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate the product catalog at startup.

        A catalog where one product id maps to two entitlement kinds would make
        the resolver's precedence rules ambiguous.
        """
        errors: list[str] = []

        legacy_ids = {pid.lower() for pid in self.legacy_lifetime_product_id_list}
        if not legacy_ids:
            errors.append("LEGACY_LIFETIME_PRODUCT_IDS must list at least one product id")

        monthly = self.monthly_subscription_product_id.strip()
        yearly = self.yearly_subscription_product_id.strip()
        if not monthly or not yearly:
            errors.append("Monthly and yearly subscription product ids are required")
        elif monthly == yearly:
            errors.append(f"Monthly and yearly subscription product ids are equal: {monthly}")

        for subscription_id in (monthly, yearly):
            if subscription_id and subscription_id.lower() in legacy_ids:
                errors.append(
                    f"Product id {subscription_id} is both a subscription and a lifetime product"
                )

        if not self.premium_entitlement_id.strip():
            errors.append("PREMIUM_ENTITLEMENT_ID is required but empty")

        if self.revenuecat_max_attempts < 1:
            errors.append("REVENUECAT_MAX_ATTEMPTS must be at least 1")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
