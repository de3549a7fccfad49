"""
RevenueCat subscriber client.

Fetches a subscriber over the RevenueCat REST API and resolves it into a
premium state. Transient failures (network errors, 429, 5xx) are retried.
"""

import asyncio
import time
from dataclasses import dataclass
from urllib.parse import quote

import httpx
from pydantic import ValidationError
from structlog import get_logger

from entitlement_engine.config import Settings
from entitlement_engine.exceptions import ProviderNotConfiguredError, SubscriberLookupError
from entitlement_engine.models.domain import ResolvedPremiumState, SubscriberSnapshot
from entitlement_engine.models.revenuecat import RevenueCatSubscriberResponse
from entitlement_engine.observability.metrics import metrics
from entitlement_engine.services.entitlement_resolver import resolve_premium_state
from entitlement_engine.services.error_classification import is_transient_error
from entitlement_engine.services.products import ProductCatalog

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.revenuecat.com"


@dataclass(frozen=True)
class SubscriberLookupResult:
    """Result of one subscriber lookup."""

    status_code: int
    subscriber: SubscriberSnapshot | None = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class RevenueCatClient:
    """
    Async RevenueCat REST client.

    Usage:
        async with RevenueCatClient(api_key="sk_...") as client:
            state = await client.resolve_subscriber("firebase-uid")
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 10.0,
        max_attempts: int = 3,
        retry_backoff_seconds: float = 0.5,
        http_client: httpx.AsyncClient | None = None,
        catalog: ProductCatalog | None = None,
    ) -> None:
        """
        Initialize RevenueCat client.

        Args:
            api_key: RevenueCat secret API key
            base_url: API base URL
            timeout_seconds: Per-request timeout
            max_attempts: Attempts per lookup when failures are transient
            retry_backoff_seconds: Linear back-off step between attempts
            http_client: Pre-built client (tests inject a MockTransport)
            catalog: Product catalog used when resolving
        """
        if not api_key:
            raise ProviderNotConfiguredError("revenuecat")
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1: {max_attempts}")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.max_attempts = max_attempts
        self.retry_backoff_seconds = retry_backoff_seconds
        self.catalog = catalog
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout_seconds)

    @classmethod
    def from_settings(
        cls, config: Settings, catalog: ProductCatalog | None = None
    ) -> "RevenueCatClient":
        """Build a client from application settings."""
        return cls(
            api_key=config.revenuecat_api_key,
            base_url=config.revenuecat_base_url,
            timeout_seconds=config.revenuecat_timeout_seconds,
            max_attempts=config.revenuecat_max_attempts,
            retry_backoff_seconds=config.revenuecat_retry_backoff_seconds,
            catalog=catalog,
        )

    async def __aenter__(self) -> "RevenueCatClient":
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def fetch_subscriber(self, app_user_id: str) -> SubscriberLookupResult:
        """
        Fetch one subscriber.

        Args:
            app_user_id: RevenueCat app user id

        Returns:
            Lookup result; non-2xx responses carry no subscriber

        Raises:
            httpx.HTTPError: Transport failure
            SubscriberLookupError: 2xx response with an unparsable body
        """
        url = f"{self.base_url}/v1/subscribers/{quote(app_user_id, safe='')}"
        response = await self._client.get(
            url,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )

        if not 200 <= response.status_code < 300:
            logger.warning(
                "revenuecat_lookup_unsuccessful",
                app_user_id=app_user_id,
                status_code=response.status_code,
            )
            return SubscriberLookupResult(status_code=response.status_code)

        if not response.text.strip():
            return SubscriberLookupResult(status_code=response.status_code)

        try:
            payload = RevenueCatSubscriberResponse.model_validate_json(response.text)
        except ValidationError as exc:
            raise SubscriberLookupError(
                app_user_id, f"Invalid subscriber payload: {exc}", response.status_code
            ) from exc

        subscriber = payload.subscriber.to_snapshot() if payload.subscriber else None
        return SubscriberLookupResult(status_code=response.status_code, subscriber=subscriber)

    async def fetch_subscriber_with_retry(self, app_user_id: str) -> SubscriberLookupResult:
        """
        Fetch one subscriber, retrying transient failures.

        The last result is returned (or the last exception re-raised) once
        attempts run out or a failure is not transient.
        """
        start = time.perf_counter()
        attempt = 1
        while True:
            try:
                result = await self.fetch_subscriber(app_user_id)
            except Exception as exc:
                if attempt >= self.max_attempts or not is_transient_error(exc):
                    metrics.record_subscriber_lookup("error", time.perf_counter() - start)
                    logger.error(
                        "revenuecat_lookup_failed",
                        app_user_id=app_user_id,
                        attempt=attempt,
                        error=str(exc),
                    )
                    raise
                logger.warning(
                    "revenuecat_lookup_retrying",
                    app_user_id=app_user_id,
                    attempt=attempt,
                    error=str(exc),
                )
            else:
                if result.ok or attempt >= self.max_attempts:
                    outcome = "success" if result.ok else f"http_{result.status_code}"
                    metrics.record_subscriber_lookup(outcome, time.perf_counter() - start)
                    return result
                if not is_transient_error(None, result.status_code):
                    metrics.record_subscriber_lookup(
                        f"http_{result.status_code}", time.perf_counter() - start
                    )
                    return result
                logger.warning(
                    "revenuecat_lookup_retrying",
                    app_user_id=app_user_id,
                    attempt=attempt,
                    status_code=result.status_code,
                )

            await asyncio.sleep(self.retry_backoff_seconds * attempt)
            attempt += 1

    async def resolve_subscriber(
        self, app_user_id: str, now_ms: int | None = None
    ) -> ResolvedPremiumState | None:
        """
        Look up a subscriber and resolve its premium state.

        Returns:
            Resolved state, or None when RevenueCat has no such subscriber

        Raises:
            SubscriberLookupError: Non-404 unsuccessful response
        """
        result = await self.fetch_subscriber_with_retry(app_user_id)
        if result.status_code == 404:
            return None
        if not result.ok:
            raise SubscriberLookupError(
                app_user_id, f"Unexpected status {result.status_code}", result.status_code
            )
        if result.subscriber is None:
            return None

        if now_ms is None:
            now_ms = int(time.time() * 1000)
        state = resolve_premium_state(result.subscriber, now_ms, self.catalog)
        metrics.record_resolution(state.entitlement_type.value)
        logger.info(
            "premium_state_resolved",
            app_user_id=app_user_id,
            entitlement_type=state.entitlement_type.value,
            is_premium=state.is_premium,
        )
        return state
