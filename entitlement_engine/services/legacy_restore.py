"""
Legacy-aware restore - Recover premium for legacy lifetime buyers.

Drives one restore end to end:

    Idle
      -> open billing connection
    AttemptingPlatformRestore
      -> active premium entitlement          => Resolved(True)
      -> no entitlement / SDK error           => GatheringCandidates
    GatheringCandidates
      -> device purchases, else token parsed from the SDK error
      -> none                                 => NoCandidates
    ValidatingCandidates (sequential)
      -> lifetime granted                     => Resolved(True)
      -> LIFETIME_PURCHASE_PENDING rejection  => next candidate
      -> any other rejection                  => Failed(original error)
    NoCandidates / exhausted
      -> pending seen anywhere                => Failed(LegacyRestorePendingError)
      -> otherwise                            => Resolved(False)

The billing connection is opened exactly once and released on every exit path.
"""

from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from enum import Enum

from structlog import get_logger

from entitlement_engine.exceptions import LegacyRestorePendingError
from entitlement_engine.models.domain import (
    LegacyCandidate,
    Platform,
    PurchaseRecord,
    ValidationRequest,
)
from entitlement_engine.observability.logging import log_context
from entitlement_engine.observability.metrics import metrics
from entitlement_engine.observability.tracing import trace_operation
from entitlement_engine.services.collaborators import (
    DeviceBillingClient,
    PurchaseValidator,
    SubscriptionPlatformClient,
)
from entitlement_engine.services.entitlement_resolver import parse_timestamp_ms
from entitlement_engine.services.error_classification import error_message, looks_pending
from entitlement_engine.services.legacy_token_extractor import extract_legacy_candidate
from entitlement_engine.services.products import (
    PURCHASE_TYPE_IN_APP,
    ProductCatalog,
    default_catalog,
)
from entitlement_engine.services.validation_errors import (
    REASON_LIFETIME_PURCHASE_PENDING,
    get_validation_error_details,
)

logger = get_logger(__name__)

RESTORE_SOURCE = "restore"
PENDING_REJECTION_CODE = "functions/failed-precondition"

# Duplicate tokens keep the copy in the most settled state
_PURCHASE_STATE_PRIORITY = {"purchased": 3, "unknown": 2, "pending": 1}


class RestoreOutcome(str, Enum):
    """Terminal outcome of a legacy-aware restore (metric label)."""

    UNSUPPORTED_PLATFORM = "unsupported_platform"
    PLATFORM_RESTORED = "platform_restored"
    LEGACY_RESTORED = "legacy_restored"
    NOT_FOUND = "not_found"
    PENDING = "pending"
    FAILED = "failed"


def is_lifetime_pending_rejection(error: BaseException) -> bool:
    """Check for the validation callable's structured "lifetime purchase pending" rejection."""
    if getattr(error, "code", None) != PENDING_REJECTION_CODE:
        return False

    details = getattr(error, "details", None)
    if isinstance(details, Mapping):
        reason = details.get("reason")
    else:
        reason = getattr(details, "reason", None)
    return reason == REASON_LIFETIME_PURCHASE_PENDING


def purchase_state_priority(purchase_state: str | None) -> int:
    """Rank a billing purchase state: purchased > unknown > pending."""
    normalized = str(purchase_state or "").strip().lower()
    return _PURCHASE_STATE_PRIORITY.get(normalized, _PURCHASE_STATE_PRIORITY["unknown"])


def legacy_candidates_from_purchases(
    purchases: Sequence[PurchaseRecord],
    catalog: ProductCatalog,
) -> list[LegacyCandidate]:
    """
    Select legacy lifetime candidates from device purchase history.

    Keeps legacy lifetime products with a non-empty token, de-duplicated by
    token, ordered most recent first. Equal dates put the later-seen purchase
    first. Among copies of one token the most settled purchase state wins,
    then the most recent date.
    """
    ranked: dict[str, tuple[int, int, int, PurchaseRecord]] = {}
    for index, purchase in enumerate(purchases):
        if not catalog.is_legacy_lifetime_product(purchase.product_id):
            continue
        token = purchase.purchase_token if isinstance(purchase.purchase_token, str) else ""
        if not token:
            continue

        rank = (
            purchase_state_priority(purchase.purchase_state),
            parse_timestamp_ms(purchase.transaction_date) or 0,
            index,
            purchase,
        )
        existing = ranked.get(token)
        if existing is None or rank[:3] > existing[:3]:
            ranked[token] = rank

    ordered = sorted(ranked.values(), key=lambda entry: entry[1:3], reverse=True)
    return [
        LegacyCandidate(product_id=purchase.product_id, purchase_token=purchase.purchase_token)
        for _, _, _, purchase in ordered
    ]


class LegacyRestoreOrchestrator:
    """
    Restore premium, falling back to legacy lifetime purchase validation.

    Collaborators are injected so the flow runs without a real billing stack.
    """

    def __init__(
        self,
        platform_client: SubscriptionPlatformClient,
        billing_client: DeviceBillingClient,
        validator: PurchaseValidator,
        platform: Platform | str,
        catalog: ProductCatalog | None = None,
    ) -> None:
        self.platform_client = platform_client
        self.billing_client = billing_client
        self.validator = validator
        self.platform = str(getattr(platform, "value", platform)).strip().lower()
        self.catalog = catalog or default_catalog()

    @asynccontextmanager
    async def _billing_connection(self) -> AsyncIterator[None]:
        await self.billing_client.init_connection()
        try:
            yield
        finally:
            try:
                await self.billing_client.end_connection()
            except Exception as exc:
                logger.warning("billing_connection_close_failed", error=str(exc))

    async def restore_purchases(self) -> bool:
        """
        Run a legacy-aware restore.

        Returns:
            True if premium was restored, False if nothing was found

        Raises:
            LegacyRestorePendingError: A pending payment blocked the restore
            Exception: A non-pending validation rejection, re-raised unchanged
        """
        if self.platform != Platform.ANDROID.value:
            logger.info("legacy_restore_skipped_platform", platform=self.platform)
            metrics.record_legacy_restore(RestoreOutcome.UNSUPPORTED_PLATFORM.value)
            return False

        with (
            log_context(platform=self.platform),
            trace_operation("legacy_restore", platform=self.platform) as span,
        ):
            try:
                outcome = await self._restore_on_android()
            except LegacyRestorePendingError:
                metrics.record_legacy_restore(RestoreOutcome.PENDING.value)
                raise
            except Exception:
                metrics.record_legacy_restore(RestoreOutcome.FAILED.value)
                raise

            span.set_attribute("outcome", outcome.value)
            metrics.record_legacy_restore(outcome.value)
            return outcome in (RestoreOutcome.PLATFORM_RESTORED, RestoreOutcome.LEGACY_RESTORED)

    async def _restore_on_android(self) -> RestoreOutcome:
        async with self._billing_connection():
            restore_error: Exception | None = None
            try:
                customer_info = await self.platform_client.restore_purchases()
            except Exception as exc:
                restore_error = exc
                logger.warning("platform_restore_failed", error=error_message(exc))
            else:
                if customer_info.has_active_entitlement(self.catalog.premium_entitlement_id):
                    logger.info("platform_restore_granted_premium")
                    return RestoreOutcome.PLATFORM_RESTORED
                logger.info("platform_restore_without_entitlement")

            pending_signal = restore_error is not None and looks_pending(restore_error)

            candidates = await self._gather_candidates(restore_error)
            if not candidates:
                logger.info("legacy_restore_no_candidates", pending=pending_signal)

            for candidate in candidates:
                try:
                    restored = await self._validate_candidate(candidate)
                except Exception as exc:
                    if is_lifetime_pending_rejection(exc):
                        metrics.record_validation_call("pending")
                        logger.info(
                            "legacy_candidate_pending",
                            product_id=candidate.product_id,
                            token_prefix=candidate.token_prefix,
                        )
                        pending_signal = True
                        continue

                    details = get_validation_error_details(exc)
                    metrics.record_validation_call("rejected")
                    logger.error(
                        "legacy_candidate_rejected",
                        product_id=candidate.product_id,
                        token_prefix=candidate.token_prefix,
                        reason=details.reason,
                        retryable=details.retryable,
                        error=error_message(exc),
                    )
                    raise

                if restored:
                    return RestoreOutcome.LEGACY_RESTORED

        if pending_signal:
            logger.info("legacy_restore_pending")
            raise LegacyRestorePendingError()

        logger.info("legacy_restore_nothing_found", candidate_count=len(candidates))
        return RestoreOutcome.NOT_FOUND

    async def _gather_candidates(self, restore_error: Exception | None) -> list[LegacyCandidate]:
        purchases = await self.billing_client.get_available_purchases()
        candidates = legacy_candidates_from_purchases(purchases, self.catalog)

        logger.info(
            "device_purchase_history_queried",
            purchase_count=len(purchases),
            candidate_count=len(candidates),
            candidate_token_prefixes=[candidate.token_prefix for candidate in candidates],
        )

        if candidates or restore_error is None:
            return candidates

        extracted = extract_legacy_candidate(error_message(restore_error), self.catalog)
        return [extracted] if extracted is not None else []

    async def _validate_candidate(self, candidate: LegacyCandidate) -> bool:
        logger.info(
            "validating_legacy_candidate",
            product_id=candidate.product_id,
            token_prefix=candidate.token_prefix,
        )
        response = await self.validator.validate_purchase(
            ValidationRequest(
                product_id=candidate.product_id,
                purchase_token=candidate.purchase_token,
                purchase_type=PURCHASE_TYPE_IN_APP,
                source=RESTORE_SOURCE,
            )
        )

        if response.grants_lifetime():
            metrics.record_validation_call("granted")
            logger.info("legacy_candidate_granted", product_id=candidate.product_id)
            return True

        metrics.record_validation_call("not_granted")
        logger.warning(
            "legacy_candidate_not_granted",
            product_id=candidate.product_id,
            token_prefix=candidate.token_prefix,
            success=response.success,
            is_premium=response.is_premium,
            entitlement_type=response.entitlement_type,
        )
        return False


async def restore_legacy_aware(
    platform_client: SubscriptionPlatformClient,
    billing_client: DeviceBillingClient,
    validator: PurchaseValidator,
    platform: Platform | str,
    catalog: ProductCatalog | None = None,
) -> bool:
    """
    Restore premium for the current user, legacy lifetime purchases included.

    Raises:
        LegacyRestorePendingError: code == "LEGACY_RESTORE_PENDING"
        Exception: A non-pending validation rejection, unchanged
    """
    orchestrator = LegacyRestoreOrchestrator(
        platform_client=platform_client,
        billing_client=billing_client,
        validator=validator,
        platform=platform,
        catalog=catalog,
    )
    return await orchestrator.restore_purchases()
