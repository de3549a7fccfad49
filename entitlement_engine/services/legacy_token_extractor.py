"""
Recover a legacy lifetime purchase token from an SDK error message.

When a platform restore fails, the SDK sometimes only reports the offending
store transaction as text, e.g.::

    ... StoreTransaction(orderId=GPA.1, productIds=[premium_unlock], ...,
    purchaseToken=abc.def.123) ...

This module turns that text back into a LegacyCandidate.
"""

import re

from structlog import get_logger

from entitlement_engine.models.domain import LegacyCandidate
from entitlement_engine.services.products import ProductCatalog, default_catalog

logger = get_logger(__name__)

_TRANSACTION_PATTERN = re.compile(
    r"productIds=\[(?P<ids>[^\]]*)\]"
    r"(?:(?!productIds=).)*?"
    r"purchaseToken=(?P<token>[^)]*)\)",
    re.DOTALL,
)


def _split_product_ids(raw_ids: str) -> list[str]:
    ids = []
    for raw in raw_ids.split(","):
        product_id = raw.strip().strip("'\"").strip()
        if product_id:
            ids.append(product_id)
    return ids


def extract_legacy_candidate(
    error_message: str | None,
    catalog: ProductCatalog | None = None,
) -> LegacyCandidate | None:
    """
    Extract a legacy lifetime candidate from an embedded transaction description.

    Args:
        error_message: Message text of the caught error
        catalog: Product catalog (defaults to the configured catalog)

    Returns:
        Candidate for the first legacy lifetime product id found, or None
    """
    if not error_message or not isinstance(error_message, str):
        return None

    catalog = catalog or default_catalog()

    for match in _TRANSACTION_PATTERN.finditer(error_message):
        token = match.group("token").strip()
        if not token:
            continue
        for product_id in _split_product_ids(match.group("ids")):
            if catalog.is_legacy_lifetime_product(product_id):
                logger.info(
                    "legacy_candidate_extracted_from_error",
                    product_id=product_id,
                    token_prefix=token[:8],
                )
                return LegacyCandidate(product_id=product_id, purchase_token=token)

    return None
