"""
Tests for recovering a legacy purchase token from SDK error text.
"""

from entitlement_engine.services.legacy_token_extractor import extract_legacy_candidate

SDK_ERROR = (
    "PurchasesError(code=StoreProblemError, underlyingErrorMessage=Error updating purchases. "
    "StoreTransaction(orderId=GPA.3372-1234-5678-90123, productIds=[premium_unlock], "
    "type=INAPP, purchaseTime=1672531200000, purchaseToken=abcdefghijkl.AO-J1Oy123), "
    "message='There was a problem with the store.')"
)


class TestExtractLegacyCandidate:
    """Tests for extract_legacy_candidate."""

    def test_extracts_token(self, catalog):
        """Embedded transaction yields product id and token."""
        candidate = extract_legacy_candidate(SDK_ERROR, catalog)

        assert candidate is not None
        assert candidate.product_id == "premium_unlock"
        assert candidate.purchase_token == "abcdefghijkl.AO-J1Oy123"
        assert candidate.token_prefix == "abcdefgh"

    def test_non_legacy_product_ignored(self, catalog):
        """Transactions for other products are not candidates."""
        message = "StoreTransaction(productIds=[monthly_showseek_sub], purchaseToken=tok-1)"
        assert extract_legacy_candidate(message, catalog) is None

    def test_multiple_product_ids(self, catalog):
        """The legacy id is found among several listed ids."""
        message = "StoreTransaction(productIds=[coins_100, 'premium_unlock'], purchaseToken=tok-2)"

        candidate = extract_legacy_candidate(message, catalog)

        assert candidate is not None
        assert candidate.product_id == "premium_unlock"
        assert candidate.purchase_token == "tok-2"

    def test_second_transaction_matches(self, catalog):
        """A later legacy transaction is found past a non-legacy one."""
        message = (
            "StoreTransaction(productIds=[coins_100], purchaseToken=tok-coins) "
            "StoreTransaction(productIds=[PREMIUM_UNLOCK], purchaseToken=tok-legacy)"
        )

        candidate = extract_legacy_candidate(message, catalog)

        assert candidate is not None
        assert candidate.purchase_token == "tok-legacy"

    def test_token_not_borrowed_from_next_transaction(self, catalog):
        """A transaction without its own token does not take a later one."""
        message = (
            "StoreTransaction(productIds=[premium_unlock], type=INAPP) "
            "StoreTransaction(productIds=[coins_100], purchaseToken=tok-coins)"
        )
        assert extract_legacy_candidate(message, catalog) is None

    def test_empty_token(self, catalog):
        """Blank tokens are ignored."""
        message = "StoreTransaction(productIds=[premium_unlock], purchaseToken= )"
        assert extract_legacy_candidate(message, catalog) is None

    def test_multiline_message(self, catalog):
        """Descriptions split across lines still match."""
        message = "StoreTransaction(productIds=[premium_unlock],\n  purchaseToken=tok-3)"

        candidate = extract_legacy_candidate(message, catalog)

        assert candidate is not None
        assert candidate.purchase_token == "tok-3"

    def test_no_transaction(self, catalog):
        """Plain messages yield nothing."""
        assert extract_legacy_candidate("Network error", catalog) is None
        assert extract_legacy_candidate("", catalog) is None
        assert extract_legacy_candidate(None, catalog) is None
