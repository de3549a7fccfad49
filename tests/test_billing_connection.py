"""
Tests for SharedBillingConnection reference counting.
"""

import asyncio

import pytest

from entitlement_engine.services.billing_connection import SharedBillingConnection
from entitlement_engine.services.legacy_restore import restore_legacy_aware


class TestSharedBillingConnection:
    """Tests for open/close bookkeeping."""

    @pytest.mark.asyncio
    async def test_first_holder_opens(self, billing_client):
        """The first init opens the underlying connection."""
        shared = SharedBillingConnection(billing_client)

        assert await shared.init_connection() is True
        assert shared.holders == 1
        billing_client.init_connection.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_nested_holders_share_one_connection(self, billing_client):
        """Only the last release closes the underlying connection."""
        shared = SharedBillingConnection(billing_client)

        await shared.init_connection()
        await shared.init_connection()
        await shared.end_connection()

        billing_client.init_connection.assert_awaited_once()
        billing_client.end_connection.assert_not_awaited()

        await shared.end_connection()

        billing_client.end_connection.assert_awaited_once()
        assert shared.holders == 0

    @pytest.mark.asyncio
    async def test_unbalanced_release_is_noop(self, billing_client):
        """Releasing without a holder does nothing."""
        shared = SharedBillingConnection(billing_client)

        await shared.end_connection()

        billing_client.end_connection.assert_not_awaited()
        assert shared.holders == 0

    @pytest.mark.asyncio
    async def test_failed_open_is_not_counted(self, billing_client):
        """A failing connect leaves no holder behind."""
        billing_client.init_connection.side_effect = RuntimeError("disconnected")
        shared = SharedBillingConnection(billing_client)

        with pytest.raises(RuntimeError):
            await shared.init_connection()

        assert shared.holders == 0

    @pytest.mark.asyncio
    async def test_purchases_delegate(self, billing_client):
        """Purchase history comes from the wrapped client."""
        billing_client.get_available_purchases.return_value = ["purchase"]
        shared = SharedBillingConnection(billing_client)

        assert await shared.get_available_purchases() == ["purchase"]

    @pytest.mark.asyncio
    async def test_concurrent_restores_close_once(
        self, platform_client, billing_client, validator, catalog
    ):
        """Overlapping restores open and close the real connection once each."""
        shared = SharedBillingConnection(billing_client)
        gate = asyncio.Event()

        async def slow_history():
            await gate.wait()
            return []

        billing_client.get_available_purchases.side_effect = slow_history

        restores = [
            asyncio.create_task(
                restore_legacy_aware(platform_client, shared, validator, "android", catalog)
            )
            for _ in range(3)
        ]
        while billing_client.get_available_purchases.await_count < 3:
            await asyncio.sleep(0)

        assert shared.holders == 3
        gate.set()
        results = await asyncio.gather(*restores)

        assert results == [False, False, False]
        billing_client.init_connection.assert_awaited_once()
        billing_client.end_connection.assert_awaited_once()
        assert shared.holders == 0
