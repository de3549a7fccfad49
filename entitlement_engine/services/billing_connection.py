"""
Shared device billing connection.

The billing library connection is process-wide. Overlapping restores each
open and close it; this wrapper keeps the underlying connection open until
the last holder releases it.
"""

import asyncio
from collections.abc import Sequence

from structlog import get_logger

from entitlement_engine.models.domain import PurchaseRecord
from entitlement_engine.services.collaborators import DeviceBillingClient

logger = get_logger(__name__)


class SharedBillingConnection:
    """Reference-counted DeviceBillingClient wrapper."""

    def __init__(self, inner: DeviceBillingClient) -> None:
        self._inner = inner
        self._holders = 0
        self._lock = asyncio.Lock()

    @property
    def holders(self) -> int:
        """Number of callers currently holding the connection."""
        return self._holders

    async def init_connection(self) -> bool:
        async with self._lock:
            if self._holders == 0:
                connected = await self._inner.init_connection()
                logger.debug("billing_connection_opened", connected=connected)
            else:
                connected = True
            self._holders += 1
            return connected

    async def end_connection(self) -> None:
        async with self._lock:
            if self._holders == 0:
                logger.warning("billing_connection_release_without_holder")
                return
            self._holders -= 1
            if self._holders == 0:
                await self._inner.end_connection()
                logger.debug("billing_connection_closed")

    async def get_available_purchases(self) -> Sequence[PurchaseRecord]:
        return await self._inner.get_available_purchases()
