"""Inbound payment reconciliation.

Matches payments observed on the ledger to the peers that were issued
their memos, and credits the connector once per payment. Payments whose
memo is unknown or expired are dropped: there is no retry, so the memo TTL
must stay well above the peers' settlement round trip.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from decimal import Decimal
from typing import Any

from xlm_settlement.config import ReconcilerConfig
from xlm_settlement.engine.registry import CorrelationRegistry
from xlm_settlement.events import (
    AsyncEventEmitter,
    EventMetadata,
    IncomingPaymentCredited,
    IncomingPaymentDropped,
)
from xlm_settlement.providers.base import LedgerClient, PaymentEvent

logger = logging.getLogger(__name__)

CreditSettlement = Callable[[str, Decimal, PaymentEvent], Awaitable[Any]]


class InboundReconciler:
    """Consumes the ledger payment stream and credits matched payments."""

    def __init__(
        self,
        ledger: LedgerClient,
        registry: CorrelationRegistry,
        credit_settlement: CreditSettlement,
        *,
        config: ReconcilerConfig | None = None,
        emitter: AsyncEventEmitter | None = None,
    ):
        self.ledger = ledger
        self.registry = registry
        self.credit_settlement = credit_settlement
        self.config = config or ReconcilerConfig()
        self.emitter = emitter or AsyncEventEmitter()
        self._seen: OrderedDict[str, None] = OrderedDict()
        self._cursor = "now"
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def handle_transaction(self, event: PaymentEvent) -> bool:
        """Credit one observed payment if it belongs to a known peer.

        Returns:
            True if the connector was credited.
        """
        if event.destination != self.ledger.address:
            return await self._drop(event, "not_addressed_to_us")
        if event.amount <= 0:
            return await self._drop(event, "non_positive_amount")
        if event.event_id in self._seen:
            return await self._drop(event, "duplicate")

        # The stream record carries no memo; it lives on the transaction
        detail = await self.ledger.fetch_transaction(event.transaction_hash)
        if not detail.memo:
            return await self._drop(event, "missing_memo")

        peer_account_id = self.registry.resolve(detail.memo)
        if peer_account_id is None:
            return await self._drop(event, "unknown_memo")

        self._remember(event.event_id)
        logger.info(
            "Crediting incoming settlement: account=%s xlm=%s tx=%s",
            peer_account_id,
            event.amount,
            event.transaction_hash,
        )
        await self.credit_settlement(peer_account_id, event.amount, event)
        await self.emitter.emit(
            IncomingPaymentCredited(
                metadata=EventMetadata.create(),
                peer_account_id=peer_account_id,
                amount=event.amount,
                payment_memo=detail.memo,
                transaction_hash=event.transaction_hash,
            )
        )
        return True

    def _remember(self, event_id: str) -> None:
        self._seen[event_id] = None
        while len(self._seen) > self.config.seen_event_capacity:
            self._seen.popitem(last=False)

    async def _drop(self, event: PaymentEvent, reason: str) -> bool:
        logger.debug(
            "Ignoring ledger payment %s (%s): amount=%s",
            event.transaction_hash,
            reason,
            event.amount,
        )
        await self.emitter.emit(
            IncomingPaymentDropped(
                metadata=EventMetadata.create(),
                amount=event.amount,
                transaction_hash=event.transaction_hash,
                reason=reason,
            )
        )
        return False

    def start(self) -> None:
        """Subscribe to the ledger payment stream from now on."""
        if self.running:
            return
        self._task = asyncio.create_task(self._consume(), name="inbound-payment-stream")

    async def stop(self) -> None:
        """Unsubscribe from the payment stream. Safe to call more than once."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _consume(self) -> None:
        while True:
            try:
                async for event in self.ledger.stream_payments(cursor=self._cursor):
                    self._cursor = event.paging_token
                    try:
                        await self.handle_transaction(event)
                    except Exception:
                        logger.exception(
                            "Failed to reconcile ledger payment %s",
                            event.transaction_hash,
                        )
            except Exception:
                logger.exception(
                    "Ledger payment stream failed; resubscribing from cursor=%s",
                    self._cursor,
                )
            await asyncio.sleep(self.config.stream_retry_seconds)
