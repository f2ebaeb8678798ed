"""XLM settlement engine.

Composes the correlation registry, the outbound settlement coordinator and
the inbound reconciler into the lifecycle the connector expects:

    engine = await create_engine(services, ledger=ledger)

    await engine.handle_message("peerA", {"type": "paymentDetails"})
    await engine.settle("peerA", Decimal("10.5"))

    await engine.disconnect()
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Protocol

from xlm_settlement.config import EngineConfig
from xlm_settlement.engine.coordinator import SettlementCoordinator, SettlementLock
from xlm_settlement.engine.messages import PaymentDetails, parse_request
from xlm_settlement.engine.reconciler import InboundReconciler
from xlm_settlement.engine.registry import CorrelationRegistry
from xlm_settlement.events import AsyncEventEmitter, EventMetadata, PaymentDetailsIssued
from xlm_settlement.providers.base import LedgerClient, PaymentEvent

logger = logging.getLogger(__name__)


class AccountServices(Protocol):
    """Connector services the engine relies on."""

    async def send_message(self, account_id: str, message: Any) -> Any:
        """Send a message to a peer's settlement engine and return its reply."""
        ...

    async def credit_settlement(
        self,
        account_id: str,
        amount: Decimal,
        evidence: PaymentEvent,
    ) -> None:
        """Credit an incoming settlement to a peer's account."""
        ...


class XlmSettlementEngine:
    """Settlement engine bound to one ledger account."""

    def __init__(
        self,
        ledger: LedgerClient,
        services: AccountServices,
        *,
        config: EngineConfig | None = None,
        emitter: AsyncEventEmitter | None = None,
        registry: CorrelationRegistry | None = None,
        owns_ledger: bool = False,
    ):
        self.config = config or EngineConfig()
        self.ledger = ledger
        self.services = services
        self.emitter = emitter or AsyncEventEmitter()
        self.registry = registry or CorrelationRegistry(
            self.config.correlation.token_ttl_seconds,
            max_attempts=self.config.correlation.max_issue_attempts,
        )
        self.coordinator = SettlementCoordinator(
            ledger,
            services.send_message,
            config=self.config,
            emitter=self.emitter,
            lock=SettlementLock(),
        )
        self.reconciler = InboundReconciler(
            ledger,
            self.registry,
            services.credit_settlement,
            config=self.config.reconciler,
            emitter=self.emitter,
        )
        self._owns_ledger = owns_ledger
        self._connected = False

    @property
    def address(self) -> str:
        """This node's ledger address."""
        return self.ledger.address

    async def connect(self) -> None:
        """Start memo expiry and subscribe to incoming payments."""
        if self._connected:
            return
        self.registry.start(self.config.correlation.sweep_interval_seconds)
        self.reconciler.start()
        self._connected = True
        logger.info("Settlement engine connected: address=%s", self.address)

    async def handle_message(self, account_id: str, message: Any) -> dict[str, Any]:
        """Answer a peer's request.

        Raises:
            UnknownMessageTypeError: Unsupported message.
            TokenCollisionError: No unused memo could be generated.
        """
        parse_request(message)
        token = self.registry.issue(account_id)
        await self.emitter.emit(
            PaymentDetailsIssued(
                metadata=EventMetadata.create(),
                peer_account_id=account_id,
                payment_memo=token,
                ttl_seconds=self.registry.ttl_seconds,
            )
        )
        return PaymentDetails(payment_memo=token, ledger_address=self.address).to_dict()

    async def settle(self, account_id: str, amount: Decimal) -> Decimal:
        """Settle up to amount with a peer; returns the amount settled."""
        return await self.coordinator.settle(account_id, amount)

    async def handle_transaction(self, event: PaymentEvent) -> None:
        """Reconcile one observed ledger payment."""
        await self.reconciler.handle_transaction(event)

    async def disconnect(self) -> None:
        """Stop timers and the payment stream. Safe to call more than once.

        A settlement already submitting is left to finish.
        """
        await self.registry.teardown()
        await self.reconciler.stop()
        if self._connected and self._owns_ledger:
            await self.ledger.close()
        if self._connected:
            logger.info("Settlement engine disconnected: address=%s", self.address)
        self._connected = False


async def create_engine(
    services: AccountServices,
    *,
    ledger: LedgerClient,
    config: EngineConfig | None = None,
    emitter: AsyncEventEmitter | None = None,
    owns_ledger: bool = False,
) -> XlmSettlementEngine:
    """Build an engine and connect it to the ledger."""
    engine = XlmSettlementEngine(
        ledger,
        services,
        config=config,
        emitter=emitter,
        owns_ledger=owns_ledger,
    )
    await engine.connect()
    return engine
