"""Outbound settlement coordinator.

Settles a peer's balance on the ledger:
1. Quantize the amount to the ledger unit (round toward zero)
2. Ask the peer for payment details (address + memo)
3. Take the node-wide settlement lock (never waits)
4. Load account, build, sign and submit the payment
5. Report the settled amount back to the connector

Any amount not reported as settled stays queued in the connector and is
retried with the next settlement.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal, localcontext
from typing import Any
from uuid import UUID, uuid4

from xlm_settlement.config import EngineConfig
from xlm_settlement.engine.errors import (
    InvalidPaymentDetailsError,
    SettlementInProgressError,
    SubmissionError,
    TransactionBuildError,
    UnreachablePeerError,
)
from xlm_settlement.engine.messages import (
    PaymentDetails,
    PaymentDetailsRequest,
    validate_payment_details,
)
from xlm_settlement.events import (
    AsyncEventEmitter,
    DomainEvent,
    EventMetadata,
    SettlementAborted,
    SettlementStarted,
    SettlementSubmissionFailed,
    SettlementSubmitted,
)
from xlm_settlement.providers.base import LedgerClient, LedgerPayment, SubmitResult

logger = logging.getLogger(__name__)

ZERO = Decimal(0)

SendMessage = Callable[[str, Any], Awaitable[Any]]


def quantize(amount: Decimal, precision: int) -> Decimal:
    """Truncate amount to precision fractional digits, toward zero."""
    exponent = Decimal(1).scaleb(-precision)
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, amount.adjusted() + precision + 2)
        return amount.quantize(exponent, rounding=ROUND_DOWN)


@dataclass(frozen=True)
class SettlementIntent:
    """One outbound settlement attempt. Never persisted."""

    peer_account_id: str
    requested_amount: Decimal
    quantized_amount: Decimal
    correlation_id: UUID


class SettlementLock:
    """Node-wide single-flight lock for ledger submissions.

    One signing key means one sequence number; two transactions built from
    the same account state would collide. hold() fails immediately instead
    of queueing callers.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[None]:
        """Hold the lock for the duration of the block.

        Raises:
            SettlementInProgressError: Another settlement holds the lock.
        """
        if self._lock.locked():
            raise SettlementInProgressError()
        await self._lock.acquire()
        try:
            yield
        finally:
            self._lock.release()


class SettlementCoordinator:
    """Drives outbound settlements against the ledger."""

    def __init__(
        self,
        ledger: LedgerClient,
        send_message: SendMessage,
        *,
        config: EngineConfig | None = None,
        emitter: AsyncEventEmitter | None = None,
        lock: SettlementLock | None = None,
    ):
        self.ledger = ledger
        self.send_message = send_message
        self.config = config or EngineConfig()
        self.emitter = emitter or AsyncEventEmitter()
        self.lock = lock or SettlementLock()

    @property
    def precision(self) -> int:
        return self.config.ledger.precision

    async def settle(self, peer_account_id: str, requested_amount: Decimal) -> Decimal:
        """Settle up to requested_amount with a peer.

        Returns:
            The amount to report as settled. Zero when nothing was sent.
        """
        if not isinstance(requested_amount, Decimal):
            requested_amount = Decimal(str(requested_amount))

        amount = quantize(requested_amount, self.precision)
        if amount <= 0:
            # Connector scale finer than stroops can still round down to zero
            return ZERO

        intent = SettlementIntent(
            peer_account_id=peer_account_id,
            requested_amount=requested_amount,
            quantized_amount=amount,
            correlation_id=uuid4(),
        )
        logger.info("Starting settlement: account=%s xlm=%s", peer_account_id, amount)
        await self._publish(
            SettlementStarted(
                metadata=self._metadata(intent),
                peer_account_id=peer_account_id,
                requested_amount=requested_amount,
                quantized_amount=amount,
            )
        )

        try:
            details = await self._request_payment_details(peer_account_id)
        except UnreachablePeerError as e:
            logger.warning(
                "Failed to settle: error fetching payment details: account=%s xlm=%s: %s",
                peer_account_id,
                amount,
                e,
            )
            return await self._abort(intent, "unreachable_peer", str(e))
        except InvalidPaymentDetailsError as e:
            logger.warning(
                "Failed to settle: received invalid payment details: account=%s xlm=%s reason=%s",
                peer_account_id,
                amount,
                e.reason.value,
            )
            return await self._abort(intent, "invalid_payment_details", e.reason.value)

        try:
            async with self.lock.hold():
                return await self._execute(intent, details)
        except SettlementInProgressError:
            logger.info(
                "Failed to settle: transaction already in progress: account=%s xlm=%s",
                peer_account_id,
                amount,
            )
            return await self._abort(intent, "already_in_progress")

    async def _request_payment_details(self, peer_account_id: str) -> PaymentDetails:
        try:
            response = await self.send_message(
                peer_account_id, PaymentDetailsRequest().to_dict()
            )
        except Exception as e:
            raise UnreachablePeerError(str(e)) from e

        validation = validate_payment_details(response)
        if validation.details is None:
            raise InvalidPaymentDetailsError(validation.reason)
        return validation.details

    async def _execute(self, intent: SettlementIntent, details: PaymentDetails) -> Decimal:
        """Build, sign and submit. Caller holds the lock."""
        payment = LedgerPayment(
            destination=details.ledger_address,
            amount=intent.quantized_amount,
            memo_id=details.memo_id,
        )

        try:
            envelope = await self._prepare(payment)
        except TransactionBuildError as e:
            logger.exception(
                "Failed to settle: error preparing XLM payment: account=%s xlm=%s",
                intent.peer_account_id,
                intent.quantized_amount,
            )
            return await self._abort(intent, "build_failed", str(e.__cause__ or e))

        try:
            result = await self.ledger.submit(envelope)
            if not result.accepted:
                raise SubmissionError(result.message or "transaction rejected")
        except Exception as e:
            return await self._on_submission_failure(intent, details, e)

        return await self._on_submitted(intent, details, result)

    async def _prepare(self, payment: LedgerPayment) -> Any:
        try:
            account = await self.ledger.load_account()
            envelope = self.ledger.build_payment(
                account,
                payment,
                timeout_seconds=self.config.ledger.submission_timeout_seconds,
            )
            return self.ledger.sign(envelope)
        except Exception as e:
            raise TransactionBuildError(str(e)) from e

    async def _on_submitted(
        self,
        intent: SettlementIntent,
        details: PaymentDetails,
        result: SubmitResult,
    ) -> Decimal:
        logger.info(
            "Settled: account=%s xlm=%s tx=%s",
            intent.peer_account_id,
            intent.quantized_amount,
            result.transaction_hash,
        )
        await self._publish(
            SettlementSubmitted(
                metadata=self._metadata(intent),
                peer_account_id=intent.peer_account_id,
                amount=intent.quantized_amount,
                destination=details.ledger_address,
                payment_memo=details.payment_memo,
                transaction_hash=result.transaction_hash,
            )
        )
        return intent.quantized_amount

    async def _on_submission_failure(
        self,
        intent: SettlementIntent,
        details: PaymentDetails,
        error: Exception,
    ) -> Decimal:
        assume_settled = self.config.settlement.assume_settled_on_submission_failure
        logger.error(
            "Failed to settle: transaction error: account=%s xlm=%s assumed_settled=%s: %r",
            intent.peer_account_id,
            intent.quantized_amount,
            assume_settled,
            error,
        )
        await self._publish(
            SettlementSubmissionFailed(
                metadata=self._metadata(intent),
                peer_account_id=intent.peer_account_id,
                amount=intent.quantized_amount,
                destination=details.ledger_address,
                payment_memo=details.payment_memo,
                error=repr(error),
                assumed_settled=assume_settled,
            )
        )
        return intent.quantized_amount if assume_settled else ZERO

    async def _abort(self, intent: SettlementIntent, reason: str, detail: str = "") -> Decimal:
        await self._publish(
            SettlementAborted(
                metadata=self._metadata(intent),
                peer_account_id=intent.peer_account_id,
                amount=intent.quantized_amount,
                reason=reason,
                detail=detail,
            )
        )
        return ZERO

    def _metadata(self, intent: SettlementIntent) -> EventMetadata:
        return EventMetadata.create(correlation_id=intent.correlation_id)

    async def _publish(self, event: DomainEvent) -> None:
        await self.emitter.emit(event)
