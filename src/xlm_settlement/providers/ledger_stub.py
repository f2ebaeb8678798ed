"""In-memory ledger for development and testing.

Behaves like a single-account view of the ledger:
- Sequence numbers advance on every accepted submission
- Inbound payments are broadcast to live stream subscribers only
- Failures and rejections can be injected for the next submission
"""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import AsyncIterator
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any

from xlm_settlement.providers.base import (
    LedgerPayment,
    PaymentEvent,
    SubmitResult,
    TransactionDetail,
)

STUB_ADDRESS = "GSTUBLEDGERACCOUNT"


@dataclass(frozen=True)
class StubAccount:
    """Account state returned by load_account()."""

    address: str
    sequence: int


@dataclass(frozen=True)
class StubEnvelope:
    """A payment transaction built by the stub ledger."""

    source: str
    sequence: int
    payment: LedgerPayment
    timeout_seconds: int
    signed: bool = False


class StubLedger:
    """Stub ledger client.

    In production this is a Horizon client; see StellarLedgerClient.
    """

    def __init__(self, address: str = STUB_ADDRESS, *, starting_sequence: int = 1000):
        self.address = address
        self.closed = False
        self.load_count = 0
        self.submit_count = 0
        self._sequence = starting_sequence
        self._submitted: dict[str, StubEnvelope] = {}
        self._transactions: dict[str, TransactionDetail] = {}
        self._history: list[PaymentEvent] = []
        self._subscribers: list[asyncio.Queue[PaymentEvent]] = []
        self._subscribed = asyncio.Event()
        self._next_error: Exception | None = None
        self._next_rejection: str | None = None
        self._submission_gate: asyncio.Event | None = None
        self.submission_started = asyncio.Event()

    @property
    def submitted(self) -> list[StubEnvelope]:
        """Envelopes accepted so far, in submission order."""
        return list(self._submitted.values())

    async def load_account(self) -> StubAccount:
        self.load_count += 1
        return StubAccount(address=self.address, sequence=self._sequence)

    def build_payment(
        self,
        account: StubAccount,
        payment: LedgerPayment,
        *,
        timeout_seconds: int,
    ) -> StubEnvelope:
        if not payment.destination:
            raise ValueError("destination is required")
        if payment.amount <= 0:
            raise ValueError(f"amount must be positive: {payment.amount}")
        return StubEnvelope(
            source=account.address,
            sequence=account.sequence + 1,
            payment=payment,
            timeout_seconds=timeout_seconds,
        )

    def sign(self, envelope: StubEnvelope) -> StubEnvelope:
        return replace(envelope, signed=True)

    async def submit(self, envelope: StubEnvelope) -> SubmitResult:
        if not envelope.signed:
            raise ValueError("envelope is not signed")

        self.submit_count += 1
        self.submission_started.set()
        if self._submission_gate is not None:
            await self._submission_gate.wait()

        if self._next_error is not None:
            error, self._next_error = self._next_error, None
            raise error

        tx_hash = _hash(f"{envelope.source}:{envelope.sequence}:{envelope.payment}")
        if self._next_rejection is not None:
            message, self._next_rejection = self._next_rejection, None
            return SubmitResult(transaction_hash=tx_hash, accepted=False, message=message)

        if envelope.sequence != self._sequence + 1:
            return SubmitResult(
                transaction_hash=tx_hash,
                accepted=False,
                message="tx_bad_seq",
            )

        self._sequence = envelope.sequence
        self._submitted[tx_hash] = envelope
        self._transactions[tx_hash] = TransactionDetail(
            transaction_hash=tx_hash,
            memo_type="id",
            memo=str(envelope.payment.memo_id),
        )
        return SubmitResult(transaction_hash=tx_hash, accepted=True, message="stub accepted")

    async def fetch_transaction(self, transaction_hash: str) -> TransactionDetail:
        if transaction_hash not in self._transactions:
            raise LookupError(f"Transaction {transaction_hash} not found")
        return self._transactions[transaction_hash]

    async def stream_payments(self, cursor: str = "now") -> AsyncIterator[PaymentEvent]:
        queue: asyncio.Queue[PaymentEvent] = asyncio.Queue()
        if cursor != "now":
            for event in self._history:
                if int(event.paging_token) > int(cursor):
                    queue.put_nowait(event)

        self._subscribers.append(queue)
        self._subscribed.set()
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers.remove(queue)
            if not self._subscribers:
                self._subscribed.clear()

    async def close(self) -> None:
        self.closed = True

    # -------------------------------------------------------------------------
    # Simulation helpers
    # -------------------------------------------------------------------------

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def wait_for_subscriber(self) -> None:
        """Wait until at least one payment stream is consuming."""
        await self._subscribed.wait()

    def simulate_incoming_payment(
        self,
        *,
        source: str,
        amount: Decimal | str,
        memo: str | None = None,
        destination: str | None = None,
        memo_type: str = "id",
    ) -> PaymentEvent:
        """Record a payment and deliver it to current stream subscribers."""
        sequence = len(self._history) + 1
        tx_hash = _hash(f"incoming:{source}:{sequence}:{amount}:{memo}")
        event = PaymentEvent(
            event_id=str(sequence),
            paging_token=str(sequence),
            source=source,
            destination=destination or self.address,
            amount=Decimal(str(amount)),
            transaction_hash=tx_hash,
            raw_payload={"memo": memo},
        )
        self._transactions[tx_hash] = TransactionDetail(
            transaction_hash=tx_hash,
            memo_type=memo_type if memo is not None else "none",
            memo=memo,
        )
        self._history.append(event)
        for queue in self._subscribers:
            queue.put_nowait(event)
        return event

    def fail_next_submit(self, error: Exception | None = None) -> None:
        """Make the next submit() raise."""
        self._next_error = error or TimeoutError("stub submission timed out")

    def reject_next_submit(self, message: str = "tx_failed") -> None:
        """Make the next submit() return a rejected result."""
        self._next_rejection = message

    def hold_submissions(self) -> None:
        """Block submit() until release_submissions() is called."""
        self._submission_gate = asyncio.Event()
        self.submission_started.clear()

    def release_submissions(self) -> None:
        if self._submission_gate is not None:
            self._submission_gate.set()
            self._submission_gate = None


def _hash(value: Any) -> str:
    return hashlib.sha256(str(value).encode()).hexdigest()
