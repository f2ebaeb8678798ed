"""Base protocol and types for ledger clients.

The engine talks to the ledger only through the LedgerClient protocol.
Transaction construction, signing and submission correctness belong to the
client implementation.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol


@dataclass(frozen=True)
class LedgerPayment:
    """An outbound native-asset payment to build."""

    destination: str
    amount: Decimal
    memo_id: int


@dataclass(frozen=True)
class SubmitResult:
    """Result of submitting a signed transaction."""

    transaction_hash: str
    accepted: bool
    message: str = ""


@dataclass(frozen=True)
class PaymentEvent:
    """A payment operation observed on the ledger."""

    event_id: str
    paging_token: str
    source: str
    destination: str
    amount: Decimal
    transaction_hash: str
    asset_type: str = "native"
    raw_payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TransactionDetail:
    """The parts of a ledger transaction the reconciler needs."""

    transaction_hash: str
    memo_type: str | None = None  # none/id/text/hash/return
    memo: str | None = None


class LedgerClient(Protocol):
    """Protocol for ledger client adapters.

    A client is bound to one signing account; address is that account's
    public key.
    """

    address: str

    async def load_account(self) -> Any:
        """Load the current state (sequence number) of our account."""
        ...

    def build_payment(
        self,
        account: Any,
        payment: LedgerPayment,
        *,
        timeout_seconds: int,
    ) -> Any:
        """Build an unsigned payment transaction.

        Args:
            account: State returned by load_account()
            payment: Destination, amount and id memo
            timeout_seconds: Upper time bound for the transaction

        Returns:
            A transaction envelope understood by sign() and submit().
        """
        ...

    def sign(self, envelope: Any) -> Any:
        """Sign an envelope with our account's key."""
        ...

    async def submit(self, envelope: Any) -> SubmitResult:
        """Submit a signed envelope.

        May raise on network errors or timeouts. A rejected transaction is
        reported either by raising or by SubmitResult.accepted == False.
        """
        ...

    async def fetch_transaction(self, transaction_hash: str) -> TransactionDetail:
        """Fetch memo details of a transaction."""
        ...

    def stream_payments(self, cursor: str = "now") -> AsyncIterator[PaymentEvent]:
        """Stream payments to or from our account, starting after cursor.

        "now" starts from the latest ledger; earlier payments are not
        replayed.
        """
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...
