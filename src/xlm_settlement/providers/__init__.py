"""Ledger client adapters.

StellarLedgerClient lives in xlm_settlement.providers.stellar and is imported
from there by the bootstrap.
"""

from xlm_settlement.providers.base import (
    LedgerClient,
    LedgerPayment,
    PaymentEvent,
    SubmitResult,
    TransactionDetail,
)
from xlm_settlement.providers.ledger_stub import StubLedger

__all__ = [
    "LedgerClient",
    "LedgerPayment",
    "PaymentEvent",
    "SubmitResult",
    "TransactionDetail",
    "StubLedger",
]
