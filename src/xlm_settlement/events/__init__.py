"""Settlement domain events package."""

from xlm_settlement.events.emitter import (
    AsyncEventEmitter,
    EventHandler,
)
from xlm_settlement.events.types import (
    DomainEvent,
    EventCategory,
    EventMetadata,
    IncomingPaymentCredited,
    IncomingPaymentDropped,
    PaymentDetailsIssued,
    SettlementAborted,
    SettlementStarted,
    SettlementSubmissionFailed,
    SettlementSubmitted,
)

__all__ = [
    # Base
    "DomainEvent",
    "EventMetadata",
    "EventCategory",
    # Correlation Events
    "PaymentDetailsIssued",
    # Settlement Events
    "SettlementStarted",
    "SettlementAborted",
    "SettlementSubmitted",
    "SettlementSubmissionFailed",
    # Reconciliation Events
    "IncomingPaymentCredited",
    "IncomingPaymentDropped",
    # Emitter
    "AsyncEventEmitter",
    "EventHandler",
]
