"""Settlement engine core: memo registry, outbound coordinator, inbound reconciler."""

from xlm_settlement.engine.coordinator import (
    SettlementCoordinator,
    SettlementIntent,
    SettlementLock,
    quantize,
)
from xlm_settlement.engine.engine import AccountServices, XlmSettlementEngine, create_engine
from xlm_settlement.engine.errors import (
    InvalidPaymentDetailsError,
    SettlementEngineError,
    SettlementInProgressError,
    SubmissionError,
    TokenCollisionError,
    TransactionBuildError,
    UnknownMessageTypeError,
    UnreachablePeerError,
)
from xlm_settlement.engine.messages import (
    DetailsValidation,
    InvalidDetailsReason,
    MessageType,
    PaymentDetails,
    PaymentDetailsRequest,
    parse_request,
    validate_payment_details,
)
from xlm_settlement.engine.reconciler import InboundReconciler
from xlm_settlement.engine.registry import CorrelationEntry, CorrelationRegistry

__all__ = [
    # Registry
    "CorrelationEntry",
    "CorrelationRegistry",
    # Messages
    "MessageType",
    "PaymentDetailsRequest",
    "PaymentDetails",
    "DetailsValidation",
    "InvalidDetailsReason",
    "parse_request",
    "validate_payment_details",
    # Coordinator
    "SettlementCoordinator",
    "SettlementIntent",
    "SettlementLock",
    "quantize",
    # Reconciler
    "InboundReconciler",
    # Engine
    "AccountServices",
    "XlmSettlementEngine",
    "create_engine",
    # Errors
    "SettlementEngineError",
    "UnknownMessageTypeError",
    "TokenCollisionError",
    "UnreachablePeerError",
    "InvalidPaymentDetailsError",
    "SettlementInProgressError",
    "TransactionBuildError",
    "SubmissionError",
]
