"""Domain event types for settlement operations.

All events are:
- Immutable (frozen dataclasses)
- Typed with explicit payloads
- Traceable via metadata
- Serializable for logging and export

Settlement failures that are absorbed into a zero (or assumed-full) result
are still published here, so they stay observable.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class EventCategory(str, Enum):
    """Event categories for routing and filtering."""

    CORRELATION = "correlation"
    SETTLEMENT = "settlement"
    RECONCILIATION = "reconciliation"


@dataclass(frozen=True)
class EventMetadata:
    """Metadata attached to every domain event."""

    event_id: UUID
    timestamp: datetime
    correlation_id: UUID  # Links events of one settlement attempt
    source_service: str
    version: int = 1

    @classmethod
    def create(
        cls,
        correlation_id: UUID | None = None,
        source_service: str = "xlm-settlement",
    ) -> EventMetadata:
        """Create metadata with auto-generated fields."""
        return cls(
            event_id=uuid4(),
            timestamp=datetime.now(timezone.utc),
            correlation_id=correlation_id or uuid4(),
            source_service=source_service,
        )


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    metadata: EventMetadata

    @property
    def event_type(self) -> str:
        """Event type name for routing."""
        return self.__class__.__name__

    @property
    def category(self) -> EventCategory:
        """Event category for filtering."""
        raise NotImplementedError("Subclasses must define category")

    def to_dict(self) -> dict[str, Any]:
        """Serialize event to dictionary."""
        data = _serialize(asdict(self))
        data["event_type"] = self.event_type
        data["category"] = self.category.value
        return data

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        return json.dumps(self.to_dict(), default=str)


def _serialize(obj: Any) -> Any:
    """Recursively convert values for JSON compatibility."""
    if isinstance(obj, dict):
        return {k: _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(v) for v in obj]
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    return obj


# =============================================================================
# Correlation Events
# =============================================================================


@dataclass(frozen=True)
class PaymentDetailsIssued(DomainEvent):
    """A payment memo was handed to a peer."""

    peer_account_id: str
    payment_memo: str
    ttl_seconds: float

    @property
    def category(self) -> EventCategory:
        return EventCategory.CORRELATION


# =============================================================================
# Settlement Events
# =============================================================================


@dataclass(frozen=True)
class SettlementStarted(DomainEvent):
    """An outbound settlement passed quantization."""

    peer_account_id: str
    requested_amount: Decimal
    quantized_amount: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.SETTLEMENT


@dataclass(frozen=True)
class SettlementAborted(DomainEvent):
    """An outbound settlement ended before submission. Nothing was settled."""

    peer_account_id: str
    amount: Decimal
    reason: str  # unreachable_peer/invalid_payment_details/already_in_progress/build_failed
    detail: str = ""

    @property
    def category(self) -> EventCategory:
        return EventCategory.SETTLEMENT


@dataclass(frozen=True)
class SettlementSubmitted(DomainEvent):
    """The ledger accepted an outbound payment."""

    peer_account_id: str
    amount: Decimal
    destination: str
    payment_memo: str
    transaction_hash: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.SETTLEMENT


@dataclass(frozen=True)
class SettlementSubmissionFailed(DomainEvent):
    """Submission failed; assumed_settled tells what the connector was told."""

    peer_account_id: str
    amount: Decimal
    destination: str
    payment_memo: str
    error: str
    assumed_settled: bool

    @property
    def category(self) -> EventCategory:
        return EventCategory.SETTLEMENT


# =============================================================================
# Reconciliation Events
# =============================================================================


@dataclass(frozen=True)
class IncomingPaymentCredited(DomainEvent):
    """An incoming ledger payment was matched and credited to a peer."""

    peer_account_id: str
    amount: Decimal
    payment_memo: str
    transaction_hash: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.RECONCILIATION


@dataclass(frozen=True)
class IncomingPaymentDropped(DomainEvent):
    """An observed ledger payment was not credited."""

    amount: Decimal
    transaction_hash: str
    reason: str  # not_addressed_to_us/non_positive_amount/duplicate/missing_memo/unknown_memo

    @property
    def category(self) -> EventCategory:
        return EventCategory.RECONCILIATION
