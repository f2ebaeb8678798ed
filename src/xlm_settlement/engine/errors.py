"""Settlement engine exceptions.

Only UnknownMessageTypeError and TokenCollisionError leave the engine.
Settlement failures are absorbed into the settled amount returned to the
connector and reported through logs and domain events.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from xlm_settlement.engine.messages import InvalidDetailsReason


class SettlementEngineError(Exception):
    """Base class for settlement engine errors."""


class UnknownMessageTypeError(SettlementEngineError):
    """Raised when a peer sends a message the engine does not understand."""

    def __init__(self, message_type: object = None):
        self.message_type = message_type
        super().__init__(f"Unknown message type: {message_type!r}")


class TokenCollisionError(SettlementEngineError):
    """Raised when no unused payment memo could be generated."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Failed to generate new payment memo after {attempts} attempts")


class UnreachablePeerError(SettlementEngineError):
    """Raised when requesting payment details from a peer fails."""


class InvalidPaymentDetailsError(SettlementEngineError):
    """Raised when a peer replies with malformed payment details."""

    def __init__(self, reason: InvalidDetailsReason):
        self.reason = reason
        super().__init__(f"Invalid payment details: {reason.value}")


class SettlementInProgressError(SettlementEngineError):
    """Raised when another outbound settlement holds the lock."""

    def __init__(self) -> None:
        super().__init__("Settlement already in progress")


class TransactionBuildError(SettlementEngineError):
    """Raised when loading, building or signing a payment fails."""


class SubmissionError(SettlementEngineError):
    """Raised when the ledger rejects or fails to acknowledge a payment."""
