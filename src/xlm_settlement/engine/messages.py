"""Peer message types exchanged through the connector.

Request:   {"type": "paymentDetails"}
Response:  {"paymentMemo": "<uint32 as decimal>", "ledgerAddress": "G..."}
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from xlm_settlement.engine.errors import UnknownMessageTypeError

MAX_PAYMENT_MEMO = 2**32 - 1

_DIGITS = re.compile(r"[0-9]+")
_MAX_MEMO_DIGITS = len(str(MAX_PAYMENT_MEMO))


class MessageType(str, Enum):
    """Message types understood by the engine."""

    PAYMENT_DETAILS = "paymentDetails"


class InvalidDetailsReason(str, Enum):
    """Why a payment details response was rejected."""

    NOT_AN_OBJECT = "not_an_object"
    MISSING_LEDGER_ADDRESS = "missing_ledger_address"
    MISSING_PAYMENT_MEMO = "missing_payment_memo"
    MEMO_NOT_NUMERIC = "memo_not_numeric"
    MEMO_OUT_OF_RANGE = "memo_out_of_range"


@dataclass(frozen=True)
class PaymentDetailsRequest:
    """Ask a peer where and how to pay it on the ledger."""

    type: MessageType = MessageType.PAYMENT_DETAILS

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value}


@dataclass(frozen=True)
class PaymentDetails:
    """Where to send a ledger payment and the memo that identifies it."""

    payment_memo: str
    ledger_address: str

    @property
    def memo_id(self) -> int:
        return int(self.payment_memo)

    def to_dict(self) -> dict[str, Any]:
        return {
            "paymentMemo": self.payment_memo,
            "ledgerAddress": self.ledger_address,
        }


@dataclass(frozen=True)
class DetailsValidation:
    """Outcome of validating a payment details response."""

    details: PaymentDetails | None = None
    reason: InvalidDetailsReason | None = None

    @property
    def ok(self) -> bool:
        return self.details is not None


def parse_request(message: Any) -> PaymentDetailsRequest:
    """Parse an inbound peer message.

    Raises:
        UnknownMessageTypeError: The message is not a supported request.
    """
    if not isinstance(message, dict):
        raise UnknownMessageTypeError(type(message).__name__)

    message_type = message.get("type")
    if message_type == MessageType.PAYMENT_DETAILS.value:
        return PaymentDetailsRequest()
    raise UnknownMessageTypeError(message_type)


def _within_memo_range(digits: str) -> bool:
    # int() refuses digit strings past the interpreter limit
    significant = digits.lstrip("0") or "0"
    return len(significant) <= _MAX_MEMO_DIGITS and int(significant) <= MAX_PAYMENT_MEMO


def is_valid_memo(memo: Any) -> bool:
    """Whether memo is a decimal string within the uint32 range."""
    return (
        isinstance(memo, str)
        and _DIGITS.fullmatch(memo) is not None
        and _within_memo_range(memo)
    )


def validate_payment_details(response: Any) -> DetailsValidation:
    """Validate a peer's reply to a payment details request."""
    if not isinstance(response, dict):
        return DetailsValidation(reason=InvalidDetailsReason.NOT_AN_OBJECT)

    address = response.get("ledgerAddress")
    if not isinstance(address, str) or not address:
        return DetailsValidation(reason=InvalidDetailsReason.MISSING_LEDGER_ADDRESS)

    memo = response.get("paymentMemo")
    if memo is None:
        return DetailsValidation(reason=InvalidDetailsReason.MISSING_PAYMENT_MEMO)
    if not isinstance(memo, str) or _DIGITS.fullmatch(memo) is None:
        return DetailsValidation(reason=InvalidDetailsReason.MEMO_NOT_NUMERIC)
    if not _within_memo_range(memo):
        return DetailsValidation(reason=InvalidDetailsReason.MEMO_OUT_OF_RANGE)

    return DetailsValidation(
        details=PaymentDetails(payment_memo=memo, ledger_address=address),
    )
