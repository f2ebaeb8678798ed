"""In-memory peer account state for the HTTP API.

Tracks, per peer account, the amount the connector asked us to settle that
has not been settled yet, plus the idempotency keys already processed.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal

from xlm_settlement.api.schemas import Quantity


class AccountNotFoundError(KeyError):
    """Raised for operations on an unregistered account."""


class AccountStore:
    """Peer accounts, their queued settlement amounts and idempotency keys."""

    def __init__(self) -> None:
        self._queued: dict[str, Decimal] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._responses: dict[tuple[str, str], Quantity] = {}

    def create(self, account_id: str) -> None:
        self._queued.setdefault(account_id, Decimal(0))
        self._locks.setdefault(account_id, asyncio.Lock())

    def delete(self, account_id: str) -> None:
        self._queued.pop(account_id, None)
        self._locks.pop(account_id, None)
        self._responses = {k: v for k, v in self._responses.items() if k[0] != account_id}

    def exists(self, account_id: str) -> bool:
        return account_id in self._queued

    def queued(self, account_id: str) -> Decimal:
        if account_id not in self._queued:
            raise AccountNotFoundError(account_id)
        return self._queued[account_id]

    def lock(self, account_id: str) -> asyncio.Lock:
        """Serializes settlement of one account's queued balance."""
        if account_id not in self._locks:
            raise AccountNotFoundError(account_id)
        return self._locks[account_id]

    def enqueue(self, account_id: str, amount: Decimal) -> Decimal:
        """Add to the queued amount. Returns the new total."""
        self._queued[account_id] = self.queued(account_id) + amount
        return self._queued[account_id]

    def release(self, account_id: str, settled: Decimal) -> Decimal:
        """Remove a settled amount from the queue. Returns what is left."""
        if account_id not in self._queued:
            return Decimal(0)
        self._queued[account_id] = max(self._queued[account_id] - settled, Decimal(0))
        return self._queued[account_id]

    def seen(self, account_id: str, idempotency_key: str) -> Quantity | None:
        return self._responses.get((account_id, idempotency_key))

    def remember(self, account_id: str, idempotency_key: str, response: Quantity) -> None:
        self._responses[(account_id, idempotency_key)] = response
