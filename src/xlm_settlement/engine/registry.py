"""Correlation registry for incoming ledger payments.

Each payment details request from a peer is answered with a fresh memo.
When a ledger payment carrying that memo arrives, the registry tells the
reconciler which peer sent it. Memos expire after a fixed TTL; expiry is
checked on every lookup and a single background task sweeps expired
entries so the map stays bounded.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass

from xlm_settlement.engine.errors import TokenCollisionError
from xlm_settlement.engine.messages import MAX_PAYMENT_MEMO, is_valid_memo

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


def random_token() -> str:
    """Draw a memo uniformly from the uint32 range."""
    return str(secrets.randbelow(MAX_PAYMENT_MEMO + 1))


@dataclass(frozen=True)
class CorrelationEntry:
    """A memo handed to a peer, valid until expires_at."""

    token: str
    peer_account_id: str
    expires_at: float

    def is_live(self, now: float) -> bool:
        return now < self.expires_at


class CorrelationRegistry:
    """Maps live payment memos to the peers they were issued to.

    Usage:
        registry = CorrelationRegistry(ttl_seconds=300)
        registry.start(sweep_interval_seconds=60)

        token = registry.issue("peerA")
        registry.resolve(token)  # "peerA" until the TTL elapses

        await registry.teardown()
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        *,
        max_attempts: int = 5,
        clock: Callable[[], float] = time.monotonic,
        token_factory: Callable[[], str] = random_token,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_attempts = max_attempts
        self._clock = clock
        self._token_factory = token_factory
        self._entries: dict[str, CorrelationEntry] = {}
        self._sweeper: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for entry in self._entries.values() if entry.is_live(now))

    def issue(self, peer_account_id: str) -> str:
        """Issue a new memo for a peer.

        Raises:
            TokenCollisionError: Every candidate drawn was already live.
        """
        now = self._clock()
        for _ in range(self.max_attempts):
            token = self._token_factory()
            existing = self._entries.get(token)
            if existing is not None and existing.is_live(now):
                logger.warning("Payment memo collision for account=%s", peer_account_id)
                continue

            self._entries[token] = CorrelationEntry(
                token=token,
                peer_account_id=peer_account_id,
                expires_at=now + self.ttl_seconds,
            )
            return token

        raise TokenCollisionError(self.max_attempts)

    def resolve(self, token: str) -> str | None:
        """Return the peer a live memo was issued to, or None."""
        if not is_valid_memo(token):
            return None
        token = str(int(token))

        entry = self._entries.get(token)
        if entry is None:
            return None
        if not entry.is_live(self._clock()):
            del self._entries[token]
            return None
        return entry.peer_account_id

    def sweep(self) -> int:
        """Drop expired memos. Returns the number removed."""
        now = self._clock()
        expired = [t for t, entry in self._entries.items() if not entry.is_live(now)]
        for token in expired:
            del self._entries[token]
        return len(expired)

    def start(self, sweep_interval_seconds: float) -> None:
        """Start the background sweep task."""
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.create_task(
            self._sweep_forever(sweep_interval_seconds),
            name="correlation-registry-sweep",
        )

    async def _sweep_forever(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            removed = self.sweep()
            if removed:
                logger.debug("Expired %d payment memos", removed)

    async def teardown(self) -> None:
        """Cancel the sweep task. Safe to call more than once."""
        sweeper, self._sweeper = self._sweeper, None
        if sweeper is None:
            return
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
