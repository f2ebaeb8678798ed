"""Connector client.

Implements AccountServices over the connector's settlement engine API:

    POST {connector}/accounts/{id}/messages      peer message relay
    POST {connector}/accounts/{id}/settlements   incoming settlement credit
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Any
from urllib.parse import quote

import httpx

from xlm_settlement.providers.base import PaymentEvent

logger = logging.getLogger(__name__)


def to_base_units(amount: Decimal, scale: int) -> str:
    """Express a decimal amount as an integer string at the given scale."""
    return str(int(amount.scaleb(scale)))


def from_base_units(amount: str | int, scale: int) -> Decimal:
    """Convert an integer amount at the given scale to a decimal."""
    return Decimal(amount).scaleb(-scale)


class ConnectorClient:
    """HTTP client for the connector the engine settles for."""

    def __init__(
        self,
        connector_url: str,
        *,
        scale: int = 7,
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.connector_url = connector_url.rstrip("/")
        self.scale = scale
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    def _account_url(self, account_id: str, resource: str) -> str:
        return f"{self.connector_url}/accounts/{quote(account_id, safe='')}/{resource}"

    async def send_message(self, account_id: str, message: Any) -> Any:
        """Relay a message to the peer's engine through the connector."""
        response = await self._client.post(
            self._account_url(account_id, "messages"),
            content=json.dumps(message).encode(),
            headers={"Content-Type": "application/octet-stream"},
        )
        response.raise_for_status()
        return json.loads(response.content)

    async def credit_settlement(
        self,
        account_id: str,
        amount: Decimal,
        evidence: PaymentEvent,
    ) -> None:
        """Notify the connector of an incoming settlement.

        The transaction hash is the idempotency key, so a retried request
        for the same ledger payment is credited once.
        """
        response = await self._client.post(
            self._account_url(account_id, "settlements"),
            json={"amount": to_base_units(amount, self.scale), "scale": self.scale},
            headers={"Idempotency-Key": evidence.transaction_hash},
        )
        response.raise_for_status()
        logger.debug(
            "Credited connector: account=%s xlm=%s tx=%s",
            account_id,
            amount,
            evidence.transaction_hash,
        )

    async def close(self) -> None:
        await self._client.aclose()
