"""Stellar Horizon ledger client.

Implements LedgerClient on top of stellar-sdk's asyncio server. Payments are
native XLM with an id memo; the fee is the network base fee fetched at load
time.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import httpx
from stellar_sdk import Account, Asset, Keypair, ServerAsync, TransactionBuilder
from stellar_sdk.client.aiohttp_client import AiohttpClient
from stellar_sdk.transaction_envelope import TransactionEnvelope

from xlm_settlement.config import LedgerConfig
from xlm_settlement.providers.base import (
    LedgerPayment,
    PaymentEvent,
    SubmitResult,
    TransactionDetail,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StellarAccountState:
    """Loaded account plus the fee to build with."""

    account: Account
    base_fee: int


class StellarLedgerClient:
    """Horizon-backed ledger client bound to one signing key."""

    def __init__(
        self,
        secret: str,
        config: LedgerConfig | None = None,
        *,
        server: ServerAsync | None = None,
    ):
        self.config = config or LedgerConfig()
        self._keypair = Keypair.from_secret(secret)
        self.address = self._keypair.public_key
        self._server = server or ServerAsync(
            horizon_url=self.config.horizon_url,
            client=AiohttpClient(),
        )

    async def load_account(self) -> StellarAccountState:
        account = await self._server.load_account(self.address)
        base_fee = await self._server.fetch_base_fee()
        return StellarAccountState(account=account, base_fee=base_fee)

    def build_payment(
        self,
        account: StellarAccountState,
        payment: LedgerPayment,
        *,
        timeout_seconds: int,
    ) -> TransactionEnvelope:
        return (
            TransactionBuilder(
                source_account=account.account,
                network_passphrase=self.config.network_passphrase,
                base_fee=account.base_fee,
            )
            .add_id_memo(payment.memo_id)
            .append_payment_op(
                destination=payment.destination,
                asset=Asset.native(),
                amount=str(payment.amount),
            )
            .set_timeout(timeout_seconds)
            .build()
        )

    def sign(self, envelope: TransactionEnvelope) -> TransactionEnvelope:
        envelope.sign(self._keypair)
        return envelope

    async def submit(self, envelope: TransactionEnvelope) -> SubmitResult:
        response = await self._server.submit_transaction(envelope)
        return SubmitResult(
            transaction_hash=response.get("hash", envelope.hash_hex()),
            accepted=bool(response.get("successful", True)),
            message=str(response.get("result_xdr", "")),
        )

    async def fetch_transaction(self, transaction_hash: str) -> TransactionDetail:
        record = await self._server.transactions().transaction(transaction_hash).call()
        return TransactionDetail(
            transaction_hash=transaction_hash,
            memo_type=record.get("memo_type"),
            memo=record.get("memo"),
        )

    async def stream_payments(self, cursor: str = "now") -> AsyncIterator[PaymentEvent]:
        builder = self._server.payments().for_account(self.address).cursor(cursor)
        async for record in builder.stream():
            event = payment_event_from_record(record)
            if event is None:
                logger.debug(
                    "Skipping %s operation %s",
                    record.get("type"),
                    record.get("id"),
                )
                continue
            yield event

    async def close(self) -> None:
        await self._server.close()


def payment_event_from_record(record: dict[str, Any]) -> PaymentEvent | None:
    """Convert a Horizon payment record; None for anything but native payments."""
    if record.get("type") != "payment" or record.get("asset_type") != "native":
        return None
    return PaymentEvent(
        event_id=str(record["id"]),
        paging_token=str(record.get("paging_token", record["id"])),
        source=record["from"],
        destination=record["to"],
        amount=Decimal(record["amount"]),
        transaction_hash=record["transaction_hash"],
        asset_type=record["asset_type"],
        raw_payload=record,
    )


async def generate_testnet_account(friendbot_url: str, timeout_seconds: float = 30.0) -> str:
    """Create a keypair, fund it through friendbot and return its secret.

    Raises:
        RuntimeError: friendbot could not fund the account.
    """
    pair = Keypair.random()
    try:
        async with httpx.AsyncClient(timeout=timeout_seconds) as client:
            response = await client.get(friendbot_url, params={"addr": pair.public_key})
            response.raise_for_status()
    except httpx.HTTPError as e:
        raise RuntimeError("Failed to generate new XLM testnet account") from e

    logger.info("Funded new testnet account %s", pair.public_key)
    return pair.secret
