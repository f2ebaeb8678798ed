"""Process bootstrap: wire settings into a connected engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from xlm_settlement.config import Settings
from xlm_settlement.connector import ConnectorClient
from xlm_settlement.engine import XlmSettlementEngine, create_engine
from xlm_settlement.events import AsyncEventEmitter
from xlm_settlement.providers.stellar import StellarLedgerClient, generate_testnet_account

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Resources owned by a running process."""

    engine: XlmSettlementEngine
    connector: ConnectorClient

    async def shutdown(self) -> None:
        await self.engine.disconnect()
        await self.connector.close()


async def start_runtime(settings: Settings, emitter: AsyncEventEmitter | None = None) -> Runtime:
    """Connect to the ledger and the connector.

    Without a configured secret a new testnet account is created and funded.
    """
    config = settings.engine_config()

    secret = settings.xlm_secret
    if secret is None:
        logger.warning("XLM_SECRET not set; generating a funded testnet account")
        secret = await generate_testnet_account(config.ledger.friendbot_url)

    connector = ConnectorClient(settings.connector_url, scale=config.ledger.precision)
    try:
        ledger = StellarLedgerClient(secret, config.ledger)
        engine = await create_engine(
            connector,
            ledger=ledger,
            config=config,
            emitter=emitter,
            owns_ledger=True,
        )
    except Exception:
        await connector.close()
        raise
    return Runtime(engine=engine, connector=connector)
