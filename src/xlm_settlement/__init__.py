"""Stellar (XLM) settlement engine.

This package contains:
- Correlation registry for incoming payment memos
- Single-flight outbound settlement coordinator
- Inbound payment reconciler
- Ledger client adapters (Horizon and an in-memory stub)
- Connector client and HTTP API
- Domain events and metrics
"""

from xlm_settlement.config import (
    CorrelationConfig,
    EngineConfig,
    LedgerConfig,
    ReconcilerConfig,
    SettlementPolicyConfig,
)
from xlm_settlement.engine import (
    AccountServices,
    CorrelationRegistry,
    InboundReconciler,
    SettlementCoordinator,
    XlmSettlementEngine,
    create_engine,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Config
    "EngineConfig",
    "LedgerConfig",
    "CorrelationConfig",
    "SettlementPolicyConfig",
    "ReconcilerConfig",
    # Engine
    "AccountServices",
    "CorrelationRegistry",
    "SettlementCoordinator",
    "InboundReconciler",
    "XlmSettlementEngine",
    "create_engine",
]
