"""Settlement engine configuration.

Engine behavior is configured with explicit, immutable objects:

    engine = await create_engine(
        services,
        config=EngineConfig(
            ledger=LedgerConfig(precision=7),
            correlation=CorrelationConfig(token_ttl_seconds=300),
            settlement=SettlementPolicyConfig(
                assume_settled_on_submission_failure=True,
            ),
        ),
        ledger=ledger_client,
    )

Process settings (secrets, URLs, ports) are loaded from the environment by
Settings.from_env() and translated into an EngineConfig by the bootstrap.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache

from dotenv import load_dotenv

TESTNET_HORIZON_URL = "https://horizon-testnet.stellar.org"
TESTNET_NETWORK_PASSPHRASE = "Test SDF Network ; September 2015"
TESTNET_FRIENDBOT_URL = "https://friendbot.stellar.org"


@dataclass(frozen=True)
class LedgerConfig:
    """
    Ledger client configuration.

    Attributes:
        precision: Fractional digits of the ledger's smallest unit.
            Stellar amounts have 7 (one stroop). Default 7.
        submission_timeout_seconds: Transaction time bound. Default 300.
        horizon_url: Horizon server URL.
        network_passphrase: Network the transactions are signed for.
        friendbot_url: Faucet used to fund fresh testnet accounts.
    """

    precision: int = 7
    submission_timeout_seconds: int = 300
    horizon_url: str = TESTNET_HORIZON_URL
    network_passphrase: str = TESTNET_NETWORK_PASSPHRASE
    friendbot_url: str = TESTNET_FRIENDBOT_URL

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not 0 <= self.precision <= 18:
            raise ValueError("precision must be between 0 and 18")
        if self.submission_timeout_seconds < 1:
            raise ValueError("submission_timeout_seconds must be at least 1")


@dataclass(frozen=True)
class CorrelationConfig:
    """
    Correlation token configuration.

    Attributes:
        token_ttl_seconds: How long an issued payment memo resolves to its
            peer. Keep well above the peer round trip: incoming payments
            carrying an expired memo are never credited. Default 300.
        sweep_interval_seconds: Period of the background sweep that drops
            expired memos. Default 60.
        max_issue_attempts: Random draws before a collision is surfaced.
            Default 5.
    """

    token_ttl_seconds: float = 300.0
    sweep_interval_seconds: float = 60.0
    max_issue_attempts: int = 5

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.token_ttl_seconds <= 0:
            raise ValueError("token_ttl_seconds must be positive")
        if self.sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be positive")
        if self.max_issue_attempts < 1:
            raise ValueError("max_issue_attempts must be at least 1")


@dataclass(frozen=True)
class SettlementPolicyConfig:
    """
    Outbound settlement policy.

    Attributes:
        assume_settled_on_submission_failure: If True, a failed submission
            is reported to the connector as fully settled. Submission errors
            are often ambiguous (the network may have applied the
            transaction), so reporting zero risks paying twice. Set False to
            trade that for the risk of under-paying. Default True.
    """

    assume_settled_on_submission_failure: bool = True


@dataclass(frozen=True)
class ReconcilerConfig:
    """
    Inbound payment stream configuration.

    Attributes:
        stream_retry_seconds: Delay before re-subscribing after the payment
            stream fails. Default 5.
        seen_event_capacity: Number of recent payment ids remembered to
            avoid crediting a redelivered event twice. Default 4096.
    """

    stream_retry_seconds: float = 5.0
    seen_event_capacity: int = 4096

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.stream_retry_seconds < 0:
            raise ValueError("stream_retry_seconds cannot be negative")
        if self.seen_event_capacity < 1:
            raise ValueError("seen_event_capacity must be at least 1")


@dataclass(frozen=True)
class EngineConfig:
    """Complete engine configuration."""

    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    correlation: CorrelationConfig = field(default_factory=CorrelationConfig)
    settlement: SettlementPolicyConfig = field(default_factory=SettlementPolicyConfig)
    reconciler: ReconcilerConfig = field(default_factory=ReconcilerConfig)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Process settings loaded from environment."""

    xlm_secret: str | None
    horizon_url: str
    connector_url: str
    host: str
    port: int
    debug: bool
    assume_settled_on_submission_failure: bool
    token_ttl_seconds: float

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        return cls(
            xlm_secret=os.getenv("XLM_SECRET") or None,
            horizon_url=os.getenv(
                "STELLAR_HORIZON_URL",
                os.getenv("STELLAR_TESTNET_URL", TESTNET_HORIZON_URL),
            ),
            connector_url=os.getenv("CONNECTOR_URL", "http://localhost:7771"),
            host=os.getenv("ENGINE_HOST", "0.0.0.0"),
            port=int(os.getenv("ENGINE_PORT", "3000")),
            debug=_env_bool("DEBUG", False),
            assume_settled_on_submission_failure=_env_bool(
                "ASSUME_SETTLED_ON_SUBMISSION_FAILURE", True
            ),
            token_ttl_seconds=float(os.getenv("TOKEN_TTL_SECONDS", "300")),
        )

    def engine_config(self) -> EngineConfig:
        """Translate process settings into engine configuration."""
        return EngineConfig(
            ledger=LedgerConfig(horizon_url=self.horizon_url),
            correlation=CorrelationConfig(token_ttl_seconds=self.token_ttl_seconds),
            settlement=SettlementPolicyConfig(
                assume_settled_on_submission_failure=self.assume_settled_on_submission_failure,
            ),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()
