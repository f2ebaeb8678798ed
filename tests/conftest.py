"""Pytest fixtures for settlement engine tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Callable
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from xlm_settlement.config import EngineConfig
from xlm_settlement.engine import CorrelationRegistry, XlmSettlementEngine, create_engine
from xlm_settlement.events import AsyncEventEmitter, DomainEvent
from xlm_settlement.providers import StubLedger

NODE_ADDRESS = "GNODEADDRESS"
PEER_ADDRESS = "GPEERADDRESS"
PEER_MEMO = "123456"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeServices:
    """Connector services with a peer that answers payment details requests."""

    def __init__(self, address: str = PEER_ADDRESS, memo: str = PEER_MEMO) -> None:
        self.send_message = AsyncMock(
            return_value={"paymentMemo": memo, "ledgerAddress": address}
        )
        self.credit_settlement = AsyncMock(return_value=None)


def fixed_tokens(*tokens: str) -> Callable[[], str]:
    """Token factory returning the given tokens in order."""
    remaining = iter(tokens)
    return lambda: next(remaining)


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Poll until predicate holds or fail the test."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ledger() -> StubLedger:
    return StubLedger(address=NODE_ADDRESS)


@pytest.fixture
def services() -> FakeServices:
    return FakeServices()


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def emitter() -> AsyncEventEmitter:
    return AsyncEventEmitter()


@pytest.fixture
def published(emitter: AsyncEventEmitter) -> list[DomainEvent]:
    """Every event published on the emitter fixture."""
    events: list[DomainEvent] = []
    emitter.on_all(events.append)
    return events


@pytest.fixture
def registry(clock: FakeClock) -> CorrelationRegistry:
    return CorrelationRegistry(ttl_seconds=300, clock=clock)


@pytest_asyncio.fixture
async def engine(
    ledger: StubLedger,
    services: FakeServices,
    config: EngineConfig,
    emitter: AsyncEventEmitter,
) -> AsyncGenerator[XlmSettlementEngine, None]:
    """Connected engine on the stub ledger."""
    engine = await create_engine(services, ledger=ledger, config=config, emitter=emitter)
    yield engine
    await engine.disconnect()
