"""HTTP API tests.

Exercises the connector-facing endpoints against an engine on the stub
ledger.
"""

import json
from collections.abc import AsyncGenerator
from decimal import Decimal

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from xlm_settlement.api.app import create_app
from xlm_settlement.engine import XlmSettlementEngine
from xlm_settlement.providers import StubLedger

from .conftest import NODE_ADDRESS, PEER_ADDRESS

pytestmark = pytest.mark.asyncio


@pytest.fixture
def app(engine: XlmSettlementEngine) -> FastAPI:
    return create_app(engine=engine)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def peer(client: AsyncClient) -> str:
    response = await client.post("/accounts", json={"id": "peerA"})
    assert response.status_code == 201, response.text
    return "peerA"


class TestHealthEndpoints:
    """Test health check endpoints."""

    async def test_health_check(self, client: AsyncClient, ledger: StubLedger):
        await ledger.wait_for_subscriber()

        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["ledger_address"] == NODE_ADDRESS
        assert data["inbound_stream"] == "running"

    async def test_degraded_after_disconnect(self, client: AsyncClient, engine: XlmSettlementEngine):
        await engine.disconnect()

        response = await client.get("/health")

        assert response.json()["status"] == "degraded"

    async def test_readiness_and_liveness(self, client: AsyncClient):
        assert (await client.get("/ready")).json()["status"] == "ready"
        assert (await client.get("/live")).json()["status"] == "alive"

    async def test_metrics(self, client: AsyncClient, peer: str):
        await client.post(
            f"/accounts/{peer}/settlements",
            headers={"Idempotency-Key": "k1"},
            json={"amount": "25", "scale": 0},
        )

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "xlm_settlements_submitted_total 1" in response.text
        assert "xlm_settled_amount_total 25.0" in response.text


class TestAccounts:
    """Test account registration."""

    async def test_create_and_delete(self, client: AsyncClient, app: FastAPI):
        response = await client.post("/accounts", json={"id": "peerB"})
        assert response.status_code == 201
        assert response.json() == {"id": "peerB"}
        assert app.state.store.exists("peerB")

        response = await client.delete("/accounts/peerB")
        assert response.status_code == 204
        assert not app.state.store.exists("peerB")

    async def test_delete_unknown_account(self, client: AsyncClient):
        response = await client.delete("/accounts/nobody")

        assert response.status_code == 404

    async def test_create_requires_id(self, client: AsyncClient):
        response = await client.post("/accounts", json={"id": ""})

        assert response.status_code == 422


class TestSettlements:
    """Test settlement requests from the connector."""

    async def test_settles_and_keeps_remainder_queued(
        self, client: AsyncClient, app: FastAPI, ledger: StubLedger, peer: str
    ):
        response = await client.post(
            f"/accounts/{peer}/settlements",
            headers={"Idempotency-Key": "k1"},
            json={"amount": "10123456789", "scale": 9},
        )

        assert response.status_code == 201, response.text
        assert response.json() == {"amount": "10123456789", "scale": 9}
        [envelope] = ledger.submitted
        assert envelope.payment.amount == Decimal("10.1234567")
        assert envelope.payment.destination == PEER_ADDRESS
        assert app.state.store.queued(peer) == Decimal("0.000000089")

    async def test_remainder_is_settled_next_time(
        self, client: AsyncClient, app: FastAPI, ledger: StubLedger, peer: str
    ):
        await client.post(
            f"/accounts/{peer}/settlements",
            headers={"Idempotency-Key": "k1"},
            json={"amount": "89", "scale": 9},
        )
        assert ledger.submit_count == 0

        await client.post(
            f"/accounts/{peer}/settlements",
            headers={"Idempotency-Key": "k2"},
            json={"amount": "11", "scale": 9},
        )

        [envelope] = ledger.submitted
        assert envelope.payment.amount == Decimal("0.0000001")
        assert app.state.store.queued(peer) == 0

    async def test_idempotent_retry_settles_once(
        self, client: AsyncClient, ledger: StubLedger, peer: str
    ):
        for _ in range(2):
            response = await client.post(
                f"/accounts/{peer}/settlements",
                headers={"Idempotency-Key": "same"},
                json={"amount": "5", "scale": 0},
            )
            assert response.status_code == 201

        assert ledger.submit_count == 1

    async def test_failed_settlement_stays_queued(
        self, client: AsyncClient, app: FastAPI, services, peer: str
    ):
        services.send_message.side_effect = ConnectionError("peer offline")

        response = await client.post(
            f"/accounts/{peer}/settlements",
            headers={"Idempotency-Key": "k1"},
            json={"amount": "5", "scale": 0},
        )

        assert response.status_code == 201
        assert app.state.store.queued(peer) == Decimal("5")

    async def test_requires_idempotency_key(self, client: AsyncClient, peer: str):
        response = await client.post(
            f"/accounts/{peer}/settlements",
            json={"amount": "5", "scale": 0},
        )

        assert response.status_code == 422

    @pytest.mark.parametrize(
        "body",
        [
            {"amount": "-5", "scale": 0},
            {"amount": "1.5", "scale": 0},
            {"amount": "5", "scale": 256},
            {"amount": "5"},
        ],
    )
    async def test_invalid_quantity(self, client: AsyncClient, peer: str, body: dict):
        response = await client.post(
            f"/accounts/{peer}/settlements",
            headers={"Idempotency-Key": "k1"},
            json=body,
        )

        assert response.status_code == 422

    async def test_unknown_account(self, client: AsyncClient):
        response = await client.post(
            "/accounts/nobody/settlements",
            headers={"Idempotency-Key": "k1"},
            json={"amount": "5", "scale": 0},
        )

        assert response.status_code == 404


class TestMessages:
    """Test peer messages relayed by the connector."""

    async def test_payment_details(
        self, client: AsyncClient, engine: XlmSettlementEngine, peer: str
    ):
        response = await client.post(
            f"/accounts/{peer}/messages",
            content=json.dumps({"type": "paymentDetails"}).encode(),
            headers={"Content-Type": "application/octet-stream"},
        )

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["ledgerAddress"] == NODE_ADDRESS
        assert engine.registry.resolve(data["paymentMemo"]) == peer

    async def test_unknown_message_type(self, client: AsyncClient, peer: str):
        response = await client.post(
            f"/accounts/{peer}/messages",
            content=json.dumps({"type": "hello"}).encode(),
        )

        assert response.status_code == 400
        assert "hello" in response.json()["detail"]

    async def test_body_must_be_json(self, client: AsyncClient, peer: str):
        response = await client.post(f"/accounts/{peer}/messages", content=b"not json")

        assert response.status_code == 400

    async def test_unknown_account(self, client: AsyncClient):
        response = await client.post(
            "/accounts/nobody/messages",
            content=json.dumps({"type": "paymentDetails"}).encode(),
        )

        assert response.status_code == 404


class TestWithoutEngine:
    """Test the API before an engine is connected."""

    async def test_settlement_unavailable(self):
        app = create_app()
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            await client.post("/accounts", json={"id": "peerA"})

            response = await client.post(
                "/accounts/peerA/settlements",
                headers={"Idempotency-Key": "k1"},
                json={"amount": "5", "scale": 0},
            )

        assert response.status_code == 503
