"""Tests for the settlement engine facade.

Tests the connector-facing lifecycle on the stub ledger, including a
full relay between two engines.
"""

from decimal import Decimal

import pytest

from xlm_settlement.config import CorrelationConfig, EngineConfig
from xlm_settlement.engine import (
    CorrelationRegistry,
    TokenCollisionError,
    UnknownMessageTypeError,
    XlmSettlementEngine,
    create_engine,
)
from xlm_settlement.events import (
    AsyncEventEmitter,
    IncomingPaymentCredited,
    PaymentDetailsIssued,
    SettlementSubmitted,
)
from xlm_settlement.providers import StubLedger

from .conftest import NODE_ADDRESS, FakeClock, FakeServices, fixed_tokens, wait_until


class TestHandleMessage:
    """Test answering peer requests."""

    @pytest.mark.asyncio
    async def test_payment_details_reply(self, engine: XlmSettlementEngine, published: list):
        reply = await engine.handle_message("peerA", {"type": "paymentDetails"})

        assert reply["ledgerAddress"] == NODE_ADDRESS
        assert engine.registry.resolve(reply["paymentMemo"]) == "peerA"
        [issued] = published
        assert isinstance(issued, PaymentDetailsIssued)
        assert issued.payment_memo == reply["paymentMemo"]
        assert issued.ttl_seconds == 300

    @pytest.mark.asyncio
    async def test_every_request_gets_a_fresh_memo(self, engine: XlmSettlementEngine):
        first = await engine.handle_message("peerA", {"type": "paymentDetails"})
        second = await engine.handle_message("peerA", {"type": "paymentDetails"})

        assert first["paymentMemo"] != second["paymentMemo"]
        assert engine.registry.resolve(first["paymentMemo"]) == "peerA"
        assert engine.registry.resolve(second["paymentMemo"]) == "peerA"

    @pytest.mark.asyncio
    async def test_unknown_message_type(self, engine: XlmSettlementEngine, published: list):
        with pytest.raises(UnknownMessageTypeError) as exc_info:
            await engine.handle_message("peerA", {"type": "hello"})

        assert exc_info.value.message_type == "hello"
        assert len(engine.registry) == 0
        assert published == []

    @pytest.mark.asyncio
    async def test_memo_collision_surfaces(
        self, ledger: StubLedger, services: FakeServices, clock: FakeClock
    ):
        registry = CorrelationRegistry(
            clock=clock,
            token_factory=fixed_tokens("7", "7", "7", "7", "7", "7"),
        )
        engine = XlmSettlementEngine(ledger, services, registry=registry)

        await engine.handle_message("peerA", {"type": "paymentDetails"})
        with pytest.raises(TokenCollisionError):
            await engine.handle_message("peerB", {"type": "paymentDetails"})


class TestLifecycle:
    """Test connect and disconnect."""

    @pytest.mark.asyncio
    async def test_connect_subscribes_to_payments(self, engine: XlmSettlementEngine, ledger: StubLedger):
        await ledger.wait_for_subscriber()

        assert engine.reconciler.running
        assert ledger.subscriber_count == 1

    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self, engine: XlmSettlementEngine, ledger: StubLedger):
        await ledger.wait_for_subscriber()

        await engine.disconnect()
        await engine.disconnect()

        assert not engine.reconciler.running
        assert ledger.subscriber_count == 0
        assert not ledger.closed

    @pytest.mark.asyncio
    async def test_owned_ledger_is_closed(self, ledger: StubLedger, services: FakeServices):
        engine = await create_engine(services, ledger=ledger, owns_ledger=True)

        await engine.disconnect()
        await engine.disconnect()

        assert ledger.closed

    @pytest.mark.asyncio
    async def test_connect_twice_starts_one_stream(self, engine: XlmSettlementEngine, ledger: StubLedger):
        await engine.connect()
        await ledger.wait_for_subscriber()

        assert ledger.subscriber_count == 1

    @pytest.mark.asyncio
    async def test_ttl_from_config(self, ledger: StubLedger, services: FakeServices):
        config = EngineConfig(correlation=CorrelationConfig(token_ttl_seconds=30))
        engine = XlmSettlementEngine(ledger, services, config=config)

        assert engine.registry.ttl_seconds == 30


class TestSettle:
    """Test outbound settlement through the facade."""

    @pytest.mark.asyncio
    async def test_settle_delegates_to_coordinator(
        self, engine: XlmSettlementEngine, ledger: StubLedger
    ):
        assert await engine.settle("peerA", Decimal("10.123456789")) == Decimal("10.1234567")
        assert ledger.submit_count == 1

    @pytest.mark.asyncio
    async def test_handle_transaction_credits_issuing_peer(
        self, ledger: StubLedger, services: FakeServices
    ):
        engine = XlmSettlementEngine(ledger, services)
        reply = await engine.handle_message("peerA", {"type": "paymentDetails"})
        event = ledger.simulate_incoming_payment(
            source="GPEER", amount="1.5", memo=reply["paymentMemo"]
        )

        await engine.handle_transaction(event)

        services.credit_settlement.assert_awaited_once_with("peerA", Decimal("1.5"), event)


class TestTwoNodeRelay:
    """Alice settles with Bob end to end."""

    @pytest.mark.asyncio
    async def test_outbound_payment_is_credited_by_peer(self):
        alice_ledger = StubLedger(address="GALICE")
        bob_ledger = StubLedger(address="GBOB")
        alice_services = FakeServices()
        bob_services = FakeServices()

        bob_events = AsyncEventEmitter()
        credited: list[IncomingPaymentCredited] = []
        bob_events.on(IncomingPaymentCredited, credited.append)
        bob = await create_engine(bob_services, ledger=bob_ledger, emitter=bob_events)

        async def relay(account_id, message):
            # Bob knows Alice's node by its connector account id
            return await bob.handle_message("alice", message)

        alice_services.send_message.side_effect = relay
        alice_events = AsyncEventEmitter()
        submitted: list[SettlementSubmitted] = []
        alice_events.on(SettlementSubmitted, submitted.append)
        alice = await create_engine(alice_services, ledger=alice_ledger, emitter=alice_events)

        try:
            await bob_ledger.wait_for_subscriber()

            settled = await alice.settle("bob", Decimal("25.50000009"))

            assert settled == Decimal("25.5")
            [envelope] = alice_ledger.submitted
            assert envelope.payment.destination == "GBOB"
            assert submitted[0].payment_memo == str(envelope.payment.memo_id)

            # The ledger carries the payment to Bob's account
            bob_ledger.simulate_incoming_payment(
                source=alice_ledger.address,
                amount=envelope.payment.amount,
                memo=str(envelope.payment.memo_id),
            )
            await wait_until(lambda: bob_services.credit_settlement.await_count == 1)

            account_id, amount, _ = bob_services.credit_settlement.await_args.args
            assert account_id == "alice"
            assert amount == settled
            assert credited[0].peer_account_id == "alice"
        finally:
            await alice.disconnect()
            await bob.disconnect()
