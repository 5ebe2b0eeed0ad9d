"""
Tests for the paywall gateway decision point
"""

import pytest

from arena402.errors import ProofExpired, RequirementMismatch, SettlementInProgress
from arena402.models import PaymentStatus
from arena402.payments.codec import decode_payment_required
from arena402.paywall.gateway import Allow, Challenge, PaywallGateway, Reject
from arena402.paywall.issuance import LocalIssuanceLog
from arena402.paywall.locks import LocalSettlementLock
from arena402.paywall.settlement import SettlementCoordinator
from tests.fakes import RECIPIENT, TX_HASH


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestPayPerBlock:
    """Challenge, pay, then read the block freely"""

    @pytest.mark.asyncio
    async def test_free_block_is_allowed(self, gateway):
        decision = await gateway.decide(7)

        assert isinstance(decision, Allow)
        assert decision.status.is_paywalled is False

    @pytest.mark.asyncio
    async def test_full_purchase(self, gateway, registry, owner, make_proof, db, oracle, test_buyer_account):
        await registry.create(42, owner.id, "0.050000", RECIPIENT)

        decision = await gateway.decide(42)
        assert isinstance(decision, Challenge)
        assert decision.requirements.amount == "50000"
        assert decision.requirements.payTo == RECIPIENT
        assert decode_payment_required(decision.header) == decision.payment_required

        # Underpaying is refused without touching the facilitator
        outcome = await gateway.submit_payment(42, make_proof(decision.requirements, amount="40000"))
        assert isinstance(outcome, Reject)
        assert isinstance(outcome.error, RequirementMismatch)
        assert db.payments == {}
        assert oracle.verify_calls == []

        outcome = await gateway.submit_payment(42, make_proof(decision.requirements))
        assert isinstance(outcome, Allow)
        assert outcome.receipt.txHash == TX_HASH
        assert outcome.status.has_access is True

        payment = next(iter(db.payments.values()))
        assert payment.status == PaymentStatus.SETTLED
        assert len(db.grants) == 1

        assert isinstance(await gateway.decide(42, test_buyer_account.address), Allow)
        assert isinstance(await gateway.decide(42), Challenge)

    @pytest.mark.asyncio
    async def test_granted_payer_is_not_charged_again(self, gateway, registry, ledger, owner, make_proof, oracle, test_buyer_account):
        await registry.create(42, owner.id, "0.05", RECIPIENT)
        await ledger.grant(42, test_buyer_account.address)
        challenge = await gateway.challenge(await registry.get_active(42), 42)

        outcome = await gateway.submit_payment(42, make_proof(challenge.requirements), wallet=test_buyer_account.address)

        assert isinstance(outcome, Allow)
        assert outcome.receipt is None
        assert oracle.verify_calls == []

    @pytest.mark.asyncio
    async def test_deactivated_paywall_frees_the_block(self, gateway, registry, owner):
        await registry.create(42, owner.id, "0.05", RECIPIENT)
        await registry.deactivate(42, owner.id)

        assert isinstance(await gateway.decide(42), Allow)


class TestProofExpiry:
    """Challenges are only redeemable within maxTimeoutSeconds"""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def expiring_gateway(self, registry, ledger, builder, oracle, payments, clock):
        issuance_log = LocalIssuanceLog(clock=clock)
        coordinator = SettlementCoordinator(builder, oracle, payments, ledger, issuance_log=issuance_log)
        return PaywallGateway(registry, ledger, builder, coordinator, issuance_log=issuance_log)

    @pytest.mark.asyncio
    async def test_challenge_carries_issuance(self, expiring_gateway, registry, owner, clock):
        await registry.create(42, owner.id, "0.05", RECIPIENT)

        challenge = await expiring_gateway.decide(42)

        assert challenge.requirements.extra["challengeId"]
        assert challenge.requirements.extra["issuedAt"] == int(clock.now)

    @pytest.mark.asyncio
    async def test_fresh_proof_settles(self, expiring_gateway, registry, owner, make_proof, clock):
        await registry.create(42, owner.id, "0.05", RECIPIENT)
        challenge = await expiring_gateway.decide(42)

        clock.now += 299
        outcome = await expiring_gateway.submit_payment(42, make_proof(challenge.requirements))

        assert isinstance(outcome, Allow)
        assert outcome.receipt is not None

    @pytest.mark.asyncio
    async def test_stale_proof_is_refused(self, expiring_gateway, registry, owner, make_proof, clock, db, oracle):
        await registry.create(42, owner.id, "0.05", RECIPIENT)
        challenge = await expiring_gateway.decide(42)

        clock.now += 301
        outcome = await expiring_gateway.submit_payment(42, make_proof(challenge.requirements))

        assert isinstance(outcome, Reject)
        assert isinstance(outcome.error, ProofExpired)
        assert db.payments == {}
        assert oracle.verify_calls == []

    @pytest.mark.asyncio
    async def test_proof_for_another_block_is_refused(self, expiring_gateway, registry, owner, make_proof):
        await registry.create(42, owner.id, "0.05", RECIPIENT)
        await registry.create(43, owner.id, "0.05", RECIPIENT)
        challenge = await expiring_gateway.decide(43)

        proof = make_proof(challenge.requirements, resource="/v2/blocks/42")
        outcome = await expiring_gateway.submit_payment(42, proof)

        assert isinstance(outcome, Reject)
        assert isinstance(outcome.error, ProofExpired)

    @pytest.mark.asyncio
    async def test_unissued_requirement_is_refused(self, expiring_gateway, registry, owner, builder, make_proof):
        paywall = await registry.create(42, owner.id, "0.05", RECIPIENT)

        outcome = await expiring_gateway.submit_payment(42, make_proof(builder.build(paywall, 42)))

        assert isinstance(outcome, Reject)
        assert isinstance(outcome.error, ProofExpired)


class TestSettlementLock:
    """One settlement per (block, payer) at a time"""

    @pytest.fixture
    def lock(self):
        return LocalSettlementLock()

    @pytest.fixture
    def locked_gateway(self, registry, ledger, builder, oracle, payments, lock):
        coordinator = SettlementCoordinator(builder, oracle, payments, ledger, lock=lock)
        return PaywallGateway(registry, ledger, builder, coordinator)

    @pytest.mark.asyncio
    async def test_busy_pair_is_refused(self, locked_gateway, registry, owner, make_proof, lock, db, test_buyer_account):
        await registry.create(42, owner.id, "0.05", RECIPIENT)
        challenge = await locked_gateway.decide(42)
        token = await lock.acquire(42, test_buyer_account.address)

        outcome = await locked_gateway.submit_payment(42, make_proof(challenge.requirements))

        assert isinstance(outcome, Reject)
        assert isinstance(outcome.error, SettlementInProgress)
        assert db.payments == {}

        await lock.release(42, test_buyer_account.address, token)
        outcome = await locked_gateway.submit_payment(42, make_proof(challenge.requirements))
        assert isinstance(outcome, Allow)

    @pytest.mark.asyncio
    async def test_lock_released_after_failure(self, locked_gateway, registry, owner, make_proof, lock, oracle, test_buyer_account):
        await registry.create(42, owner.id, "0.05", RECIPIENT)
        challenge = await locked_gateway.decide(42)
        oracle.settle_error = RuntimeError("boom")

        outcome = await locked_gateway.submit_payment(42, make_proof(challenge.requirements))

        assert isinstance(outcome, Reject)
        assert await lock.acquire(42, test_buyer_account.address) is not None
