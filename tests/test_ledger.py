"""
Tests for the access ledger and payment record store
"""

import asyncio
from decimal import Decimal

import pytest

from arena402.models import PaymentStatus
from arena402.paywall.payments import PaymentStateError
from tests.fakes import OTHER_WALLET, RECIPIENT

PAYER = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"


class TestAccessLedger:
    """Access checks and idempotent grants"""

    @pytest.mark.asyncio
    async def test_no_address_has_no_access(self, ledger):
        assert await ledger.has_access(42, None) is False
        assert await ledger.has_access(42, "") is False
        assert await ledger.has_access(42, "   ") is False

    @pytest.mark.asyncio
    async def test_grant_is_case_insensitive(self, ledger):
        await ledger.grant(42, PAYER)

        assert await ledger.has_access(42, PAYER.lower()) is True
        assert await ledger.has_access(42, PAYER.upper().replace("0X", "0x")) is True
        assert await ledger.has_access(43, PAYER) is False

    @pytest.mark.asyncio
    async def test_grant_twice_returns_same_record(self, ledger, db):
        first = await ledger.grant(42, PAYER, payment_record_id="payment-1")
        second = await ledger.grant(42, PAYER.lower(), payment_record_id="payment-2")

        assert second == first
        assert second.payment_record_id == "payment-1"
        assert len(db.grants) == 1

    @pytest.mark.asyncio
    async def test_concurrent_grants_deduplicate(self, ledger, db):
        results = await asyncio.gather(*[ledger.grant(42, PAYER, payment_record_id=f"p{i}") for i in range(5)])

        assert len({g.id for g in results}) == 1
        assert len(db.grants) == 1

    @pytest.mark.asyncio
    async def test_revoke(self, ledger):
        await ledger.grant(42, PAYER)

        assert await ledger.revoke(42, PAYER) is True
        assert await ledger.revoke(42, PAYER) is False
        assert await ledger.has_access(42, PAYER) is False

    @pytest.mark.asyncio
    async def test_free_content_status(self, ledger):
        for address in (None, PAYER, OTHER_WALLET):
            status = await ledger.status_for(42, address)
            assert status.is_paywalled is False
            assert status.has_access is True

    @pytest.mark.asyncio
    async def test_paywalled_status(self, ledger, registry, owner):
        await registry.create(42, owner.id, "0.05", RECIPIENT)
        await ledger.grant(42, PAYER)

        anonymous = await ledger.status_for(42)
        granted = await ledger.status_for(42, PAYER)
        other = await ledger.status_for(42, OTHER_WALLET)

        assert anonymous.is_paywalled is True
        assert anonymous.has_access is False
        assert anonymous.price_usdc == Decimal("0.050000")
        assert anonymous.payout_address == RECIPIENT
        assert granted.has_access is True
        assert other.has_access is False

    @pytest.mark.asyncio
    async def test_deactivated_paywall_is_free(self, ledger, registry, owner):
        await registry.create(42, owner.id, "0.05", RECIPIENT)
        await registry.deactivate(42, owner.id)

        status = await ledger.status_for(42, OTHER_WALLET)

        assert status.is_paywalled is False
        assert status.has_access is True

    @pytest.mark.asyncio
    async def test_accessible_content(self, ledger):
        await ledger.grant(1, PAYER)
        await ledger.grant(3, PAYER)
        await ledger.grant(2, OTHER_WALLET)

        assert await ledger.accessible_content([1, 2, 3, 4], PAYER) == {1, 3}
        assert await ledger.accessible_content([1, 2], None) == set()

    @pytest.mark.asyncio
    async def test_grant_queries(self, ledger):
        await ledger.grant(1, PAYER)
        await ledger.grant(2, PAYER)
        await ledger.grant(1, OTHER_WALLET)

        assert {g.content_id for g in await ledger.grants_for_payer(PAYER)} == {1, 2}
        assert {g.payer_address for g in await ledger.grants_for_content(1)} == {PAYER.lower(), OTHER_WALLET}


class TestPaymentRecordStore:
    """pending -> settled | failed lifecycle"""

    @pytest.mark.asyncio
    async def test_record_pending_normalizes_payer(self, payments):
        payment = await payments.record_pending("paywall-1", PAYER, Decimal("0.050000"))

        assert payment.status == PaymentStatus.PENDING
        assert payment.payer_address == PAYER.lower()
        assert payment.settlement_ref is None

    @pytest.mark.asyncio
    async def test_unresolved_payer(self, payments):
        payment = await payments.record_pending("paywall-1", None, Decimal("0.050000"))

        assert payment.payer_address == "unknown"

    @pytest.mark.asyncio
    async def test_settle_then_no_further_transitions(self, payments):
        payment = await payments.record_pending("paywall-1", PAYER, Decimal("0.050000"))

        settled = await payments.mark_settled(payment.id, "0xabc")

        assert settled.status == PaymentStatus.SETTLED
        assert settled.settlement_ref == "0xabc"
        assert settled.settled_at is not None
        with pytest.raises(PaymentStateError):
            await payments.mark_failed(payment.id, "late failure")
        assert (await payments.get(payment.id)).status == PaymentStatus.SETTLED

    @pytest.mark.asyncio
    async def test_failed_is_terminal(self, payments):
        payment = await payments.record_pending("paywall-1", PAYER, Decimal("0.050000"))

        failed = await payments.mark_failed(payment.id, "insufficient_funds")

        assert failed.status == PaymentStatus.FAILED
        assert failed.failure_reason == "insufficient_funds"
        assert failed.settlement_ref is None
        with pytest.raises(PaymentStateError):
            await payments.mark_settled(payment.id, "0xabc")

    @pytest.mark.asyncio
    async def test_stats_count_revenue_from_settled_only(self, payments):
        for amount, outcome in [("0.050000", "settled"), ("0.050000", "settled"), ("0.050000", "failed")]:
            payment = await payments.record_pending("paywall-1", PAYER, Decimal(amount))
            if outcome == "settled":
                await payments.mark_settled(payment.id, "0xabc")
            else:
                await payments.mark_failed(payment.id, "nope")

        stats = await payments.stats_for_paywall("paywall-1")

        assert stats.total_payments == 3
        assert stats.total_settled == 2
        assert stats.total_revenue == "0.100000"

    @pytest.mark.asyncio
    async def test_list_by_payer(self, payments):
        await payments.record_pending("paywall-1", PAYER, Decimal("0.05"))
        await payments.record_pending("paywall-2", OTHER_WALLET, Decimal("0.05"))

        found = await payments.list_by_payer(PAYER)

        assert [p.paywall_id for p in found] == ["paywall-1"]
