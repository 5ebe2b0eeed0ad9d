"""
Tests for settlement locks and the challenge issuance log
"""

import json

import pytest

from arena402.errors import SettlementInProgress
from arena402.paywall.issuance import LocalIssuanceLog, RedisIssuanceLog, new_challenge_id
from arena402.paywall.locks import RELEASE_SCRIPT, LocalSettlementLock, RedisSettlementLock, lock_key
from tests.fakes import FakeRedis

PAYER = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"


class Clock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_lock_key_is_case_insensitive():
    assert lock_key(42, PAYER) == lock_key(42, PAYER.lower())
    assert lock_key(42, PAYER) == f"arena402:settle:42:{PAYER.lower()}"


@pytest.fixture(params=["local", "redis"])
def lock(request):
    if request.param == "local":
        return LocalSettlementLock()
    return RedisSettlementLock(FakeRedis())


class TestSettlementLocks:
    """Both lock backends behave the same"""

    @pytest.mark.asyncio
    async def test_second_acquire_fails(self, lock):
        token = await lock.acquire(42, PAYER)

        assert token is not None
        assert await lock.acquire(42, PAYER.lower()) is None
        assert await lock.acquire(43, PAYER) is not None

    @pytest.mark.asyncio
    async def test_release_with_wrong_token_keeps_lock(self, lock):
        token = await lock.acquire(42, PAYER)

        await lock.release(42, PAYER, "not-the-token")
        assert await lock.acquire(42, PAYER) is None

        await lock.release(42, PAYER, token)
        assert await lock.acquire(42, PAYER) is not None

    @pytest.mark.asyncio
    async def test_hold_raises_when_busy(self, lock):
        async with lock.hold(42, PAYER):
            with pytest.raises(SettlementInProgress):
                async with lock.hold(42, PAYER):
                    pass

    @pytest.mark.asyncio
    async def test_hold_releases_on_error(self, lock):
        with pytest.raises(RuntimeError):
            async with lock.hold(42, PAYER):
                raise RuntimeError("boom")

        assert await lock.acquire(42, PAYER) is not None


class TestLockExpiry:
    @pytest.mark.asyncio
    async def test_local_lock_expires(self):
        lock = LocalSettlementLock(ttl_seconds=0)

        assert await lock.acquire(42, PAYER) is not None
        assert await lock.acquire(42, PAYER) is not None

    @pytest.mark.asyncio
    async def test_redis_lock_sets_ttl(self):
        redis = FakeRedis()
        lock = RedisSettlementLock(redis, ttl_seconds=90)

        await lock.acquire(42, PAYER)

        assert redis.expiries[lock_key(42, PAYER)] == 90

    @pytest.mark.asyncio
    async def test_stale_holder_cannot_release_new_lock(self):
        redis = FakeRedis()
        first = RedisSettlementLock(redis)
        second = RedisSettlementLock(redis)
        stale_token = await first.acquire(42, PAYER)
        await redis.delete(lock_key(42, PAYER))
        fresh_token = await second.acquire(42, PAYER)

        await first.release(42, PAYER, stale_token)

        assert redis.store[lock_key(42, PAYER)] == fresh_token
        assert redis.scripts == [RELEASE_SCRIPT]


class TestIssuanceLog:
    """Challenges are redeemable for their own block within their TTL"""

    @pytest.mark.asyncio
    async def test_local_window(self):
        clock = Clock()
        log = LocalIssuanceLog(clock=clock)
        challenge_id = new_challenge_id()

        issued = await log.record(challenge_id, 42, ttl_seconds=300)

        assert issued == 1_000.0
        assert await log.issued_at(challenge_id, 42) == 1_000.0
        assert await log.issued_at(challenge_id, 43) is None
        assert await log.issued_at("unknown", 42) is None

        clock.now += 301
        assert await log.issued_at(challenge_id, 42) is None

    @pytest.mark.asyncio
    async def test_local_log_prunes_expired_entries(self):
        clock = Clock()
        log = LocalIssuanceLog(clock=clock)
        await log.record("old", 42, ttl_seconds=10)

        clock.now += 11
        await log.record("new", 42, ttl_seconds=10)

        assert list(log._issued) == ["new"]

    @pytest.mark.asyncio
    async def test_redis_log(self):
        redis = FakeRedis()
        log = RedisIssuanceLog(redis, clock=Clock(2_000.0))

        await log.record("abc", 42, ttl_seconds=300)

        assert redis.expiries["arena402:challenge:abc"] == 300
        assert await log.issued_at("abc", 42) == 2_000.0
        assert await log.issued_at("abc", 7) is None
        assert await log.issued_at("missing", 42) is None

    @pytest.mark.asyncio
    async def test_redis_log_ignores_unreadable_entries(self):
        redis = FakeRedis()
        redis.store["arena402:challenge:abc"] = "{not json"
        log = RedisIssuanceLog(redis)

        assert await log.issued_at("abc", 42) is None

    @pytest.mark.asyncio
    async def test_redis_entry_format(self):
        redis = FakeRedis()
        log = RedisIssuanceLog(redis, clock=Clock(5.0))

        await log.record("abc", 42, ttl_seconds=60)

        assert json.loads(redis.store["arena402:challenge:abc"]) == {"contentId": 42, "issuedAt": 5.0}
