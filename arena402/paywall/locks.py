"""
Per-(block, payer) settlement locks
At most one settlement attempt per pair is in flight while a lock is held
"""

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional, Tuple

import structlog

from arena402.errors import SettlementInProgress
from arena402.users import normalize_address

logger = structlog.get_logger()

DEFAULT_LOCK_TTL_SECONDS = 120

# Delete only when the caller still holds the lock, in one round trip
RELEASE_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
end
return 0
"""


def lock_key(content_id: int, payer_address: str) -> str:
    return f"arena402:settle:{content_id}:{normalize_address(payer_address)}"


class LocalSettlementLock:
    """In-process lock registry, for single-worker deployments and tests"""

    def __init__(self, ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS):
        self.ttl_seconds = ttl_seconds
        self._held: Dict[str, Tuple[str, float]] = {}
        self._mutex = asyncio.Lock()

    async def acquire(self, content_id: int, payer_address: str) -> Optional[str]:
        """Token on success, None when another attempt holds the pair"""
        key = lock_key(content_id, payer_address)
        async with self._mutex:
            now = time.monotonic()
            held = self._held.get(key)
            if held is not None and held[1] > now:
                return None
            token = uuid.uuid4().hex
            self._held[key] = (token, now + self.ttl_seconds)
            return token

    async def release(self, content_id: int, payer_address: str, token: str) -> None:
        key = lock_key(content_id, payer_address)
        async with self._mutex:
            held = self._held.get(key)
            if held is not None and held[0] == token:
                del self._held[key]

    @asynccontextmanager
    async def hold(self, content_id: int, payer_address: str) -> AsyncIterator[None]:
        async with _held(self, content_id, payer_address):
            yield


class RedisSettlementLock:
    """
    Lock shared by every gateway worker, stored in Upstash Redis.

    SET NX EX takes the lock; the TTL frees it if a worker dies mid-settlement.
    """

    def __init__(self, redis, ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS):
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    async def acquire(self, content_id: int, payer_address: str) -> Optional[str]:
        token = uuid.uuid4().hex
        acquired = await self.redis.set(
            lock_key(content_id, payer_address), token, nx=True, ex=self.ttl_seconds
        )
        return token if acquired else None

    async def release(self, content_id: int, payer_address: str, token: str) -> None:
        await self.redis.eval(RELEASE_SCRIPT, keys=[lock_key(content_id, payer_address)], args=[token])

    @asynccontextmanager
    async def hold(self, content_id: int, payer_address: str) -> AsyncIterator[None]:
        async with _held(self, content_id, payer_address):
            yield


@asynccontextmanager
async def _held(lock, content_id: int, payer_address: str) -> AsyncIterator[None]:
    token = await lock.acquire(content_id, payer_address)
    if token is None:
        logger.warning("settlement_lock_busy", content_id=content_id, payer=payer_address)
        raise SettlementInProgress(
            "A payment for this block is already being settled for this payer",
            content_id=content_id,
            payer=payer_address,
        )
    try:
        yield
    finally:
        await lock.release(content_id, payer_address, token)
