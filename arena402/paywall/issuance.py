"""
Challenge issuance log
Remembers when each payment challenge was issued so stale proofs can be refused
"""

import json
import time
import uuid
from typing import Dict, Optional, Tuple

import structlog

logger = structlog.get_logger()


def new_challenge_id() -> str:
    return uuid.uuid4().hex


class LocalIssuanceLog:
    """In-process issuance log; entries are dropped once they can no longer be redeemed"""

    def __init__(self, clock=time.time):
        self.clock = clock
        self._issued: Dict[str, Tuple[int, float, int]] = {}

    async def record(self, challenge_id: str, content_id: int, ttl_seconds: int) -> float:
        now = self.clock()
        self._prune(now)
        self._issued[challenge_id] = (content_id, now, ttl_seconds)
        return now

    async def issued_at(self, challenge_id: str, content_id: int) -> Optional[float]:
        """Issuance time of a challenge for this block, None if unknown or expired"""
        entry = self._issued.get(challenge_id)
        if entry is None or entry[0] != content_id:
            return None
        if self.clock() - entry[1] > entry[2]:
            return None
        return entry[1]

    def _prune(self, now: float) -> None:
        expired = [k for k, (_, issued, ttl) in self._issued.items() if now - issued > ttl]
        for key in expired:
            del self._issued[key]


class RedisIssuanceLog:
    """Issuance log shared across workers; Redis expiry enforces the window"""

    def __init__(self, redis, clock=time.time):
        self.redis = redis
        self.clock = clock

    @staticmethod
    def _key(challenge_id: str) -> str:
        return f"arena402:challenge:{challenge_id}"

    async def record(self, challenge_id: str, content_id: int, ttl_seconds: int) -> float:
        now = self.clock()
        await self.redis.set(
            self._key(challenge_id),
            json.dumps({"contentId": content_id, "issuedAt": now}),
            ex=ttl_seconds,
        )
        return now

    async def issued_at(self, challenge_id: str, content_id: int) -> Optional[float]:
        raw = await self.redis.get(self._key(challenge_id))
        if raw is None:
            return None
        try:
            entry = json.loads(raw)
        except ValueError:
            logger.warning("challenge_entry_unreadable", challenge_id=challenge_id)
            return None
        if entry.get("contentId") != content_id:
            return None
        return float(entry["issuedAt"])
