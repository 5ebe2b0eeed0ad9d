"""
User records linked to Are.na accounts
"""

from typing import Optional

import structlog

from arena402.config import ADDRESS_PATTERN
from arena402.errors import InvalidAddress, UserNotFound
from arena402.models import UserRecord

logger = structlog.get_logger()


def is_valid_wallet_address(address: Optional[str]) -> bool:
    """0x followed by 40 hex characters, any case"""
    return bool(address) and ADDRESS_PATTERN.match(address) is not None


def normalize_address(address: str) -> str:
    """Canonical form used for storage and comparison"""
    return address.strip().lower()


class UserDirectory:
    """Find, create and update users; the wallet on file is the default payout address"""

    def __init__(self, db):
        self.db = db

    async def find_or_create(self, arena_user: dict, access_token: str) -> UserRecord:
        """Upsert a user from an Are.na /me profile"""
        user = await self.db.upsert_user(
            arena_user_id=arena_user["id"],
            arena_username=arena_user.get("username"),
            arena_slug=arena_user.get("slug"),
            arena_access_token=access_token,
        )
        logger.info("user_linked", user_id=user.id, arena_user_id=user.arena_user_id)
        return user

    async def get(self, user_id: str) -> Optional[UserRecord]:
        return await self.db.get_user(user_id)

    async def require(self, user_id: str) -> UserRecord:
        user = await self.db.get_user(user_id)
        if user is None:
            raise UserNotFound("User account no longer exists", user_id=user_id)
        return user

    async def update_wallet(self, user_id: str, wallet_address: Optional[str]) -> UserRecord:
        """Set (or clear, with None) the user's wallet address"""
        if wallet_address is not None and not is_valid_wallet_address(wallet_address):
            raise InvalidAddress(
                "Must be a valid Ethereum address (0x followed by 40 hex characters)",
                wallet_address=wallet_address,
            )

        updated = await self.db.update_user_wallet(user_id, wallet_address)
        if updated is None:
            raise UserNotFound("User account no longer exists", user_id=user_id)

        logger.info("user_wallet_updated", user_id=user_id, cleared=wallet_address is None)
        return updated
