"""
Access ledger
Owns access grants: which payer addresses may read which blocks
"""

from typing import Iterable, List, Optional, Set

import structlog

from arena402.models import AccessGrant, AccessStatus
from arena402.paywall.registry import PaywallRegistry
from arena402.users import normalize_address

logger = structlog.get_logger()


class AccessLedger:
    """
    Access checks and idempotent grants.

    Addresses are lower-cased before every read and write, so lookups are
    case-insensitive. The (block, payer) unique key is the only guard
    against duplicate grants.
    """

    def __init__(self, db, registry: PaywallRegistry):
        self.db = db
        self.registry = registry

    async def has_access(self, content_id: int, payer_address: Optional[str]) -> bool:
        if not payer_address or not payer_address.strip():
            return False
        grant = await self.db.get_grant(content_id, normalize_address(payer_address))
        return grant is not None

    async def grant(
        self,
        content_id: int,
        payer_address: str,
        payment_record_id: Optional[str] = None,
    ) -> AccessGrant:
        """Grant access; an existing grant for the pair is returned unchanged"""
        if not payer_address or not payer_address.strip():
            raise ValueError("A payer address is required to grant access")

        payer = normalize_address(payer_address)
        grant = await self.db.insert_grant_if_absent(content_id, payer, payment_record_id)

        if grant.payment_record_id == payment_record_id:
            logger.info("access_granted", content_id=content_id, payer=payer, payment_id=payment_record_id)
        else:
            logger.info(
                "access_grant_exists",
                content_id=content_id,
                payer=payer,
                grant_id=grant.id,
                payment_id=payment_record_id,
            )
        return grant

    async def revoke(self, content_id: int, payer_address: str) -> bool:
        """Administrative removal; True when a grant was deleted"""
        payer = normalize_address(payer_address)
        removed = await self.db.delete_grant(content_id, payer)
        logger.info("access_revoked", content_id=content_id, payer=payer, removed=removed)
        return removed

    async def status_for(self, content_id: int, payer_address: Optional[str] = None) -> AccessStatus:
        """
        The single access decision for a block.
        No active paywall means free content; a paywall with no caller
        address means no access.
        """
        paywall = await self.registry.get_active(content_id)
        if paywall is None:
            return AccessStatus(content_id=content_id, is_paywalled=False, has_access=True)

        return AccessStatus(
            content_id=content_id,
            is_paywalled=True,
            has_access=await self.has_access(content_id, payer_address),
            price_usdc=paywall.price_usdc,
            payout_address=paywall.payout_address,
        )

    async def grants_for_payer(self, payer_address: str) -> List[AccessGrant]:
        return await self.db.get_grants_by_payer(normalize_address(payer_address))

    async def grants_for_content(self, content_id: int) -> List[AccessGrant]:
        return await self.db.get_grants_by_content(content_id)

    async def accessible_content(self, content_ids: Iterable[int], payer_address: Optional[str]) -> Set[int]:
        """Which of content_ids the payer holds grants for, in one query"""
        if not payer_address:
            return set()
        return await self.db.get_granted_content_ids(content_ids, normalize_address(payer_address))
