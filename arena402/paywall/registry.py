"""
Paywall registry
Owns paywall configuration: which blocks are monetized, at what price, paid to whom
"""

from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Dict, Iterable, List, Optional, Union

from pydantic import BaseModel
import structlog

from arena402.errors import (
    AlreadyExists,
    Forbidden,
    InvalidAddress,
    InvalidPrice,
    MissingPayoutAddress,
    OwnershipVerificationFailed,
    PaywallNotFound,
    UpstreamError,
)
from arena402.models import PaywallConfig, PaywallSummary, UserRecord
from arena402.paywall.challenge import USDC_DECIMALS
from arena402.users import is_valid_wallet_address

logger = structlog.get_logger()

# numeric(10, 6)
MAX_PRICE_USDC = Decimal("9999.999999")


class PaywallPatch(BaseModel):
    """Fields an owner may change; None means unchanged"""
    price_usdc: Optional[str] = None
    payout_address: Optional[str] = None
    active: Optional[bool] = None


def parse_price(raw: Union[str, int, Decimal], min_price: Decimal) -> Decimal:
    """
    Validate a price and normalize it to 6 decimal places.
    Floats are refused so no binary rounding ever reaches a stored price.
    """
    if isinstance(raw, float) or isinstance(raw, bool):
        raise InvalidPrice("Price must be given as a decimal string, e.g. '0.05'", price=str(raw))
    try:
        price = raw if isinstance(raw, Decimal) else Decimal(str(raw).strip())
    except InvalidOperation:
        raise InvalidPrice(f"Price is not a decimal number: {raw!r}", price=str(raw))

    if not price.is_finite():
        raise InvalidPrice("Price must be a finite number", price=str(raw))
    step = Decimal(1).scaleb(-USDC_DECIMALS)
    if price.quantize(step, rounding=ROUND_DOWN) != price:
        raise InvalidPrice(f"Price has more than {USDC_DECIMALS} decimal places", price=str(raw))
    if price < min_price:
        raise InvalidPrice(
            f"Minimum price is {min_price} USDC", price=str(raw), min_price=str(min_price)
        )
    if price > MAX_PRICE_USDC:
        raise InvalidPrice(f"Maximum price is {MAX_PRICE_USDC} USDC", price=str(raw))

    return price.quantize(step)


def validate_payout_address(address: str) -> str:
    if not is_valid_wallet_address(address):
        raise InvalidAddress("Invalid recipient wallet address", payout_address=address)
    return address


class PaywallRegistry:
    """Create, read, update and remove paywall configurations"""

    def __init__(self, db, min_price_usdc: Union[str, Decimal] = "0.01", upstream=None):
        self.db = db
        self.min_price = Decimal(str(min_price_usdc))
        self.upstream = upstream

    async def create(
        self,
        content_id: int,
        owner_id: str,
        price_usdc: Union[str, Decimal],
        payout_address: Optional[str] = None,
    ) -> PaywallConfig:
        """
        Monetize a block.

        Falls back to the owner's wallet on file when no payout address is given.
        An inactive config left behind by deactivate() is reactivated in place.
        """
        price = parse_price(price_usdc, self.min_price)

        if payout_address is None or not payout_address.strip():
            owner = await self.db.get_user(owner_id)
            if owner is None or not owner.wallet_address:
                raise MissingPayoutAddress(
                    "No wallet address configured. Please set your wallet address first.",
                    owner_id=owner_id,
                )
            payout_address = owner.wallet_address
        validate_payout_address(payout_address)

        existing = await self.db.get_paywall(content_id)
        if existing is not None and existing.active:
            raise AlreadyExists("Paywall already exists for this block", content_id=content_id)

        if existing is not None:
            paywall = await self.db.update_paywall(content_id, {
                "owner_id": owner_id,
                "price_usdc": price,
                "payout_address": payout_address,
                "active": True,
            })
            if paywall is None:
                raise PaywallNotFound("Paywall not found", content_id=content_id)
            logger.info("paywall_reactivated", content_id=content_id, owner_id=owner_id, price=str(price))
            return paywall

        paywall = await self.db.insert_paywall(content_id, owner_id, price, payout_address)
        logger.info(
            "paywall_created",
            content_id=content_id,
            owner_id=owner_id,
            price=str(price),
            payout_address=payout_address,
        )
        return paywall

    async def get(self, content_id: int) -> Optional[PaywallConfig]:
        """Paywall for a block, active or not"""
        return await self.db.get_paywall(content_id)

    async def get_active(self, content_id: int) -> Optional[PaywallConfig]:
        paywall = await self.db.get_paywall(content_id)
        return paywall if paywall is not None and paywall.active else None

    async def list_by_owner(self, owner_id: str) -> List[PaywallConfig]:
        return await self.db.get_paywalls_by_owner(owner_id)

    async def _require_owned(self, content_id: int, requester_id: str) -> PaywallConfig:
        existing = await self.db.get_paywall(content_id)
        if existing is None:
            raise PaywallNotFound("Paywall not found", content_id=content_id)
        if existing.owner_id != requester_id:
            raise Forbidden("You do not own this paywall", content_id=content_id, requester_id=requester_id)
        return existing

    async def update(self, content_id: int, requester_id: str, patch: PaywallPatch) -> PaywallConfig:
        """Owner-only partial update; changed fields are validated like create()"""
        await self._require_owned(content_id, requester_id)

        fields = {}
        if patch.price_usdc is not None:
            fields["price_usdc"] = parse_price(patch.price_usdc, self.min_price)
        if patch.payout_address is not None:
            fields["payout_address"] = validate_payout_address(patch.payout_address)
        if patch.active is not None:
            fields["active"] = patch.active

        updated = await self.db.update_paywall(content_id, fields)
        if updated is None:
            raise PaywallNotFound("Paywall not found", content_id=content_id)

        logger.info("paywall_updated", content_id=content_id, fields=sorted(fields))
        return updated

    async def deactivate(self, content_id: int, requester_id: str) -> PaywallConfig:
        """Soft delete: the block becomes free, history and config are kept"""
        await self._require_owned(content_id, requester_id)
        updated = await self.db.update_paywall(content_id, {"active": False})
        if updated is None:
            raise PaywallNotFound("Paywall not found", content_id=content_id)
        logger.info("paywall_deactivated", content_id=content_id)
        return updated

    async def delete(self, content_id: int, requester_id: str) -> None:
        """Hard delete: payments keep their rows with a null paywall reference"""
        await self._require_owned(content_id, requester_id)
        await self.db.delete_paywall(content_id)
        logger.info("paywall_deleted", content_id=content_id)

    async def batch_lookup(self, content_ids: Iterable[int]) -> Dict[int, PaywallSummary]:
        """Active paywalls among content_ids, fetched in one query"""
        return await self.db.get_active_paywalls(content_ids)

    async def verify_ownership(self, user: UserRecord, content_id: int) -> None:
        """
        Check against Are.na that the user owns the block.
        A missing block counts as not owned; other upstream failures propagate.
        """
        if self.upstream is None:
            raise RuntimeError("No upstream client configured for ownership checks")

        try:
            owner_arena_id = await self.upstream.fetch_owner(content_id, access_token=user.arena_access_token)
        except UpstreamError as e:
            if e.status_code in (401, 403, 404):
                raise OwnershipVerificationFailed(
                    "You do not own this block on Are.na", content_id=content_id
                ) from e
            raise

        if owner_arena_id != user.arena_user_id:
            logger.warning(
                "paywall_ownership_rejected",
                content_id=content_id,
                user_id=user.id,
                owner_arena_id=owner_arena_id,
            )
            raise OwnershipVerificationFailed("You do not own this block on Are.na", content_id=content_id)
