from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse
import structlog

from arena402.auth.session import SessionClaims
from arena402.errors import Forbidden, PaywallNotFound
from arena402.paywall.registry import PaywallPatch
from arena402.server.dependencies import get_services, require_session, resolve_wallet
from arena402.server.models import ConfigurePaywallRequest, UpdatePaywallRequest, paywall_view
from arena402.server.services import GatewayServices

logger = structlog.get_logger()

router = APIRouter(prefix="/paywall", tags=["Paywall"])


@router.post("/configure")
async def configure_paywall(
    body: ConfigurePaywallRequest,
    session: SessionClaims = Depends(require_session),
    services: GatewayServices = Depends(get_services),
):
    """
    Create or update a paywall on a block
    Ownership is checked against Are.na before anything is written
    """
    user = await services.users.require(session.userId)
    await services.registry.verify_ownership(user, body.blockId)

    existing = await services.registry.get(body.blockId)
    if existing is not None and existing.active:
        paywall = await services.registry.update(
            body.blockId,
            user.id,
            PaywallPatch(price_usdc=body.priceUsdc, payout_address=body.recipientWallet),
        )
        return {"message": "Paywall updated", "paywall": paywall_view(paywall)}

    paywall = await services.registry.create(
        body.blockId, user.id, body.priceUsdc, payout_address=body.recipientWallet
    )
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={"message": "Paywall created", "paywall": paywall_view(paywall)},
    )


@router.get("")
async def list_my_paywalls(
    session: SessionClaims = Depends(require_session),
    services: GatewayServices = Depends(get_services),
):
    """All paywalls owned by the caller, active or not"""
    paywalls = await services.registry.list_by_owner(session.userId)
    return {"paywalls": [paywall_view(p) for p in paywalls]}


@router.get("/{block_id}")
async def get_paywall(block_id: int, services: GatewayServices = Depends(get_services)):
    """Paywall configuration for a block (public endpoint)"""
    paywall = await services.registry.get(block_id)
    if paywall is None:
        raise PaywallNotFound("No paywall exists for this block", content_id=block_id)

    view = paywall_view(paywall)
    view["network"] = services.config.network
    return view


@router.patch("/{block_id}")
async def update_paywall(
    block_id: int,
    body: UpdatePaywallRequest,
    session: SessionClaims = Depends(require_session),
    services: GatewayServices = Depends(get_services),
):
    paywall = await services.registry.update(
        block_id,
        session.userId,
        PaywallPatch(price_usdc=body.priceUsdc, payout_address=body.recipientWallet, active=body.active),
    )
    return {"message": "Paywall updated", "paywall": paywall_view(paywall)}


@router.post("/{block_id}/deactivate")
async def deactivate_paywall(
    block_id: int,
    session: SessionClaims = Depends(require_session),
    services: GatewayServices = Depends(get_services),
):
    """Soft delete: the block becomes free, payment history is kept"""
    paywall = await services.registry.deactivate(block_id, session.userId)
    return {"message": "Paywall deactivated", "paywall": paywall_view(paywall)}


@router.delete("/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_paywall(
    block_id: int,
    session: SessionClaims = Depends(require_session),
    services: GatewayServices = Depends(get_services),
):
    await services.registry.delete(block_id, session.userId)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{block_id}/stats")
async def get_paywall_stats(
    block_id: int,
    session: SessionClaims = Depends(require_session),
    services: GatewayServices = Depends(get_services),
):
    """Payment totals, owner only"""
    paywall = await services.registry.get(block_id)
    if paywall is None:
        raise PaywallNotFound("No paywall exists for this block", content_id=block_id)
    if paywall.owner_id != session.userId:
        raise Forbidden("You do not own this paywall", content_id=block_id)

    stats = await services.payments.stats_for_paywall(paywall.id)
    return {
        "blockId": block_id,
        "totalPayments": stats.total_payments,
        "totalSettled": stats.total_settled,
        "totalRevenue": stats.total_revenue,
        "currency": "USDC",
    }


@router.get("/{block_id}/access")
async def get_access_status(
    block_id: int,
    services: GatewayServices = Depends(get_services),
    wallet: Optional[str] = Depends(resolve_wallet),
):
    """Whether the caller may read the block"""
    access = await services.ledger.status_for(block_id, wallet)
    return {
        "blockId": block_id,
        "isPaywalled": access.is_paywalled,
        "hasAccess": access.has_access,
        "priceUsdc": f"{access.price_usdc:.6f}" if access.price_usdc is not None else None,
        "recipientWallet": access.payout_address,
        "wallet": wallet,
    }
