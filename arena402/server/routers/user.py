from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
import structlog

from arena402.auth.session import SessionClaims
from arena402.models import UserRecord
from arena402.server.dependencies import get_services, require_session
from arena402.server.models import WalletUpdateRequest, grant_view
from arena402.server.routers.auth import set_session_cookie
from arena402.server.services import GatewayServices

logger = structlog.get_logger()

router = APIRouter(prefix="/user", tags=["User"])


def _profile(user: UserRecord) -> dict:
    return {
        "id": user.id,
        "arenaUserId": user.arena_user_id,
        "arenaUsername": user.arena_username,
        "arenaSlug": user.arena_slug,
        "walletAddress": user.wallet_address,
        "createdAt": user.created_at.isoformat(),
    }


def _with_refreshed_session(services: GatewayServices, user: UserRecord) -> JSONResponse:
    # The session token embeds the wallet, so it is re-issued on every change
    response = JSONResponse(content={"user": _profile(user)})
    set_session_cookie(response, services, user)
    return response


@router.get("/profile")
async def get_profile(
    session: SessionClaims = Depends(require_session),
    services: GatewayServices = Depends(get_services),
):
    user = await services.users.require(session.userId)
    return {"user": _profile(user)}


@router.put("/wallet")
async def set_wallet(
    body: WalletUpdateRequest,
    session: SessionClaims = Depends(require_session),
    services: GatewayServices = Depends(get_services),
):
    """Set the default payout wallet"""
    user = await services.users.update_wallet(session.userId, body.walletAddress)
    return _with_refreshed_session(services, user)


@router.delete("/wallet")
async def clear_wallet(
    session: SessionClaims = Depends(require_session),
    services: GatewayServices = Depends(get_services),
):
    user = await services.users.update_wallet(session.userId, None)
    return _with_refreshed_session(services, user)


@router.get("/grants")
async def get_my_grants(
    session: SessionClaims = Depends(require_session),
    services: GatewayServices = Depends(get_services),
):
    """Blocks unlocked by the caller's wallet"""
    if not session.walletAddress:
        return {"grants": []}
    grants = await services.ledger.grants_for_payer(session.walletAddress)
    return {"grants": [grant_view(g) for g in grants]}
