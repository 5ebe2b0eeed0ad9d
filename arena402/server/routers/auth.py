from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse, RedirectResponse
import structlog

from arena402.auth.session import SessionClaims, issue_session_token
from arena402.models import UserRecord
from arena402.server.dependencies import get_services, require_session
from arena402.server.services import GatewayServices

logger = structlog.get_logger()

router = APIRouter(prefix="/auth", tags=["Auth"])


def set_session_cookie(response, services: GatewayServices, user: UserRecord) -> str:
    """Issue a session token for user and attach it as an httpOnly cookie"""
    config = services.config
    token = issue_session_token(
        user, config.jwt_secret, algorithm=config.jwt_algorithm, ttl_days=config.session_ttl_days
    )
    response.set_cookie(
        key=config.session_cookie_name,
        value=token,
        max_age=config.session_ttl_days * 24 * 60 * 60,
        httponly=True,
        secure=config.is_production,
        samesite="lax",
    )
    return token


@router.get("/arena")
async def start_arena_login(services: GatewayServices = Depends(get_services)):
    """Redirect to Are.na for sign-in"""
    if not services.oauth.configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Are.na OAuth is not configured",
        )
    url, _ = services.oauth.get_authorization_url()
    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


@router.get("/arena/callback")
async def arena_callback(
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
    services: GatewayServices = Depends(get_services),
):
    """OAuth callback: link the Are.na account and start a session"""
    if error or not code:
        logger.warning("arena_oauth_denied", error=error)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error or "Missing authorization code")

    result = await services.oauth.complete(code, state)
    if result is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Are.na sign-in failed")

    access_token, profile = result
    user = await services.users.find_or_create(profile, access_token)

    response = RedirectResponse(url=services.config.public_url, status_code=status.HTTP_302_FOUND)
    set_session_cookie(response, services, user)
    return response


@router.get("/me")
async def get_me(
    session: SessionClaims = Depends(require_session),
    services: GatewayServices = Depends(get_services),
):
    user = await services.users.require(session.userId)
    return {
        "id": user.id,
        "arenaUserId": user.arena_user_id,
        "arenaUsername": user.arena_username,
        "arenaSlug": user.arena_slug,
        "walletAddress": user.wallet_address,
    }


@router.post("/logout")
async def logout(services: GatewayServices = Depends(get_services)):
    response = JSONResponse(content={"message": "Logged out"})
    response.delete_cookie(services.config.session_cookie_name)
    return response
