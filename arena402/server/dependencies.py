from typing import Optional

from fastapi import Depends, HTTPException, Request, status
import structlog

from arena402.auth.session import SessionClaims, decode_session_token, extract_token
from arena402.server.services import GatewayServices
from arena402.users import normalize_address

logger = structlog.get_logger()

WALLET_HEADER = "X-Wallet-Address"
PAYMENT_HEADERS = ("X-Payment", "Payment-Signature")


def get_services(request: Request) -> GatewayServices:
    return request.app.state.services


def get_session(
    request: Request,
    services: GatewayServices = Depends(get_services),
) -> Optional[SessionClaims]:
    """Session of the caller, None for anonymous requests"""
    config = services.config
    token = extract_token(
        request.cookies.get(config.session_cookie_name),
        request.headers.get("Authorization"),
    )
    if not token:
        return None
    return decode_session_token(token, config.jwt_secret, config.jwt_algorithm)


def require_session(session: Optional[SessionClaims] = Depends(get_session)) -> SessionClaims:
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return session


def resolve_wallet(
    request: Request,
    session: Optional[SessionClaims] = Depends(get_session),
) -> Optional[str]:
    """Payer address for a request: header, then ?wallet=, then the session wallet"""
    wallet = (
        request.headers.get(WALLET_HEADER)
        or request.query_params.get("wallet")
        or (session.walletAddress if session else None)
    )
    return normalize_address(wallet) if wallet and wallet.strip() else None


def get_payment_proof(request: Request) -> Optional[str]:
    for header in PAYMENT_HEADERS:
        value = request.headers.get(header)
        if value:
            return value
    return None


def require_admin(request: Request, services: GatewayServices = Depends(get_services)) -> None:
    expected = services.config.admin_api_key
    if not expected:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    if request.headers.get("X-Admin-Key") != expected:
        logger.warning("admin_key_rejected", path=request.url.path)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin key")
