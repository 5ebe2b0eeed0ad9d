"""
Session tokens
Signed JWTs carrying the signed-in user's identity and wallet
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from arena402.models import UserRecord

logger = structlog.get_logger()


class SessionClaims(BaseModel):
    """Identity carried by a session token"""
    userId: str
    arenaUserId: int
    arenaUsername: Optional[str] = None
    walletAddress: Optional[str] = None
    exp: Optional[int] = None


def issue_session_token(
    user: UserRecord,
    secret: str,
    algorithm: str = "HS256",
    ttl_days: int = 7,
) -> str:
    """Sign a session token for a user; re-issue after wallet changes"""
    expire = datetime.now(timezone.utc) + timedelta(days=ttl_days)
    claims = SessionClaims(
        userId=user.id,
        arenaUserId=user.arena_user_id,
        arenaUsername=user.arena_username,
        walletAddress=user.wallet_address,
        exp=int(expire.timestamp()),
    )
    return jwt.encode(claims.model_dump(), secret, algorithm=algorithm)


def decode_session_token(token: str, secret: str, algorithm: str = "HS256") -> Optional[SessionClaims]:
    """Claims of a valid, unexpired token; None otherwise"""
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
        return SessionClaims.model_validate(payload)
    except (JWTError, ValidationError) as e:
        logger.debug("session_token_rejected", error=str(e))
        return None


def extract_token(cookie_value: Optional[str], authorization: Optional[str]) -> Optional[str]:
    """Session cookie first, then an Authorization: Bearer header"""
    if cookie_value:
        return cookie_value
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None
