"""
Authentication module for Arena402
Provides Are.na OAuth and JWT sessions
"""

from arena402.auth.arena_oauth import ArenaOAuth
from arena402.auth.session import SessionClaims, decode_session_token, issue_session_token

__all__ = ["ArenaOAuth", "SessionClaims", "decode_session_token", "issue_session_token"]
