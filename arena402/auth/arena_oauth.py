"""
Are.na OAuth implementation for creator sign-in
Provides the authorization-code flow; profiles are fetched through the Are.na API client
"""

import secrets
import time
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

import httpx
import structlog

from arena402.errors import UpstreamError
from arena402.upstream.arena import ArenaClient

logger = structlog.get_logger()

STATE_TTL_SECONDS = 600


class ArenaOAuth:
    """
    Are.na OAuth handler

    OAuth Flow:
    1. Generate authorization URL with state parameter
    2. User authorizes on Are.na
    3. Are.na redirects back with code
    4. Exchange code for access token
    5. Fetch user profile with access token
    """

    AUTHORIZE_URL = "https://dev.are.na/oauth/authorize"
    TOKEN_URL = "https://dev.are.na/oauth/token"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        arena: Optional[ArenaClient] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize Are.na OAuth client

        Args:
            client_id: Are.na application UID
            client_secret: Are.na application secret
            redirect_uri: Callback URL for OAuth redirect
            arena: API client used to fetch the signed-in profile
            http_client: Client used for the token exchange
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.arena = arena or ArenaClient()
        self.http_client = http_client or httpx.AsyncClient(timeout=15.0)

        # Pending OAuth states, single process only
        self._pending_states: Dict[str, float] = {}

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def generate_state(self) -> str:
        """Random state parameter for CSRF protection"""
        now = time.time()
        self._pending_states = {
            s: issued for s, issued in self._pending_states.items() if now - issued < STATE_TTL_SECONDS
        }
        state = secrets.token_urlsafe(32)
        self._pending_states[state] = now
        return state

    def validate_state(self, state: Optional[str]) -> bool:
        """
        Validate and consume a state parameter

        Args:
            state: State parameter from OAuth callback

        Returns:
            True if the state was issued here and has not expired
        """
        if not state:
            return False
        issued = self._pending_states.pop(state, None)
        return issued is not None and time.time() - issued < STATE_TTL_SECONDS

    def get_authorization_url(self) -> Tuple[str, str]:
        """
        Generate Are.na OAuth authorization URL

        Returns:
            (authorization URL, state) tuple
        """
        state = self.generate_state()
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "state": state,
        }
        url = f"{self.AUTHORIZE_URL}?{urlencode(params)}"

        logger.info("arena_oauth_url_generated", redirect_uri=self.redirect_uri)
        return url, state

    async def exchange_code_for_token(self, code: str) -> Optional[str]:
        """
        Exchange authorization code for access token

        Args:
            code: Authorization code from Are.na callback

        Returns:
            Access token if successful, None otherwise
        """
        try:
            response = await self.http_client.post(
                self.TOKEN_URL,
                params={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": self.redirect_uri,
                },
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("arena_token_exchange_error", error=str(e))
            return None

        if "error" in data:
            logger.error(
                "arena_token_exchange_failed",
                error=data.get("error"),
                description=data.get("error_description"),
            )
            return None

        access_token = data.get("access_token")
        if access_token:
            logger.info("arena_token_exchange_success")
        return access_token

    async def complete(self, code: str, state: Optional[str]) -> Optional[Tuple[str, Dict[str, Any]]]:
        """
        Complete OAuth flow: validate state, exchange code, fetch profile

        Returns:
            (access_token, profile) if successful, None otherwise
        """
        if not self.validate_state(state):
            logger.warning("arena_oauth_invalid_state")
            return None

        access_token = await self.exchange_code_for_token(code)
        if not access_token:
            return None

        try:
            profile = await self.arena.get_me(access_token)
        except UpstreamError as e:
            logger.error("arena_oauth_profile_failed", error=e.message, status_code=e.status_code)
            return None

        logger.info("arena_oauth_complete", arena_user_id=profile.get("id"), username=profile.get("username"))
        return access_token, profile

    async def aclose(self) -> None:
        await self.http_client.aclose()
