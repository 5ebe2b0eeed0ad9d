"""
Are.na API client
Fetches blocks and channels from the upstream content API; the gateway never modifies them
"""

from typing import Any, Dict, Optional

import httpx
import structlog

from arena402.errors import UpstreamError

logger = structlog.get_logger()

DEFAULT_API_URL = "https://api.are.na/v2"


class ArenaClient:
    """
    Thin async wrapper over the Are.na v2 REST API

    Non-2xx answers raise UpstreamError carrying the upstream status and body,
    so callers can pass a 404 through as-is.
    """

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        timeout_seconds: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def _get(
        self,
        path: str,
        access_token: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.api_url}{path}"
        headers = {"Accept": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        try:
            response = await self.client.get(url, headers=headers, params=params)
        except httpx.HTTPError as e:
            logger.error("arena_request_failed", url=url, error=str(e))
            raise UpstreamError(f"Are.na request failed: {e}", path=path) from e

        if response.status_code >= 400:
            logger.warning("arena_request_rejected", url=url, status_code=response.status_code)
            raise UpstreamError(
                f"Are.na API error: {response.status_code}",
                status_code=response.status_code,
                body=response.text,
                path=path,
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                "Are.na returned a non-JSON response", status_code=response.status_code, path=path
            ) from e

    async def get_block(self, block_id: int, access_token: Optional[str] = None) -> Dict[str, Any]:
        return await self._get(f"/blocks/{block_id}", access_token=access_token)

    async def get_channel(self, slug: str, access_token: Optional[str] = None) -> Dict[str, Any]:
        return await self._get(f"/channels/{slug}", access_token=access_token)

    async def get_channel_contents(
        self,
        slug: str,
        page: int = 1,
        per: int = 25,
        access_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self._get(
            f"/channels/{slug}/contents",
            access_token=access_token,
            params={"page": page, "per": per},
        )

    async def get_me(self, access_token: str) -> Dict[str, Any]:
        """Profile of the user the token belongs to"""
        return await self._get("/me", access_token=access_token)

    async def fetch_owner(self, block_id: int, access_token: Optional[str] = None) -> Optional[int]:
        """Are.na user id of the block's creator"""
        block = await self.get_block(block_id, access_token=access_token)
        user = block.get("user") or {}
        owner_id = user.get("id", block.get("user_id"))
        return int(owner_id) if owner_id is not None else None

    async def aclose(self) -> None:
        await self.client.aclose()
