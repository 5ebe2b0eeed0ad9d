"""
Tests for the Are.na API client and OAuth flow
"""

import httpx
import pytest

from arena402.auth.arena_oauth import ArenaOAuth
from arena402.errors import UpstreamError
from arena402.upstream.arena import ArenaClient

API_URL = "https://api.are.na.test/v2"


def arena_client(handler) -> ArenaClient:
    return ArenaClient(API_URL, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestArenaClient:
    @pytest.mark.asyncio
    async def test_get_block_with_token(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": 42, "user": {"id": 1001}})

        block = await arena_client(handler).get_block(42, access_token="tok")

        assert block["id"] == 42
        assert seen[0].url.path == "/v2/blocks/42"
        assert seen[0].headers["Authorization"] == "Bearer tok"

    @pytest.mark.asyncio
    async def test_channel_contents_paging(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v2/channels/reading-list/contents"
            assert request.url.params["page"] == "3"
            assert request.url.params["per"] == "50"
            return httpx.Response(200, json={"contents": []})

        data = await arena_client(handler).get_channel_contents("reading-list", page=3, per=50)

        assert data == {"contents": []}

    @pytest.mark.asyncio
    async def test_error_status_carries_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, text='{"code":404,"message":"Not Found"}')

        with pytest.raises(UpstreamError) as exc_info:
            await arena_client(handler).get_block(1)

        assert exc_info.value.status_code == 404
        assert "Not Found" in exc_info.value.body

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        with pytest.raises(UpstreamError) as exc_info:
            await arena_client(handler).get_channel("x")
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_non_json(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html></html>")

        with pytest.raises(UpstreamError):
            await arena_client(handler).get_me("tok")

    @pytest.mark.asyncio
    async def test_fetch_owner(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/1"):
                return httpx.Response(200, json={"id": 1, "user": {"id": "1001"}})
            return httpx.Response(200, json={"id": 2, "user_id": 7})

        client = arena_client(handler)

        assert await client.fetch_owner(1) == 1001
        assert await client.fetch_owner(2) == 7


class TestArenaOAuth:
    def make_oauth(self, token_handler, api_handler=None):
        api_handler = api_handler or (lambda request: httpx.Response(200, json={"id": 1001, "username": "Owner"}))
        return ArenaOAuth(
            "client-id",
            "client-secret",
            "http://localhost:3000/auth/arena/callback",
            arena=arena_client(api_handler),
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(token_handler)),
        )

    def test_authorization_url(self):
        oauth = self.make_oauth(lambda request: httpx.Response(200, json={}))

        url, state = oauth.get_authorization_url()

        assert url.startswith(ArenaOAuth.AUTHORIZE_URL)
        assert f"state={state}" in url
        assert "response_type=code" in url
        assert oauth.configured is True

    def test_state_is_single_use(self):
        oauth = self.make_oauth(lambda request: httpx.Response(200, json={}))
        state = oauth.generate_state()

        assert oauth.validate_state(state) is True
        assert oauth.validate_state(state) is False
        assert oauth.validate_state(None) is False

    @pytest.mark.asyncio
    async def test_complete(self):
        def token_handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["code"] == "the-code"
            return httpx.Response(200, json={"access_token": "user-token"})

        oauth = self.make_oauth(token_handler)
        state = oauth.generate_state()

        token, profile = await oauth.complete("the-code", state)

        assert token == "user-token"
        assert profile["username"] == "Owner"

    @pytest.mark.asyncio
    async def test_complete_with_bad_state(self):
        oauth = self.make_oauth(lambda request: httpx.Response(200, json={"access_token": "t"}))

        assert await oauth.complete("the-code", "forged") is None

    @pytest.mark.asyncio
    async def test_token_error(self):
        oauth = self.make_oauth(lambda request: httpx.Response(200, json={"error": "invalid_grant"}))

        assert await oauth.complete("the-code", oauth.generate_state()) is None

    @pytest.mark.asyncio
    async def test_profile_failure(self):
        oauth = self.make_oauth(
            lambda request: httpx.Response(200, json={"access_token": "t"}),
            api_handler=lambda request: httpx.Response(401, text="unauthorized"),
        )

        assert await oauth.complete("the-code", oauth.generate_state()) is None
