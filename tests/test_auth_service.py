"""Tests for the authenticated backend session service."""
import asyncio
import time

import httpx
import jwt
import pytest
import pytest_asyncio

from authentication.domain.exceptions import AuthenticationError
from authentication.infrastructure.services import AuthSessionService
from config.base import Settings

BASE_URL = "http://backend.test/api/v1"


def make_token(exp_in=3600, **claims):
    payload = {"exp": int(time.time()) + exp_in, **claims}
    return jwt.encode(payload, "gateway-test-signing-key-0123456789abcdef", algorithm="HS256")


class Backend:
    """Scripted backend answering through an httpx mock transport."""

    def __init__(self):
        self.requests = []
        self.refresh_token = None
        self.valid_tokens = set()

    def handler(self, request):
        self.requests.append(request)

        if request.url.path.endswith("/auth/refresh"):
            if self.refresh_token is None:
                return httpx.Response(401, json={"message": "Refresh token expired"})
            self.valid_tokens.add(self.refresh_token)
            return httpx.Response(
                200, json={"data": {"accessToken": self.refresh_token}}
            )

        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        if token not in self.valid_tokens:
            return httpx.Response(401, json={"message": "Unauthorized"})
        return httpx.Response(200, json={"data": "ok"})


@pytest.fixture
def backend():
    return Backend()


@pytest_asyncio.fixture
async def auth_service(backend):
    client = httpx.AsyncClient(
        base_url=BASE_URL, transport=httpx.MockTransport(backend.handler)
    )
    yield AuthSessionService(Settings(api_base_url=BASE_URL), client)
    await client.aclose()


class TestOpenSession:
    """Reading the session from an access token."""

    def test_claims_populate_session(self, auth_service):
        token = make_token(userId=42, role="CUSTOMER", email="ana@example.com")

        session = auth_service.open_session(token)

        assert session.user_id == "42"
        assert session.role == "CUSTOMER"
        assert session.email == "ana@example.com"
        assert session.expires_at is not None
        assert auth_service.session is session

    def test_sub_claim_and_role_list(self, auth_service):
        session = auth_service.open_session(make_token(sub="u-7", roles=["EMPLOYEE"]))

        assert session.user_id == "u-7"
        assert session.role == "EMPLOYEE"

    def test_explicit_user_id_wins(self, auth_service):
        session = auth_service.open_session(make_token(userId=1), user_id="99")

        assert session.user_id == "99"

    def test_opaque_token_needs_user_id(self, auth_service):
        with pytest.raises(AuthenticationError):
            auth_service.open_session("opaque-token")

        session = auth_service.open_session("opaque-token", user_id="5")

        assert session.user_id == "5"
        assert session.expires_at is None

    def test_close_session(self, auth_service):
        auth_service.open_session(make_token(userId=1))

        auth_service.close_session()
        auth_service.close_session()

        assert auth_service.session is None


class TestRequest:
    """Authenticated requests and token renewal."""

    @pytest.mark.asyncio
    async def test_request_without_session_fails(self, auth_service):
        with pytest.raises(AuthenticationError):
            await auth_service.request("GET", "/notifications")

    @pytest.mark.asyncio
    async def test_bearer_header_is_sent(self, auth_service, backend):
        token = make_token(userId=1)
        backend.valid_tokens.add(token)
        auth_service.open_session(token)

        response = await auth_service.request("GET", "/notifications")

        assert response.status_code == 200
        assert backend.requests[0].headers["Authorization"] == f"Bearer {token}"

    @pytest.mark.asyncio
    async def test_unauthorized_request_is_retried_once_after_refresh(
        self, auth_service, backend
    ):
        backend.refresh_token = make_token(userId=1, jti="fresh")
        auth_service.open_session(make_token(userId=1))

        response = await auth_service.request("GET", "/notifications")

        assert response.status_code == 200
        assert [r.url.path for r in backend.requests] == [
            "/api/v1/notifications",
            "/api/v1/auth/refresh",
            "/api/v1/notifications",
        ]
        assert auth_service.session.access_token == backend.refresh_token

    @pytest.mark.asyncio
    async def test_expired_token_is_refreshed_before_sending(self, auth_service, backend):
        backend.refresh_token = make_token(userId=1, jti="fresh")
        auth_service.open_session(make_token(exp_in=-60, userId=1))

        assert auth_service.is_token_expired() is True

        await auth_service.request("GET", "/notifications")

        assert backend.requests[0].url.path == "/api/v1/auth/refresh"

    @pytest.mark.asyncio
    async def test_failed_refresh_expires_session(self, auth_service, backend):
        auth_service.open_session(make_token(userId=1))

        with pytest.raises(AuthenticationError, match="Session expired"):
            await auth_service.request("GET", "/notifications")

        assert auth_service.session is None

    @pytest.mark.asyncio
    async def test_failed_refresh_notifies_expiry_listeners_once(self, auth_service):
        auth_service.open_session(make_token(userId=1))
        expired = []
        auth_service.on_session_expired(expired.append)

        results = await asyncio.gather(
            auth_service.renew_session(),
            auth_service.renew_session(),
            return_exceptions=True,
        )

        assert all(isinstance(r, AuthenticationError) for r in results)
        assert [s.user_id for s in expired] == ["1"]

    @pytest.mark.asyncio
    async def test_successful_refresh_does_not_expire(self, auth_service, backend):
        backend.refresh_token = make_token(userId=1, jti="fresh")
        auth_service.open_session(make_token(userId=1))
        expired = []
        auth_service.on_session_expired(expired.append)

        assert await auth_service.renew_session() == backend.refresh_token

        assert expired == []
        assert auth_service.session.access_token == backend.refresh_token

    @pytest.mark.asyncio
    async def test_concurrent_refreshes_hit_backend_once(self, auth_service, backend):
        backend.refresh_token = make_token(userId=1, jti="fresh")
        auth_service.open_session(make_token(userId=1))

        tokens = await asyncio.gather(
            auth_service.refresh_access_token(), auth_service.refresh_access_token()
        )

        assert tokens == [backend.refresh_token] * 2
        assert len([r for r in backend.requests if r.url.path.endswith("/refresh")]) == 1
