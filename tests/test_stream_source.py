"""Tests for the httpx notification stream source."""
import httpx
import pytest
import pytest_asyncio

from authentication.domain.exceptions import AuthenticationError
from authentication.infrastructure.services import AuthSessionService
from config.base import Settings
from notifications.application.connection import NotificationConnectionManager
from notifications.application.policies import FixedIntervalPolicy
from notifications.domain.entities import ConnectionStatus
from notifications.domain.exceptions import StreamConnectionError
from notifications.infrastructure.decoder import SSEFrameDecoder
from notifications.infrastructure.services import HttpxNotificationStreamSource

STREAM_URL = "http://backend.test/api/notifications/stream/{user_id}"


class StreamBackend:
    """Answers stream requests from a script of response factories.

    The last entry keeps answering once the others are used up.
    """

    def __init__(self, *script):
        self.script = list(script)
        self.requests = []
        self.refresh_allowed = True

    def handler(self, request):
        self.requests.append(request)
        if request.url.path.endswith("/auth/refresh"):
            if not self.refresh_allowed:
                return httpx.Response(401, json={"message": "Refresh token expired"})
            return httpx.Response(200, json={"data": {"accessToken": "renewed-token"}})

        answer = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(answer, Exception):
            raise answer
        return answer()


def sse_response(*chunks):
    def _response():
        return httpx.Response(
            200,
            headers={"Content-Type": "text/event-stream"},
            stream=httpx.ByteStream(b"".join(chunks)),
        )

    return _response


def status_response(status_code):
    return lambda: httpx.Response(status_code)


@pytest_asyncio.fixture
async def make_source():
    clients = []

    def _make_source(backend, with_auth=False):
        client = httpx.AsyncClient(
            base_url="http://backend.test/api/v1",
            transport=httpx.MockTransport(backend.handler),
        )
        clients.append(client)
        auth_service = None
        if with_auth:
            auth_service = AuthSessionService(
                Settings(api_base_url="http://backend.test/api/v1"), client
            )
            auth_service.open_session("initial-token", user_id="42")
        return HttpxNotificationStreamSource(client, STREAM_URL, auth_service=auth_service)

    yield _make_source

    for client in clients:
        await client.aclose()


class TestOpen:
    """Opening and reading the stream."""

    @pytest.mark.asyncio
    async def test_yields_body_chunks_with_stream_headers(self, make_source):
        backend = StreamBackend(sse_response(b'data: {"id":"1"}\n', b"data: ping\n"))
        source = make_source(backend)
        decoder = SSEFrameDecoder()

        async with source.open("42", "token-abc") as chunks:
            notifications = [n async for chunk in chunks for n in decoder.feed(chunk)]

        assert [n.id for n in notifications] == ["1"]
        request = backend.requests[0]
        assert request.url.path == "/api/notifications/stream/42"
        assert request.headers["Authorization"] == "Bearer token-abc"
        assert request.headers["Accept"] == "text/event-stream"
        assert request.headers["Cache-Control"] == "no-cache"

    @pytest.mark.asyncio
    async def test_error_status_raises_stream_connection_error(self, make_source):
        source = make_source(StreamBackend(status_response(503)))

        with pytest.raises(StreamConnectionError, match="503"):
            async with source.open("42", "token"):
                pass

    @pytest.mark.asyncio
    async def test_transport_error_raises_stream_connection_error(self, make_source):
        source = make_source(StreamBackend(httpx.ConnectError("connection refused")))

        with pytest.raises(StreamConnectionError, match="ConnectError"):
            async with source.open("42", "token"):
                pass

    @pytest.mark.asyncio
    async def test_unauthorized_refreshes_token_for_next_attempt(self, make_source):
        backend = StreamBackend(status_response(401), sse_response(b": ok\n"))
        source = make_source(backend, with_auth=True)

        with pytest.raises(StreamConnectionError, match="401"):
            async with source.open("42", "initial-token"):
                pass

        async with source.open("42", "initial-token"):
            pass

        stream_requests = [r for r in backend.requests if "/stream/" in r.url.path]
        assert stream_requests[0].headers["Authorization"] == "Bearer initial-token"
        assert stream_requests[1].headers["Authorization"] == "Bearer renewed-token"

    @pytest.mark.asyncio
    async def test_unauthorized_with_refused_refresh_expires_session(self, make_source):
        backend = StreamBackend(status_response(401))
        backend.refresh_allowed = False
        source = make_source(backend, with_auth=True)
        expired = []
        source._auth_service.on_session_expired(expired.append)

        with pytest.raises(AuthenticationError, match="Session expired"):
            async with source.open("42", "initial-token"):
                pass

        assert source._auth_service.session is None
        assert [s.user_id for s in expired] == ["42"]


class TestWithConnectionManager:
    """End-to-end over a mocked HTTP stream."""

    @pytest.mark.asyncio
    async def test_failed_stream_is_reopened(self, make_source, wait_until):
        backend = StreamBackend(
            status_response(500),
            sse_response(b'data: {"id":"1","title":"Task assigned","type":"TASK_ASSIGNED"}\n'),
        )
        manager = NotificationConnectionManager(
            make_source(backend), reconnect_policy=FixedIntervalPolicy(interval=0.01)
        )
        received = []
        statuses = []
        manager.on_notification(received.append)
        manager.on_status_change(statuses.append, emit_current=False)

        await manager.connect("42", "token")
        await wait_until(lambda: len(received) >= 1)
        await manager.disconnect()

        assert received[0].type == "TASK_ASSIGNED"
        assert statuses[:4] == [
            ConnectionStatus.CONNECTING,
            ConnectionStatus.ERROR,
            ConnectionStatus.CONNECTING,
            ConnectionStatus.CONNECTED,
        ]

    @pytest.mark.asyncio
    async def test_expired_session_stops_reconnecting(self, make_source):
        backend = StreamBackend(status_response(401))
        backend.refresh_allowed = False
        manager = NotificationConnectionManager(
            make_source(backend, with_auth=True),
            reconnect_policy=FixedIntervalPolicy(interval=0.01),
        )

        await manager.connect("42", "initial-token")
        await manager.wait_closed()

        assert len([r for r in backend.requests if "/stream/" in r.url.path]) == 1
        assert manager.status is ConnectionStatus.ERROR
        assert manager.is_running is False
