from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from loguru import logger

from authentication.application.ports import AuthSessionServiceInterface

from ..application.ports import NotificationStreamSource
from ..domain.exceptions import StreamConnectionError


class HttpxNotificationStreamSource(NotificationStreamSource):
    """httpx implementation of the per-user Server-Sent Events stream.

    The request never times out while reading; the connection stays open until
    the server closes it or the consumer leaves the context.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        stream_url: str,
        connect_timeout: float = 10.0,
        auth_service: AuthSessionServiceInterface | None = None,
    ) -> None:
        """Initialize the stream source.

        Args:
            client: Shared httpx client.
            stream_url: Stream URL template containing `{user_id}`.
            connect_timeout: Seconds allowed to establish the connection.
            auth_service: Optional session service. When given, the latest
                session token is preferred over the one passed to `open`, and a
                401 answer renews the session before the next attempt. A session
                that can not be renewed ends the stream with `AuthenticationError`.
        """
        self._client = client
        self._stream_url = stream_url
        self._timeout = httpx.Timeout(connect_timeout, read=None)
        self._auth_service = auth_service

    @asynccontextmanager
    async def open(self, user_id: str, access_token: str) -> AsyncIterator[AsyncIterator[bytes]]:
        url = self._stream_url.format(user_id=user_id)
        headers = {
            "Authorization": f"Bearer {self._current_token(access_token)}",
            "Accept": "text/event-stream",
            "Cache-Control": "no-cache",
        }

        try:
            async with self._client.stream(
                "GET", url, headers=headers, timeout=self._timeout
            ) as response:
                if not response.is_success:
                    await self._handle_rejection(response)

                yield self._iter_chunks(response)
        except httpx.HTTPError as e:
            raise StreamConnectionError(
                f"SSE connection failed: {type(e).__name__}: {e}"
            ) from e

    async def _iter_chunks(self, response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as e:
            raise StreamConnectionError(
                f"SSE stream interrupted: {type(e).__name__}: {e}"
            ) from e

    def _current_token(self, access_token: str) -> str:
        if self._auth_service is not None and self._auth_service.session is not None:
            return self._auth_service.session.access_token
        return access_token

    async def _handle_rejection(self, response: httpx.Response) -> None:
        if (
            response.status_code == httpx.codes.UNAUTHORIZED
            and self._auth_service is not None
        ):
            logger.debug("🔄 Notification stream unauthorized, renewing session")
            await self._auth_service.renew_session()

        raise StreamConnectionError(
            f"SSE connection failed: {response.status_code} {response.reason_phrase}"
        )
