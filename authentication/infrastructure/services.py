import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any, Callable, Dict

import httpx
import jwt
from jwt.exceptions import InvalidTokenError
from loguru import logger

from config.base import Settings
from notifications.application.fanout import ListenerRegistry, Subscription

from ..application.ports import AuthSessionServiceInterface
from ..domain.entities import AuthSession
from ..domain.exceptions import AuthenticationError

USER_ID_CLAIMS = ("userId", "user_id", "sub", "id")


class AuthSessionService(AuthSessionServiceInterface):
    """Concrete implementation of `AuthSessionServiceInterface` backed by httpx.

    Access tokens are issued and verified by the portal backend; the gateway
    only reads their claims (user, role, expiry) without verifying the signature.
    """

    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient,
        expiry_leeway: timedelta = timedelta(seconds=30),
    ) -> None:
        self._settings = settings
        self._client = client
        self._expiry_leeway = expiry_leeway
        self._session: AuthSession | None = None
        self._refresh_lock = asyncio.Lock()
        self._expiry_listeners: ListenerRegistry[AuthSession] = ListenerRegistry(
            "session expiry"
        )

    @property
    def session(self) -> AuthSession | None:
        return self._session

    def decode_claims(self, access_token: str) -> Dict[str, Any]:
        """Read the claims of a JWT access token without verifying it.

        Parameters
        ----------
        access_token: str
            Access token string.

        Returns
        -------
        Dict[str, Any]
            Token claims, or an empty dict for opaque or malformed tokens.
        """
        try:
            return jwt.decode(access_token, options={"verify_signature": False})
        except InvalidTokenError:
            return {}

    def open_session(self, access_token: str, user_id: str | None = None) -> AuthSession:
        self._session = self._build_session(access_token, user_id)
        logger.info(
            f"🔑 Opened session for user {self._session.user_id} ({self._session.role or 'no role'})"
        )
        return self._session

    def close_session(self) -> None:
        if self._session is not None:
            logger.info(f"🔒 Closed session for user {self._session.user_id}")
        self._session = None

    def is_token_expired(self) -> bool:
        """Check whether the current access token is expired or about to expire.

        Returns
        -------
        bool
            False when there is no session or the token carries no expiry.
        """
        if self._session is None or self._session.expires_at is None:
            return False

        return datetime.now(tz=UTC) >= self._session.expires_at - self._expiry_leeway

    async def refresh_access_token(self) -> str:
        if self._session is None:
            raise AuthenticationError("No active session")

        stale_token = self._session.access_token

        async with self._refresh_lock:
            if self._session is None:
                raise AuthenticationError("No active session")

            if self._session.access_token != stale_token:
                return self._session.access_token

            try:
                response = await self._client.post(self._settings.refresh_token_path)
                response.raise_for_status()
                access_token = response.json()["data"]["accessToken"]
            except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"🟠 Token refresh failed: {type(e).__name__}")
                raise AuthenticationError("Token refresh failed") from e

            self._session = self._build_session(access_token, self._session.user_id)
            logger.info(f"🔄 Refreshed access token for user {self._session.user_id}")
            return access_token

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._session is None:
            raise AuthenticationError("No active session")

        if self.is_token_expired():
            await self.renew_session()

        response = await self._send(method, url, **kwargs)

        if response.status_code == httpx.codes.UNAUTHORIZED:
            await response.aclose()
            await self.renew_session()
            response = await self._send(method, url, **kwargs)

        return response

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        headers["Authorization"] = f"Bearer {self._session.access_token}"
        return await self._client.request(method, url, headers=headers, **kwargs)

    async def renew_session(self) -> str:
        try:
            return await self.refresh_access_token()
        except AuthenticationError as e:
            expired = self._session
            self.close_session()
            if expired is not None:
                self._expiry_listeners.emit(expired)
            raise AuthenticationError("Session expired. Please login again.") from e

    def on_session_expired(self, callback: Callable[[AuthSession], None]) -> Subscription:
        return self._expiry_listeners.subscribe(callback)

    def _build_session(self, access_token: str, user_id: str | None) -> AuthSession:
        claims = self.decode_claims(access_token)

        if user_id is None:
            user_id = next(
                (claims[key] for key in USER_ID_CLAIMS if claims.get(key) is not None),
                None,
            )
        if user_id is None or str(user_id).strip() == "":
            raise AuthenticationError("Access token carries no user id")

        roles = claims.get("roles")
        role = claims.get("role") or (roles[0] if isinstance(roles, list) and roles else None)

        expires_at = None
        if isinstance(claims.get("exp"), (int, float)):
            expires_at = datetime.fromtimestamp(claims["exp"], tz=UTC)

        return AuthSession(
            user_id=str(user_id),
            access_token=access_token,
            role=role,
            email=claims.get("email"),
            expires_at=expires_at,
        )
