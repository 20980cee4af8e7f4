import httpx
from fastapi import Depends, HTTPException, Request, status

from config.base import Settings

from ..domain.entities import AuthSession
from .services import AuthSessionService


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    """Create the shared httpx client for backend REST calls.

    Parameters
    ----------
    settings: Settings
        Application settings.

    Returns
    -------
    httpx.AsyncClient
        Client bound to the backend base URL. The caller owns and closes it.
    """
    return httpx.AsyncClient(
        base_url=settings.api_base_url,
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        headers={"Accept": "application/json"},
    )


def build_auth_service(settings: Settings, client: httpx.AsyncClient) -> AuthSessionService:
    """Create the session service of an application instance."""
    return AuthSessionService(settings, client)


def get_auth_service(request: Request) -> AuthSessionService:
    """Provide the application's `AuthSessionService`.

    Parameters
    ----------
    request: Request
        Incoming request, used to reach the application state.

    Returns
    -------
    AuthSessionService
        Instance created by the application lifespan.
    """
    return request.app.state.auth_service


def get_active_session(
    auth_service: AuthSessionService = Depends(get_auth_service),
) -> AuthSession:
    """Provide the current session or reject the request.

    Parameters
    ----------
    auth_service: AuthSessionService
        Session service, injected as a dependency.

    Returns
    -------
    AuthSession

    Raises
    ------
    HTTPException
        401 when no session is open.
    """
    if auth_service.session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No active session",
        )

    return auth_service.session
