from fastapi import APIRouter, Depends, status

from core.presentation.responses import SuccessResponse
from notifications.infrastructure.factory import get_notification_provider

from ..application.rules import CloseSessionRule, OpenSessionRule
from ..infrastructure.factory import get_active_session, get_auth_service
from .requests import OpenSessionRequest
from .responses import SessionResponse

router = APIRouter(prefix="/session")


@router.put("", response_model=SuccessResponse, status_code=status.HTTP_200_OK)
async def open_session(
    request: OpenSessionRequest,
    auth_service=Depends(get_auth_service),
    notification_provider=Depends(get_notification_provider),
):
    """Sign in with a backend access token and start live notifications.

    Replaces any session that is already open.

    Parameters
    ----------
    request: OpenSessionRequest
        `OpenSessionRequest` containing the access token and optional user ID.
    auth_service
        Dependency-injected session service.
    notification_provider
        Dependency-injected shared notification provider.

    Returns
    -------
    SuccessResponse
        `SuccessResponse` containing the opened session.

    Raises
    ------
    AuthenticationError
        If no user ID can be determined for the token.
    """
    open_session_rule = OpenSessionRule(
        access_token=request.access_token,
        user_id=request.user_id,
        auth_service=auth_service,
        notification_provider=notification_provider,
    )
    session = await open_session_rule.execute()

    return SuccessResponse(
        data=SessionResponse.from_session(session, notification_provider.status),
        message="Session opened",
    )


@router.get("", response_model=SuccessResponse, status_code=status.HTTP_200_OK)
async def get_session(
    auth_service=Depends(get_auth_service),
    notification_provider=Depends(get_notification_provider),
):
    """Get the current session, or `None` when signed out."""
    session = auth_service.session

    return SuccessResponse(
        data=(
            SessionResponse.from_session(session, notification_provider.status)
            if session is not None
            else None
        ),
        message="Session retrieved" if session is not None else "No active session",
    )


@router.delete("", response_model=SuccessResponse, status_code=status.HTTP_200_OK)
async def close_session(
    auth_service=Depends(get_auth_service),
    notification_provider=Depends(get_notification_provider),
    session=Depends(get_active_session),
):
    """Sign out: stop live notifications and forget the session.

    Parameters
    ----------
    auth_service
        Dependency-injected session service.
    notification_provider
        Dependency-injected shared notification provider.
    session
        Dependency-injected current session (ensures a session is open).

    Returns
    -------
    SuccessResponse
        `SuccessResponse` indicating successful sign-out.
    """
    close_session_rule = CloseSessionRule(
        auth_service=auth_service,
        notification_provider=notification_provider,
    )
    await close_session_rule.execute()

    return SuccessResponse(
        data={"user_id": session.user_id}, message="Session closed"
    )
