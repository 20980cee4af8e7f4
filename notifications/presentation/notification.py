import asyncio
import json
from typing import Any, AsyncIterator, Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse
from loguru import logger

from authentication.domain.entities import AuthSession
from authentication.infrastructure.factory import get_active_session
from config.base import Settings, get_settings
from core.presentation.responses import SuccessResponse, UpdatedResponse

from ..application.provider import NotificationProvider
from ..infrastructure.factory import get_notification_provider
from .responses import (
    ConnectionStatusResponse,
    NotificationListResponse,
    NotificationResponse,
)

router = APIRouter(prefix="/notifications")


def _list_response(provider: NotificationProvider) -> NotificationListResponse:
    snapshot = provider.store.snapshot()
    return NotificationListResponse(
        notifications=[NotificationResponse.from_domain(n) for n in snapshot.notifications],
        unread_count=snapshot.unread_count,
        server_unread_count=snapshot.server_unread_count,
        connection_status=provider.status,
        loading=snapshot.loading,
    )


async def notification_event_stream(
    provider: NotificationProvider, heartbeat_seconds: float
) -> AsyncIterator[str]:
    """Re-broadcast provider events as Server-Sent Events frames.

    Every connected UI surface gets its own queue fed by the shared provider,
    so browser tabs never open their own backend stream. A `ping` frame is sent
    whenever nothing happened for `heartbeat_seconds`.

    Parameters
    ----------
    provider : NotificationProvider
        Shared notification context.
    heartbeat_seconds : float
        Idle interval between keep-alive frames.

    Yields
    ------
    str
        SSE-formatted frames.
    """
    queue: asyncio.Queue[Dict[str, Any]] = asyncio.Queue()

    subscriptions = [
        provider.on_status_change(
            lambda s: queue.put_nowait({"event": "status", "status": s.value})
        ),
        provider.on_notification(
            lambda n: queue.put_nowait({"event": "notification", "notification": n.to_dict()})
        ),
        provider.subscribe(
            lambda snapshot: queue.put_nowait(
                {"event": "unread_count", "unread_count": snapshot.unread_count}
            )
        ),
    ]

    try:
        while True:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=heartbeat_seconds)
            except TimeoutError:
                yield "data: ping\n\n"
                continue

            yield f"data: {json.dumps(event)}\n\n"
    finally:
        for unsubscribe in subscriptions:
            unsubscribe()
        logger.debug("Notification re-broadcast stream closed")


@router.get("", response_model=SuccessResponse, status_code=status.HTTP_200_OK)
async def get_notifications(
    provider: NotificationProvider = Depends(get_notification_provider),
    session: AuthSession = Depends(get_active_session),
):
    """Get the notification state of the current session.

    Returns
    -------
    SuccessResponse
        Response containing notifications, unread count and stream status
    """
    return SuccessResponse(
        data=_list_response(provider),
        message="Notifications retrieved successfully",
    )


@router.post("/refresh", response_model=SuccessResponse, status_code=status.HTTP_200_OK)
async def refresh_notifications(
    provider: NotificationProvider = Depends(get_notification_provider),
    session: AuthSession = Depends(get_active_session),
):
    """Reload notifications and the unread count from the backend.

    A failed refresh keeps the previous state and says so in the message.

    Returns
    -------
    SuccessResponse
        Response containing the (possibly unchanged) notification state
    """
    refreshed = await provider.refresh()

    return SuccessResponse(
        success=refreshed,
        data=_list_response(provider),
        message=(
            "Notifications refreshed"
            if refreshed
            else "Failed to refresh notifications, showing cached state"
        ),
    )


@router.get("/status", response_model=SuccessResponse, status_code=status.HTTP_200_OK)
async def get_connection_status(
    provider: NotificationProvider = Depends(get_notification_provider),
    session: AuthSession = Depends(get_active_session),
):
    """Get the live notification stream status."""
    return SuccessResponse(
        data=ConnectionStatusResponse(
            status=provider.status, live=provider.connection.is_connected
        ),
        message="Connection status retrieved",
    )


@router.post("/reconnect", response_model=SuccessResponse, status_code=status.HTTP_200_OK)
async def reconnect_notification_stream(
    provider: NotificationProvider = Depends(get_notification_provider),
    session: AuthSession = Depends(get_active_session),
):
    """Restart the live notification stream without waiting for the backoff.

    Returns
    -------
    SuccessResponse
        Response containing the stream status right after the restart
    """
    await provider.reconnect()

    return SuccessResponse(
        data=ConnectionStatusResponse(
            status=provider.status, live=provider.connection.is_connected
        ),
        message="Notification stream reconnecting",
    )


@router.patch(
    "/read-all", response_model=UpdatedResponse, status_code=status.HTTP_200_OK
)
async def mark_all_notifications_read(
    provider: NotificationProvider = Depends(get_notification_provider),
    session: AuthSession = Depends(get_active_session),
):
    """Mark every notification as read.

    Returns
    -------
    UpdatedResponse
        Response with the new unread count

    Raises
    ------
    NotificationActionError
        If the backend rejects the update, rendered as HTTP 502
    """
    await provider.mark_all_as_read()

    return UpdatedResponse(
        data={"unread_count": provider.store.unread_count},
        message="All notifications marked as read",
    )


@router.patch(
    "/{notification_id}/read",
    response_model=UpdatedResponse,
    status_code=status.HTTP_200_OK,
)
async def mark_notification_read(
    notification_id: str,
    provider: NotificationProvider = Depends(get_notification_provider),
    session: AuthSession = Depends(get_active_session),
):
    """Mark a specific notification as read.

    Parameters
    ----------
    notification_id : str
        ID of the notification to mark as read

    Returns
    -------
    UpdatedResponse
        Response with the new unread count

    Raises
    ------
    NotificationActionError
        If the backend rejects the update, rendered as HTTP 502
    """
    await provider.mark_as_read(notification_id)

    return UpdatedResponse(
        data={"id": notification_id, "unread_count": provider.store.unread_count},
        message="Notification marked as read",
    )


@router.delete(
    "/{notification_id}", response_model=UpdatedResponse, status_code=status.HTTP_200_OK
)
async def delete_notification(
    notification_id: str,
    provider: NotificationProvider = Depends(get_notification_provider),
    session: AuthSession = Depends(get_active_session),
):
    """Delete a notification.

    Parameters
    ----------
    notification_id : str
        ID of the notification to delete

    Returns
    -------
    UpdatedResponse
        Response with the new unread count

    Raises
    ------
    NotificationActionError
        If the backend rejects the deletion, rendered as HTTP 502
    """
    await provider.delete_notification(notification_id)

    return UpdatedResponse(
        data={"id": notification_id, "unread_count": provider.store.unread_count},
        message="Notification deleted",
    )


@router.get("/stream", response_class=StreamingResponse)
async def stream_notifications(
    provider: NotificationProvider = Depends(get_notification_provider),
    settings: Settings = Depends(get_settings),
    session: AuthSession = Depends(get_active_session),
):
    """Stream live notification events to a UI surface.

    Returns
    -------
    StreamingResponse
        SSE stream of status, notification and unread count events
    """
    logger.info(f"Opening notification re-broadcast stream for user {session.user_id}")

    return StreamingResponse(
        notification_event_stream(provider, settings.stream_heartbeat_seconds),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
