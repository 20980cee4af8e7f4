import httpx
from fastapi import Request

from authentication.application.ports import AuthSessionServiceInterface
from config.base import Settings

from ..application.connection import NotificationConnectionManager
from ..application.policies import build_reconnect_policy
from ..application.provider import NotificationProvider
from ..application.store import NotificationStore
from .repositories import NotificationRepository
from .services import HttpxNotificationStreamSource


def build_notification_provider(
    settings: Settings,
    client: httpx.AsyncClient,
    auth_service: AuthSessionServiceInterface,
) -> NotificationProvider:
    """Assemble the notification context of one application session.

    Parameters
    ----------
    settings : Settings
        Application settings.
    client : httpx.AsyncClient
        Shared httpx client, used for the REST API and the stream.
    auth_service : AuthSessionServiceInterface
        Session service of the application.

    Returns
    -------
    NotificationProvider
        Provider with its own store and connection manager, stopped
        automatically when the session expires.
    """
    store = NotificationStore(
        NotificationRepository(auth_service, settings),
        page_size=settings.notification_page_size,
    )
    connection = NotificationConnectionManager(
        HttpxNotificationStreamSource(
            client,
            settings.stream_url,
            connect_timeout=settings.stream_connect_timeout_seconds,
            auth_service=auth_service,
        ),
        reconnect_policy=build_reconnect_policy(settings),
        auto_reconnect=settings.auto_reconnect,
    )
    provider = NotificationProvider(store, connection)
    auth_service.on_session_expired(provider.expire)
    return provider


def get_notification_provider(request: Request) -> NotificationProvider:
    """Provide the application's shared `NotificationProvider`.

    Parameters
    ----------
    request : Request
        Incoming request, used to reach the application state.

    Returns
    -------
    NotificationProvider
        Instance created by the application lifespan.
    """
    return request.app.state.notification_provider
