from datetime import datetime
from typing import List

from pydantic import BaseModel

from ..domain.entities import ConnectionStatus, Notification


class NotificationResponse(BaseModel):
    """Response model for a notification.

    Attributes
    ----------
    id : str
        Unique identifier of the notification
    title : str
        Brief title of the notification
    message : str
        Detailed notification message
    type : str
        Category of the notification
    read : bool
        Whether the notification has been read
    created_at : datetime | None
        Timestamp of notification creation
    time_ago : str
        Relative creation time, e.g. "5m ago"
    """

    id: str
    title: str
    message: str
    type: str
    read: bool
    created_at: datetime | None = None
    time_ago: str

    @classmethod
    def from_domain(cls, notification: Notification) -> "NotificationResponse":
        return cls(
            id=notification.id,
            title=notification.title,
            message=notification.message,
            type=notification.type,
            read=notification.read,
            created_at=notification.created_at,
            time_ago=notification.time_ago,
        )


class NotificationListResponse(BaseModel):
    """Response model for the notification state of the session.

    Attributes
    ----------
    notifications : List[NotificationResponse]
        Notifications, most recent first
    unread_count : int
        Number of unread notifications in the list
    server_unread_count : int | None
        Unread count reported by the backend on the last refresh
    connection_status : ConnectionStatus
        Status of the live notification stream
    loading : bool
        Whether a refresh is in flight
    """

    notifications: List[NotificationResponse]
    unread_count: int
    server_unread_count: int | None = None
    connection_status: ConnectionStatus
    loading: bool


class ConnectionStatusResponse(BaseModel):
    """Response model for the live stream indicator.

    Attributes
    ----------
    status : ConnectionStatus
        Current connection status
    live : bool
        True while the stream is connected
    """

    status: ConnectionStatus
    live: bool
