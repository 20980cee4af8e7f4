from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Dict, List

from pydantic import Field, dataclasses, field_validator


class NotificationType(StrEnum):
    """Notification categories known to the portal UI."""

    APPOINTMENT = "APPOINTMENT"
    PROJECT_UPDATE = "PROJECT_UPDATE"
    TASK_ASSIGNED = "TASK_ASSIGNED"
    SYSTEM = "SYSTEM"
    GENERAL = "GENERAL"

    @classmethod
    def normalize(cls, value: Any) -> "NotificationType":
        """Map a raw category tag to a known type, falling back to `GENERAL`."""
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        return cls.GENERAL


class ConnectionStatus(StrEnum):
    """States of the notification stream connection."""

    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    ERROR = "ERROR"


def format_time_ago(created_at: datetime | None, now: datetime | None = None) -> str:
    """Render a relative time string such as "5m ago".

    Naive timestamps are compared against local time, aware ones against UTC.

    Parameters
    ----------
    created_at : datetime | None
        Creation timestamp of the notification.
    now : datetime | None, optional
        Reference time, defaults to the current time.

    Returns
    -------
    str
        "Just now", "{m}m ago", "{h}h ago", "{d}d ago", or "" without a timestamp.
    """
    if created_at is None:
        return ""

    if now is None:
        now = datetime.now(tz=UTC) if created_at.tzinfo else datetime.now()

    seconds = int((now - created_at).total_seconds())
    if seconds < 60:
        return "Just now"

    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"

    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"

    return f"{hours // 24}d ago"


@dataclasses.dataclass
class Notification:
    """Core domain entity representing a notification delivered to a portal user.

    Attributes
    ----------
    id : str
        Server-assigned identifier, numeric ids are kept in string form.
    title : str
        Short human-readable headline.
    message : str
        Body text.
    type : str
        Category tag, unknown values are stored as `NotificationType.GENERAL`.
    read : bool, default=False
        Boolean indicating if the notification has been marked as read.
    created_at : datetime | None, optional
        Datetime when the backend created the notification.
    user_id : str | None, optional
        Recipient user id, when the backend includes it.
    """

    id: str
    title: str = ""
    message: str = ""
    type: str = NotificationType.GENERAL
    read: bool = False
    created_at: datetime | None = None
    user_id: str | None = None

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def stringify_identifier(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("id")
    @classmethod
    def require_identifier(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Notification id must not be empty")
        return value

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value: Any) -> str:
        return NotificationType.normalize(value).value

    @property
    def time_ago(self) -> str:
        return format_time_ago(self.created_at)

    @classmethod
    def from_payload(cls, payload: Any) -> "Notification":
        """Build a notification from a decoded backend record.

        Accepts the backend's camelCase keys as well as snake_case keys.

        Parameters
        ----------
        payload : Any
            Decoded JSON value, expected to be an object.

        Returns
        -------
        Notification

        Raises
        ------
        ValueError
            If the payload is not an object or fails validation.
        """
        if not isinstance(payload, dict):
            raise ValueError(
                f"Notification payload must be an object, got {type(payload).__name__}"
            )

        read = payload.get("read", payload.get("isRead", payload.get("is_read")))

        return cls(
            id=payload.get("id"),
            title=payload.get("title") or "",
            message=payload.get("message") or "",
            type=payload.get("type"),
            read=bool(read) if read is not None else False,
            created_at=payload.get("createdAt", payload.get("created_at")),
            user_id=payload.get("userId", payload.get("user_id")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "read": self.read,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "time_ago": self.time_ago,
        }


@dataclasses.dataclass
class NotificationPage:
    """One page of notifications returned by a bulk fetch.

    Attributes
    ----------
    notifications : List[Notification]
        Notifications in server order.
    total : int
        Total number of notifications available on the backend.
    """

    notifications: List[Notification] = Field(default_factory=list)
    total: int = 0
