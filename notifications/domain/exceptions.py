class NotificationError(Exception):
    """Base class for notification pipeline errors."""


class StreamConnectionError(NotificationError):
    """Raised by a stream source when the notification stream fails or closes."""


class NotificationBackendError(NotificationError):
    """Raised when the backend REST API cannot serve a notification query."""


class NotificationActionError(NotificationError):
    """Raised when the backend rejects a read or delete action.

    Local state is left untouched whenever this is raised.
    """

    def __init__(self, action: str, notification_id: str | None = None) -> None:
        self.action = action
        self.notification_id = notification_id
        target = f" for notification {notification_id}" if notification_id else ""
        super().__init__(f"Failed to {action.replace('_', ' ')}{target}")
