from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration settings with environment variable integration.

    Attributes
    ----------
    debug: bool, default=False
        Enable/disable debug mode.
    logging_level: str, default="INFO"
        Logging verbosity: e.g., "INFO", "DEBUG".
    base_dir: Path, default=auto-detected
        Project base directory.
    environment: str, default="development"
        Application environment: "development", "production", etc.
    logs_dir: Path, derived from base_dir
        Directory for log files.
    log_file: Path, derived from base_dir
        Main log file path.
    api_base_url: str, default="http://localhost:8080/api/v1"
        Base URL of the portal backend REST API.
    stream_url: str, default="http://localhost:8080/api/notifications/stream/{user_id}"
        Per-user notification stream URL, `{user_id}` is substituted on connect.
    notifications_path: str, default="/notifications"
        Paginated notification collection path, relative to `api_base_url`.
    unread_count_path: str, default="/notifications/unread-count"
        Unread count query path.
    read_all_path: str, default="/notifications/read-all"
        Bulk mark-as-read path.
    refresh_token_path: str, default="/auth/refresh"
        Access token refresh path.
    http_timeout_seconds: float, default=10.0
        Timeout for REST calls to the backend.
    stream_connect_timeout_seconds: float, default=10.0
        Connect timeout for the notification stream. Reads never time out.
    auto_reconnect: bool, default=True
        Reconnect the notification stream after failures.
    reconnect_strategy: str, default="fixed"
        "fixed" or "exponential".
    reconnect_interval_seconds: float, default=5.0
        Fixed retry interval, or the initial delay for exponential backoff.
    reconnect_max_interval_seconds: float, default=60.0
        Upper bound of the exponential backoff delay.
    reconnect_multiplier: float, default=2.0
        Growth factor of the exponential backoff delay.
    reconnect_jitter: float, default=0.1
        Proportional random jitter applied to exponential backoff delays.
    reconnect_max_retries: int | None, optional
        Maximum consecutive reconnect attempts, None retries forever.
    notification_page_size: int, default=50
        Page size used when (re)loading notifications.
    stream_heartbeat_seconds: float, default=15.0
        Idle interval after which the local re-broadcast stream sends a ping.
    access_token: str | None, optional
        Bootstrap access token, opens a session on application startup.
    server_port: int, default=8001
        Port used by `manage.py runserver`.

    Raises
    ------
    ValueError
        If reconnect configuration values are invalid.
    """

    debug: bool = False
    logging_level: str = "INFO"
    base_dir: Path = Path(__file__).resolve().parent.parent
    environment: str = "development"
    logs_dir: Path = base_dir / "logs"
    log_file: Path = logs_dir / "notifications.log"
    api_base_url: str = "http://localhost:8080/api/v1"
    stream_url: str = "http://localhost:8080/api/notifications/stream/{user_id}"
    notifications_path: str = "/notifications"
    unread_count_path: str = "/notifications/unread-count"
    read_all_path: str = "/notifications/read-all"
    refresh_token_path: str = "/auth/refresh"
    http_timeout_seconds: float = 10.0
    stream_connect_timeout_seconds: float = 10.0
    auto_reconnect: bool = True
    reconnect_strategy: str = "fixed"
    reconnect_interval_seconds: float = 5.0
    reconnect_max_interval_seconds: float = 60.0
    reconnect_multiplier: float = 2.0
    reconnect_jitter: float = 0.1
    reconnect_max_retries: int | None = None
    notification_page_size: int = 50
    stream_heartbeat_seconds: float = 15.0
    access_token: str | None = None
    server_port: int = 8001

    model_config = SettingsConfigDict(env_file=".env", extra="allow")

    @model_validator(mode="after")
    def validate_reconnect_settings(self) -> "Settings":
        """Validate reconnect policy configuration.

        Raises
        ------
        ValueError
            If the strategy is unknown, or an interval or retry count is out of range.
        """
        if self.reconnect_strategy not in ("fixed", "exponential"):
            raise ValueError(
                f'Unsupported reconnect strategy: "{self.reconnect_strategy}"'
            )

        if self.reconnect_interval_seconds <= 0:
            raise ValueError("Reconnect interval must be positive")

        if self.reconnect_max_interval_seconds < self.reconnect_interval_seconds:
            raise ValueError(
                "Maximum reconnect interval must not be below the reconnect interval"
            )

        if self.reconnect_max_retries is not None and self.reconnect_max_retries < 0:
            raise ValueError("Maximum reconnect retries must not be negative")

        return self


@lru_cache
def get_settings() -> Settings:
    """Create and cache singleton Settings instance for application use.

    Returns
    -------
    Settings
        Cached singleton instance of application settings with all
        configuration values loaded and validated.
    """
    return Settings()
