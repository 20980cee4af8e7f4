from datetime import datetime

from pydantic import BaseModel

from notifications.domain.entities import ConnectionStatus

from ..domain.entities import AuthSession


class SessionResponse(BaseModel):
    """Response model for the current gateway session.

    The access token is never echoed back.

    Attributes
    ----------
    user_id: str
        ID of the signed-in user.
    role: str | None
        Portal role of the user.
    email: str | None
        Email address of the user.
    expires_at: datetime | None
        Expiry of the access token.
    connection_status: ConnectionStatus
        Status of the live notification stream.
    """

    user_id: str
    role: str | None = None
    email: str | None = None
    expires_at: datetime | None = None
    connection_status: ConnectionStatus

    @classmethod
    def from_session(
        cls, session: AuthSession, connection_status: ConnectionStatus
    ) -> "SessionResponse":
        return cls(
            user_id=session.user_id,
            role=session.role,
            email=session.email,
            expires_at=session.expires_at,
            connection_status=connection_status,
        )
