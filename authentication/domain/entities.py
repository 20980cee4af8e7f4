from datetime import datetime

from pydantic import dataclasses


@dataclasses.dataclass
class AuthSession:
    """Core domain entity representing the authenticated portal session.

    Attributes
    ----------
    user_id: str
        ID of the signed-in user, used to address the notification stream.
    access_token: str
        Bearer token sent with every backend request.
    role: str | None, optional
        Portal role of the user: "ADMIN", "EMPLOYEE" or "CUSTOMER".
    email: str | None, optional
        Email address of the user.
    expires_at: datetime | None, optional
        Expiry of the access token, when it carries one.
    """

    user_id: str
    access_token: str
    role: str | None = None
    email: str | None = None
    expires_at: datetime | None = None
