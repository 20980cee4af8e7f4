from pydantic import BaseModel, field_validator


class OpenSessionRequest(BaseModel):
    """Request model for signing in to the notification gateway.

    Attributes
    ----------
    access_token: str
        Access token issued by the portal backend.
    user_id: str | None, optional
        User ID, required when the token carries no user claim.
    """

    access_token: str
    user_id: str | None = None

    @field_validator("access_token")
    @classmethod
    def validate_access_token(cls, value: str) -> str:
        value = value.strip()
        if value.lower().startswith("bearer "):
            value = value[len("bearer ") :].strip()
        if not value:
            raise ValueError("Access token must not be empty")
        return value
