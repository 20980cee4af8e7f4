from typing import Any

from fastapi import status
from pydantic import BaseModel


class StandardResponse(BaseModel):
    """Base envelope shared by every gateway response.

    Attributes
    ----------
    success: bool, default=True
        Boolean indicating if the request was successful.
    data: Any, default=None
        Response payload.
    """

    success: bool = True
    data: Any = None


class SuccessResponse(StandardResponse):
    """Envelope for successful reads and actions (HTTP 200 OK).

    Attributes
    ----------
    message: str, default="Resource action successful"
        Message suitable for display in a toast.
    status_code: int, default=200
        HTTP status code.
    """

    message: str = "Resource action successful"
    status_code: int = status.HTTP_200_OK


class UpdatedResponse(StandardResponse):
    """Envelope for state changes acknowledged by the backend.

    Attributes
    ----------
    message: str, default="Resource update successful"
        Message suitable for display in a toast.
    status_code: int, default=200
        HTTP status code.
    """

    message: str = "Resource update successful"
    status_code: int = status.HTTP_200_OK
