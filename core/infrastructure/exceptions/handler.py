import traceback
from typing import Any, Dict, List

import httpx
from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError, ResponseValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from authentication.domain.exceptions import AuthenticationError
from notifications.domain.exceptions import NotificationActionError

from ..factory import get_data_sanitizer

HTTP_STATUS_MESSAGES = {
    status.HTTP_400_BAD_REQUEST: "Bad request",
    status.HTTP_401_UNAUTHORIZED: "Authentication required",
    status.HTTP_403_FORBIDDEN: "Permission denied",
    status.HTTP_404_NOT_FOUND: "Resource not found",
    status.HTTP_409_CONFLICT: "Conflict occurred",
    status.HTTP_422_UNPROCESSABLE_ENTITY: "Validation error",
    status.HTTP_429_TOO_MANY_REQUESTS: "Rate limit exceeded",
}


def normalize_error_detail(detail: Any) -> str | List[str]:
    """Normalize an error detail to a string or a list of strings.

    Parameters
    ----------
    detail: Any
        Raw error detail: a string, a mapping, or an iterable.

    Returns
    -------
    str | List[str]
        Normalized error detail.
    """
    if isinstance(detail, str):
        return detail

    if isinstance(detail, dict):
        return [f"{key}: {value}" for key, value in detail.items()]

    if hasattr(detail, "__iter__"):
        return [str(item) for item in detail]

    return str(detail)


def _error_response(
    request: Request, status_code: int, message: str, errors: Dict[str, Any]
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "message": message,
            "errors": errors,
            "status_code": status_code,
            "path": str(request.url.path),
            "method": request.method,
        },
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for the FastAPI application.

    Maps domain, validation, HTTP and backend transport errors to the standard
    JSON error envelope and logs them with credentials masked.

    Parameters
    ----------
    request: Request
        Incoming request object.
    exc: Exception
        Exception that was caught.

    Returns
    -------
    JSONResponse
        Standardized error response with an appropriate HTTP status code.
    """
    sanitizer = get_data_sanitizer()
    exc_msg = sanitizer.sanitize_exception_for_logging(exc)

    if isinstance(exc, AuthenticationError):
        logger.warning(f"🔒 {exc_msg}")
        return _error_response(
            request,
            status.HTTP_401_UNAUTHORIZED,
            "Authentication required",
            {"detail": str(exc)},
        )

    if isinstance(exc, NotificationActionError):
        logger.error(f"🔴 {exc_msg}")
        return _error_response(
            request,
            status.HTTP_502_BAD_GATEWAY,
            "Notification action failed",
            {"detail": str(exc), "action": exc.action},
        )

    if isinstance(exc, httpx.HTTPError):
        logger.error(f"🔴 Backend request failed -> {exc_msg}")
        return _error_response(
            request,
            status.HTTP_502_BAD_GATEWAY,
            "Backend unavailable",
            {"detail": "The notification backend could not be reached"},
        )

    if isinstance(
        exc, (ValidationError, RequestValidationError, ResponseValidationError)
    ):
        errors = {}
        for error in exc.errors():
            field = ".".join(str(x) for x in error["loc"])
            errors["detail"] = f"{error['msg']} in {field}"

        return _error_response(
            request, status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation error", errors
        )

    if isinstance(exc, ValueError):
        return _error_response(
            request,
            status.HTTP_400_BAD_REQUEST,
            "Invalid field items",
            {"detail": str(exc)},
        )

    if isinstance(exc, (HTTPException, StarletteHTTPException)):
        if exc.status_code >= 500:
            message = "Internal server error"
        else:
            message = HTTP_STATUS_MESSAGES.get(exc.status_code, "HTTP error occurred")

        return _error_response(
            request,
            exc.status_code,
            message,
            {"detail": normalize_error_detail(exc.detail)},
        )

    tb = traceback.extract_tb(exc.__traceback__)
    if tb:
        last_frame = tb[-1]
        location = f'File "{last_frame.filename}", line {last_frame.lineno}, in {last_frame.name}'
    else:
        location = "No traceback available"

    logger.critical(f"☢️ Unhandled exception -> {exc_msg}\nLocation: {location}")

    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        {"detail": "An unexpected error occurred"},
    )
