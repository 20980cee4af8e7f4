import time
import uuid
from typing import Callable

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from ..factory import get_data_sanitizer
from .context import LogContext


class RequestTrackingMiddleware(BaseHTTPMiddleware):
    """Request tracking middleware for the notification gateway.

    Assigns a request id, binds it to every log record emitted while the
    request is handled, logs the request outcome with its duration, and
    echoes `X-Request-ID` and `X-Response-Time` headers.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        sanitizer = get_data_sanitizer()
        start_time = time.perf_counter()

        async with LogContext(
            request_id=request_id,
            client_ip=self._get_client_ip(request),
            method=request.method,
            path=request.url.path,
        ):
            logger.info(
                sanitizer.sanitize_for_logging(
                    f"🔄 Incoming {request.method} request to {request.url} 🔄"
                )
            )

            try:
                response = await call_next(request)
            except Exception as e:
                logger.error(
                    f"💥 Request failed: {sanitizer.sanitize_exception_for_logging(e)}"
                )
                raise

            process_time_ms = (time.perf_counter() - start_time) * 1000
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{process_time_ms:.1f}ms"

            logger.info(
                f"✅ {request.method} {request.url.path} -> {response.status_code} "
                f"in {process_time_ms:.1f}ms"
            )
            return response

    def _get_client_ip(self, request: Request) -> str:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"
