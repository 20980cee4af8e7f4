from .base import setup_logging
from .context import LogContext
from .middleware import RequestTrackingMiddleware

__all__ = ["setup_logging", "LogContext", "RequestTrackingMiddleware"]
