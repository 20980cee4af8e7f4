import contextvars
import uuid
from typing import Any, Dict

log_context: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
    "log_context", default={}
)


class LogContext:
    """Context manager binding request or connection details to log records.

    Works both as a sync and an async context manager. Nested contexts
    extend the outer one; leaving a context restores the previous values.
    Tasks created inside a context inherit a copy of it.
    """

    def __init__(self, request_id: str | None = None, **context):
        self.request_id = request_id or str(uuid.uuid4())[:8]
        self.context = {**log_context.get({}), "request_id": self.request_id, **context}
        self.token = None

    def __enter__(self) -> "LogContext":
        self.token = log_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.token is not None:
            log_context.reset(self.token)
            self.token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)
