import codecs
import json
from typing import List

from loguru import logger
from pydantic import ValidationError

from core.infrastructure.factory import get_data_sanitizer

from ..domain.entities import Notification

DATA_PREFIX = "data:"
HEARTBEAT_PAYLOADS = frozenset({"", "ping", ":", "heartbeat"})
MAX_LINE_LENGTH = 1024 * 1024


class SSEFrameDecoder:
    """Incremental decoder turning a Server-Sent Events body into notifications.

    Chunks may split lines, or UTF-8 characters, anywhere. The decoder keeps
    the trailing incomplete line buffered until the next chunk completes it.
    Only `data:` lines carry frames; keep-alive payloads are dropped and
    malformed payloads are logged and skipped. An incomplete line longer than
    `max_line_length` characters is dropped along with the rest of that line.
    """

    def __init__(self, max_line_length: int = MAX_LINE_LENGTH) -> None:
        self.max_line_length = max_line_length
        self._buffer = ""
        self._discarding = False
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def pending(self) -> str:
        """Incomplete line waiting for the rest of its bytes."""
        return self._buffer

    def feed(self, chunk: str | bytes) -> List[Notification]:
        """Consume one network chunk.

        Parameters
        ----------
        chunk : str | bytes
            Raw bytes or already-decoded text from the stream.

        Returns
        -------
        List[Notification]
            Notifications completed by this chunk, in stream order.
        """
        if isinstance(chunk, bytes):
            chunk = self._utf8.decode(chunk)

        *lines, self._buffer = (self._buffer + chunk).split("\n")

        notifications = []
        for line in lines:
            if self._discarding:
                # Tail of an oversized line
                self._discarding = False
                continue

            notification = self._decode_line(line)
            if notification is not None:
                notifications.append(notification)

        if len(self._buffer) > self.max_line_length:
            logger.error(
                f"🟠 Dropping {len(self._buffer)} buffered characters: "
                f"no line break within {self.max_line_length} characters"
            )
            self._buffer = ""
            self._discarding = True

        return notifications

    def _decode_line(self, line: str) -> Notification | None:
        line = line.strip()
        if not line.startswith(DATA_PREFIX):
            return None

        payload = line[len(DATA_PREFIX):].strip()
        if payload in HEARTBEAT_PAYLOADS:
            return None

        try:
            return Notification.from_payload(json.loads(payload))
        except (ValueError, TypeError, ValidationError) as e:
            sanitizer = get_data_sanitizer()
            logger.error(
                f"🟠 Failed to parse notification frame: {type(e).__name__}. "
                f"Data: {sanitizer.sanitize_for_logging(payload)[:500]}"
            )
            return None
