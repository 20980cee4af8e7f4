from typing import Any, Dict

LEVEL_COLORS = {
    "CRITICAL": "red",
    "DEBUG": "white",
    "ERROR": "magenta",
    "INFO": "blue",
    "SUCCESS": "green",
    "TRACE": "dim",
    "WARNING": "yellow",
}


class CustomLogFormat:
    """Build loguru format strings for console and file sinks.

    Loguru treats the returned string as a template, so record values are
    referenced through `{...}` placeholders instead of being interpolated
    here. Messages containing braces or angle brackets stay intact.
    """

    def __init__(self, record: Dict[str, Any]) -> None:
        self.color = LEVEL_COLORS.get(record["level"].name, "white")
        self.has_request_id = "request_id" in record["extra"]
        self.has_stream_user = "stream_user" in record["extra"]
        self.extra_keys = [key for key in record["extra"] if key != "request_id"]
        self.prefix = (
            "<dim><bold>{time:YYYY-MM-DD HH:mm:ss.SS}</bold></dim> | "
            f"<{self.color}>{{level: <8}}</{self.color}> | "
            "<cyan>{file}:{function}:{line}</cyan> - "
        )

    def log_console_format(self) -> str:
        """Format the log record for console output.

        Returns
        -------
        str
            Loguru template with timestamp, colored level, location and message.
        """
        request = "<dim>[{extra[request_id]}]</dim> " if self.has_request_id else ""
        stream = "<dim>[stream:{extra[stream_user]}]</dim> " if self.has_stream_user else ""
        return (
            f"{self.prefix}{request}{stream}<{self.color}>{{message}}</{self.color}>\n"
            "{exception}"
        )

    def log_file_format(self) -> str:
        """Format the log record for file output.

        Appends the extra context bound through `LogContext` or `logger.bind`.

        Returns
        -------
        str
            Loguru template suitable for file logging.
        """
        context = ", ".join(f"{key}={{extra[{key}]}}" for key in self.extra_keys)
        context = f" | {context}" if context else ""
        return f"{self.prefix}{{message}}{context}\n{{exception}}"
