import re
from typing import Any, List, Pattern
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

MASK = "***"


class DataSanitizer:
    """Data sanitizer for masking credentials in logs and error messages.

    Masks values of sensitive mapping keys (tokens, passwords, cookies),
    bearer credentials embedded in strings, and sensitive URL query parameters,
    so access tokens never reach log sinks.
    """

    def __init__(self):
        self.sensitive_patterns: List[Pattern[str]] = [
            re.compile(r"password", re.IGNORECASE),
            re.compile(r"secret", re.IGNORECASE),
            re.compile(r"token", re.IGNORECASE),
            re.compile(r"authorization", re.IGNORECASE),
            re.compile(r"cookie", re.IGNORECASE),
            re.compile(r"api_?key", re.IGNORECASE),
            re.compile(r"credential", re.IGNORECASE),
            re.compile(r"session_?id", re.IGNORECASE),
        ]

        self.bearer_pattern = re.compile(r"(Bearer\s+)[A-Za-z0-9\-_\.=+/]+")
        self.jwt_pattern = re.compile(
            r"eyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]*"
        )
        self.url_pattern = re.compile(r"https?://[^\s\"']+")

    def sanitize_for_logging(self, data: Any) -> Any:
        """Sanitize data for logging purposes.

        Recursively processes strings, dicts, lists and tuples, masking
        sensitive information.

        Parameters
        ----------
        data: Any
            Data to be sanitized.

        Returns
        -------
        Any
            Sanitized copy of the data.
        """
        return self._sanitize_value(data)

    def sanitize_exception_for_logging(self, exception: Exception | str) -> str:
        """Render an exception as a sanitized string.

        Parameters
        ----------
        exception: Exception | str
            Exception object (or its message) to sanitize.

        Returns
        -------
        str
            Sanitized exception message prefixed with the exception type.
        """
        if isinstance(exception, str):
            return self._sanitize_string(exception)

        return f"{type(exception).__name__}: {self._sanitize_string(str(exception))}"

    def is_sensitive_field(self, field_name: str) -> bool:
        """Check if a given field name is considered sensitive.

        Parameters
        ----------
        field_name: str
            Mapping key or query parameter name.

        Returns
        -------
        bool
        """
        return any(pattern.search(field_name) for pattern in self.sensitive_patterns)

    def _sanitize_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._sanitize_string(value)

        if isinstance(value, dict):
            return {
                key: (
                    MASK
                    if isinstance(key, str) and self.is_sensitive_field(key)
                    else self._sanitize_value(item)
                )
                for key, item in value.items()
            }

        if isinstance(value, (list, tuple)):
            return type(value)(self._sanitize_value(item) for item in value)

        return value

    def _sanitize_string(self, value: str) -> str:
        value = self.bearer_pattern.sub(rf"\1{MASK}", value)
        value = self.jwt_pattern.sub(MASK, value)
        return self.url_pattern.sub(lambda match: self._sanitize_url(match.group()), value)

    def _sanitize_url(self, url: str) -> str:
        parsed = urlparse(url)
        if not parsed.query:
            return url

        query = [
            (name, MASK if self.is_sensitive_field(name) else value)
            for name, value in parse_qsl(parsed.query, keep_blank_values=True)
        ]
        return urlunparse(parsed._replace(query=urlencode(query, safe="*")))
