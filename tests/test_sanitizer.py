"""Tests for credential masking in logs and error messages."""
from core.infrastructure.services import DataSanitizer


class TestDataSanitizer:
    """Masking of tokens and sensitive fields."""

    def test_sensitive_keys_are_masked_recursively(self):
        sanitizer = DataSanitizer()

        data = sanitizer.sanitize_for_logging(
            {"accessToken": "abc", "user": {"password": "p", "name": "Ana"}, "ids": [1, 2]}
        )

        assert data == {"accessToken": "***", "user": {"password": "***", "name": "Ana"}, "ids": [1, 2]}

    def test_bearer_and_jwt_strings_are_masked(self):
        sanitizer = DataSanitizer()

        text = sanitizer.sanitize_for_logging(
            "Authorization: Bearer abc.def-ghi and eyJhbGciOi.eyJzdWIiOi.c2lnbmF0dXJl"
        )

        assert "abc.def-ghi" not in text
        assert "eyJhbGciOi" not in text

    def test_sensitive_query_parameters_are_masked(self):
        sanitizer = DataSanitizer()

        text = sanitizer.sanitize_for_logging(
            "GET http://backend.test/stream/1?access_token=secret&page=2"
        )

        assert "secret" not in text
        assert "page=2" in text

    def test_exception_rendering_includes_type(self):
        sanitizer = DataSanitizer()

        rendered = sanitizer.sanitize_exception_for_logging(ValueError("Bearer xyz"))

        assert rendered == "ValueError: Bearer ***"
