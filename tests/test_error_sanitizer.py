"""
Tests for Error Message Sanitization.

These tests ensure:
1. Sensitive patterns are properly redacted
2. Edge cases (empty, clean messages) are handled
3. Message truncation prevents excessive output
4. Error type prefixes and custom patterns work
"""

import pytest

from src.chorus.core.error_sanitizer import (
    ErrorSanitizer,
    get_sanitizer,
    sanitize_error_message,
)


class TestBasicSanitization:
    """Test basic sanitization patterns."""

    def test_empty_message(self):
        """Empty message should return generic error."""
        result = ErrorSanitizer().sanitize("")
        assert result.text == "An error occurred"
        assert result.redactions == 0
        assert not result.was_sanitized

    def test_clean_message(self):
        """Backend failure text without secrets passes through."""
        message = "mistral:7b failed after 3 attempts: Empty response from model"
        result = ErrorSanitizer().sanitize(message)
        assert result.text == message
        assert not result.was_sanitized

    def test_database_url_redaction(self):
        message = "Database append_turn failed: postgresql://admin:secret123@db:5432/chorus"
        result = ErrorSanitizer().sanitize(message)
        assert "admin:secret123" not in result.text
        assert "[DATABASE_URL]" in result.text
        assert result.was_sanitized

    def test_bearer_token_redaction(self):
        result = ErrorSanitizer().sanitize("401 for Bearer abc.def-123")
        assert "abc.def-123" not in result.text
        assert "Bearer [REDACTED]" in result.text

    def test_openai_key_redaction(self):
        result = ErrorSanitizer().sanitize("Incorrect key provided: sk-proj1234567890abcdefXYZ")
        assert "sk-proj1234567890abcdefXYZ" not in result.text
        assert "[API_KEY]" in result.text

    def test_password_redaction(self):
        result = ErrorSanitizer().sanitize("auth failed password=hunter2")
        assert "hunter2" not in result.text

    def test_env_var_redaction(self):
        result = ErrorSanitizer().sanitize("Set DATABASE_URL before starting")
        assert "DATABASE_URL" not in result.text
        assert "[ENV_VAR]" in result.text

    def test_placeholders_are_not_redacted_again(self):
        """Inserted placeholders survive the later rules unchanged."""
        result = ErrorSanitizer().sanitize(
            "DATABASE_URL rejected: postgresql://u:p@db/chorus"
        )
        assert result.text == "[ENV_VAR] rejected: [DATABASE_URL]"
        assert "[[" not in result.text
        assert result.redactions == 2

    def test_file_path_redaction(self):
        result = ErrorSanitizer().sanitize("Cannot read /root/.config/chorus/providers.json")
        assert "providers.json" not in result.text
        assert "[FILE_PATH]" in result.text

    def test_stack_trace_redaction(self):
        message = (
            "Traceback (most recent call last):\n"
            '  File "/app/chorus/invoker.py", line 12, in invoke\n'
            "ValueError: boom"
        )
        result = ErrorSanitizer().sanitize(message)
        assert "[STACK_TRACE]" in result.text
        assert "invoker.py" not in result.text


class TestEdgeCases:
    """Test truncation and fallbacks."""

    def test_very_long_message_truncation(self):
        result = ErrorSanitizer(max_message_length=50).sanitize("x" * 200)
        assert result.text == "x" * 50 + "... [TRUNCATED]"

    def test_whitespace_only_message(self):
        assert ErrorSanitizer().sanitize("   ").text == "An error occurred"

    def test_case_insensitive_matching(self):
        result = ErrorSanitizer().sanitize("PASSWORD: topsecret")
        assert "topsecret" not in result.text


class TestErrorTypePrefix:
    def test_error_type_prefix_added(self):
        result = ErrorSanitizer().sanitize("something broke", "Backend error")
        assert result.text == "Backend error: something broke"

    def test_error_type_not_duplicated(self):
        result = ErrorSanitizer().sanitize("Backend error: something broke", "Backend error")
        assert result.text == "Backend error: something broke"


class TestCustomPatterns:
    def test_add_custom_pattern(self):
        sanitizer = ErrorSanitizer()
        sanitizer.add_pattern(r"gpu-node-\d+", "[HOST]")

        result = sanitizer.sanitize("ollama on gpu-node-17 refused")
        assert result.text == "ollama on [HOST] refused"

    def test_patterns_in_constructor(self):
        sanitizer = ErrorSanitizer(patterns=[(r"tenant-\w+", "[TENANT]")])
        assert sanitizer.sanitize("tenant-acme failed").text == "[TENANT] failed"
        assert "postgresql://" in sanitizer.sanitize("postgresql://u@h/db").text


class TestSafetyCheck:
    @pytest.mark.parametrize(
        "message,safe",
        [
            ("Provider gpt-99 not found", True),
            ("postgresql://u:p@db/chorus", False),
            ("api_key=abc123", False),
            ("/etc/chorus/providers.json missing", False),
        ],
    )
    def test_is_safe(self, message, safe):
        assert ErrorSanitizer().is_safe(message) is safe


class TestConvenienceFunctions:
    def test_get_sanitizer_singleton(self):
        assert get_sanitizer() is get_sanitizer()

    def test_sanitize_error_message_function(self):
        assert sanitize_error_message("connect failed: postgresql://u:p@db/chorus") == (
            "connect failed: [DATABASE_URL]"
        )

    def test_sanitize_error_message_empty(self):
        assert sanitize_error_message("") == "An error occurred"
