"""
Redaction of client-visible error text.

Backend and store failures surface in round error entries, streamed
error events and HTTP error details. Their text can carry connection
strings, API keys and local paths, so it is scrubbed here first. The
unredacted error is still logged server-side.

Usage:
    from src.chorus.core.error_sanitizer import sanitize_error_message

    except BackendError as e:
        logger.error(f"Provider failed: {e}")
        content = sanitize_error_message(str(e))
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional

GENERIC_MESSAGE = "An error occurred"
TRUNCATION_MARKER = "... [TRUNCATED]"

# (pattern, replacement), applied in order
REDACTIONS: tuple[tuple[str, str], ...] = (
    # Variable names, never inside an inserted placeholder
    (r"(?<!\[)\b(?:OPENAI_API_KEY|DATABASE_URL)\b(?!\])", "[ENV_VAR]"),
    # Store connection strings
    (r"postgres(?:ql)?://\S+", "[DATABASE_URL]"),
    (r"sqlite:///\S+", "[DATABASE_URL]"),
    # Credentials in backend errors
    (r"bearer\s+[\w\-.]+", "Bearer [REDACTED]"),
    (r"authorization[:\s]+\S+", "Authorization: [REDACTED]"),
    (r"api[-_]?key[=:\s]+[^\s,;]+", "api_key=[REDACTED]"),
    (r"\bsk-[\w\-]{16,}", "[API_KEY]"),
    (r"(?:password|secret)[=:\s]+[^\s,;]+", "[REDACTED]"),
    # Local files and tracebacks
    (r"/(?:home|root|usr|var|etc|opt|mnt|app)/[^\s,;\"]+", "[FILE_PATH]"),
    (r"Traceback \(most recent call last\):[\s\S]*?(?=\n\n|\n[A-Z]|\Z)", "[STACK_TRACE]"),
)


@dataclass(frozen=True)
class SanitizedError:
    """Redacted error text plus how many fragments were removed."""

    text: str
    redactions: int

    @property
    def was_sanitized(self) -> bool:
        return self.redactions > 0


class ErrorSanitizer:
    """Applies an ordered list of regex redactions, then caps the length.

    Matching is case-insensitive. A message that is empty before or after
    redaction becomes GENERIC_MESSAGE.
    """

    def __init__(
        self,
        patterns: Optional[Iterable[tuple[str, str]]] = None,
        max_message_length: int = 500,
    ):
        self.max_message_length = max_message_length
        self._rules: list[tuple[re.Pattern, str]] = []
        for pattern, replacement in patterns if patterns is not None else REDACTIONS:
            self.add_pattern(pattern, replacement)

    def add_pattern(self, pattern: str, replacement: str) -> None:
        self._rules.append((re.compile(pattern, re.IGNORECASE), replacement))

    def sanitize(self, message: Optional[str], error_type: Optional[str] = None) -> SanitizedError:
        """Redact `message`, optionally prefixing it with `error_type`."""
        text = message or ""
        total = 0
        for rule, replacement in self._rules:
            text, count = rule.subn(replacement, text)
            total += count

        if len(text) > self.max_message_length:
            text = text[: self.max_message_length] + TRUNCATION_MARKER
        if not text.strip():
            text = GENERIC_MESSAGE
        if error_type and not text.startswith(error_type):
            text = f"{error_type}: {text}"

        return SanitizedError(text=text, redactions=total)

    def is_safe(self, message: str) -> bool:
        """True when no rule would redact anything."""
        return all(rule.search(message) is None for rule, _ in self._rules)


_sanitizer: Optional[ErrorSanitizer] = None


def get_sanitizer() -> ErrorSanitizer:
    global _sanitizer
    if _sanitizer is None:
        _sanitizer = ErrorSanitizer()
    return _sanitizer


def sanitize_error_message(message: Optional[str], error_type: Optional[str] = None) -> str:
    """Redacted text for `message` using the shared sanitizer.

    Example:
        >>> sanitize_error_message("connect failed: postgresql://u:p@db/chorus")
        'connect failed: [DATABASE_URL]'
    """
    return get_sanitizer().sanitize(message, error_type).text
