"""Shared error types, retry policy, and error sanitization."""

from .error_sanitizer import ErrorSanitizer, sanitize_error_message
from .exceptions import (
    BackendConnectionError,
    BackendEmptyResponseError,
    BackendError,
    BackendHTTPError,
    BackendProtocolError,
    BackendTimeoutError,
    ChorusError,
    PersistenceError,
    ProviderNotFoundError,
    ResponseRejectedError,
    ValidationError,
)
from .resilience import RetryPolicy, retry_async

__all__ = [
    "BackendConnectionError",
    "BackendEmptyResponseError",
    "BackendError",
    "BackendHTTPError",
    "BackendProtocolError",
    "BackendTimeoutError",
    "ChorusError",
    "ErrorSanitizer",
    "PersistenceError",
    "ProviderNotFoundError",
    "ResponseRejectedError",
    "RetryPolicy",
    "ValidationError",
    "retry_async",
    "sanitize_error_message",
]
