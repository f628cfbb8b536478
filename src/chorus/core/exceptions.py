#!/usr/bin/env python3
"""Exception Hierarchy for the Chorus discussion orchestrator.

All errors raised by the orchestration core inherit from ChorusError so
callers (HTTP layer, CLI scripts) can catch them with a single clause.

Exception Hierarchy:
    ChorusError (base)
    ├── ValidationError (caller input - surfaced immediately, no retry)
    │   └── ProviderNotFoundError
    ├── BackendProtocolError (single backend call failed - recoverable)
    │   ├── BackendHTTPError
    │   ├── BackendEmptyResponseError
    │   ├── BackendConnectionError
    │   └── BackendTimeoutError
    ├── ResponseRejectedError (content failed quality validation)
    ├── BackendError (all attempts exhausted)
    └── PersistenceError (turn store failure - non-fatal to a run)
"""
from datetime import datetime
from typing import Any, Optional


class ChorusError(Exception):
    """Base exception for all orchestrator errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code
        details: Additional context as a dictionary
        timestamp: When the error occurred
        cause: The original exception that caused this error
        recoverable: Whether a retry might succeed
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__.upper()
        self.details = details or {}
        self.timestamp = datetime.utcnow()
        self.cause = cause
        self.recoverable = recoverable

        if cause:
            self.__cause__ = cause

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"details={self.details!r}, "
            f"recoverable={self.recoverable})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================
# Caller Input
# ============================================

class ValidationError(ChorusError):
    """Raised for malformed caller input (empty turn list, bad provider id)."""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        super().__init__(
            message,
            code=kwargs.pop("code", "VALIDATION_ERROR"),
            details=details,
            recoverable=False,
            **kwargs,
        )


class ProviderNotFoundError(ValidationError):
    """Raised when a provider id is not in the registry."""

    def __init__(self, provider_id: str, **kwargs):
        super().__init__(
            f"Provider {provider_id} not found",
            field="provider",
            code="PROVIDER_NOT_FOUND",
            details={"provider_id": provider_id},
            **kwargs,
        )
        self.provider_id = provider_id


# ============================================
# Backend Protocol Errors (one call)
# ============================================

class BackendProtocolError(ChorusError):
    """A single backend call failed at the transport/protocol level."""

    def __init__(self, message: str, model: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if model:
            details["model"] = model
        super().__init__(
            message,
            code=kwargs.pop("code", "BACKEND_PROTOCOL_ERROR"),
            details=details,
            recoverable=True,
            **kwargs,
        )
        self.model = model


class BackendHTTPError(BackendProtocolError):
    """Backend answered with a non-success HTTP status."""

    def __init__(self, message: str, status_code: int, **kwargs):
        details = kwargs.pop("details", {})
        details["status_code"] = status_code
        super().__init__(message, code="BACKEND_HTTP_ERROR", details=details, **kwargs)
        self.status_code = status_code


class BackendEmptyResponseError(BackendProtocolError):
    """Backend answered successfully but without any message content."""

    def __init__(self, message: str = "Empty response from model", **kwargs):
        super().__init__(message, code="BACKEND_EMPTY_RESPONSE", **kwargs)


class BackendConnectionError(BackendProtocolError):
    """Backend endpoint could not be reached."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="BACKEND_CONNECTION_ERROR", **kwargs)


class BackendTimeoutError(BackendProtocolError):
    """Backend call exceeded its timeout."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="BACKEND_TIMEOUT", **kwargs)


class ResponseRejectedError(ChorusError):
    """Backend content failed quality validation (too short, placeholder)."""

    def __init__(self, message: str, reason: str, **kwargs):
        details = kwargs.pop("details", {})
        details["reason"] = reason
        super().__init__(
            message,
            code="RESPONSE_REJECTED",
            details=details,
            recoverable=True,
            **kwargs,
        )
        self.reason = reason


# ============================================
# Invocation Outcome
# ============================================

class BackendError(ChorusError):
    """All attempts to obtain an acceptable reply from a provider failed.

    Attributes:
        provider_id: Provider that failed
        attempts: Number of attempts made
        last_cause: Final attempt's exception
    """

    def __init__(
        self,
        message: str,
        provider_id: str,
        attempts: int,
        last_cause: Optional[Exception] = None,
        **kwargs,
    ):
        super().__init__(
            message,
            code="BACKEND_ERROR",
            details={"provider_id": provider_id, "attempts": attempts},
            cause=last_cause,
            recoverable=True,
            **kwargs,
        )
        self.provider_id = provider_id
        self.attempts = attempts
        self.last_cause = last_cause


# ============================================
# Persistence
# ============================================

class PersistenceError(ChorusError):
    """Turn store read or write failed."""

    def __init__(self, message: str, operation: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation
        super().__init__(
            message,
            code="PERSISTENCE_ERROR",
            details=details,
            recoverable=True,
            **kwargs,
        )
        self.operation = operation

