"""
DevScope errors.

    DevScopeError
    ├── SourceError
    │   ├── RateLimitError
    │   ├── NetworkError
    │   ├── ServiceUnavailableError
    │   └── AuthenticationError
    ├── ValidationError
    │   ├── InvalidQueryError
    │   └── InvalidParameterError
    ├── DataError
    │   └── ParseError
    └── ConfigurationError

Source errors are raised by the source clients once their own retry budget is
spent. The orchestrator catches them at the fan-out boundary and downgrades
them to an "incomplete source" marker, so they never reach the tool caller.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum, auto
from typing import Any


class ErrorSeverity(Enum):
    """How bad an error is for the current request."""
    WARNING = auto()      # caller input problem, nothing failed
    ERROR = auto()        # request or source failed
    CRITICAL = auto()     # server cannot work as configured
    TRANSIENT = auto()    # expected to clear up on retry


class ErrorCategory(Enum):
    """Where an error originated; serialized as ``category``."""
    SOURCE = "source"
    VALIDATION = "validation"
    DATA = "data"
    CONFIGURATION = "config"
    NETWORK = "network"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Optional details carried by a DevScope error."""
    tool_name: str | None = None
    source: str | None = None
    input_value: Any = None
    suggestion: str | None = None
    example: str | None = None
    retry_after: float | None = None


# context attribute -> payload key, in payload order
_PAYLOAD_FIELDS = (
    ("tool_name", "tool"),
    ("source", "source"),
    ("suggestion", "suggestion"),
    ("example", "example"),
    ("retry_after", "retry_after_seconds"),
)


class DevScopeError(Exception):
    """
    Root of the DevScope error hierarchy.

    Every error knows its category, severity and whether retrying can help,
    and renders itself as the JSON error payload returned by the tool.
    """

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        category: ErrorCategory = ErrorCategory.SOURCE,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.context = context if context is not None else ErrorContext()
        self.severity = severity
        self.category = category
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Error payload; empty context fields are left out."""
        payload: dict[str, Any] = {
            "error": str(self),
            "category": self.category.value,
            "severity": self.severity.name.lower(),
            "retryable": self.retryable,
        }
        for attr, key in _PAYLOAD_FIELDS:
            value = getattr(self.context, attr)
            if value:
                payload[key] = value
        return payload


# =============================================================================
# Source Errors
# =============================================================================

class SourceError(DevScopeError):
    """Base class for failures talking to an external source."""

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        status_code: int | None = None,
        context: ErrorContext | None = None,
        retryable: bool = True,
    ) -> None:
        ctx = context or ErrorContext()
        if source and not ctx.source:
            ctx = replace(ctx, source=source)
        super().__init__(
            message,
            context=ctx,
            severity=ErrorSeverity.ERROR,
            category=ErrorCategory.SOURCE,
            retryable=retryable,
        )
        self.status_code = status_code

    @property
    def source(self) -> str | None:
        return self.context.source


class RateLimitError(SourceError):
    """Raised when a source signals that its rate limit is exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        source: str | None = None,
        retry_after: float | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext()
        ctx = replace(
            ctx,
            suggestion=ctx.suggestion or "Wait and retry the request",
            retry_after=retry_after,
        )
        super().__init__(message, source=source, status_code=429, context=ctx, retryable=True)
        self.severity = ErrorSeverity.TRANSIENT


class NetworkError(SourceError):
    """Raised when a source cannot be reached at all."""

    def __init__(
        self,
        message: str = "Could not reach source",
        *,
        source: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(message, source=source, context=context, retryable=True)
        self.category = ErrorCategory.NETWORK


class ServiceUnavailableError(SourceError):
    """Raised when a source answers with a 5xx status."""

    def __init__(
        self,
        message: str = "Source is temporarily unavailable",
        *,
        source: str | None = None,
        status_code: int | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        label = source or "source"
        super().__init__(
            f"{label}: {message}",
            source=source,
            status_code=status_code,
            context=context,
            retryable=True,
        )
        self.severity = ErrorSeverity.TRANSIENT


class AuthenticationError(SourceError):
    """Raised when a source rejects the configured credentials."""

    def __init__(
        self,
        source: str,
        *,
        status_code: int | None = 401,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext()
        ctx = replace(ctx, suggestion=ctx.suggestion or "Check the API token configured for this source")
        super().__init__(
            f"Authentication failed for {source}",
            source=source,
            status_code=status_code,
            context=ctx,
            retryable=False,
        )


# =============================================================================
# Validation Errors
# =============================================================================

class ValidationError(DevScopeError):
    """Base class for invocation-level validation errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.VALIDATION,
            retryable=False,
        )


class InvalidQueryError(ValidationError):
    """Raised when the search query is missing or blank."""

    def __init__(
        self,
        query: str | None,
        reason: str = "Query cannot be empty",
        *,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext()
        ctx = replace(
            ctx,
            input_value=query,
            suggestion=ctx.suggestion or "Provide a non-empty search query",
            example=ctx.example or 'gather_developer_context(query="react useEffect infinite loop")',
        )
        super().__init__(f"Invalid query: {reason}", context=ctx)


class InvalidParameterError(ValidationError):
    """Raised when a tool argument other than the query is rejected."""

    def __init__(
        self,
        param_name: str,
        value: Any,
        expected: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext()
        ctx = replace(ctx, input_value=value, suggestion=f"Expected {expected}")
        super().__init__(
            f"Invalid parameter '{param_name}': {value!r} (expected {expected})",
            context=ctx,
        )
        self.param_name = param_name


# =============================================================================
# Data Errors
# =============================================================================

class DataError(DevScopeError):
    """A payload from a source did not have the expected shape."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.ERROR,
            category=ErrorCategory.DATA,
            retryable=False,
        )


class ParseError(DataError):
    """Raised when a source record cannot be normalized."""

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        prefix = f"Parse error ({source})" if source else "Parse error"
        super().__init__(f"{prefix}: {message}", context=context)


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(DevScopeError):
    """Raised when settings read from the environment are unusable."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.CONFIGURATION,
            retryable=False,
        )
