"""
Shared infrastructure for DevScope.

Provides:
- Unified exception hierarchy
- Async utilities for rate-limited source calls
- Environment-driven settings
"""

from .async_utils import (
    SourceLimiter,
    gather_settled,
    get_source_limiter,
    reset_source_limiters,
    retry_on_rate_limit,
)
from .config import Settings
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    DataError,
    DevScopeError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    InvalidParameterError,
    InvalidQueryError,
    NetworkError,
    ParseError,
    RateLimitError,
    ServiceUnavailableError,
    SourceError,
    ValidationError,
)

__all__ = [
    # Errors
    "DevScopeError",
    "ErrorContext",
    "ErrorSeverity",
    "ErrorCategory",
    "SourceError",
    "RateLimitError",
    "NetworkError",
    "ServiceUnavailableError",
    "AuthenticationError",
    "ValidationError",
    "InvalidQueryError",
    "InvalidParameterError",
    "DataError",
    "ParseError",
    "ConfigurationError",
    # Async utilities
    "SourceLimiter",
    "get_source_limiter",
    "reset_source_limiters",
    "retry_on_rate_limit",
    "gather_settled",
    # Settings
    "Settings",
]
