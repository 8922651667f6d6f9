"""
Core middleware package.

- Error handling with sensitive data sanitization
- Structured logging with PII masking
- Bearer-token authentication
"""

from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    setup_error_handlers,
    sanitize_error_message,
    build_error_response,
)

from core.middleware.logging import (
    StructuredLoggingMiddleware,
    StructuredFormatter,
    setup_logging,
)

from core.middleware.authentication import (
    AuthenticationMiddleware,
    get_identity,
)

__all__ = [
    # Error handling
    "ErrorHandlingMiddleware",
    "setup_error_handlers",
    "sanitize_error_message",
    "build_error_response",
    # Logging
    "StructuredLoggingMiddleware",
    "StructuredFormatter",
    "setup_logging",
    # Authentication
    "AuthenticationMiddleware",
    "get_identity",
]
