"""
Error handling middleware and exception handlers.

Every error leaves the service as the same JSON envelope:

    {"error": {"code", "message", "path", "method", "details"?, "request_id"?}}

Service errors keep their own status and details. Storage and unexpected
failures become 5xx responses whose details carry the exception type and the
sanitized underlying message so operators can act on them.
"""

import logging
import re
from typing import Any, Callable, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import SQLAlchemyError, IntegrityError, OperationalError
from redis.exceptions import ConnectionError as RedisConnectionError

from core.exceptions import ServiceError

logger = logging.getLogger(__name__)

# Patterns for sensitive data that should never leave the process
SENSITIVE_PATTERNS = [
    re.compile(r'password["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'api[_-]?key["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization["\s:]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'bearer\s+[A-Za-z0-9\-_.]+', re.IGNORECASE),
    re.compile(r'://[^:/\s]+:[^@/\s]+@'),  # credentials in connection URLs
]


def sanitize_error_message(message: Any) -> str:
    """
    Remove sensitive information from error messages.

    Args:
        message: Original error message

    Returns:
        Sanitized error message
    """
    sanitized = str(message)
    for pattern in SENSITIVE_PATTERNS:
        sanitized = pattern.sub("[REDACTED]", sanitized)
    return sanitized


def get_safe_error_details(exc: Exception) -> dict[str, Any]:
    """Exception type plus sanitized message."""
    return {
        "type": type(exc).__name__,
        "message": sanitize_error_message(str(exc)),
    }


def format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """
    Format validation errors into an expected-vs-provided breakdown per field.

    Args:
        exc: The validation exception

    Returns:
        List of formatted validation errors
    """
    errors = []
    for error in exc.errors():
        error_dict = {
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": sanitize_error_message(error["msg"]),
            "type": error["type"],
        }

        # Include input value only if it's a simple, non-sensitive value
        if "input" in error:
            input_value = error["input"]
            if isinstance(input_value, (str, int, float, bool)):
                input_str = str(input_value)
                if not any(pattern.search(input_str) for pattern in SENSITIVE_PATTERNS):
                    error_dict["input"] = input_value

        errors.append(error_dict)

    return errors


def classify_exception(exc: Exception) -> tuple[int, str, str, Optional[Any]]:
    """
    Map an exception onto (status, code, message, details).

    Logs at WARNING for client errors and ERROR for server errors.
    """
    if isinstance(exc, ServiceError):
        return exc.status_code, exc.code, exc.message, exc.details

    if isinstance(exc, RequestValidationError):
        return (
            status.HTTP_400_BAD_REQUEST,
            "VALIDATION_ERROR",
            "Request validation failed",
            format_validation_errors(exc),
        )

    if isinstance(exc, StarletteHTTPException):
        return (
            exc.status_code,
            "HTTP_EXCEPTION",
            sanitize_error_message(exc.detail),
            None,
        )

    if isinstance(exc, IntegrityError):
        return (
            status.HTTP_409_CONFLICT,
            "CONFLICT",
            "Database integrity constraint violated",
            get_safe_error_details(exc.orig or exc),
        )

    if isinstance(exc, OperationalError):
        return (
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "DATABASE_ERROR",
            "Database service temporarily unavailable",
            get_safe_error_details(exc.orig or exc),
        )

    if isinstance(exc, SQLAlchemyError):
        return (
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "DATABASE_ERROR",
            "A database error occurred",
            get_safe_error_details(exc),
        )

    if isinstance(exc, RedisConnectionError):
        return (
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "BROKER_ERROR",
            "Message broker temporarily unavailable",
            get_safe_error_details(exc),
        )

    return (
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred",
        get_safe_error_details(exc),
    )


def build_error_response(
    exc: Exception,
    path: str,
    method: str,
    request_id: Optional[str] = None,
) -> JSONResponse:
    """Classify, log and render an exception as the error envelope."""
    status_code, error_code, message, details = classify_exception(exc)

    if status_code >= 500:
        logger.error(
            f"{error_code}: {method} {path} - "
            f"{type(exc).__name__}: {sanitize_error_message(str(exc))}",
            exc_info=exc,
        )
    else:
        logger.warning(
            f"{error_code}: {method} {path} - Status: {status_code}, Message: {message}"
        )

    error_response: dict[str, Any] = {
        "error": {
            "code": error_code,
            "message": message,
            "path": path,
            "method": method,
        }
    }
    if details is not None:
        error_response["error"]["details"] = details
    if request_id:
        error_response["error"]["request_id"] = request_id

    headers = None
    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}

    return JSONResponse(status_code=status_code, content=error_response, headers=headers)


def _scope_request_id(scope: dict) -> Optional[str]:
    for key, value in scope.get("headers", []):
        if key == b"x-request-id":
            return value.decode("latin-1")
    return scope.get("state", {}).get("request_id")


class ErrorHandlingMiddleware:
    """
    Catch-all for exceptions escaping the handler stack.

    Route-level errors are normally rendered by the handlers registered in
    `setup_error_handlers`; this middleware renders anything that gets past
    them (including errors raised by inner middleware) in the same envelope.
    """

    def __init__(self, app: Callable):
        """
        Initialize error handling middleware.

        Args:
            app: The ASGI application
        """
        self.app = app

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: dict) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            if response_started:
                # Too late for an error body; let the server close the connection
                raise
            response = build_error_response(
                exc,
                path=scope.get("path", "unknown"),
                method=scope.get("method", "unknown"),
                request_id=_scope_request_id(scope),
            )
            await response(scope, receive, send)


def setup_error_handlers(app) -> None:
    """
    Register exception handlers on the FastAPI application.

    Args:
        app: FastAPI application instance
    """

    async def handle(request: Request, exc: Exception) -> JSONResponse:
        return build_error_response(
            exc,
            path=str(request.url.path),
            method=request.method,
            request_id=getattr(request.state, "request_id", None),
        )

    app.add_exception_handler(ServiceError, handle)
    app.add_exception_handler(RequestValidationError, handle)
    app.add_exception_handler(StarletteHTTPException, handle)
    app.add_exception_handler(SQLAlchemyError, handle)
