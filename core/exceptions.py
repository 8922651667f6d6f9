"""
Service-level exception taxonomy.

Services raise these; `core.middleware.error_handling` turns them into the
JSON error envelope with the matching HTTP status.
"""

from typing import Any, Optional


class ServiceError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class BadRequestError(ServiceError):
    """Malformed body, missing field or business-rule violation."""

    status_code = 400
    code = "BAD_REQUEST"


class UnauthorizedError(ServiceError):
    """Missing, invalid or expired credential."""

    status_code = 401
    code = "UNAUTHORIZED"


class ForbiddenError(ServiceError):
    """Valid credential, but wrong owner or insufficient role."""

    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(ServiceError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(ServiceError):
    """State already terminal, duplicate submission or concurrent modification."""

    status_code = 409
    code = "CONFLICT"


class InternalError(ServiceError):
    """Data-integrity gap, e.g. a row missing a foreign key it must carry."""

    status_code = 500
    code = "INTERNAL_ERROR"


def expected_vs_provided(expected: Any, provided: Any) -> dict[str, Any]:
    """Details payload used by validation failures to support form correction."""
    return {"expected": expected, "provided": provided}
