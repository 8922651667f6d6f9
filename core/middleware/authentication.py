"""
Authentication middleware.

Resolves the caller's identity from the bearer access token and stores it
in the ASGI scope. Tokens are issued by the external identity provider;
this service never creates or refreshes them.
"""

import logging
from typing import Callable, Optional

from fastapi import Request

from core.exceptions import UnauthorizedError
from core.identity import Identity, identity_from_authorization
from core.middleware.error_handling import build_error_response

logger = logging.getLogger(__name__)

# Public endpoints that don't require authentication
PUBLIC_ENDPOINTS = [
    "/health",
    "/ready",
    "/docs",
    "/redoc",
    "/openapi.json",
]


class AuthenticationMiddleware:
    """
    Bearer-token authentication.

    Public endpoints and CORS preflight (`OPTIONS`) pass through untouched;
    every other request must carry `Authorization: Bearer <access token>`.
    Failures are answered with 401 and one of `TOKEN_MISSING`,
    `TOKEN_INVALID` or `TOKEN_EXPIRED`.
    """

    def __init__(
        self,
        app: Callable,
        jwt_secret: Optional[str] = None,
        jwt_algorithm: str = "HS256",
        verify_signature: bool = True,
        issuer: Optional[str] = None,
        client_id: Optional[str] = None,
    ):
        """
        Initialize authentication middleware.

        Args:
            app: ASGI application
            jwt_secret: Key for signature verification; None trusts the gateway
            jwt_algorithm: JWT signing algorithm
            verify_signature: Whether to verify the signature when a key is set
            issuer: Expected `iss` claim (identity pool URL)
            client_id: Expected `client_id` claim
        """
        self.app = app
        self.jwt_secret = jwt_secret
        self.jwt_algorithm = jwt_algorithm
        self.verify_signature = verify_signature
        self.issuer = issuer
        self.client_id = client_id

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)

        if request.method == "OPTIONS" or self._is_public_endpoint(request.url.path):
            await self.app(scope, receive, send)
            return

        try:
            identity = self.authenticate(request.headers.get("authorization"))
        except UnauthorizedError as exc:
            logger.warning(
                f"Authentication failed: {request.method} {request.url.path} - "
                f"{exc.code}: {exc.message}"
            )
            response = build_error_response(
                exc,
                path=request.url.path,
                method=request.method,
                request_id=request.headers.get("x-request-id"),
            )
            await response(scope, receive, send)
            return

        scope["identity"] = identity
        await self.app(scope, receive, send)

    def authenticate(self, authorization: Optional[str]) -> Identity:
        """Header -> Identity, raising an UnauthorizedError subclass on failure."""
        return identity_from_authorization(
            authorization,
            secret=self.jwt_secret,
            algorithm=self.jwt_algorithm,
            verify_signature=self.verify_signature,
            issuer=self.issuer,
            client_id=self.client_id,
        )

    def _is_public_endpoint(self, path: str) -> bool:
        if path in PUBLIC_ENDPOINTS:
            return True

        public_prefixes = ["/docs", "/redoc"]
        return any(path.startswith(prefix) for prefix in public_prefixes)


def get_identity(request: Request) -> Optional[Identity]:
    """Identity stored by the middleware, or None on public endpoints."""
    return request.scope.get("identity")
