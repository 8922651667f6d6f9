"""
Identity claim extraction.

Turns a bearer access token issued by the identity provider into an
`Identity`: the subject id plus a normalised set of group names.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

import jwt

from core.exceptions import UnauthorizedError

_NON_ALNUM = re.compile(r"[^a-z0-9]")

ROOT_GROUP = "root"


class TokenMissingError(UnauthorizedError):
    code = "TOKEN_MISSING"


class TokenInvalidError(UnauthorizedError):
    code = "TOKEN_INVALID"


class TokenExpiredError(UnauthorizedError):
    code = "TOKEN_EXPIRED"


def normalize_group(group: str) -> str:
    """'Clinic Admin' -> 'clinicadmin'."""
    return _NON_ALNUM.sub("", str(group).lower())


def normalize_groups(groups: Iterable[str]) -> frozenset[str]:
    return frozenset(g for g in (normalize_group(x) for x in groups) if g)


@dataclass(frozen=True)
class Identity:
    """Authenticated caller."""

    sub: str
    groups: frozenset[str] = field(default_factory=frozenset)
    email: Optional[str] = None
    user_type: Optional[str] = None

    @property
    def is_root(self) -> bool:
        return ROOT_GROUP in self.groups

    def in_group(self, group: str) -> bool:
        return normalize_group(group) in self.groups


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Pull the token out of an `Authorization: Bearer <token>` header."""
    if not authorization:
        raise TokenMissingError("Authorization header missing")

    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise TokenInvalidError("Invalid authorization header format, expected 'Bearer <token>'")

    return token.strip()


def decode_access_token(
    token: str,
    secret: Optional[str] = None,
    algorithm: str = "HS256",
    verify_signature: bool = True,
    issuer: Optional[str] = None,
) -> dict[str, Any]:
    """
    Decode a JWT access token.

    When a secret is supplied and verification is on, the signature is checked.
    Otherwise the gateway is trusted to have verified it and only the payload
    is decoded; expiry is enforced either way.
    """
    if token.count(".") != 2:
        raise TokenInvalidError("Invalid access token format")

    options: dict[str, Any] = {"verify_aud": False}
    kwargs: dict[str, Any] = {}
    if secret and verify_signature:
        kwargs["key"] = secret
        kwargs["algorithms"] = [algorithm]
    else:
        options["verify_signature"] = False
        options["verify_exp"] = True
    if issuer:
        options["verify_iss"] = True
        kwargs["issuer"] = issuer

    try:
        return jwt.decode(token, options=options, **kwargs)
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError("Access token has expired")
    except jwt.InvalidIssuerError:
        raise TokenInvalidError("Access token issued by an unexpected identity pool")
    except jwt.InvalidTokenError as e:
        raise TokenInvalidError(f"Failed to decode access token: {e}")


def _claim_groups(claims: dict[str, Any]) -> list[str]:
    raw = claims.get("cognito:groups", claims.get("groups", []))
    if isinstance(raw, str):
        return [part for part in raw.split(",") if part.strip()]
    if isinstance(raw, (list, tuple, set)):
        return [str(part) for part in raw]
    return []


def identity_from_claims(
    claims: dict[str, Any],
    client_id: Optional[str] = None,
) -> Identity:
    """Validate decoded claims and build the caller's identity."""
    sub = claims.get("sub")
    if not sub:
        raise TokenInvalidError("User sub not found in token claims")

    token_use = claims.get("token_use")
    if token_use is not None and token_use != "access":
        raise TokenInvalidError(f"Invalid token type: expected 'access', got '{token_use}'")

    if client_id and claims.get("client_id") != client_id:
        raise TokenInvalidError("Access token was issued for a different client")

    return Identity(
        sub=str(sub),
        groups=normalize_groups(_claim_groups(claims)),
        email=claims.get("email"),
        user_type=claims.get("custom:user_role") or claims.get("user_type"),
    )


def identity_from_authorization(
    authorization: Optional[str],
    secret: Optional[str] = None,
    algorithm: str = "HS256",
    verify_signature: bool = True,
    issuer: Optional[str] = None,
    client_id: Optional[str] = None,
) -> Identity:
    """Header -> token -> claims -> identity."""
    token = extract_bearer_token(authorization)
    claims = decode_access_token(
        token,
        secret=secret,
        algorithm=algorithm,
        verify_signature=verify_signature,
        issuer=issuer,
    )
    return identity_from_claims(claims, client_id=client_id)
