"""
Request-scoped identity.

The identity provider issues HS256 JWTs signed with a secret shared with this
service. The claims carry the opaque user id (`sub`, or `id` in tokens from the
original login endpoint), the role and an expiry. Routes receive the verified
Identity as a dependency; nothing reads ambient session state.
"""
import time
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, Header

from courtbook.config import AUTH_SECRET, AUTH_TOKEN_TTL_SECONDS
from courtbook.services.reservation_errors import Forbidden, Unauthenticated
from courtbook.utils.http_errors import to_http_exception

JWT_ALGORITHM = "HS256"

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def issue_token(
    user_id: str,
    role: str = ROLE_USER,
    secret: str = AUTH_SECRET,
    ttl_seconds: int = AUTH_TOKEN_TTL_SECONDS,
    now: Optional[float] = None,
) -> str:
    """Mint a token the way the identity provider does (dev tooling and tests)."""
    if role not in ROLES:
        raise ValueError(f"Unknown role '{role}'")
    issued_at = int(now if now is not None else time.time())
    claims = {
        "sub": user_id,
        "id": user_id,
        "role": role,
        "iat": issued_at,
        "exp": issued_at + ttl_seconds,
    }
    return jwt.encode(claims, secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str, secret: str = AUTH_SECRET) -> Identity:
    """
    Verify a token and return its Identity.

    Raises:
        Unauthenticated: malformed, badly signed or expired token
    """
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token expired")
    except jwt.InvalidTokenError as e:
        raise Unauthenticated(f"Invalid token: {e}")

    user_id = claims.get("sub") or claims.get("id")
    role = claims.get("role", ROLE_USER)
    if not isinstance(user_id, str) or not user_id:
        raise Unauthenticated("Token has no subject")
    if role not in ROLES:
        raise Unauthenticated("Token has an unknown role")

    return Identity(user_id=user_id, role=role)


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise Unauthenticated("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthenticated("Authorization header must be 'Bearer <token>'")
    return token.strip()


def get_identity(authorization: Optional[str] = Header(default=None)) -> Identity:
    """FastAPI dependency: verified identity of the caller (401 otherwise)."""
    try:
        return decode_token(bearer_token(authorization))
    except Unauthenticated as e:
        raise to_http_exception(e)


def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    """FastAPI dependency: caller must hold the admin role (403 otherwise)."""
    if not identity.is_admin:
        raise to_http_exception(Forbidden("Admin only"))
    return identity
