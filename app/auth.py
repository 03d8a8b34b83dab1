"""Bearer-token gate for the query surface.

Tokens are HS256 JWTs carrying ``sub`` and ``role``. Issuing them belongs to
whatever account system fronts the service; ``issue_token`` exists for the
CLI and for tests.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, Header

from models.errors import AuthError
from settings import Settings, get_settings

ADMIN_ROLE = "admin"
_ALGORITHM = "HS256"


@dataclass(frozen=True)
class Principal:
    subject: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def issue_token(
    subject: str,
    role: str = "user",
    settings: Optional[Settings] = None,
    now: Optional[float] = None,
) -> str:
    settings = settings or get_settings()
    issued_at = int(time.time() if now is None else now)
    claims = {
        "sub": subject,
        "role": role,
        "iat": issued_at,
        "exp": issued_at + settings.jwt_ttl_seconds,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=_ALGORITHM)


def decode_token(token: str, settings: Optional[Settings] = None) -> Principal:
    settings = settings or get_settings()
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthError("Token expired.", status_code=403) from exc
    except jwt.InvalidTokenError as exc:
        raise AuthError("Invalid token.", status_code=403) from exc
    return Principal(subject=str(claims["sub"]), role=str(claims.get("role", "user")))


def require_user(authorization: Optional[str] = Header(None)) -> Principal:
    if not authorization:
        raise AuthError("Bearer token required.")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Bearer token required.")
    return decode_token(token.strip())


def require_admin(principal: Principal = Depends(require_user)) -> Principal:
    if not principal.is_admin:
        raise AuthError("Administrator role required.", status_code=403)
    return principal
