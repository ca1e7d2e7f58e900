from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import Settings, get_settings


bearer_scheme = HTTPBearer(auto_error=False, description="HS256 JWT whose `sub` claim is the user ID")


@dataclass(frozen=True)
class AuthContext:
    """The authenticated caller: a user ID plus the scopes granted by the token."""

    user_id: str
    scopes: tuple[str, ...] = ()

    def has_scope(self, scope: str) -> bool:
        return scope in self.scopes


def _unauthorized(code: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=code,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_access_token(token: str, settings: Settings) -> dict[str, Any]:
    """Validate signature, expiry and (when configured) issuer/audience."""
    try:
        return jwt.decode(
            token,
            settings.secrets.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require": ["sub"], "verify_aud": settings.jwt_audience is not None},
        )
    except jwt.ExpiredSignatureError as exc:
        raise _unauthorized("token_expired") from exc
    except jwt.MissingRequiredClaimError as exc:
        raise _unauthorized("subject_required") from exc
    except jwt.PyJWTError as exc:
        raise _unauthorized("invalid_token") from exc


async def get_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> AuthContext:
    if credentials is None:
        raise _unauthorized("missing_authorization")

    claims = decode_access_token(credentials.credentials, settings)
    subject = claims["sub"]
    if not isinstance(subject, str) or not subject.strip():
        raise _unauthorized("subject_required")

    raw_scopes = claims.get("scopes") or []
    if isinstance(raw_scopes, str):
        raw_scopes = raw_scopes.split()
    context = AuthContext(user_id=subject, scopes=tuple(str(scope) for scope in raw_scopes))
    request.state.auth = context
    return context


def require_scope(scope: str) -> Callable[..., Awaitable[AuthContext]]:
    """Dependency factory: authenticate, then demand ``scope`` (403 otherwise)."""

    async def _dependency(context: AuthContext = Depends(get_auth_context)) -> AuthContext:
        if not context.has_scope(scope):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"{scope}_scope_required")
        return context

    return _dependency


__all__ = ["AuthContext", "bearer_scheme", "decode_access_token", "get_auth_context", "require_scope"]
