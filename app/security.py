from __future__ import annotations

from typing import Any, Callable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from app.db import get_db
from app.errors import Forbidden, Unauthorized
from app.models import Role, User
from app.settings import get_settings

bearer_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify an identity-provider access token and return its claims."""
    settings = get_settings()
    if not settings.jwt_secret:
        raise Unauthorized("Token verification is not configured.", code="INVALID_TOKEN")

    options: dict[str, Any] = {"require_sub": True, "require_exp": True}
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer or None,
            options=options,
        )
    except JWTError as exc:
        raise Unauthorized("Invalid or expired token.", code="INVALID_TOKEN") from exc

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise Unauthorized("Token subject is invalid.", code="INVALID_TOKEN")
    return payload


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthorized("No token provided.", code="INVALID_TOKEN")

    payload = decode_access_token(credentials.credentials)
    user = db.get(User, payload["sub"])
    if user is None:
        raise Unauthorized("User profile not found.", code="PROFILE_NOT_FOUND")
    if not user.is_active:
        raise Forbidden("Account deactivated.", code="ACCOUNT_DEACTIVATED")

    request.state.actor = user.role.value
    request.state.actor_id = user.id
    request.state.org_id = user.org_id
    return user


def require_role(minimum: Role) -> Callable[..., User]:
    def _dependency(user: User = Depends(get_current_user)) -> User:
        if not user.role.at_least(minimum):
            raise Forbidden("Insufficient permissions.")
        return user

    return _dependency
