from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.audit import audit_user_action
from app.db import get_db
from app.errors import NotFound
from app.models import User
from app.schemas import LoginRequest, OkResponse, RefreshRequest, TokenResponse, UserProfileRead
from app.security import bearer_scheme, get_current_user
from app.services.directory import load_profile, login, logout, refresh
from app.services.identity import IdentityClient, get_identity_client

router = APIRouter(tags=["auth"])


@router.post("/api/v1/auth/login", response_model=TokenResponse)
def login_endpoint(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    identity: IdentityClient = Depends(get_identity_client),
) -> TokenResponse:
    result = login(db, identity, payload)
    if result.user is not None:
        request.state.actor = result.user.role.value
        request.state.actor_id = result.user.id
    return result


@router.post("/api/v1/auth/refresh", response_model=TokenResponse)
def refresh_endpoint(
    payload: RefreshRequest,
    identity: IdentityClient = Depends(get_identity_client),
) -> TokenResponse:
    return refresh(identity, payload.refresh_token)


@router.post("/api/v1/auth/logout", response_model=OkResponse)
def logout_endpoint(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    identity: IdentityClient = Depends(get_identity_client),
) -> OkResponse:
    logout(db, identity, user, credentials.credentials if credentials is not None else None)
    audit_user_action(db, request, user, action="AUTH_LOGOUT", entity_type="user", entity_id=user.id)
    return OkResponse()


@router.get("/api/v1/auth/me", response_model=UserProfileRead)
def me(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserProfileRead:
    profile = load_profile(db, user.id)
    if profile is None:
        raise NotFound("User profile not found.", code="PROFILE_NOT_FOUND")
    return UserProfileRead.model_validate(profile)
