"""Users, zones and the session endpoints backed by the identity provider."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.errors import Conflict, Forbidden, NotFound, Unauthorized
from app.models import Role, User, Zone
from app.schemas import LoginRequest, TokenResponse, UserCreate, UserProfileRead, UserUpdate, ZoneCreate
from app.services.identity import IdentityClient
from app.services.org_refs import require_zone
from app.services.visibility import restrict_to_team
from app.settings import get_settings

logger = logging.getLogger("app.directory")

USER_UPDATE_FIELDS: tuple[str, ...] = (
    "name",
    "zone_id",
    "supervisor_id",
    "is_active",
    "employee_id",
    "city",
    "avatar_url",
)


def load_profile(db: Session, user_id: str) -> User | None:
    return db.scalar(
        select(User)
        .where(User.id == user_id)
        .options(selectinload(User.zone), selectinload(User.organisation))
    )


def _token_response(session: dict[str, Any], profile: User | None = None) -> TokenResponse:
    return TokenResponse(
        access_token=session["access_token"],
        refresh_token=session["refresh_token"],
        token_type=session.get("token_type") or "bearer",
        expires_in=session.get("expires_in"),
        expires_at=session.get("expires_at"),
        user=UserProfileRead.model_validate(profile) if profile is not None else None,
    )


def login(db: Session, identity: IdentityClient, payload: LoginRequest) -> TokenResponse:
    try:
        session = identity.sign_in_with_password(payload.email.strip().lower(), payload.password)
    except Unauthorized:
        logger.warning("login_failed", extra={"email": payload.email})
        raise Unauthorized("Invalid email or password.", code="INVALID_CREDENTIALS") from None

    principal_id = str((session.get("user") or {}).get("id") or "")
    profile = load_profile(db, principal_id) if principal_id else None
    if profile is None:
        raise Unauthorized("User profile not found.", code="PROFILE_NOT_FOUND")
    if not profile.is_active:
        raise Unauthorized("Account is deactivated. Contact your admin.", code="ACCOUNT_DEACTIVATED")

    if payload.fcm_token or payload.device_id:
        if payload.fcm_token:
            profile.fcm_token = payload.fcm_token
        if payload.device_id:
            profile.device_id = payload.device_id
        db.commit()
        db.refresh(profile)

    return _token_response(session, profile)


def refresh(identity: IdentityClient, refresh_token: str) -> TokenResponse:
    try:
        session = identity.refresh_session(refresh_token)
    except Unauthorized:
        raise Unauthorized("Invalid or expired refresh token.", code="INVALID_REFRESH_TOKEN") from None
    return _token_response(session)


def logout(db: Session, identity: IdentityClient, user: User, access_token: str | None) -> None:
    if access_token:
        identity.sign_out(access_token)
    user.fcm_token = None
    db.commit()


def users_query(
    caller: User,
    *,
    role: Role | None = None,
    zone_id: str | None = None,
    is_active: bool | None = None,
) -> Select[tuple[User]]:
    stmt = (
        select(User)
        .where(User.org_id == caller.org_id)
        .order_by(User.name)
    )
    if role is not None:
        stmt = stmt.where(User.role == role)
    if zone_id:
        stmt = stmt.where(User.zone_id == zone_id)
    if is_active is not None:
        stmt = stmt.where(User.is_active.is_(is_active))
    return restrict_to_team(stmt, User.id, caller)


def _ensure_org_refs(db: Session, caller: User, *, zone_id: str | None, supervisor_id: str | None) -> None:
    require_zone(db, caller.org_id, zone_id)
    if supervisor_id and db.scalar(
        select(User.id).where(User.id == supervisor_id, User.org_id == caller.org_id)
    ) is None:
        raise NotFound("Supervisor not found.", code="SUPERVISOR_NOT_FOUND")


def login_email_for(payload: UserCreate) -> str:
    if payload.email and payload.email.strip():
        return payload.email.strip().lower()
    return f"{(payload.mobile or '').strip()}@{get_settings().mobile_login_email_domain}"


def create_user(db: Session, identity: IdentityClient, caller: User, payload: UserCreate) -> User:
    if payload.role.rank > caller.role.rank:
        raise Forbidden("Cannot create a user with a higher role than your own.")
    _ensure_org_refs(db, caller, zone_id=payload.zone_id, supervisor_id=payload.supervisor_id)

    email = login_email_for(payload)
    principal_id = identity.admin_create_user(
        email=email,
        password=payload.password,
        metadata={"name": payload.name, "org_id": caller.org_id},
    )

    user = User(
        id=principal_id,
        org_id=caller.org_id,
        name=payload.name,
        mobile=payload.mobile,
        email=email,
        role=payload.role,
        employee_id=payload.employee_id,
        zone_id=payload.zone_id,
        supervisor_id=payload.supervisor_id,
        city=payload.city,
        state=payload.state,
        joined_date=payload.joined_date,
        is_active=True,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        # The principal must not outlive a failed profile insert.
        identity.admin_delete_user(principal_id)
        raise Conflict("USER_EXISTS", "A user with these details already exists.") from exc
    db.refresh(user)
    logger.info("user_created", extra={"user_id": user.id, "role": user.role.value, "actor_id": caller.id})
    return user


def update_user(db: Session, caller: User, user_id: str, payload: UserUpdate) -> User:
    user = db.scalar(select(User).where(User.id == user_id, User.org_id == caller.org_id))
    if user is None:
        raise NotFound("User not found.", code="USER_NOT_FOUND")
    if user.role.rank > caller.role.rank:
        raise Forbidden("Cannot modify a user with a higher role than your own.")

    changes = payload.model_dump(exclude_unset=True, include=set(USER_UPDATE_FIELDS))
    _ensure_org_refs(db, caller, zone_id=changes.get("zone_id"), supervisor_id=changes.get("supervisor_id"))
    for key, value in changes.items():
        setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return user


def list_zones(db: Session, caller: User) -> list[Zone]:
    return list(
        db.scalars(
            select(Zone)
            .where(Zone.org_id == caller.org_id, Zone.is_active.is_(True))
            .order_by(Zone.name)
        ).all()
    )


def create_zone(db: Session, caller: User, payload: ZoneCreate) -> Zone:
    zone = Zone(
        org_id=caller.org_id,
        name=payload.name,
        city=payload.city,
        meeting_lat=payload.meeting_lat,
        meeting_lng=payload.meeting_lng,
        meeting_address=payload.meeting_address,
        geofence_radius=(
            payload.geofence_radius
            if payload.geofence_radius is not None
            else get_settings().default_geofence_radius_m
        ),
        is_active=True,
    )
    db.add(zone)
    db.commit()
    db.refresh(zone)
    return zone
