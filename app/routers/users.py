from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.audit import audit_user_action
from app.db import get_db
from app.models import ADMIN_TIER, MANAGEMENT_TIER, ZONE_ADMIN_TIER, Role, User
from app.pagination import PageParams, page_params, paginate
from app.schemas import UserCreate, UserListResponse, UserRead, UserUpdate, ZoneCreate, ZoneRead
from app.security import get_current_user, require_role
from app.services.directory import create_user, create_zone, list_zones, update_user, users_query
from app.services.identity import IdentityClient, get_identity_client

router = APIRouter(tags=["users"])


@router.get("/api/v1/users", response_model=UserListResponse)
def list_users(
    role: Role | None = Query(default=None),
    zone_id: str | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    params: PageParams = Depends(page_params),
    caller: User = Depends(require_role(MANAGEMENT_TIER)),
    db: Session = Depends(get_db),
) -> UserListResponse:
    stmt = users_query(caller, role=role, zone_id=zone_id, is_active=is_active)
    rows, meta = paginate(db, stmt, params)
    return UserListResponse(items=[UserRead.model_validate(row) for row in rows], pagination=meta)


@router.post("/api/v1/users", response_model=UserRead, status_code=201)
def create(
    payload: UserCreate,
    request: Request,
    caller: User = Depends(require_role(ADMIN_TIER)),
    db: Session = Depends(get_db),
    identity: IdentityClient = Depends(get_identity_client),
) -> UserRead:
    user = create_user(db, identity, caller, payload)
    audit_user_action(
        db,
        request,
        caller,
        action="USER_CREATED",
        entity_type="user",
        entity_id=user.id,
        details={"role": user.role.value},
    )
    return UserRead.model_validate(user)


@router.patch("/api/v1/users/{user_id}", response_model=UserRead)
def update(
    user_id: str,
    payload: UserUpdate,
    request: Request,
    caller: User = Depends(require_role(ADMIN_TIER)),
    db: Session = Depends(get_db),
) -> UserRead:
    user = update_user(db, caller, user_id, payload)
    audit_user_action(
        db,
        request,
        caller,
        action="USER_UPDATED",
        entity_type="user",
        entity_id=user.id,
        details={"fields": sorted(payload.model_dump(exclude_unset=True))},
    )
    return UserRead.model_validate(user)


@router.get("/api/v1/zones", response_model=list[ZoneRead])
def zones(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[ZoneRead]:
    return [ZoneRead.model_validate(zone) for zone in list_zones(db, user)]


@router.post("/api/v1/zones", response_model=ZoneRead, status_code=201)
def add_zone(
    payload: ZoneCreate,
    request: Request,
    caller: User = Depends(require_role(ZONE_ADMIN_TIER)),
    db: Session = Depends(get_db),
) -> ZoneRead:
    zone = create_zone(db, caller, payload)
    audit_user_action(db, request, caller, action="ZONE_CREATED", entity_type="zone", entity_id=zone.id)
    return ZoneRead.model_validate(zone)
