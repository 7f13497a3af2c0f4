from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.audit import audit_user_action
from app.db import get_db
from app.models import ADMIN_TIER, GrievanceStatus, User
from app.pagination import PageParams, page_params, paginate
from app.schemas import GrievanceCreate, GrievanceListResponse, GrievanceRead, GrievanceUpdate
from app.security import get_current_user, require_role
from app.services.grievances import (
    admin_listing_query,
    list_my_grievances,
    submit_grievance,
    to_admin_view,
    update_grievance_status,
)
from app.services.visibility import redact_grievance

router = APIRouter(tags=["grievances"])


@router.post("/api/v1/grievances", response_model=GrievanceRead, status_code=201)
def submit(
    payload: GrievanceCreate,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> GrievanceRead:
    grievance = submit_grievance(db, user, payload)
    # Anonymous submissions stay out of the audit trail's actor linkage.
    if not grievance.is_anonymous:
        audit_user_action(
            db,
            request,
            user,
            action="GRIEVANCE_SUBMITTED",
            entity_type="grievance",
            entity_id=grievance.id,
        )
    return GrievanceRead.model_validate(grievance)


@router.get("/api/v1/grievances/mine", response_model=list[GrievanceRead])
def mine(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[GrievanceRead]:
    return [GrievanceRead.model_validate(item) for item in list_my_grievances(db, user)]


@router.get("/api/v1/grievances", response_model=GrievanceListResponse)
def admin_list(
    status: GrievanceStatus | None = Query(default=None),
    params: PageParams = Depends(page_params),
    caller: User = Depends(require_role(ADMIN_TIER)),
    db: Session = Depends(get_db),
) -> GrievanceListResponse:
    rows, meta = paginate(db, admin_listing_query(caller, status=status), params)
    return GrievanceListResponse(items=to_admin_view(rows), pagination=meta)


@router.patch("/api/v1/grievances/{grievance_id}", response_model=GrievanceRead)
def update_status(
    grievance_id: str,
    payload: GrievanceUpdate,
    request: Request,
    caller: User = Depends(require_role(ADMIN_TIER)),
    db: Session = Depends(get_db),
) -> GrievanceRead:
    grievance = update_grievance_status(db, caller, grievance_id, payload)
    audit_user_action(
        db,
        request,
        caller,
        action="GRIEVANCE_STATUS_UPDATED",
        entity_type="grievance",
        entity_id=grievance.id,
        details={"status": grievance.status.value},
    )
    view = GrievanceRead.model_validate(grievance)
    return redact_grievance(view) if grievance.is_anonymous else view
