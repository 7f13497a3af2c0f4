from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.audit import audit_user_action
from app.db import get_db
from app.models import MANAGEMENT_TIER, User
from app.schemas import VisitCreate, VisitRead
from app.security import get_current_user, require_role
from app.services.visits import create_visit, list_visits

router = APIRouter(tags=["visits"])


@router.get("/api/v1/visits", response_model=list[VisitRead])
def visits(
    day: date | None = Query(default=None, alias="date"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[VisitRead]:
    return [VisitRead.model_validate(visit) for visit in list_visits(db, user, day=day)]


@router.post("/api/v1/visits", response_model=VisitRead, status_code=201)
def log_visit(
    payload: VisitCreate,
    request: Request,
    caller: User = Depends(require_role(MANAGEMENT_TIER)),
    db: Session = Depends(get_db),
) -> VisitRead:
    visit = create_visit(db, caller, payload)
    audit_user_action(
        db,
        request,
        caller,
        action="VISIT_LOGGED",
        entity_type="visit_log",
        entity_id=visit.id,
        details={"executive_id": visit.executive_id, "rating": visit.rating.value},
    )
    return VisitRead.model_validate(visit)
