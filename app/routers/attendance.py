from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.audit import audit_user_action
from app.db import get_db
from app.models import MANAGEMENT_TIER, AttendanceRecord, User
from app.pagination import PageParams, page_params, paginate
from app.schemas import (
    AttendanceHistoryResponse,
    AttendanceRead,
    BreakEndResponse,
    CheckInRequest,
    CheckOutRequest,
    TeamAttendanceRead,
)
from app.security import get_current_user, require_role
from app.services.attendance import (
    check_in,
    check_out,
    end_break,
    get_today,
    history_query,
    list_team_attendance,
    start_break,
)

router = APIRouter(tags=["attendance"])


def _track(request: Request, record: AttendanceRecord) -> None:
    request.state.attendance_id = record.id
    request.state.attendance_status = record.status.value


@router.post("/api/v1/attendance/checkin", response_model=AttendanceRead, status_code=201)
def checkin(
    payload: CheckInRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AttendanceRead:
    record = check_in(db, user, payload)
    _track(request, record)
    audit_user_action(
        db,
        request,
        user,
        action="ATTENDANCE_CHECKIN",
        entity_type="attendance",
        entity_id=record.id,
        details={"zone_id": record.zone_id, "distance_m": record.checkin_distance_m},
    )
    return AttendanceRead.model_validate(record)


@router.post("/api/v1/attendance/checkout", response_model=AttendanceRead)
def checkout(
    payload: CheckOutRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AttendanceRead:
    record = check_out(db, user, payload)
    _track(request, record)
    audit_user_action(
        db,
        request,
        user,
        action="ATTENDANCE_CHECKOUT",
        entity_type="attendance",
        entity_id=record.id,
        details={"working_minutes": record.working_minutes, "break_minutes": record.break_minutes},
    )
    return AttendanceRead.model_validate(record)


@router.post("/api/v1/attendance/break/start", response_model=AttendanceRead)
def break_start(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AttendanceRead:
    record = start_break(db, user)
    _track(request, record)
    return AttendanceRead.model_validate(record)


@router.post("/api/v1/attendance/break/end", response_model=BreakEndResponse)
def break_end(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BreakEndResponse:
    record, duration = end_break(db, user)
    _track(request, record)
    return BreakEndResponse(
        attendance=AttendanceRead.model_validate(record),
        duration_minutes=duration,
    )


@router.get("/api/v1/attendance/today", response_model=AttendanceRead | None)
def today(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AttendanceRead | None:
    record = get_today(db, user)
    if record is None:
        return None
    return AttendanceRead.model_validate(record)


@router.get("/api/v1/attendance/history", response_model=AttendanceHistoryResponse)
def history(
    params: PageParams = Depends(page_params),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AttendanceHistoryResponse:
    rows, meta = paginate(db, history_query(user), params)
    return AttendanceHistoryResponse(
        items=[AttendanceRead.model_validate(row) for row in rows],
        pagination=meta,
    )


@router.get("/api/v1/attendance/team", response_model=list[TeamAttendanceRead])
def team(
    day: date | None = Query(default=None, alias="date"),
    zone_id: str | None = Query(default=None),
    caller: User = Depends(require_role(MANAGEMENT_TIER)),
    db: Session = Depends(get_db),
) -> list[TeamAttendanceRead]:
    records = list_team_attendance(db, caller, day=day, zone_id=zone_id)
    return [TeamAttendanceRead.model_validate(record) for record in records]
