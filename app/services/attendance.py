from __future__ import annotations

import logging
import math
from datetime import date, datetime

from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.errors import Conflict, GeofenceViolation, NotFound, ValidationError
from app.models import AttendanceRecord, AttendanceStatus, BreakInterval, User, Zone
from app.schemas import CheckInRequest, CheckOutRequest
from app.services.clock import local_day, normalize_ts
from app.services.geofence import evaluate_geofence
from app.services.org_refs import require_activity
from app.services.visibility import restrict_to_team

logger = logging.getLogger("app.attendance")

# Statuses each transition may start from; check-in starts from "no record today".
TRANSITION_SOURCES: dict[str, frozenset[AttendanceStatus]] = {
    "break_start": frozenset({AttendanceStatus.CHECKED_IN}),
    "break_end": frozenset({AttendanceStatus.ON_BREAK}),
    "check_out": frozenset({AttendanceStatus.CHECKED_IN, AttendanceStatus.ON_BREAK}),
}

_STATE_CONFLICTS: dict[AttendanceStatus, tuple[str, str]] = {
    AttendanceStatus.CHECKED_IN: ("NOT_ON_BREAK", "No break in progress."),
    AttendanceStatus.ON_BREAK: ("ALREADY_ON_BREAK", "Already on break."),
    AttendanceStatus.CHECKED_OUT: ("ALREADY_CHECKED_OUT", "Already checked out today."),
}


def elapsed_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes between two instants, rounded half up."""
    seconds = (normalize_ts(end) - normalize_ts(start)).total_seconds()
    return math.floor(seconds / 60 + 0.5)


def working_minutes(total_minutes: int, break_minutes: int) -> int:
    return max(0, total_minutes - break_minutes)


def can_transition(current: AttendanceStatus | None, action: str) -> bool:
    if action == "check_in":
        return current is None
    return current is not None and current in TRANSITION_SOURCES[action]


def _ensure_transition(record: AttendanceRecord, action: str) -> None:
    if can_transition(record.status, action):
        return
    code, message = _STATE_CONFLICTS[record.status]
    raise Conflict(code, message)


def _load_today_record(db: Session, user: User, day: date) -> AttendanceRecord | None:
    return db.scalar(
        select(AttendanceRecord)
        .where(
            AttendanceRecord.user_id == user.id,
            AttendanceRecord.date == day,
        )
        .options(selectinload(AttendanceRecord.breaks))
    )


def _load_open_break(db: Session, record: AttendanceRecord) -> BreakInterval | None:
    return db.scalar(
        select(BreakInterval)
        .where(
            BreakInterval.attendance_id == record.id,
            BreakInterval.ended_at.is_(None),
        )
        .order_by(BreakInterval.started_at.desc())
        .limit(1)
    )


def _resolve_checkin_zone(db: Session, user: User, zone_id: str | None) -> Zone | None:
    if zone_id:
        zone = db.scalar(select(Zone).where(Zone.id == zone_id, Zone.org_id == user.org_id))
        if zone is None:
            raise NotFound("Zone not found.", code="ZONE_NOT_FOUND")
        return zone

    if not user.zone_id:
        return None
    zone = db.get(Zone, user.zone_id)
    if zone is None or zone.org_id != user.org_id:
        return None
    return zone


def _commit_record(db: Session, record: AttendanceRecord) -> AttendanceRecord:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("ALREADY_CHECKED_IN", "Already checked in today.") from exc
    db.refresh(record)
    return record


def check_in(
    db: Session,
    user: User,
    payload: CheckInRequest,
    *,
    now: datetime | None = None,
) -> AttendanceRecord:
    now_utc = normalize_ts(now)
    today = local_day(now_utc)

    if _load_today_record(db, user, today) is not None:
        raise Conflict("ALREADY_CHECKED_IN", "Already checked in today.")

    zone = _resolve_checkin_zone(db, user, payload.zone_id)
    activity_id = require_activity(db, user.org_id, payload.activity_id)
    distance = 0
    if zone is not None:
        result = evaluate_geofence(
            payload.latitude,
            payload.longitude,
            zone.meeting_lat,
            zone.meeting_lng,
            zone.geofence_radius,
        )
        if not result.within_fence:
            logger.info(
                "attendance_checkin_outside_geofence",
                extra={
                    "user_id": user.id,
                    "zone_id": zone.id,
                    "distance_m": result.distance_m,
                    "radius_m": zone.geofence_radius,
                },
            )
            raise GeofenceViolation(
                distance_m=result.distance_m,
                required_m=zone.geofence_radius,
                zone_name=zone.name,
            )
        distance = result.distance_m

    record = AttendanceRecord(
        user_id=user.id,
        org_id=user.org_id,
        zone_id=zone.id if zone is not None else None,
        activity_id=activity_id,
        date=today,
        status=AttendanceStatus.CHECKED_IN,
        checkin_at=now_utc,
        checkin_lat=payload.latitude,
        checkin_lng=payload.longitude,
        checkin_selfie_url=payload.selfie_url,
        checkin_address=payload.address,
        checkin_distance_m=distance,
        break_minutes=0,
    )
    db.add(record)
    record = _commit_record(db, record)
    logger.info(
        "attendance_checked_in",
        extra={"user_id": user.id, "attendance_id": record.id, "distance_m": distance},
    )
    return record


def start_break(db: Session, user: User, *, now: datetime | None = None) -> AttendanceRecord:
    now_utc = normalize_ts(now)
    record = _load_today_record(db, user, local_day(now_utc))
    if record is None:
        raise Conflict("NOT_CHECKED_IN", "Not checked in today.")
    _ensure_transition(record, "break_start")

    db.add(BreakInterval(attendance_id=record.id, user_id=user.id, started_at=now_utc))
    record.status = AttendanceStatus.ON_BREAK
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("ALREADY_ON_BREAK", "Already on break.") from exc
    db.refresh(record)
    return record


def _close_break(record: AttendanceRecord, open_break: BreakInterval, now_utc: datetime) -> int:
    duration = elapsed_minutes(open_break.started_at, now_utc)
    open_break.ended_at = now_utc
    open_break.duration_minutes = duration
    record.break_minutes = (record.break_minutes or 0) + duration
    return duration


def end_break(db: Session, user: User, *, now: datetime | None = None) -> tuple[AttendanceRecord, int]:
    now_utc = normalize_ts(now)
    record = _load_today_record(db, user, local_day(now_utc))
    if record is None:
        raise Conflict("NOT_CHECKED_IN", "Not checked in today.")
    _ensure_transition(record, "break_end")

    open_break = _load_open_break(db, record)
    if open_break is None:
        raise ValidationError("NO_OPEN_BREAK", "No active break found.")

    duration = _close_break(record, open_break, now_utc)
    record.status = AttendanceStatus.CHECKED_IN
    db.commit()
    db.refresh(record)
    return record, duration


def check_out(
    db: Session,
    user: User,
    payload: CheckOutRequest,
    *,
    now: datetime | None = None,
) -> AttendanceRecord:
    now_utc = normalize_ts(now)
    record = _load_today_record(db, user, local_day(now_utc))
    if record is None:
        raise ValidationError("NOT_CHECKED_IN", "Not checked in today.")
    _ensure_transition(record, "check_out")

    if record.status == AttendanceStatus.ON_BREAK:
        open_break = _load_open_break(db, record)
        if open_break is not None:
            _close_break(record, open_break, now_utc)

    total = elapsed_minutes(record.checkin_at, now_utc)
    record.status = AttendanceStatus.CHECKED_OUT
    record.checkout_at = now_utc
    record.checkout_lat = payload.latitude
    record.checkout_lng = payload.longitude
    record.checkout_selfie_url = payload.selfie_url
    record.working_minutes = working_minutes(total, record.break_minutes or 0)
    db.commit()
    db.refresh(record)
    logger.info(
        "attendance_checked_out",
        extra={
            "user_id": user.id,
            "attendance_id": record.id,
            "working_minutes": record.working_minutes,
            "break_minutes": record.break_minutes,
        },
    )
    return record


def get_today(db: Session, user: User, *, now: datetime | None = None) -> AttendanceRecord | None:
    return _load_today_record(db, user, local_day(now))


def history_query(user: User) -> Select[tuple[AttendanceRecord]]:
    return (
        select(AttendanceRecord)
        .where(AttendanceRecord.user_id == user.id)
        .options(selectinload(AttendanceRecord.breaks))
        .order_by(AttendanceRecord.date.desc())
    )


def list_team_attendance(
    db: Session,
    caller: User,
    *,
    day: date | None = None,
    zone_id: str | None = None,
) -> list[AttendanceRecord]:
    stmt = (
        select(AttendanceRecord)
        .where(
            AttendanceRecord.org_id == caller.org_id,
            AttendanceRecord.date == (day or local_day()),
        )
        .options(
            selectinload(AttendanceRecord.user),
            selectinload(AttendanceRecord.breaks),
        )
        .order_by(AttendanceRecord.checkin_at.desc())
    )
    if zone_id:
        stmt = stmt.where(AttendanceRecord.zone_id == zone_id)
    stmt = restrict_to_team(stmt, AttendanceRecord.user_id, caller)
    return list(db.scalars(stmt).all())
