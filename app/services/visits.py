from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import NotFound
from app.models import Role, User, VisitLog
from app.schemas import VisitCreate
from app.services.clock import local_day, normalize_ts


def list_visits(db: Session, caller: User, *, day: date | None = None) -> list[VisitLog]:
    stmt = (
        select(VisitLog)
        .where(VisitLog.org_id == caller.org_id, VisitLog.date == (day or local_day()))
        .order_by(VisitLog.visited_at.desc())
    )
    if caller.role == Role.EXECUTIVE:
        stmt = stmt.where(VisitLog.executive_id == caller.id)
    elif caller.role == Role.SUPERVISOR:
        stmt = stmt.where(VisitLog.visitor_id == caller.id)
    return list(db.scalars(stmt).all())


def create_visit(db: Session, caller: User, payload: VisitCreate, *, now: datetime | None = None) -> VisitLog:
    executive_id = payload.executive_id or caller.id
    if executive_id != caller.id and db.scalar(
        select(User.id).where(User.id == executive_id, User.org_id == caller.org_id)
    ) is None:
        raise NotFound("Executive not found.", code="USER_NOT_FOUND")

    now_utc = normalize_ts(now)
    visit = VisitLog(
        org_id=caller.org_id,
        executive_id=executive_id,
        visitor_id=caller.id,
        zone_id=caller.zone_id,
        date=local_day(now_utc),
        visited_at=now_utc,
        rating=payload.rating,
        remarks=payload.remarks,
        photo_url=payload.photo_url,
        latitude=payload.latitude,
        longitude=payload.longitude,
    )
    db.add(visit)
    db.commit()
    db.refresh(visit)
    return visit
