"""Lookups that keep foreign references inside the caller's organisation."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import NotFound
from app.models import Activity, Zone


def require_activity(db: Session, org_id: str, activity_id: str | None) -> str | None:
    if not activity_id:
        return None
    found = db.scalar(select(Activity.id).where(Activity.id == activity_id, Activity.org_id == org_id))
    if found is None:
        raise NotFound("Activity not found.", code="ACTIVITY_NOT_FOUND")
    return found


def require_zone(db: Session, org_id: str, zone_id: str | None) -> str | None:
    if not zone_id:
        return None
    found = db.scalar(select(Zone.id).where(Zone.id == zone_id, Zone.org_id == org_id))
    if found is None:
        raise NotFound("Zone not found.", code="ZONE_NOT_FOUND")
    return found
