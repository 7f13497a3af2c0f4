from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.errors import Conflict, NotFound
from app.models import Role, SosAlert, SosStatus, User
from app.schemas import SosTriggerRequest
from app.services.notifications import build_notifications

logger = logging.getLogger("app.sos")

SOS_ESCALATION_ROLES: tuple[Role, ...] = (Role.CITY_MANAGER, Role.ADMIN)


def build_notified_snapshot(supervisor_id: str | None, escalation_ids: list[str]) -> tuple[str, ...]:
    """Ordered, de-duplicated recipients: the supervisor first, then escalation contacts."""
    ordered: list[str] = []
    for user_id in [supervisor_id, *escalation_ids]:
        if user_id and user_id not in ordered:
            ordered.append(user_id)
    return tuple(ordered)


def _escalation_contact_ids(db: Session, org_id: str) -> list[str]:
    return list(
        db.scalars(
            select(User.id)
            .where(
                User.org_id == org_id,
                User.role.in_(SOS_ESCALATION_ROLES),
                User.is_active.is_(True),
            )
            .order_by(User.created_at)
        ).all()
    )


def trigger_sos(db: Session, user: User, payload: SosTriggerRequest) -> SosAlert:
    notified = build_notified_snapshot(user.supervisor_id, _escalation_contact_ids(db, user.org_id))

    alert = SosAlert(
        org_id=user.org_id,
        user_id=user.id,
        zone_id=user.zone_id,
        latitude=payload.latitude,
        longitude=payload.longitude,
        address=payload.address,
        message=payload.message,
        status=SosStatus.ACTIVE,
        notified_user_ids=list(notified),
    )
    db.add(alert)
    db.flush()

    location = payload.address or f"{payload.latitude:.5f}, {payload.longitude:.5f}"
    db.add_all(
        build_notifications(
            org_id=user.org_id,
            user_ids=notified,
            type="sos",
            title=f"SOS alert from {user.name}",
            body=payload.message or f"Emergency reported at {location}.",
            data={
                "sos_id": alert.id,
                "user_id": user.id,
                "latitude": payload.latitude,
                "longitude": payload.longitude,
            },
        )
    )
    db.commit()
    db.refresh(alert)

    logger.warning(
        "sos_triggered",
        extra={
            "sos_id": alert.id,
            "user_id": user.id,
            "org_id": user.org_id,
            "notified_count": len(notified),
            "latitude": payload.latitude,
            "longitude": payload.longitude,
        },
    )
    return alert


def _load_alert(db: Session, caller: User, alert_id: str) -> SosAlert:
    alert = db.scalar(select(SosAlert).where(SosAlert.id == alert_id, SosAlert.org_id == caller.org_id))
    if alert is None:
        raise NotFound("SOS alert not found.", code="SOS_NOT_FOUND")
    return alert


def acknowledge_sos(db: Session, caller: User, alert_id: str, *, now: datetime | None = None) -> SosAlert:
    alert = _load_alert(db, caller, alert_id)
    if alert.status != SosStatus.ACTIVE:
        raise Conflict("SOS_NOT_ACTIVE", f"SOS alert is already {alert.status.value}.")

    alert.status = SosStatus.ACKNOWLEDGED
    alert.acknowledged_by = caller.id
    alert.acknowledged_at = now or datetime.now(timezone.utc)
    db.commit()
    db.refresh(alert)
    logger.info("sos_acknowledged", extra={"sos_id": alert.id, "actor_id": caller.id})
    return alert


def resolve_sos(
    db: Session,
    caller: User,
    alert_id: str,
    *,
    notes: str | None = None,
    now: datetime | None = None,
) -> SosAlert:
    alert = _load_alert(db, caller, alert_id)
    if alert.status == SosStatus.RESOLVED:
        raise Conflict("SOS_ALREADY_RESOLVED", "SOS alert is already resolved.")

    alert.status = SosStatus.RESOLVED
    alert.resolved_by = caller.id
    alert.resolved_at = now or datetime.now(timezone.utc)
    alert.resolution_notes = notes
    db.commit()
    db.refresh(alert)
    logger.info("sos_resolved", extra={"sos_id": alert.id, "actor_id": caller.id})
    return alert


def list_sos(db: Session, caller: User, *, status: SosStatus | None = None) -> list[SosAlert]:
    stmt = (
        select(SosAlert)
        .where(SosAlert.org_id == caller.org_id)
        .options(selectinload(SosAlert.user))
        .order_by(SosAlert.created_at.desc())
    )
    if status is not None:
        stmt = stmt.where(SosAlert.status == status)
    return list(db.scalars(stmt).all())
