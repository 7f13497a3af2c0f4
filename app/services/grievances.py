from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone

from sqlalchemy import Select, select
from sqlalchemy.orm import Session, selectinload

from app.errors import NotFound
from app.models import Grievance, GrievanceStatus, User
from app.schemas import GrievanceCreate, GrievanceRead, GrievanceUpdate
from app.services.visibility import redact_grievances

logger = logging.getLogger("app.grievances")

REFERENCE_PREFIX = "GRV"
_REFERENCE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_reference_no(now: datetime | None = None) -> str:
    stamp = (now or datetime.now(timezone.utc)).strftime("%y%m%d")
    suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(6))
    return f"{REFERENCE_PREFIX}-{stamp}-{suffix}"


def submit_grievance(db: Session, user: User, payload: GrievanceCreate) -> Grievance:
    grievance = Grievance(
        org_id=user.org_id,
        submitted_by=user.id,
        reference_no=generate_reference_no(),
        category=payload.category,
        against_role=payload.against_role,
        incident_date=payload.incident_date,
        description=payload.description,
        evidence_urls=list(payload.evidence_urls),
        is_anonymous=payload.is_anonymous,
        status=GrievanceStatus.SUBMITTED,
    )
    db.add(grievance)
    db.commit()
    db.refresh(grievance)
    logger.info(
        "grievance_submitted",
        extra={
            "grievance_id": grievance.id,
            "reference_no": grievance.reference_no,
            "is_anonymous": grievance.is_anonymous,
        },
    )
    return grievance


def list_my_grievances(db: Session, user: User) -> list[Grievance]:
    return list(
        db.scalars(
            select(Grievance)
            .where(Grievance.submitted_by == user.id)
            .order_by(Grievance.created_at.desc())
        ).all()
    )


def admin_listing_query(caller: User, *, status: GrievanceStatus | None = None) -> Select[tuple[Grievance]]:
    stmt = (
        select(Grievance)
        .where(Grievance.org_id == caller.org_id)
        .options(selectinload(Grievance.submitter))
        .order_by(Grievance.created_at.desc())
    )
    if status is not None:
        stmt = stmt.where(Grievance.status == status)
    return stmt


def to_admin_view(grievances: list[Grievance]) -> list[GrievanceRead]:
    return redact_grievances([GrievanceRead.model_validate(item) for item in grievances])


def update_grievance_status(
    db: Session,
    caller: User,
    grievance_id: str,
    payload: GrievanceUpdate,
    *,
    now: datetime | None = None,
) -> Grievance:
    grievance = db.scalar(
        select(Grievance)
        .where(Grievance.id == grievance_id, Grievance.org_id == caller.org_id)
        .options(selectinload(Grievance.submitter))
    )
    if grievance is None:
        raise NotFound("Grievance not found.", code="GRIEVANCE_NOT_FOUND")

    grievance.status = GrievanceStatus(payload.status)
    if payload.resolution is not None:
        grievance.resolution = payload.resolution
    grievance.reviewed_by = caller.id
    grievance.reviewed_at = now or datetime.now(timezone.utc)
    db.commit()
    db.refresh(grievance)
    return grievance
