from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import Conflict, NotFound
from app.models import LearningMaterial, LearningProgress, User
from app.schemas import LearningMaterialCreate, LearningMaterialRead, LearningProgressRead, LearningProgressUpdate


def list_materials(db: Session, caller: User) -> list[LearningMaterialRead]:
    materials = db.scalars(
        select(LearningMaterial)
        .where(
            LearningMaterial.org_id == caller.org_id,
            LearningMaterial.is_active.is_(True),
        )
        .order_by(LearningMaterial.is_mandatory.desc(), LearningMaterial.published_at.desc())
    ).all()
    visible = [item for item in materials if caller.role.value in (item.target_roles or [])]
    if not visible:
        return []

    progress_rows = db.scalars(
        select(LearningProgress).where(
            LearningProgress.user_id == caller.id,
            LearningProgress.material_id.in_([item.id for item in visible]),
        )
    ).all()
    progress_by_material = {row.material_id: row for row in progress_rows}

    rows: list[LearningMaterialRead] = []
    for material in visible:
        row = LearningMaterialRead.model_validate(material)
        progress = progress_by_material.get(material.id)
        if progress is not None:
            row.my_progress = LearningProgressRead.model_validate(progress)
        rows.append(row)
    return rows


def create_material(db: Session, caller: User, payload: LearningMaterialCreate) -> LearningMaterial:
    material = LearningMaterial(
        org_id=caller.org_id,
        title=payload.title,
        description=payload.description,
        category=payload.category,
        type=payload.type,
        file_url=payload.file_url,
        thumbnail_url=payload.thumbnail_url,
        duration_min=payload.duration_min,
        page_count=payload.page_count,
        target_roles=[role.value for role in payload.target_roles],
        is_mandatory=payload.is_mandatory,
        is_active=True,
        created_by=caller.id,
    )
    db.add(material)
    db.commit()
    db.refresh(material)
    return material


def update_progress(
    db: Session,
    caller: User,
    material_id: str,
    payload: LearningProgressUpdate,
    *,
    now: datetime | None = None,
) -> LearningProgress:
    material = db.scalar(
        select(LearningMaterial.id).where(
            LearningMaterial.id == material_id,
            LearningMaterial.org_id == caller.org_id,
        )
    )
    if material is None:
        raise NotFound("Material not found.", code="MATERIAL_NOT_FOUND")

    now_utc = now or datetime.now(timezone.utc)
    completed = payload.is_completed if payload.is_completed is not None else payload.progress_pct >= 100

    progress = db.scalar(
        select(LearningProgress).where(
            LearningProgress.material_id == material_id,
            LearningProgress.user_id == caller.id,
        )
    )
    if progress is None:
        progress = LearningProgress(
            material_id=material_id,
            user_id=caller.id,
            org_id=caller.org_id,
            is_completed=False,
        )
        db.add(progress)

    progress.progress_pct = payload.progress_pct
    progress.last_accessed = now_utc
    if completed and not progress.is_completed:
        progress.completed_at = now_utc
    progress.is_completed = completed or bool(progress.is_completed)

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("PROGRESS_CONFLICT", "Progress was updated concurrently; retry the request.") from exc
    db.refresh(progress)
    return progress
