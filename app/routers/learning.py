from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.audit import audit_user_action
from app.db import get_db
from app.models import ADMIN_TIER, User
from app.schemas import LearningMaterialCreate, LearningMaterialRead, LearningProgressRead, LearningProgressUpdate
from app.security import get_current_user, require_role
from app.services.learning import create_material, list_materials, update_progress

router = APIRouter(tags=["learning"])


@router.get("/api/v1/learning", response_model=list[LearningMaterialRead])
def materials(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[LearningMaterialRead]:
    return list_materials(db, user)


@router.post("/api/v1/learning", response_model=LearningMaterialRead, status_code=201)
def create(
    payload: LearningMaterialCreate,
    request: Request,
    caller: User = Depends(require_role(ADMIN_TIER)),
    db: Session = Depends(get_db),
) -> LearningMaterialRead:
    material = create_material(db, caller, payload)
    audit_user_action(
        db,
        request,
        caller,
        action="LEARNING_MATERIAL_CREATED",
        entity_type="learning_material",
        entity_id=material.id,
    )
    return LearningMaterialRead.model_validate(material)


@router.patch("/api/v1/learning/{material_id}/progress", response_model=LearningProgressRead)
def progress(
    material_id: str,
    payload: LearningProgressUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LearningProgressRead:
    return LearningProgressRead.model_validate(update_progress(db, user, material_id, payload))
