from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.audit import audit_user_action
from app.db import get_db
from app.models import ADMIN_TIER, User
from app.schemas import (
    BroadcastAnswerRequest,
    BroadcastAnswerResponse,
    BroadcastCreate,
    BroadcastRead,
    BroadcastResults,
)
from app.security import get_current_user, require_role
from app.services.broadcast import (
    close_question,
    create_question,
    get_results,
    list_active_questions,
    submit_answer,
    to_read,
)

router = APIRouter(tags=["broadcast"])


@router.get("/api/v1/broadcast", response_model=list[BroadcastRead])
def list_questions(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[BroadcastRead]:
    return list_active_questions(db, user)


@router.post("/api/v1/broadcast", response_model=BroadcastRead, status_code=201)
def create(
    payload: BroadcastCreate,
    request: Request,
    caller: User = Depends(require_role(ADMIN_TIER)),
    db: Session = Depends(get_db),
) -> BroadcastRead:
    question = create_question(db, caller, payload)
    audit_user_action(
        db,
        request,
        caller,
        action="BROADCAST_CREATED",
        entity_type="broadcast_question",
        entity_id=question.id,
        details={"target_roles": question.target_roles, "is_urgent": question.is_urgent},
    )
    return to_read(question, caller)


@router.post("/api/v1/broadcast/{question_id}/answer", response_model=BroadcastAnswerResponse, status_code=201)
def answer(
    question_id: str,
    payload: BroadcastAnswerRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BroadcastAnswerResponse:
    return submit_answer(db, user, question_id, payload.selected)


@router.get("/api/v1/broadcast/{question_id}/results", response_model=BroadcastResults)
def results(
    question_id: str,
    caller: User = Depends(require_role(ADMIN_TIER)),
    db: Session = Depends(get_db),
) -> BroadcastResults:
    return get_results(db, caller, question_id)


@router.patch("/api/v1/broadcast/{question_id}/close", response_model=BroadcastRead)
def close(
    question_id: str,
    request: Request,
    caller: User = Depends(require_role(ADMIN_TIER)),
    db: Session = Depends(get_db),
) -> BroadcastRead:
    question = close_question(db, caller, question_id)
    audit_user_action(
        db,
        request,
        caller,
        action="BROADCAST_CLOSED",
        entity_type="broadcast_question",
        entity_id=question.id,
    )
    return to_read(question, caller)
