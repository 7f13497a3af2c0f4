from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import Conflict, NotFound, ValidationError
from app.models import BroadcastAnswer, BroadcastQuestion, BroadcastStatus, User
from app.schemas import (
    BroadcastAnswerResponse,
    BroadcastCreate,
    BroadcastRead,
    BroadcastResults,
    BroadcastTally,
)
from app.services.clock import normalize_ts
from app.services.visibility import mask_correct_option

logger = logging.getLogger("app.broadcast")


def _targets_caller(question: BroadcastQuestion, caller: User) -> bool:
    if caller.role.value not in (question.target_roles or []):
        return False
    zone_ids = question.target_zone_ids or []
    return not zone_ids or caller.zone_id in zone_ids


def _load_question(db: Session, caller: User, question_id: str) -> BroadcastQuestion:
    question = db.scalar(
        select(BroadcastQuestion).where(
            BroadcastQuestion.id == question_id,
            BroadcastQuestion.org_id == caller.org_id,
        )
    )
    if question is None:
        raise NotFound("Question not found.", code="QUESTION_NOT_FOUND")
    return question


def list_active_questions(db: Session, caller: User) -> list[BroadcastRead]:
    questions = db.scalars(
        select(BroadcastQuestion)
        .where(
            BroadcastQuestion.org_id == caller.org_id,
            BroadcastQuestion.status == BroadcastStatus.ACTIVE,
        )
        .order_by(BroadcastQuestion.is_urgent.desc(), BroadcastQuestion.created_at.desc())
    ).all()
    visible = [question for question in questions if _targets_caller(question, caller)]
    if not visible:
        return []

    answers = db.scalars(
        select(BroadcastAnswer).where(
            BroadcastAnswer.user_id == caller.id,
            BroadcastAnswer.question_id.in_([question.id for question in visible]),
        )
    ).all()
    my_answers = {answer.question_id: answer.selected for answer in answers}

    return [
        to_read(question, caller, my_answer=my_answers.get(question.id), answered=question.id in my_answers)
        for question in visible
    ]


def create_question(db: Session, caller: User, payload: BroadcastCreate) -> BroadcastQuestion:
    question = BroadcastQuestion(
        org_id=caller.org_id,
        question=payload.question,
        options=[option.model_dump() for option in payload.options],
        correct_option=payload.correct_option,
        is_urgent=payload.is_urgent,
        deadline_at=payload.deadline_at,
        status=BroadcastStatus.ACTIVE,
        target_roles=[role.value for role in payload.target_roles],
        target_zone_ids=list(payload.target_zone_ids),
        created_by=caller.id,
    )
    db.add(question)
    db.commit()
    db.refresh(question)
    logger.info("broadcast_question_created", extra={"question_id": question.id, "actor_id": caller.id})
    return question


def submit_answer(
    db: Session,
    caller: User,
    question_id: str,
    selected: int,
    *,
    now: datetime | None = None,
) -> BroadcastAnswerResponse:
    question = _load_question(db, caller, question_id)
    if question.status != BroadcastStatus.ACTIVE:
        raise ValidationError("QUESTION_CLOSED", "Question is no longer active.")
    if question.deadline_at is not None and normalize_ts(question.deadline_at) < normalize_ts(now):
        raise ValidationError("DEADLINE_PASSED", "Deadline has passed.")

    existing = db.scalar(
        select(BroadcastAnswer.id).where(
            BroadcastAnswer.question_id == question.id,
            BroadcastAnswer.user_id == caller.id,
        )
    )
    if existing is not None:
        raise Conflict("ALREADY_ANSWERED", "Already answered this question.")

    if selected >= len(question.options or []):
        raise ValidationError("INVALID_OPTION", "Invalid option index.")

    is_correct = selected == question.correct_option if question.correct_option is not None else None
    answer = BroadcastAnswer(
        question_id=question.id,
        user_id=caller.id,
        org_id=caller.org_id,
        selected=selected,
        is_correct=is_correct,
        answered_at=normalize_ts(now),
    )
    db.add(answer)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("ALREADY_ANSWERED", "Already answered this question.") from exc
    db.refresh(answer)

    return BroadcastAnswerResponse(
        id=answer.id,
        question_id=question.id,
        selected=answer.selected,
        is_correct=answer.is_correct,
        correct_option=question.correct_option,
        answered_at=answer.answered_at,
    )


def tally_answers(options: list[dict], selections: list[int]) -> list[BroadcastTally]:
    return [
        BroadcastTally(
            index=index,
            label=str(option.get("label", "")),
            value=str(option.get("value", "")),
            count=sum(1 for selected in selections if selected == index),
        )
        for index, option in enumerate(options)
    ]


def get_results(db: Session, caller: User, question_id: str) -> BroadcastResults:
    question = _load_question(db, caller, question_id)
    selections = list(
        db.scalars(select(BroadcastAnswer.selected).where(BroadcastAnswer.question_id == question.id)).all()
    )
    return BroadcastResults(
        id=question.id,
        question=question.question,
        status=question.status,
        correct_option=question.correct_option,
        total_answers=len(selections),
        tally=tally_answers(question.options or [], selections),
    )


def close_question(db: Session, caller: User, question_id: str) -> BroadcastQuestion:
    question = _load_question(db, caller, question_id)
    question.status = BroadcastStatus.CLOSED
    db.commit()
    db.refresh(question)
    logger.info("broadcast_question_closed", extra={"question_id": question.id, "actor_id": caller.id})
    return question


def to_read(
    question: BroadcastQuestion,
    caller: User,
    *,
    my_answer: int | None = None,
    answered: bool = False,
) -> BroadcastRead:
    return BroadcastRead(
        id=question.id,
        question=question.question,
        options=question.options,
        correct_option=mask_correct_option(caller.role, question.correct_option),
        is_urgent=question.is_urgent,
        deadline_at=question.deadline_at,
        status=question.status,
        target_roles=question.target_roles,
        created_at=question.created_at,
        already_answered=answered,
        my_answer=my_answer,
    )
