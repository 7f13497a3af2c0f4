from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date

from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.errors import Conflict, Forbidden, NotFound, ValidationError
from app.models import (
    MANAGEMENT_TIER,
    AttendanceRecord,
    FormField,
    FormResponse,
    FormSubmission,
    FormTemplate,
    User,
)
from app.schemas import FormFieldCreate, FormSubmitRequest, FormTemplateCreate
from app.services.clock import local_day, local_day_bounds_utc
from app.services.org_refs import require_activity

logger = logging.getLogger("app.forms")


def missing_required_keys(fields: Iterable[FormField], submitted_keys: Iterable[str]) -> list[str]:
    submitted = set(submitted_keys)
    return [field.field_key for field in fields if field.is_required and field.field_key not in submitted]


def _build_field(template_id: str, payload: FormFieldCreate) -> FormField:
    return FormField(
        template_id=template_id,
        label=payload.label,
        field_key=payload.field_key,
        field_type=payload.field_type,
        placeholder=payload.placeholder,
        help_text=payload.help_text,
        is_required=payload.is_required,
        sort_order=payload.sort_order,
        options=list(payload.options),
        validation=dict(payload.validation),
    )


def list_templates(db: Session, caller: User, *, activity_id: str | None = None) -> list[FormTemplate]:
    stmt = (
        select(FormTemplate)
        .where(
            FormTemplate.org_id == caller.org_id,
            FormTemplate.is_active.is_(True),
        )
        .options(selectinload(FormTemplate.fields))
        .order_by(FormTemplate.created_at.desc())
    )
    if activity_id:
        stmt = stmt.where(FormTemplate.activity_id == activity_id)
    return list(db.scalars(stmt).all())


def get_template(db: Session, caller: User, template_id: str) -> FormTemplate:
    template = db.scalar(
        select(FormTemplate)
        .where(FormTemplate.id == template_id, FormTemplate.org_id == caller.org_id)
        .options(selectinload(FormTemplate.fields))
    )
    if template is None:
        raise NotFound("Form template not found.", code="TEMPLATE_NOT_FOUND")
    return template


def create_template(db: Session, caller: User, payload: FormTemplateCreate) -> FormTemplate:
    require_activity(db, caller.org_id, payload.activity_id)

    keys = [field.field_key for field in payload.fields]
    duplicates = sorted({key for key in keys if keys.count(key) > 1})
    if duplicates:
        raise ValidationError(
            "DUPLICATE_FIELD_KEY",
            f"Duplicate field keys: {', '.join(duplicates)}",
            details={"field_keys": duplicates},
        )

    template = FormTemplate(
        org_id=caller.org_id,
        activity_id=payload.activity_id,
        name=payload.name,
        description=payload.description,
        requires_photo=payload.requires_photo,
        requires_gps=payload.requires_gps,
        is_active=True,
        created_by=caller.id,
    )
    db.add(template)
    db.flush()
    db.add_all(_build_field(template.id, field) for field in payload.fields)
    db.commit()
    db.refresh(template)
    return template


def add_field(db: Session, caller: User, template_id: str, payload: FormFieldCreate) -> FormField:
    template = get_template(db, caller, template_id)
    field = _build_field(template.id, payload)
    db.add(field)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("DUPLICATE_FIELD_KEY", f"Field key '{payload.field_key}' already exists.") from exc
    db.refresh(field)
    return field


def _today_attendance_id(db: Session, user: User) -> str | None:
    return db.scalar(
        select(AttendanceRecord.id).where(
            AttendanceRecord.user_id == user.id,
            AttendanceRecord.date == local_day(),
        )
    )


def submit_form(db: Session, user: User, payload: FormSubmitRequest) -> FormSubmission:
    template = get_template(db, user, payload.template_id)
    fields_by_key = {field.field_key: field for field in template.fields}

    missing = missing_required_keys(template.fields, (item.field_key for item in payload.responses))
    if missing:
        raise ValidationError(
            "MISSING_REQUIRED_FIELDS",
            f"Missing required fields: {', '.join(missing)}",
            details={"missing": missing},
        )
    unknown = [item.field_key for item in payload.responses if item.field_key not in fields_by_key]
    if unknown:
        raise ValidationError(
            "UNKNOWN_FIELDS",
            f"Unknown fields: {', '.join(unknown)}",
            details={"unknown": unknown},
        )
    activity_id = require_activity(db, user.org_id, payload.activity_id) or template.activity_id

    submission = FormSubmission(
        org_id=user.org_id,
        user_id=user.id,
        template_id=template.id,
        activity_id=activity_id,
        attendance_id=_today_attendance_id(db, user),
        latitude=payload.latitude,
        longitude=payload.longitude,
        address=payload.address,
        is_converted=payload.is_converted,
        outlet_name=payload.outlet_name,
        consumer_age=payload.consumer_age,
        consumer_gender=payload.consumer_gender,
    )
    db.add(submission)
    db.flush()
    db.add_all(
        FormResponse(
            submission_id=submission.id,
            field_id=fields_by_key[item.field_key].id,
            field_key=item.field_key,
            value_text=item.value_text,
            value_number=item.value_number,
            value_bool=item.value_bool,
            value_json=item.value_json,
            photo_url=item.photo_url,
        )
        for item in payload.responses
    )
    db.commit()
    db.refresh(submission)
    logger.info(
        "form_submitted",
        extra={
            "submission_id": submission.id,
            "template_id": template.id,
            "user_id": user.id,
            "is_converted": submission.is_converted,
        },
    )
    return submission


def _submissions_base() -> Select[tuple[FormSubmission]]:
    return (
        select(FormSubmission)
        .options(
            selectinload(FormSubmission.responses),
            selectinload(FormSubmission.user),
        )
        .order_by(FormSubmission.submitted_at.desc())
    )


def my_submissions_query(user: User, *, day: date | None = None) -> Select[tuple[FormSubmission]]:
    stmt = _submissions_base().where(FormSubmission.user_id == user.id)
    if day is not None:
        start, end = local_day_bounds_utc(day)
        stmt = stmt.where(FormSubmission.submitted_at >= start, FormSubmission.submitted_at < end)
    return stmt


def get_submission(db: Session, caller: User, submission_id: str) -> FormSubmission:
    submission = db.scalar(
        _submissions_base().where(
            FormSubmission.id == submission_id,
            FormSubmission.org_id == caller.org_id,
        )
    )
    if submission is None:
        raise NotFound("Submission not found.", code="SUBMISSION_NOT_FOUND")
    if submission.user_id != caller.id and not caller.role.at_least(MANAGEMENT_TIER):
        raise Forbidden("You can only view your own submissions.")
    return submission


def admin_submissions_query(
    caller: User,
    *,
    day: date | None = None,
    activity_id: str | None = None,
    user_id: str | None = None,
) -> Select[tuple[FormSubmission]]:
    stmt = _submissions_base().where(FormSubmission.org_id == caller.org_id)
    if day is not None:
        start, end = local_day_bounds_utc(day)
        stmt = stmt.where(FormSubmission.submitted_at >= start, FormSubmission.submitted_at < end)
    if activity_id:
        stmt = stmt.where(FormSubmission.activity_id == activity_id)
    if user_id:
        stmt = stmt.where(FormSubmission.user_id == user_id)
    return stmt
