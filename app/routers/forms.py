from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.audit import audit_user_action
from app.db import get_db
from app.models import ADMIN_TIER, MANAGEMENT_TIER, User
from app.pagination import PageParams, page_params, paginate
from app.schemas import (
    FormFieldCreate,
    FormFieldRead,
    FormSubmissionListResponse,
    FormSubmissionRead,
    FormSubmitRequest,
    FormTemplateCreate,
    FormTemplateRead,
)
from app.security import get_current_user, require_role
from app.services.forms import (
    add_field,
    admin_submissions_query,
    create_template,
    get_submission,
    get_template,
    list_templates,
    my_submissions_query,
    submit_form,
)

router = APIRouter(tags=["forms"])


@router.get("/api/v1/forms/templates", response_model=list[FormTemplateRead])
def templates(
    activity_id: str | None = Query(default=None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[FormTemplateRead]:
    return [FormTemplateRead.model_validate(item) for item in list_templates(db, user, activity_id=activity_id)]


@router.get("/api/v1/forms/templates/{template_id}", response_model=FormTemplateRead)
def template_detail(
    template_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> FormTemplateRead:
    return FormTemplateRead.model_validate(get_template(db, user, template_id))


@router.post("/api/v1/forms/templates", response_model=FormTemplateRead, status_code=201)
def create(
    payload: FormTemplateCreate,
    request: Request,
    caller: User = Depends(require_role(ADMIN_TIER)),
    db: Session = Depends(get_db),
) -> FormTemplateRead:
    template = create_template(db, caller, payload)
    audit_user_action(
        db,
        request,
        caller,
        action="FORM_TEMPLATE_CREATED",
        entity_type="form_template",
        entity_id=template.id,
        details={"field_count": len(payload.fields)},
    )
    return FormTemplateRead.model_validate(template)


@router.post("/api/v1/forms/templates/{template_id}/fields", response_model=FormFieldRead, status_code=201)
def create_field(
    template_id: str,
    payload: FormFieldCreate,
    caller: User = Depends(require_role(ADMIN_TIER)),
    db: Session = Depends(get_db),
) -> FormFieldRead:
    return FormFieldRead.model_validate(add_field(db, caller, template_id, payload))


@router.post("/api/v1/forms/submit", response_model=FormSubmissionRead, status_code=201)
def submit(
    payload: FormSubmitRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> FormSubmissionRead:
    return FormSubmissionRead.model_validate(submit_form(db, user, payload))


@router.get("/api/v1/forms/submissions", response_model=FormSubmissionListResponse)
def my_submissions(
    day: date | None = Query(default=None, alias="date"),
    params: PageParams = Depends(page_params),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> FormSubmissionListResponse:
    rows, meta = paginate(db, my_submissions_query(user, day=day), params)
    return FormSubmissionListResponse(
        items=[FormSubmissionRead.model_validate(row) for row in rows],
        pagination=meta,
    )


@router.get("/api/v1/forms/submissions/{submission_id}", response_model=FormSubmissionRead)
def submission_detail(
    submission_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> FormSubmissionRead:
    return FormSubmissionRead.model_validate(get_submission(db, user, submission_id))


@router.get("/api/v1/admin/submissions", response_model=FormSubmissionListResponse)
def all_submissions(
    day: date | None = Query(default=None, alias="date"),
    activity_id: str | None = Query(default=None),
    user_id: str | None = Query(default=None),
    params: PageParams = Depends(page_params),
    caller: User = Depends(require_role(MANAGEMENT_TIER)),
    db: Session = Depends(get_db),
) -> FormSubmissionListResponse:
    stmt = admin_submissions_query(caller, day=day, activity_id=activity_id, user_id=user_id)
    rows, meta = paginate(db, stmt, params)
    return FormSubmissionListResponse(
        items=[FormSubmissionRead.model_validate(row) for row in rows],
        pagination=meta,
    )
