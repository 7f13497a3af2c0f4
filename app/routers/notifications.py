from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db import get_db
from app.models import User
from app.pagination import PageParams, page_params, paginate
from app.schemas import (
    FcmTokenRequest,
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationRead,
    OkResponse,
)
from app.security import get_current_user
from app.services.notifications import count_unread, inbox_query, mark_all_read, mark_read, register_push_token

router = APIRouter(tags=["notifications"])


@router.get("/api/v1/notifications", response_model=NotificationListResponse)
def inbox(
    unread: bool = Query(default=False),
    params: PageParams = Depends(page_params),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationListResponse:
    rows, meta = paginate(db, inbox_query(user, unread_only=unread), params)
    return NotificationListResponse(
        items=[NotificationRead.model_validate(row) for row in rows],
        pagination=meta,
        unread_count=count_unread(db, user),
    )


@router.patch("/api/v1/notifications/read-all", response_model=MarkAllReadResponse)
def read_all(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MarkAllReadResponse:
    return MarkAllReadResponse(updated=mark_all_read(db, user))


@router.patch("/api/v1/notifications/fcm-token", response_model=OkResponse)
def fcm_token(
    payload: FcmTokenRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> OkResponse:
    register_push_token(db, user, fcm_token=payload.fcm_token, device_id=payload.device_id)
    return OkResponse()


@router.patch("/api/v1/notifications/{notification_id}/read", response_model=NotificationRead)
def read_one(
    notification_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationRead:
    return NotificationRead.model_validate(mark_read(db, user, notification_id))
