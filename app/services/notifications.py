from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Select, func, select, update
from sqlalchemy.orm import Session

from app.errors import NotFound
from app.models import Notification, User


def build_notifications(
    *,
    org_id: str,
    user_ids: Iterable[str],
    type: str,
    title: str,
    body: str | None = None,
    data: dict[str, Any] | None = None,
) -> list[Notification]:
    """One inbox row per recipient; the caller adds and commits them."""
    return [
        Notification(
            org_id=org_id,
            user_id=user_id,
            type=type,
            title=title,
            body=body,
            data=dict(data or {}),
            is_read=False,
        )
        for user_id in user_ids
    ]


def inbox_query(user: User, *, unread_only: bool = False) -> Select[tuple[Notification]]:
    stmt = (
        select(Notification)
        .where(Notification.user_id == user.id)
        .order_by(Notification.created_at.desc())
    )
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    return stmt


def count_unread(db: Session, user: User) -> int:
    total = db.scalar(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user.id, Notification.is_read.is_(False))
    )
    return int(total or 0)


def mark_read(db: Session, user: User, notification_id: str) -> Notification:
    notification = db.scalar(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user.id,
        )
    )
    if notification is None:
        raise NotFound("Notification not found.", code="NOTIFICATION_NOT_FOUND")
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(notification)
    return notification


def mark_all_read(db: Session, user: User) -> int:
    result = db.execute(
        update(Notification)
        .where(Notification.user_id == user.id, Notification.is_read.is_(False))
        .values(is_read=True, read_at=datetime.now(timezone.utc))
    )
    db.commit()
    return int(result.rowcount or 0)


def register_push_token(db: Session, user: User, *, fcm_token: str, device_id: str | None = None) -> User:
    user.fcm_token = fcm_token
    if device_id:
        user.device_id = device_id
    db.commit()
    db.refresh(user)
    return user
