from __future__ import annotations

from datetime import date

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from app.models import (
    AttendanceRecord,
    AttendanceStatus,
    FormSubmission,
    Grievance,
    GrievanceStatus,
    Role,
    SosAlert,
    SosStatus,
    User,
)
from app.schemas import ActivityFeedItem, AnalyticsSummary, HourlyBucket
from app.services.clock import local_day, local_day_bounds_utc
from app.settings import get_attendance_timezone

DEFAULT_FEED_LIMIT = 20
MAX_FEED_LIMIT = 50
BUSINESS_HOURS = range(8, 21)


def _count(db: Session, stmt) -> int:
    return int(db.scalar(stmt) or 0)


def conversion_rate(engagements: int, conversions: int) -> float:
    if engagements <= 0:
        return 0.0
    return round(conversions * 100.0 / engagements, 1)


def get_summary(db: Session, caller: User, *, day: date | None = None) -> AnalyticsSummary:
    target_day = day or local_day()
    start, end = local_day_bounds_utc(target_day)
    org_id = caller.org_id

    checked_in = _count(
        db,
        select(func.count())
        .select_from(AttendanceRecord)
        .where(AttendanceRecord.org_id == org_id, AttendanceRecord.date == target_day),
    )
    active_now = _count(
        db,
        select(func.count())
        .select_from(AttendanceRecord)
        .where(
            AttendanceRecord.org_id == org_id,
            AttendanceRecord.date == target_day,
            AttendanceRecord.status.in_((AttendanceStatus.CHECKED_IN, AttendanceStatus.ON_BREAK)),
        ),
    )
    engagements = _count(
        db,
        select(func.count())
        .select_from(FormSubmission)
        .where(
            FormSubmission.org_id == org_id,
            FormSubmission.submitted_at >= start,
            FormSubmission.submitted_at < end,
        ),
    )
    conversions = _count(
        db,
        select(func.count())
        .select_from(FormSubmission)
        .where(
            FormSubmission.org_id == org_id,
            FormSubmission.submitted_at >= start,
            FormSubmission.submitted_at < end,
            FormSubmission.is_converted.is_(True),
        ),
    )
    total_executives = _count(
        db,
        select(func.count())
        .select_from(User)
        .where(User.org_id == org_id, User.role == Role.EXECUTIVE, User.is_active.is_(True)),
    )
    active_sos = _count(
        db,
        select(func.count())
        .select_from(SosAlert)
        .where(SosAlert.org_id == org_id, SosAlert.status == SosStatus.ACTIVE),
    )
    open_grievances = _count(
        db,
        select(func.count())
        .select_from(Grievance)
        .where(Grievance.org_id == org_id, Grievance.status == GrievanceStatus.SUBMITTED),
    )

    return AnalyticsSummary(
        date=target_day,
        checked_in=checked_in,
        active_now=active_now,
        engagements=engagements,
        conversions=conversions,
        conversion_rate=conversion_rate(engagements, conversions),
        total_executives=total_executives,
        active_sos_alerts=active_sos,
        open_grievances=open_grievances,
    )


def get_activity_feed(db: Session, caller: User, *, limit: int = DEFAULT_FEED_LIMIT) -> list[ActivityFeedItem]:
    capped = max(1, min(limit, MAX_FEED_LIMIT))
    org_id = caller.org_id

    submissions = db.scalars(
        select(FormSubmission)
        .where(FormSubmission.org_id == org_id)
        .options(selectinload(FormSubmission.user))
        .order_by(FormSubmission.submitted_at.desc())
        .limit(capped)
    ).all()
    checkins = db.scalars(
        select(AttendanceRecord)
        .where(AttendanceRecord.org_id == org_id)
        .options(selectinload(AttendanceRecord.user), selectinload(AttendanceRecord.zone))
        .order_by(AttendanceRecord.checkin_at.desc())
        .limit(capped)
    ).all()
    alerts = db.scalars(
        select(SosAlert)
        .where(SosAlert.org_id == org_id)
        .options(selectinload(SosAlert.user))
        .order_by(SosAlert.created_at.desc())
        .limit(capped)
    ).all()

    feed: list[ActivityFeedItem] = []
    for submission in submissions:
        name = submission.user.name if submission.user is not None else "Someone"
        feed.append(
            ActivityFeedItem(
                id=submission.id,
                type="form_submission",
                time=submission.submitted_at,
                description=f"{name} submitted a form" + (" (converted)" if submission.is_converted else ""),
                meta={"outlet": submission.outlet_name, "activity_id": submission.activity_id},
            )
        )
    for record in checkins:
        name = record.user.name if record.user is not None else "Someone"
        zone_name = record.zone.name if record.zone is not None else "Unknown zone"
        feed.append(
            ActivityFeedItem(
                id=record.id,
                type="check_in",
                time=record.checkin_at,
                description=f"{name} checked in at {zone_name}",
                meta={"distance_m": record.checkin_distance_m},
            )
        )
    for alert in alerts:
        name = alert.user.name if alert.user is not None else "Someone"
        feed.append(
            ActivityFeedItem(
                id=alert.id,
                type="sos",
                time=alert.created_at,
                description=f"{name} raised an SOS alert",
                meta={"status": alert.status.value},
            )
        )

    feed.sort(key=lambda item: item.time, reverse=True)
    return feed[:capped]


def bucket_by_hour(rows: list[tuple]) -> list[HourlyBucket]:
    """Group (submitted_at, is_converted) rows into local-time hourly buckets.

    Hours outside 08:00-20:00 are only returned when they saw activity.
    """
    tz = get_attendance_timezone()
    engagements = [0] * 24
    conversions = [0] * 24
    for submitted_at, is_converted in rows:
        hour = submitted_at.astimezone(tz).hour
        engagements[hour] += 1
        if is_converted:
            conversions[hour] += 1

    return [
        HourlyBucket(
            hour=hour,
            label=f"{hour:02d}:00",
            engagements=engagements[hour],
            conversions=conversions[hour],
        )
        for hour in range(24)
        if engagements[hour] > 0 or hour in BUSINESS_HOURS
    ]


def get_hourly(db: Session, caller: User, *, day: date | None = None) -> list[HourlyBucket]:
    start, end = local_day_bounds_utc(day or local_day())
    rows = db.execute(
        select(FormSubmission.submitted_at, FormSubmission.is_converted).where(
            FormSubmission.org_id == caller.org_id,
            FormSubmission.submitted_at >= start,
            FormSubmission.submitted_at < end,
        )
    ).all()
    return bucket_by_hour([tuple(row) for row in rows])
