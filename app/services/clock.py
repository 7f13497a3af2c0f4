from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

from app.settings import get_attendance_timezone


def normalize_ts(ts_utc: datetime | None) -> datetime:
    if ts_utc is None:
        return datetime.now(timezone.utc)
    if ts_utc.tzinfo is None:
        return ts_utc.replace(tzinfo=timezone.utc)
    return ts_utc.astimezone(timezone.utc)


def local_day(ts_utc: datetime | None = None) -> date:
    """Calendar date of an instant in the configured attendance time zone."""
    return normalize_ts(ts_utc).astimezone(get_attendance_timezone()).date()


def local_day_bounds_utc(day: date) -> tuple[datetime, datetime]:
    tz = get_attendance_timezone()
    local_start = datetime.combine(day, time.min, tzinfo=tz)
    local_end = local_start + timedelta(days=1)
    return local_start.astimezone(timezone.utc), local_end.astimezone(timezone.utc)
