from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db import get_db
from app.models import MANAGEMENT_TIER, User
from app.schemas import ActivityFeedItem, AnalyticsSummary, HourlyBucket
from app.security import require_role
from app.services.analytics import DEFAULT_FEED_LIMIT, MAX_FEED_LIMIT, get_activity_feed, get_hourly, get_summary

router = APIRouter(tags=["analytics"])


@router.get("/api/v1/analytics/summary", response_model=AnalyticsSummary)
def summary(
    day: date | None = Query(default=None, alias="date"),
    caller: User = Depends(require_role(MANAGEMENT_TIER)),
    db: Session = Depends(get_db),
) -> AnalyticsSummary:
    return get_summary(db, caller, day=day)


@router.get("/api/v1/analytics/activity-feed", response_model=list[ActivityFeedItem])
def activity_feed(
    limit: int = Query(default=DEFAULT_FEED_LIMIT, ge=1, le=MAX_FEED_LIMIT),
    caller: User = Depends(require_role(MANAGEMENT_TIER)),
    db: Session = Depends(get_db),
) -> list[ActivityFeedItem]:
    return get_activity_feed(db, caller, limit=limit)


@router.get("/api/v1/analytics/hourly", response_model=list[HourlyBucket])
def hourly(
    day: date | None = Query(default=None, alias="date"),
    caller: User = Depends(require_role(MANAGEMENT_TIER)),
    db: Session = Depends(get_db),
) -> list[HourlyBucket]:
    return get_hourly(db, caller, day=day)
