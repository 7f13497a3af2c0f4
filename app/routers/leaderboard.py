from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db import get_db
from app.models import LeaderboardPeriod, User
from app.schemas import LeaderboardMeResponse, LeaderboardResponse
from app.security import get_current_user
from app.services.leaderboard import DEFAULT_LEADERBOARD_LIMIT, get_leaderboard, get_my_score

router = APIRouter(tags=["leaderboard"])


@router.get("/api/v1/leaderboard", response_model=LeaderboardResponse)
def leaderboard(
    period: LeaderboardPeriod = Query(default=LeaderboardPeriod.WEEKLY),
    zone_id: str | None = Query(default=None),
    limit: int = Query(default=DEFAULT_LEADERBOARD_LIMIT, ge=1),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LeaderboardResponse:
    return get_leaderboard(db, user, period=period, zone_id=zone_id, limit=limit)


@router.get("/api/v1/leaderboard/me", response_model=LeaderboardMeResponse)
def my_score(
    period: LeaderboardPeriod = Query(default=LeaderboardPeriod.WEEKLY),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LeaderboardMeResponse:
    return get_my_score(db, user, period=period)
