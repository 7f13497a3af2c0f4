from __future__ import annotations

from datetime import date, datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from app.models import LeaderboardPeriod, LeaderboardScore, User
from app.schemas import LeaderboardEntry, LeaderboardMeResponse, LeaderboardResponse
from app.services.clock import local_day

# Bump whenever resolve_period_start changes how period keys are derived.
PERIOD_START_RULE_VERSION = 1

DEFAULT_LEADERBOARD_LIMIT = 20
MAX_LEADERBOARD_LIMIT = 50


def resolve_period_start(period: LeaderboardPeriod, reference: date) -> date:
    if period == LeaderboardPeriod.DAILY:
        return reference
    if period == LeaderboardPeriod.WEEKLY:
        # date.weekday(): Monday == 0, Sunday == 6.
        return reference - timedelta(days=reference.weekday())
    return reference.replace(day=1)


def period_start_for_instant(period: LeaderboardPeriod, instant: datetime | None = None) -> date:
    return resolve_period_start(period, local_day(instant))


def _to_entry(rank: int, score: LeaderboardScore, caller: User) -> LeaderboardEntry:
    user = score.user
    return LeaderboardEntry(
        rank=rank,
        user_id=score.user_id,
        name=user.name if user is not None else None,
        avatar_url=user.avatar_url if user is not None else None,
        zone_id=score.zone_id,
        overall_score=score.overall_score,
        engagements=score.engagements,
        conversions=score.conversions,
        attendance_days=score.attendance_days,
        is_me=score.user_id == caller.id,
    )


def get_leaderboard(
    db: Session,
    caller: User,
    *,
    period: LeaderboardPeriod = LeaderboardPeriod.WEEKLY,
    zone_id: str | None = None,
    limit: int = DEFAULT_LEADERBOARD_LIMIT,
    now: datetime | None = None,
) -> LeaderboardResponse:
    period_start = period_start_for_instant(period, now)
    capped_limit = max(1, min(limit, MAX_LEADERBOARD_LIMIT))

    stmt = (
        select(LeaderboardScore)
        .where(
            LeaderboardScore.org_id == caller.org_id,
            LeaderboardScore.period == period,
            LeaderboardScore.period_start == period_start,
        )
        .options(selectinload(LeaderboardScore.user))
        .order_by(LeaderboardScore.overall_score.desc())
        .limit(capped_limit)
    )
    if zone_id:
        stmt = stmt.where(LeaderboardScore.zone_id == zone_id)

    scores = list(db.scalars(stmt).all())
    return LeaderboardResponse(
        period=period,
        period_start=period_start,
        rule_version=PERIOD_START_RULE_VERSION,
        entries=[_to_entry(index + 1, score, caller) for index, score in enumerate(scores)],
    )


def get_my_score(
    db: Session,
    caller: User,
    *,
    period: LeaderboardPeriod = LeaderboardPeriod.WEEKLY,
    now: datetime | None = None,
) -> LeaderboardMeResponse:
    period_start = period_start_for_instant(period, now)
    score = db.scalar(
        select(LeaderboardScore)
        .where(
            LeaderboardScore.user_id == caller.id,
            LeaderboardScore.period == period,
            LeaderboardScore.period_start == period_start,
        )
        .options(selectinload(LeaderboardScore.user))
    )
    entry = None
    if score is not None:
        ahead = db.scalar(
            select(func.count())
            .select_from(LeaderboardScore)
            .where(
                LeaderboardScore.org_id == caller.org_id,
                LeaderboardScore.period == period,
                LeaderboardScore.period_start == period_start,
                LeaderboardScore.overall_score > score.overall_score,
            )
        )
        entry = _to_entry(int(ahead or 0) + 1, score, caller)
    return LeaderboardMeResponse(
        period=period,
        period_start=period_start,
        rule_version=PERIOD_START_RULE_VERSION,
        score=entry,
    )
