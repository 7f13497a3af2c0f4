"""Role-based visibility rules shared by the listing endpoints."""

from __future__ import annotations

from typing import Any, TypeVar

from sqlalchemy import Select, select

from app.models import ADMIN_TIER, Role, User
from app.schemas import GrievanceRead

StmtT = TypeVar("StmtT", bound=Select[Any])


def is_team_scoped(caller: User) -> bool:
    return caller.role == Role.SUPERVISOR


def restrict_to_team(stmt: StmtT, user_column: Any, caller: User) -> StmtT:
    """Limit a supervisor's listing to the users reporting to them.

    Every other role sees the organisation-wide result unchanged. A supervisor
    with no direct reports gets an empty result.
    """
    if not is_team_scoped(caller):
        return stmt
    team_ids = select(User.id).where(
        User.supervisor_id == caller.id,
        User.org_id == caller.org_id,
    )
    return stmt.where(user_column.in_(team_ids))


def redact_grievance(grievance: GrievanceRead) -> GrievanceRead:
    if not grievance.is_anonymous:
        return grievance
    return grievance.model_copy(update={"submitted_by": None, "submitter": None})


def redact_grievances(grievances: list[GrievanceRead]) -> list[GrievanceRead]:
    return [redact_grievance(item) for item in grievances]


def can_see_correct_option(role: Role) -> bool:
    return role.at_least(ADMIN_TIER)


def mask_correct_option(role: Role, correct_option: int | None) -> int | None:
    return correct_option if can_see_correct_option(role) else None
