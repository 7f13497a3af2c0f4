from __future__ import annotations

import unittest
from datetime import datetime, timezone

from sqlalchemy import select

from app.models import AttendanceRecord, Role, User
from app.schemas import GrievanceRead, UserSummary
from app.services.visibility import (
    is_team_scoped,
    mask_correct_option,
    redact_grievance,
    redact_grievances,
    restrict_to_team,
)


def _user(role: Role) -> User:
    return User(id=f"{role.value}-1", org_id="org-1", name=role.value, role=role, is_active=True)


def _grievance(*, is_anonymous: bool) -> GrievanceRead:
    return GrievanceRead(
        id="grv-1",
        reference_no="GRV-260304-ABC234",
        category="unfair_treatment",
        description="Shift allocation was changed without notice.",
        is_anonymous=is_anonymous,
        status="submitted",
        submitted_by="exec-1",
        submitter=UserSummary(id="exec-1", name="Asha"),
        created_at=datetime(2026, 3, 4, 10, 0, tzinfo=timezone.utc),
    )


class TeamScopeTests(unittest.TestCase):
    def test_only_supervisors_are_team_scoped(self) -> None:
        self.assertTrue(is_team_scoped(_user(Role.SUPERVISOR)))
        for role in (Role.EXECUTIVE, Role.CITY_MANAGER, Role.ADMIN, Role.SUPER_ADMIN):
            self.assertFalse(is_team_scoped(_user(role)))

    def test_supervisor_listing_is_limited_to_direct_reports(self) -> None:
        stmt = restrict_to_team(select(AttendanceRecord), AttendanceRecord.user_id, _user(Role.SUPERVISOR))
        sql = str(stmt)
        self.assertIn("supervisor_id", sql)
        self.assertIn("attendance.user_id IN", sql)

    def test_city_manager_listing_is_unchanged(self) -> None:
        base = select(AttendanceRecord)
        self.assertIs(restrict_to_team(base, AttendanceRecord.user_id, _user(Role.CITY_MANAGER)), base)


class GrievanceRedactionTests(unittest.TestCase):
    def test_anonymous_grievance_hides_submitter(self) -> None:
        redacted = redact_grievance(_grievance(is_anonymous=True))
        self.assertIsNone(redacted.submitted_by)
        self.assertIsNone(redacted.submitter)
        self.assertEqual(redacted.reference_no, "GRV-260304-ABC234")

    def test_named_grievance_keeps_submitter(self) -> None:
        grievance = _grievance(is_anonymous=False)
        self.assertIs(redact_grievance(grievance), grievance)

    def test_redaction_does_not_mutate_source(self) -> None:
        source = _grievance(is_anonymous=True)
        redacted = redact_grievances([source])
        self.assertEqual(source.submitted_by, "exec-1")
        self.assertIsNone(redacted[0].submitted_by)


class CorrectOptionMaskTests(unittest.TestCase):
    def test_correct_option_hidden_below_admin_tier(self) -> None:
        self.assertIsNone(mask_correct_option(Role.EXECUTIVE, 2))
        self.assertIsNone(mask_correct_option(Role.SUPERVISOR, 2))

    def test_correct_option_visible_from_city_manager(self) -> None:
        self.assertEqual(mask_correct_option(Role.CITY_MANAGER, 2), 2)
        self.assertEqual(mask_correct_option(Role.SUPER_ADMIN, 0), 0)
        self.assertIsNone(mask_correct_option(Role.ADMIN, None))


if __name__ == "__main__":
    unittest.main()
