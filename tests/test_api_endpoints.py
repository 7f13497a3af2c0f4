from __future__ import annotations

import unittest
from datetime import date, datetime, timezone
from unittest.mock import patch

from fastapi.testclient import TestClient

from app.db import get_db
from app.errors import Conflict, GeofenceViolation
from app.main import app
from app.models import (
    AttendanceRecord,
    AttendanceStatus,
    Grievance,
    GrievanceCategory,
    GrievanceStatus,
    LeaderboardPeriod,
    Role,
    User,
)
from app.schemas import LeaderboardResponse
from app.security import get_current_user


class _FakeDB:
    def __init__(self) -> None:
        self.added: list[object] = []
        self.commits = 0

    def add(self, obj) -> None:  # type: ignore[no-untyped-def]
        self.added.append(obj)

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        return None

    def get(self, _model, _pk):  # type: ignore[no-untyped-def]
        return None


def _override_get_db(fake_db: _FakeDB):
    def _override():
        yield fake_db

    return _override


def _user(role: Role) -> User:
    return User(id=f"{role.value}-1", org_id="org-1", name="Field User", role=role, is_active=True)


def _record() -> AttendanceRecord:
    return AttendanceRecord(
        id="att-1",
        user_id="executive-1",
        org_id="org-1",
        zone_id="zone-1",
        date=date(2026, 3, 4),
        status=AttendanceStatus.CHECKED_IN,
        checkin_at=datetime(2026, 3, 4, 3, 30, tzinfo=timezone.utc),
        checkin_lat=12.9719,
        checkin_lng=77.5946,
        checkin_distance_m=40,
        break_minutes=0,
    )


class ApiEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        self.fake_db = _FakeDB()
        app.dependency_overrides[get_db] = _override_get_db(self.fake_db)
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def _login_as(self, role: Role) -> User:
        user = _user(role)
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    def test_missing_token_is_unauthorized(self) -> None:
        response = self.client.get("/api/v1/attendance/today")
        self.assertEqual(response.status_code, 401)
        body = response.json()
        self.assertEqual(body["error"]["code"], "INVALID_TOKEN")
        self.assertEqual(body["error"]["kind"], "unauthorized")

    def test_executive_cannot_list_sos_alerts(self) -> None:
        self._login_as(Role.EXECUTIVE)
        response = self.client.get("/api/v1/sos")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["code"], "FORBIDDEN")

    def test_invalid_body_reports_field_errors(self) -> None:
        self._login_as(Role.EXECUTIVE)
        response = self.client.post("/api/v1/attendance/checkin", json={"latitude": 123.0})
        self.assertEqual(response.status_code, 422)
        error = response.json()["error"]
        self.assertEqual(error["code"], "VALIDATION_ERROR")
        fields = {item["field"] for item in error["details"]}
        self.assertIn("body.latitude", fields)
        self.assertIn("body.longitude", fields)

    def test_checkin_outside_geofence_returns_distance(self) -> None:
        self._login_as(Role.EXECUTIVE)
        with patch(
            "app.routers.attendance.check_in",
            side_effect=GeofenceViolation(distance_m=250, required_m=100, zone_name="Koramangala Hub"),
        ):
            response = self.client.post(
                "/api/v1/attendance/checkin",
                json={"latitude": 12.9738, "longitude": 77.5946},
            )

        self.assertEqual(response.status_code, 400)
        error = response.json()["error"]
        self.assertEqual(error["code"], "OUTSIDE_GEOFENCE")
        self.assertEqual(error["kind"], "geofence_violation")
        self.assertEqual(error["details"], {"distance": 250, "required": 100})
        self.assertIn("250m", error["message"])

    def test_checkin_success_is_audited(self) -> None:
        self._login_as(Role.EXECUTIVE)
        with patch("app.routers.attendance.check_in", return_value=_record()):
            response = self.client.post(
                "/api/v1/attendance/checkin",
                json={"latitude": 12.9719, "longitude": 77.5946},
            )

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["status"], "checked_in")
        self.assertEqual(body["checkin_distance_m"], 40)
        actions = [getattr(item, "action", None) for item in self.fake_db.added]
        self.assertIn("ATTENDANCE_CHECKIN", actions)

    def test_conflict_is_reported_with_code(self) -> None:
        self._login_as(Role.EXECUTIVE)
        with patch(
            "app.routers.attendance.start_break",
            side_effect=Conflict("ALREADY_ON_BREAK", "Already on break."),
        ):
            response = self.client.post("/api/v1/attendance/break/start")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["code"], "ALREADY_ON_BREAK")

    def test_request_id_is_echoed(self) -> None:
        response = self.client.get("/api/v1/attendance/today", headers={"X-Request-Id": "req-123"})
        self.assertEqual(response.headers["X-Request-Id"], "req-123")
        self.assertEqual(response.json()["error"]["request_id"], "req-123")

    def test_unknown_route_uses_error_envelope(self) -> None:
        response = self.client.get("/api/v1/does-not-exist")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "NOT_FOUND")

    def test_health_reports_degraded_before_schema_guard(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "degraded")
        self.assertIn("SCHEMA_GUARD_NOT_RUN", body["schema_guard"]["issues"])


    def test_anonymous_submitter_sees_own_grievance_unredacted(self) -> None:
        user = self._login_as(Role.EXECUTIVE)
        grievance = Grievance(
            id="grv-1",
            org_id="org-1",
            submitted_by=user.id,
            reference_no="GRV-20260304-AB12CD",
            category=GrievanceCategory.UNFAIR_TREATMENT,
            description="Shift roster changed without notice.",
            evidence_urls=[],
            is_anonymous=True,
            status=GrievanceStatus.SUBMITTED,
            created_at=datetime(2026, 3, 4, 9, 0, tzinfo=timezone.utc),
        )
        with patch("app.routers.grievances.list_my_grievances", return_value=[grievance]) as listed:
            response = self.client.get("/api/v1/grievances/mine")

        self.assertEqual(response.status_code, 200)
        listed.assert_called_once_with(self.fake_db, user)
        body = response.json()
        self.assertEqual(len(body), 1)
        self.assertTrue(body[0]["is_anonymous"])
        self.assertEqual(body[0]["submitted_by"], user.id)

    def test_leaderboard_limit_above_maximum_is_accepted(self) -> None:
        user = self._login_as(Role.EXECUTIVE)
        board = LeaderboardResponse(
            period=LeaderboardPeriod.WEEKLY,
            period_start=date(2026, 3, 2),
            rule_version=1,
            entries=[],
        )
        with patch("app.routers.leaderboard.get_leaderboard", return_value=board) as fetched:
            response = self.client.get("/api/v1/leaderboard", params={"limit": 100})

        self.assertEqual(response.status_code, 200)
        fetched.assert_called_once_with(
            self.fake_db, user, period=LeaderboardPeriod.WEEKLY, zone_id=None, limit=100
        )


if __name__ == "__main__":
    unittest.main()
