from __future__ import annotations

import re
import unittest
from datetime import datetime, timezone

from app.errors import NotFound
from app.models import LearningProgress, Notification, Role, User
from app.schemas import LearningProgressUpdate
from app.services.grievances import generate_reference_no
from app.services.learning import update_progress
from app.services.notifications import build_notifications, mark_read


class _FakeScalarDB:
    def __init__(self, *scalar_results: object | None):
        self.scalar_results = list(scalar_results)
        self.added: list[object] = []
        self.commits = 0

    def scalar(self, _statement):  # type: ignore[no-untyped-def]
        if not self.scalar_results:
            return None
        return self.scalar_results.pop(0)

    def add(self, obj) -> None:  # type: ignore[no-untyped-def]
        self.added.append(obj)

    def commit(self) -> None:
        self.commits += 1

    def refresh(self, _obj) -> None:  # type: ignore[no-untyped-def]
        return None


def _executive() -> User:
    return User(id="exec-1", org_id="org-1", name="Asha", role=Role.EXECUTIVE, is_active=True)


class GrievanceReferenceTests(unittest.TestCase):
    def test_reference_number_format(self) -> None:
        reference = generate_reference_no(datetime(2026, 3, 4, 10, 0, tzinfo=timezone.utc))
        self.assertRegex(reference, re.compile(r"^GRV-260304-[A-Z2-9]{6}$"))
        self.assertNotRegex(reference[-6:], r"[01IO]")


class NotificationTests(unittest.TestCase):
    def test_one_row_per_recipient(self) -> None:
        rows = build_notifications(
            org_id="org-1",
            user_ids=["sup-1", "cm-1"],
            type="broadcast",
            title="New question",
            data={"question_id": "q-1"},
        )
        self.assertEqual([row.user_id for row in rows], ["sup-1", "cm-1"])
        self.assertTrue(all(row.is_read is False for row in rows))
        rows[0].data["extra"] = True
        self.assertNotIn("extra", rows[1].data)

    def test_mark_read_sets_timestamp_once(self) -> None:
        notification = Notification(id="n-1", org_id="org-1", user_id="exec-1", type="sos", title="t", is_read=False)
        fake_db = _FakeScalarDB(notification)

        result = mark_read(fake_db, _executive(), "n-1")  # type: ignore[arg-type]

        self.assertTrue(result.is_read)
        self.assertIsNotNone(result.read_at)
        self.assertEqual(fake_db.commits, 1)

        mark_read(_FakeScalarDB(notification), _executive(), "n-1")  # type: ignore[arg-type]
        self.assertEqual(fake_db.commits, 1)

    def test_someone_elses_notification_is_not_found(self) -> None:
        with self.assertRaises(NotFound):
            mark_read(_FakeScalarDB(None), _executive(), "n-2")  # type: ignore[arg-type]


class LearningProgressTests(unittest.TestCase):
    def setUp(self) -> None:
        self.now = datetime(2026, 3, 4, 15, 0, tzinfo=timezone.utc)

    def test_first_progress_creates_row(self) -> None:
        fake_db = _FakeScalarDB("mat-1", None)

        progress = update_progress(
            fake_db,  # type: ignore[arg-type]
            _executive(),
            "mat-1",
            LearningProgressUpdate(progress_pct=40),
            now=self.now,
        )

        self.assertIn(progress, fake_db.added)
        self.assertEqual(progress.progress_pct, 40)
        self.assertFalse(progress.is_completed)
        self.assertIsNone(progress.completed_at)

    def test_reaching_full_progress_completes_once(self) -> None:
        existing = LearningProgress(
            id="lp-1",
            material_id="mat-1",
            user_id="exec-1",
            org_id="org-1",
            progress_pct=80,
            is_completed=False,
        )

        progress = update_progress(
            _FakeScalarDB("mat-1", existing),  # type: ignore[arg-type]
            _executive(),
            "mat-1",
            LearningProgressUpdate(progress_pct=100),
            now=self.now,
        )
        self.assertTrue(progress.is_completed)
        self.assertEqual(progress.completed_at, self.now)

        later = datetime(2026, 3, 5, 9, 0, tzinfo=timezone.utc)
        progress = update_progress(
            _FakeScalarDB("mat-1", existing),  # type: ignore[arg-type]
            _executive(),
            "mat-1",
            LearningProgressUpdate(progress_pct=60),
            now=later,
        )
        self.assertTrue(progress.is_completed)
        self.assertEqual(progress.completed_at, self.now)
        self.assertEqual(progress.last_accessed, later)

    def test_unknown_material_is_not_found(self) -> None:
        with self.assertRaises(NotFound):
            update_progress(
                _FakeScalarDB(None),  # type: ignore[arg-type]
                _executive(),
                "missing",
                LearningProgressUpdate(progress_pct=10),
            )


if __name__ == "__main__":
    unittest.main()
