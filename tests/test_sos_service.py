from __future__ import annotations

import unittest
from datetime import datetime, timezone
from uuid import uuid4

from app.errors import Conflict, NotFound
from app.models import Notification, Role, SosAlert, SosStatus, User
from app.schemas import SosTriggerRequest
from app.services.sos import acknowledge_sos, build_notified_snapshot, resolve_sos, trigger_sos


class _FakeScalars:
    def __init__(self, rows):  # type: ignore[no-untyped-def]
        self._rows = rows

    def all(self):  # type: ignore[no-untyped-def]
        return list(self._rows)


class _FakeSosDB:
    def __init__(self, *, escalation_ids: list[str] | None = None, alert: SosAlert | None = None):
        self.escalation_ids = escalation_ids or []
        self.alert = alert
        self.added: list[object] = []
        self.commits = 0

    def scalars(self, _statement):  # type: ignore[no-untyped-def]
        return _FakeScalars(self.escalation_ids)

    def scalar(self, _statement):  # type: ignore[no-untyped-def]
        return self.alert

    def add(self, obj) -> None:  # type: ignore[no-untyped-def]
        self.added.append(obj)

    def add_all(self, objs) -> None:  # type: ignore[no-untyped-def]
        self.added.extend(objs)

    def flush(self) -> None:
        for obj in self.added:
            if getattr(obj, "id", None) is None:
                obj.id = str(uuid4())

    def commit(self) -> None:
        self.commits += 1

    def refresh(self, _obj) -> None:  # type: ignore[no-untyped-def]
        return None


def _alert(status: SosStatus) -> SosAlert:
    return SosAlert(
        id="sos-1",
        org_id="org-1",
        user_id="exec-1",
        latitude=12.97,
        longitude=77.59,
        status=status,
        notified_user_ids=["sup-1"],
    )


class NotifiedSnapshotTests(unittest.TestCase):
    def test_supervisor_comes_first(self) -> None:
        self.assertEqual(build_notified_snapshot("sup-1", ["cm-1", "adm-1"]), ("sup-1", "cm-1", "adm-1"))

    def test_duplicates_are_dropped_keeping_first_position(self) -> None:
        self.assertEqual(build_notified_snapshot("cm-1", ["cm-1", "adm-1", "adm-1"]), ("cm-1", "adm-1"))

    def test_missing_supervisor_is_skipped(self) -> None:
        self.assertEqual(build_notified_snapshot(None, ["cm-1"]), ("cm-1",))
        self.assertEqual(build_notified_snapshot(None, []), ())


class TriggerSosTests(unittest.TestCase):
    def test_trigger_snapshots_recipients_and_queues_notifications(self) -> None:
        fake_db = _FakeSosDB(escalation_ids=["cm-1", "sup-1"])
        user = User(
            id="exec-1",
            org_id="org-1",
            name="Asha",
            role=Role.EXECUTIVE,
            supervisor_id="sup-1",
            zone_id="zone-1",
            is_active=True,
        )

        alert = trigger_sos(
            fake_db,  # type: ignore[arg-type]
            user,
            SosTriggerRequest(latitude=12.9716, longitude=77.5946),
        )

        self.assertEqual(alert.status, SosStatus.ACTIVE)
        self.assertEqual(alert.notified_user_ids, ["sup-1", "cm-1"])
        notifications = [item for item in fake_db.added if isinstance(item, Notification)]
        self.assertEqual([item.user_id for item in notifications], ["sup-1", "cm-1"])
        self.assertTrue(all(item.type == "sos" for item in notifications))
        self.assertEqual(notifications[0].data["sos_id"], alert.id)
        self.assertIn("12.97160, 77.59460", notifications[0].body or "")
        self.assertEqual(fake_db.commits, 1)


class SosLifecycleTests(unittest.TestCase):
    def setUp(self) -> None:
        self.manager = User(id="cm-1", org_id="org-1", name="Ravi", role=Role.CITY_MANAGER, is_active=True)
        self.now = datetime(2026, 3, 4, 11, 0, tzinfo=timezone.utc)

    def test_acknowledge_active_alert(self) -> None:
        fake_db = _FakeSosDB(alert=_alert(SosStatus.ACTIVE))
        alert = acknowledge_sos(fake_db, self.manager, "sos-1", now=self.now)  # type: ignore[arg-type]
        self.assertEqual(alert.status, SosStatus.ACKNOWLEDGED)
        self.assertEqual(alert.acknowledged_by, "cm-1")
        self.assertEqual(alert.acknowledged_at, self.now)

    def test_acknowledge_twice_conflicts(self) -> None:
        fake_db = _FakeSosDB(alert=_alert(SosStatus.ACKNOWLEDGED))
        with self.assertRaises(Conflict) as ctx:
            acknowledge_sos(fake_db, self.manager, "sos-1")  # type: ignore[arg-type]
        self.assertEqual(ctx.exception.code, "SOS_NOT_ACTIVE")

    def test_resolve_from_active_or_acknowledged(self) -> None:
        for status in (SosStatus.ACTIVE, SosStatus.ACKNOWLEDGED):
            fake_db = _FakeSosDB(alert=_alert(status))
            alert = resolve_sos(
                fake_db,  # type: ignore[arg-type]
                self.manager,
                "sos-1",
                notes="Reached safely.",
                now=self.now,
            )
            self.assertEqual(alert.status, SosStatus.RESOLVED)
            self.assertEqual(alert.resolution_notes, "Reached safely.")

    def test_resolve_twice_conflicts(self) -> None:
        fake_db = _FakeSosDB(alert=_alert(SosStatus.RESOLVED))
        with self.assertRaises(Conflict) as ctx:
            resolve_sos(fake_db, self.manager, "sos-1")  # type: ignore[arg-type]
        self.assertEqual(ctx.exception.code, "SOS_ALREADY_RESOLVED")

    def test_unknown_alert_is_not_found(self) -> None:
        with self.assertRaises(NotFound):
            acknowledge_sos(_FakeSosDB(), self.manager, "missing")  # type: ignore[arg-type]


if __name__ == "__main__":
    unittest.main()
