from __future__ import annotations

import unittest
from unittest.mock import patch

from app.services.schema_guard import (
    REQUIRED_ENUM_VALUES,
    REQUIRED_TABLE_COLUMNS,
    REQUIRED_UNIQUE_CONSTRAINTS,
    verify_runtime_schema,
)


class _FakeResult:
    def __init__(self, value):
        self._value = value

    def scalar(self):  # type: ignore[no-untyped-def]
        return self._value


class _FakeConnection:
    def __init__(self, version_value):
        self._version_value = version_value

    def __enter__(self):  # type: ignore[no-untyped-def]
        return self

    def __exit__(self, exc_type, exc, tb):  # type: ignore[no-untyped-def]
        return False

    def execute(self, _statement):  # type: ignore[no-untyped-def]
        return _FakeResult(self._version_value)


class _FakeEngine:
    def __init__(self, version_value):
        self._version_value = version_value

    def connect(self):  # type: ignore[no-untyped-def]
        return _FakeConnection(self._version_value)


class _FakeInspector:
    def __init__(
        self,
        *,
        columns_by_table: dict[str, set[str]],
        unique_by_table: dict[str, set[str]],
        enums: list[dict[str, object]],
    ):
        self._columns_by_table = columns_by_table
        self._unique_by_table = unique_by_table
        self._enums = enums

    def get_columns(self, table_name: str):  # type: ignore[no-untyped-def]
        columns = self._columns_by_table[table_name]
        return [{"name": item} for item in columns]

    def get_unique_constraints(self, table_name: str):  # type: ignore[no-untyped-def]
        return [{"name": item} for item in self._unique_by_table.get(table_name, set())]

    def get_enums(self):  # type: ignore[no-untyped-def]
        return self._enums


def _complete_enums() -> list[dict[str, object]]:
    return [{"name": name, "labels": sorted(values)} for name, values in REQUIRED_ENUM_VALUES.items()]


class SchemaGuardTests(unittest.TestCase):
    def test_verify_runtime_schema_ok_when_schema_is_current(self) -> None:
        fake_inspector = _FakeInspector(
            columns_by_table={table: set(columns) for table, columns in REQUIRED_TABLE_COLUMNS.items()},
            unique_by_table={table: set(names) for table, names in REQUIRED_UNIQUE_CONSTRAINTS.items()},
            enums=_complete_enums(),
        )
        fake_engine = _FakeEngine("0001_initial")

        with patch("app.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(fake_engine)  # type: ignore[arg-type]

        self.assertTrue(result.ok)
        self.assertEqual(result.issues, [])
        self.assertEqual(result.warnings, [])

    def test_verify_runtime_schema_reports_drift(self) -> None:
        columns = {table: set(columns) for table, columns in REQUIRED_TABLE_COLUMNS.items()}
        columns["attendance"] = {"id", "user_id", "date", "status"}
        columns["sos_alerts"] = {"id", "status"}
        unique = {table: set(names) for table, names in REQUIRED_UNIQUE_CONSTRAINTS.items()}
        unique["attendance"] = set()
        enums = [item for item in _complete_enums() if item["name"] != "sos_status"]
        enums = [
            {"name": "stock_status", "labels": ["pending", "accepted", "rejected"]} if item["name"] == "stock_status" else item
            for item in enums
        ]
        fake_inspector = _FakeInspector(columns_by_table=columns, unique_by_table=unique, enums=enums)
        fake_engine = _FakeEngine("")

        with patch("app.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(fake_engine)  # type: ignore[arg-type]

        self.assertFalse(result.ok)
        self.assertIn(
            "MISSING_COLUMNS:attendance:break_minutes,checkin_at,working_minutes",
            result.issues,
        )
        self.assertIn("MISSING_COLUMNS:sos_alerts:notified_user_ids", result.issues)
        self.assertIn("MISSING_UNIQUE_CONSTRAINTS:attendance:uq_attendance_user_date", result.issues)
        self.assertIn("MISSING_ENUM_VALUES:stock_status:partially_accepted", result.issues)
        self.assertIn("ENUM_NOT_FOUND:sos_status", result.warnings)
        self.assertIn("ALEMBIC_VERSION_EMPTY", result.issues)
        self.assertEqual(result.to_dict()["issue_count"], len(result.issues))


if __name__ == "__main__":
    unittest.main()
