from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError


@dataclass(frozen=True, slots=True)
class SchemaGuardResult:
    ok: bool
    checked_at_utc: datetime
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_at_utc": self.checked_at_utc.isoformat(),
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "issue_count": len(self.issues),
            "warning_count": len(self.warnings),
        }


REQUIRED_TABLE_COLUMNS: dict[str, set[str]] = {
    "users": {"id", "org_id", "role", "supervisor_id", "is_active"},
    "zones": {"id", "org_id", "meeting_lat", "meeting_lng", "geofence_radius"},
    "attendance": {"id", "user_id", "date", "status", "checkin_at", "break_minutes", "working_minutes"},
    "breaks": {"id", "attendance_id", "started_at", "ended_at", "duration_minutes"},
    "stock_allocations": {"id", "user_id", "date", "status", "reviewed_at"},
    "stock_items": {"id", "allocation_id", "status", "quantity_allocated"},
    "sos_alerts": {"id", "status", "notified_user_ids"},
    "broadcast_answers": {"id", "question_id", "user_id", "selected"},
    "learning_progress": {"id", "material_id", "user_id", "progress_pct"},
    "alembic_version": {"version_num"},
}

# Uniqueness the request handlers rely on to turn races into conflicts.
REQUIRED_UNIQUE_CONSTRAINTS: dict[str, set[str]] = {
    "attendance": {"uq_attendance_user_date"},
    "stock_allocations": {"uq_stock_allocations_user_date"},
    "broadcast_answers": {"uq_broadcast_answers_question_user"},
    "learning_progress": {"uq_learning_progress_material_user"},
}

REQUIRED_ENUM_VALUES: dict[str, set[str]] = {
    "user_role": {"executive", "supervisor", "city_manager", "admin", "super_admin"},
    "attendance_status": {"checked_in", "on_break", "checked_out"},
    "stock_status": {"pending", "accepted", "rejected", "partially_accepted"},
    "sos_status": {"active", "acknowledged", "resolved"},
}


def verify_runtime_schema(engine: Engine) -> SchemaGuardResult:
    issues: list[str] = []
    warnings: list[str] = []
    checked_at_utc = datetime.now(timezone.utc)
    inspector = inspect(engine)

    for table_name, required_columns in REQUIRED_TABLE_COLUMNS.items():
        try:
            column_names = {str(item.get("name")) for item in inspector.get_columns(table_name)}
        except SQLAlchemyError as exc:
            issues.append(f"TABLE_UNREADABLE:{table_name}:{exc.__class__.__name__}")
            continue

        missing_columns = sorted(item for item in required_columns if item not in column_names)
        if missing_columns:
            issues.append(f"MISSING_COLUMNS:{table_name}:{','.join(missing_columns)}")

    for table_name, required_names in REQUIRED_UNIQUE_CONSTRAINTS.items():
        try:
            constraints = inspector.get_unique_constraints(table_name) or []
        except SQLAlchemyError as exc:
            issues.append(f"CONSTRAINTS_UNREADABLE:{table_name}:{exc.__class__.__name__}")
            continue

        present = {str(item.get("name") or "") for item in constraints}
        missing_names = sorted(item for item in required_names if item not in present)
        if missing_names:
            issues.append(f"MISSING_UNIQUE_CONSTRAINTS:{table_name}:{','.join(missing_names)}")

    try:
        enums = inspector.get_enums() or []
    except (SQLAlchemyError, NotImplementedError) as exc:
        warnings.append(f"ENUM_INSPECTION_FAILED:{exc.__class__.__name__}")
        enums = []

    enum_values_by_name: dict[str, set[str]] = {}
    for enum_item in enums:
        name = str(enum_item.get("name") or "").strip()
        if not name:
            continue
        labels = enum_item.get("labels")
        if isinstance(labels, list):
            enum_values_by_name[name] = {str(label) for label in labels}

    for enum_name, required_values in REQUIRED_ENUM_VALUES.items():
        if enum_name not in enum_values_by_name:
            warnings.append(f"ENUM_NOT_FOUND:{enum_name}")
            continue
        missing_values = sorted(item for item in required_values if item not in enum_values_by_name[enum_name])
        if missing_values:
            issues.append(f"MISSING_ENUM_VALUES:{enum_name}:{','.join(missing_values)}")

    try:
        with engine.connect() as connection:
            row = connection.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).scalar()
            version = str(row).strip() if row is not None else ""
            if not version:
                issues.append("ALEMBIC_VERSION_EMPTY")
    except SQLAlchemyError as exc:
        issues.append(f"ALEMBIC_VERSION_CHECK_FAILED:{exc.__class__.__name__}")

    return SchemaGuardResult(
        ok=len(issues) == 0,
        checked_at_utc=checked_at_utc,
        issues=issues,
        warnings=warnings,
    )
