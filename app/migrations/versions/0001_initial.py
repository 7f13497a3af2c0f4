"""Initial field workforce schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = postgresql.ENUM(
    "executive",
    "supervisor",
    "city_manager",
    "admin",
    "super_admin",
    name="user_role",
    create_type=False,
)
attendance_status = postgresql.ENUM("checked_in", "on_break", "checked_out", name="attendance_status", create_type=False)
stock_status = postgresql.ENUM(
    "pending",
    "accepted",
    "rejected",
    "partially_accepted",
    name="stock_status",
    create_type=False,
)
leaderboard_period = postgresql.ENUM("daily", "weekly", "monthly", name="leaderboard_period", create_type=False)
sos_status = postgresql.ENUM("active", "acknowledged", "resolved", name="sos_status", create_type=False)
grievance_status = postgresql.ENUM(
    "submitted",
    "under_review",
    "resolved",
    "dismissed",
    name="grievance_status",
    create_type=False,
)
grievance_category = postgresql.ENUM(
    "harassment_misconduct",
    "unfair_treatment",
    "payment_salary",
    "stock_supply",
    "work_environment",
    "supervisor_conduct",
    "other",
    name="grievance_category",
    create_type=False,
)
broadcast_status = postgresql.ENUM("active", "closed", name="broadcast_status", create_type=False)
material_type = postgresql.ENUM("video", "pdf", "slides", "document", "link", name="material_type", create_type=False)
form_field_type = postgresql.ENUM(
    "text",
    "textarea",
    "number",
    "select",
    "multi_select",
    "radio",
    "checkbox",
    "photo",
    "date",
    "rating",
    name="form_field_type",
    create_type=False,
)
visit_rating = postgresql.ENUM("excellent", "good", "average", "poor", name="visit_rating", create_type=False)
audit_actor_type = postgresql.ENUM("USER", "SYSTEM", name="audit_actor_type", create_type=False)

ALL_ENUMS = (
    user_role,
    attendance_status,
    stock_status,
    leaderboard_period,
    sos_status,
    grievance_status,
    grievance_category,
    broadcast_status,
    material_type,
    form_field_type,
    visit_rating,
    audit_actor_type,
)


def _id_column() -> sa.Column:
    return sa.Column("id", sa.String(length=36), primary_key=True, nullable=False)


def _timestamp_column(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def _org_column(*, index: bool = True) -> sa.Column:
    return sa.Column(
        "org_id",
        sa.String(length=36),
        sa.ForeignKey("organisations.id", ondelete="CASCADE"),
        nullable=False,
        index=index,
    )


def _user_fk(name: str, *, nullable: bool = False, ondelete: str = "CASCADE", index: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.String(length=36),
        sa.ForeignKey("users.id", ondelete=ondelete),
        nullable=nullable,
        index=index,
    )


def _jsonb(name: str, default: str) -> sa.Column:
    return sa.Column(
        name,
        postgresql.JSONB(astext_type=sa.Text()),
        nullable=False,
        server_default=sa.text(f"'{default}'::jsonb"),
    )


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ALL_ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "organisations",
        _id_column(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("logo_url", sa.String(length=1024), nullable=True),
        _timestamp_column("created_at"),
    )

    op.create_table(
        "zones",
        _id_column(),
        _org_column(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("city", sa.String(length=255), nullable=True),
        sa.Column("meeting_lat", sa.Float(), nullable=False),
        sa.Column("meeting_lng", sa.Float(), nullable=False),
        sa.Column("meeting_address", sa.String(length=1024), nullable=True),
        sa.Column("geofence_radius", sa.Integer(), nullable=False, server_default=sa.text("100")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp_column("created_at"),
    )

    op.create_table(
        "users",
        _id_column(),
        _org_column(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("mobile", sa.String(length=32), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("role", user_role, nullable=False),
        sa.Column("employee_id", sa.String(length=64), nullable=True),
        sa.Column(
            "zone_id",
            sa.String(length=36),
            sa.ForeignKey("zones.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
        _user_fk("supervisor_id", nullable=True, ondelete="SET NULL", index=True),
        sa.Column("city", sa.String(length=255), nullable=True),
        sa.Column("state", sa.String(length=255), nullable=True),
        sa.Column("avatar_url", sa.String(length=1024), nullable=True),
        sa.Column("fcm_token", sa.String(length=512), nullable=True),
        sa.Column("device_id", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("joined_date", sa.Date(), nullable=True),
        _timestamp_column("created_at"),
        sa.UniqueConstraint("mobile", name="uq_users_mobile"),
    )

    op.create_table(
        "activities",
        _id_column(),
        _org_column(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=True),
        sa.Column("color", sa.String(length=16), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )

    op.create_table(
        "attendance",
        _id_column(),
        _user_fk("user_id", index=True),
        _org_column(),
        sa.Column("zone_id", sa.String(length=36), sa.ForeignKey("zones.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "activity_id",
            sa.String(length=36),
            sa.ForeignKey("activities.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("date", sa.Date(), nullable=False, index=True),
        sa.Column("status", attendance_status, nullable=False),
        sa.Column("checkin_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("checkin_lat", sa.Float(), nullable=False),
        sa.Column("checkin_lng", sa.Float(), nullable=False),
        sa.Column("checkin_selfie_url", sa.String(length=1024), nullable=True),
        sa.Column("checkin_address", sa.String(length=1024), nullable=True),
        sa.Column("checkin_distance_m", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("checkout_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("checkout_lat", sa.Float(), nullable=True),
        sa.Column("checkout_lng", sa.Float(), nullable=True),
        sa.Column("checkout_selfie_url", sa.String(length=1024), nullable=True),
        sa.Column("break_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("working_minutes", sa.Integer(), nullable=True),
        _timestamp_column("created_at"),
        sa.UniqueConstraint("user_id", "date", name="uq_attendance_user_date"),
    )

    op.create_table(
        "breaks",
        _id_column(),
        sa.Column(
            "attendance_id",
            sa.String(length=36),
            sa.ForeignKey("attendance.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        _user_fk("user_id"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
    )
    # At most one open break per attendance record.
    op.create_index(
        "uq_breaks_open_per_attendance",
        "breaks",
        ["attendance_id"],
        unique=True,
        postgresql_where=sa.text("ended_at IS NULL"),
    )

    op.create_table(
        "stock_allocations",
        _id_column(),
        _org_column(),
        _user_fk("user_id", index=True),
        sa.Column("zone_id", sa.String(length=36), sa.ForeignKey("zones.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "activity_id",
            sa.String(length=36),
            sa.ForeignKey("activities.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("date", sa.Date(), nullable=False, index=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", stock_status, nullable=False, server_default=sa.text("'pending'")),
        _user_fk("created_by", nullable=True, ondelete="SET NULL"),
        _timestamp_column("created_at"),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", "date", name="uq_stock_allocations_user_date"),
    )

    op.create_table(
        "stock_items",
        _id_column(),
        sa.Column(
            "allocation_id",
            sa.String(length=36),
            sa.ForeignKey("stock_allocations.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        sa.Column("sku", sa.String(length=128), nullable=True),
        sa.Column("category", sa.String(length=128), nullable=True),
        sa.Column("unit", sa.String(length=32), nullable=False, server_default=sa.text("'units'")),
        sa.Column("quantity_allocated", sa.Integer(), nullable=False),
        sa.Column("quantity_accepted", sa.Integer(), nullable=True),
        sa.Column("status", stock_status, nullable=False, server_default=sa.text("'pending'")),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
    )

    op.create_table(
        "leaderboard_scores",
        _id_column(),
        _org_column(),
        _user_fk("user_id", index=True),
        sa.Column("zone_id", sa.String(length=36), sa.ForeignKey("zones.id", ondelete="SET NULL"), nullable=True),
        sa.Column("period", leaderboard_period, nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("overall_score", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("engagements", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("conversions", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("attendance_days", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp_column("updated_at"),
        sa.UniqueConstraint("user_id", "period", "period_start", name="uq_leaderboard_scores_user_period"),
    )
    op.create_index(
        "ix_leaderboard_scores_board",
        "leaderboard_scores",
        ["org_id", "period", "period_start", "overall_score"],
    )

    op.create_table(
        "sos_alerts",
        _id_column(),
        _org_column(),
        _user_fk("user_id", index=True),
        sa.Column("zone_id", sa.String(length=36), sa.ForeignKey("zones.id", ondelete="SET NULL"), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("address", sa.String(length=1024), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("status", sos_status, nullable=False, server_default=sa.text("'active'")),
        _jsonb("notified_user_ids", "[]"),
        _user_fk("acknowledged_by", nullable=True, ondelete="SET NULL"),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        _user_fk("resolved_by", nullable=True, ondelete="SET NULL"),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        _timestamp_column("created_at"),
    )

    op.create_table(
        "notifications",
        _id_column(),
        _org_column(index=False),
        _user_fk("user_id", index=True),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=True),
        _jsonb("data", "{}"),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp_column("created_at"),
    )

    op.create_table(
        "grievances",
        _id_column(),
        _org_column(),
        _user_fk("submitted_by", index=True),
        sa.Column("reference_no", sa.String(length=32), nullable=False),
        sa.Column("category", grievance_category, nullable=False),
        sa.Column("against_role", user_role, nullable=True),
        sa.Column("incident_date", sa.Date(), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        _jsonb("evidence_urls", "[]"),
        sa.Column("is_anonymous", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("status", grievance_status, nullable=False, server_default=sa.text("'submitted'")),
        sa.Column("resolution", sa.Text(), nullable=True),
        _user_fk("reviewed_by", nullable=True, ondelete="SET NULL"),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp_column("created_at"),
        sa.UniqueConstraint("reference_no", name="uq_grievances_reference_no"),
    )

    op.create_table(
        "broadcast_questions",
        _id_column(),
        _org_column(),
        sa.Column("question", sa.Text(), nullable=False),
        _jsonb("options", "[]"),
        sa.Column("correct_option", sa.Integer(), nullable=True),
        sa.Column("is_urgent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("deadline_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", broadcast_status, nullable=False, server_default=sa.text("'active'")),
        _jsonb("target_roles", '["executive"]'),
        _jsonb("target_zone_ids", "[]"),
        _user_fk("created_by", nullable=True, ondelete="SET NULL"),
        _timestamp_column("created_at"),
    )

    op.create_table(
        "broadcast_answers",
        _id_column(),
        sa.Column(
            "question_id",
            sa.String(length=36),
            sa.ForeignKey("broadcast_questions.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        _user_fk("user_id", index=True),
        _org_column(index=False),
        sa.Column("selected", sa.Integer(), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=True),
        _timestamp_column("answered_at"),
        sa.UniqueConstraint("question_id", "user_id", name="uq_broadcast_answers_question_user"),
    )

    op.create_table(
        "learning_materials",
        _id_column(),
        _org_column(),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=128), nullable=True),
        sa.Column("type", material_type, nullable=False),
        sa.Column("file_url", sa.String(length=1024), nullable=False),
        sa.Column("thumbnail_url", sa.String(length=1024), nullable=True),
        sa.Column("duration_min", sa.Integer(), nullable=True),
        sa.Column("page_count", sa.Integer(), nullable=True),
        _jsonb("target_roles", '["executive"]'),
        sa.Column("is_mandatory", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _user_fk("created_by", nullable=True, ondelete="SET NULL"),
        _timestamp_column("published_at"),
    )

    op.create_table(
        "learning_progress",
        _id_column(),
        sa.Column(
            "material_id",
            sa.String(length=36),
            sa.ForeignKey("learning_materials.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        _user_fk("user_id", index=True),
        _org_column(index=False),
        sa.Column("progress_pct", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp_column("last_accessed"),
        sa.UniqueConstraint("material_id", "user_id", name="uq_learning_progress_material_user"),
    )

    op.create_table(
        "form_templates",
        _id_column(),
        _org_column(),
        sa.Column(
            "activity_id",
            sa.String(length=36),
            sa.ForeignKey("activities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("requires_photo", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("requires_gps", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _user_fk("created_by", nullable=True, ondelete="SET NULL"),
        _timestamp_column("created_at"),
    )

    op.create_table(
        "form_fields",
        _id_column(),
        sa.Column(
            "template_id",
            sa.String(length=36),
            sa.ForeignKey("form_templates.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("label", sa.String(length=255), nullable=False),
        sa.Column("field_key", sa.String(length=128), nullable=False),
        sa.Column("field_type", form_field_type, nullable=False),
        sa.Column("placeholder", sa.String(length=255), nullable=True),
        sa.Column("help_text", sa.String(length=1024), nullable=True),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _jsonb("options", "[]"),
        _jsonb("validation", "{}"),
        sa.UniqueConstraint("template_id", "field_key", name="uq_form_fields_template_key"),
    )

    op.create_table(
        "form_submissions",
        _id_column(),
        _org_column(),
        _user_fk("user_id", index=True),
        sa.Column(
            "template_id",
            sa.String(length=36),
            sa.ForeignKey("form_templates.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "activity_id",
            sa.String(length=36),
            sa.ForeignKey("activities.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "attendance_id",
            sa.String(length=36),
            sa.ForeignKey("attendance.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("address", sa.String(length=1024), nullable=True),
        sa.Column("is_converted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("outlet_name", sa.String(length=255), nullable=True),
        sa.Column("consumer_age", sa.String(length=32), nullable=True),
        sa.Column("consumer_gender", sa.String(length=32), nullable=True),
        _timestamp_column("submitted_at"),
    )
    op.create_index("ix_form_submissions_org_submitted", "form_submissions", ["org_id", "submitted_at"])

    op.create_table(
        "form_responses",
        _id_column(),
        sa.Column(
            "submission_id",
            sa.String(length=36),
            sa.ForeignKey("form_submissions.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "field_id",
            sa.String(length=36),
            sa.ForeignKey("form_fields.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("field_key", sa.String(length=128), nullable=False),
        sa.Column("value_text", sa.Text(), nullable=True),
        sa.Column("value_number", sa.Float(), nullable=True),
        sa.Column("value_bool", sa.Boolean(), nullable=True),
        sa.Column("value_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("photo_url", sa.String(length=1024), nullable=True),
    )

    op.create_table(
        "visit_logs",
        _id_column(),
        _org_column(),
        _user_fk("executive_id", index=True),
        _user_fk("visitor_id", index=True),
        sa.Column("zone_id", sa.String(length=36), sa.ForeignKey("zones.id", ondelete="SET NULL"), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        _timestamp_column("visited_at"),
        sa.Column("rating", visit_rating, nullable=False),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("photo_url", sa.String(length=1024), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "ts_utc",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
            index=True,
        ),
        sa.Column("org_id", sa.String(length=36), nullable=True, index=True),
        sa.Column("actor_type", audit_actor_type, nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=255), nullable=True),
        sa.Column("entity_id", sa.String(length=255), nullable=True),
        sa.Column("ip", sa.String(length=128), nullable=True),
        sa.Column("user_agent", sa.String(length=1024), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _jsonb("details", "{}"),
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("visit_logs")
    op.drop_table("form_responses")
    op.drop_index("ix_form_submissions_org_submitted", table_name="form_submissions")
    op.drop_table("form_submissions")
    op.drop_table("form_fields")
    op.drop_table("form_templates")
    op.drop_table("learning_progress")
    op.drop_table("learning_materials")
    op.drop_table("broadcast_answers")
    op.drop_table("broadcast_questions")
    op.drop_table("grievances")
    op.drop_table("notifications")
    op.drop_table("sos_alerts")
    op.drop_index("ix_leaderboard_scores_board", table_name="leaderboard_scores")
    op.drop_table("leaderboard_scores")
    op.drop_table("stock_items")
    op.drop_table("stock_allocations")
    op.drop_index("uq_breaks_open_per_attendance", table_name="breaks")
    op.drop_table("breaks")
    op.drop_table("attendance")
    op.drop_table("activities")
    op.drop_table("users")
    op.drop_table("zones")
    op.drop_table("organisations")

    bind = op.get_bind()
    for enum_type in reversed(ALL_ENUMS):
        enum_type.drop(bind, checkfirst=True)
