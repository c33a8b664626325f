"""Initial schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


role_enum = sa.Enum("student", "tenant_admin", "super_admin", name="role_enum", native_enum=False)
lesson_status_enum = sa.Enum(
    "reserved", "confirmed", "completed", "cancelled", "no_show", name="lesson_status_enum", native_enum=False
)
_payment_statuses = ("pending", "approved", "rejected", "failed", "covered_by_pack", "refunded")
lesson_payment_status_enum = sa.Enum(*_payment_statuses, name="lesson_payment_status_enum", native_enum=False)
payment_status_enum = sa.Enum(*_payment_statuses, name="payment_status_enum", native_enum=False)
ledger_reason_enum = sa.Enum(
    "booking", "cancel_refund", "no_show_forfeit", name="ledger_reason_enum", native_enum=False
)
lead_status_enum = sa.Enum("new", "contacted", "converted", "lost", name="lead_status_enum", native_enum=False)
outbox_status_enum = sa.Enum("pending", "processed", "failed", name="outbox_status_enum", native_enum=False)
job_run_status_enum = sa.Enum(
    "running", "completed", "failed", "dead_letter", name="job_run_status_enum", native_enum=False
)


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def _tenant_col(table_name: str) -> list:
    return [
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["tenant_id"], ["tenants.id"], name=f"fk_{table_name}_tenant_id_tenants", ondelete="CASCADE"
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "tenants",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("slug", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_tenants_slug", "tenants", ["slug"], unique=True)

    op.create_table(
        "tenant_settings",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("require_payment_to_confirm", sa.Boolean(), nullable=False),
        sa.Column("reschedule_min_hours", sa.Integer(), nullable=False),
        sa.Column("cancel_min_hours", sa.Integer(), nullable=False),
        sa.Column("no_show_consume_credit", sa.Boolean(), nullable=False),
        sa.Column("payment_public_key", sa.String(length=255), nullable=True),
        sa.Column("payment_events_secret", sa.String(length=255), nullable=True),
        sa.Column("calendar_refresh_token", sa.String(length=512), nullable=True),
        sa.Column("calendar_id", sa.String(length=255), nullable=True),
        sa.Column("confirmation_template", sa.Text(), nullable=True),
        sa.Column("reminder_24h_template", sa.Text(), nullable=True),
        sa.Column("reminder_1h_template", sa.Text(), nullable=True),
        sa.Column("pending_payment_template", sa.Text(), nullable=True),
        sa.Column("follow_up_template", sa.Text(), nullable=True),
        sa.Column("welcome_template", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["tenant_id"], ["tenants.id"], name="fk_tenant_settings_tenant_id_tenants", ondelete="CASCADE"
        ),
        sa.UniqueConstraint("tenant_id", name="uq_tenant_settings_tenant_id"),
    )

    op.create_table(
        "users",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", role_enum, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], name="fk_users_tenant_id_tenants", ondelete="CASCADE"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_tenant_id", "users", ["tenant_id"], unique=False)

    op.create_table(
        "students",
        _id_col(),
        _created_col(),
        _updated_col(),
        *_tenant_col("students"),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("level", sa.String(length=32), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_students_user_id_users", ondelete="CASCADE"),
        sa.UniqueConstraint("tenant_id", "user_id", name="uq_students_tenant_id_user_id"),
    )
    op.create_index("ix_students_tenant_id", "students", ["tenant_id"], unique=False)
    op.create_index("ix_students_user_id", "students", ["user_id"], unique=False)

    op.create_table(
        "lesson_types",
        _id_col(),
        _created_col(),
        _updated_col(),
        *_tenant_col("lesson_types"),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("duration_min", sa.Integer(), nullable=False),
        sa.Column("price_amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("is_pack_type", sa.Boolean(), nullable=False),
        sa.Column("pack_size", sa.Integer(), nullable=True),
        sa.Column("pack_validity_days", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.CheckConstraint("NOT is_pack_type OR pack_size > 0", name="ck_lesson_types_pack_size_positive"),
        sa.CheckConstraint("duration_min > 0", name="ck_lesson_types_duration_positive"),
    )
    op.create_index("ix_lesson_types_tenant_id", "lesson_types", ["tenant_id"], unique=False)

    op.create_table(
        "availability_rules",
        _id_col(),
        _created_col(),
        _updated_col(),
        *_tenant_col("availability_rules"),
        sa.Column("weekday", sa.SmallInteger(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("slot_minutes", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.CheckConstraint("weekday BETWEEN 0 AND 6", name="ck_availability_rules_weekday_range"),
        sa.CheckConstraint("start_time < end_time", name="ck_availability_rules_start_before_end"),
        sa.CheckConstraint("slot_minutes BETWEEN 15 AND 180", name="ck_availability_rules_slot_minutes_range"),
    )
    op.create_index("ix_availability_rules_tenant_id", "availability_rules", ["tenant_id"], unique=False)
    op.create_index("ix_availability_rules_weekday", "availability_rules", ["weekday"], unique=False)

    op.create_table(
        "blocked_times",
        _id_col(),
        _created_col(),
        _updated_col(),
        *_tenant_col("blocked_times"),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=True),
        sa.CheckConstraint("starts_at < ends_at", name="ck_blocked_times_starts_before_ends"),
    )
    op.create_index("ix_blocked_times_tenant_id", "blocked_times", ["tenant_id"], unique=False)
    op.create_index("ix_blocked_times_starts_at", "blocked_times", ["starts_at"], unique=False)

    op.create_table(
        "packs",
        _id_col(),
        _created_col(),
        _updated_col(),
        *_tenant_col("packs"),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("lesson_type_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("total_credits", sa.Integer(), nullable=False),
        sa.Column("used_credits", sa.Integer(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["student_id"], ["students.id"], name="fk_packs_student_id_students", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["lesson_type_id"], ["lesson_types.id"], name="fk_packs_lesson_type_id_lesson_types", ondelete="RESTRICT"
        ),
        sa.CheckConstraint(
            "used_credits >= 0 AND used_credits <= total_credits", name="ck_packs_credits_in_range"
        ),
    )
    op.create_index("ix_packs_tenant_id", "packs", ["tenant_id"], unique=False)
    op.create_index("ix_packs_student_id", "packs", ["student_id"], unique=False)

    op.create_table(
        "lessons",
        _id_col(),
        _created_col(),
        _updated_col(),
        *_tenant_col("lessons"),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("lesson_type_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("pack_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", lesson_status_enum, nullable=False),
        sa.Column("payment_status", lesson_payment_status_enum, nullable=False),
        sa.Column("calendar_event_id", sa.String(length=255), nullable=True),
        sa.Column("meeting_url", sa.String(length=512), nullable=True),
        sa.Column("reminder_24h_sent", sa.Boolean(), nullable=False),
        sa.Column("reminder_1h_sent", sa.Boolean(), nullable=False),
        sa.Column("follow_up_sent", sa.Boolean(), nullable=False),
        sa.Column("cancellation_reason", sa.String(length=512), nullable=True),
        sa.Column("teacher_notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["student_id"], ["students.id"], name="fk_lessons_student_id_students", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["lesson_type_id"], ["lesson_types.id"], name="fk_lessons_lesson_type_id_lesson_types", ondelete="RESTRICT"
        ),
        sa.ForeignKeyConstraint(["pack_id"], ["packs.id"], name="fk_lessons_pack_id_packs", ondelete="SET NULL"),
    )
    op.create_index("ix_lessons_tenant_id", "lessons", ["tenant_id"], unique=False)
    op.create_index("ix_lessons_student_id", "lessons", ["student_id"], unique=False)
    op.create_index("ix_lessons_pack_id", "lessons", ["pack_id"], unique=False)
    op.create_index("ix_lessons_starts_at", "lessons", ["starts_at"], unique=False)
    op.create_index("ix_lessons_status", "lessons", ["status"], unique=False)
    op.create_index(
        "uq_lessons_tenant_active_start",
        "lessons",
        ["tenant_id", "starts_at"],
        unique=True,
        postgresql_where=sa.text("status IN ('reserved', 'confirmed')"),
    )

    op.create_table(
        "pack_ledger",
        _id_col(),
        _created_col(),
        _updated_col(),
        *_tenant_col("pack_ledger"),
        sa.Column("pack_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("lesson_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("reason", ledger_reason_enum, nullable=False),
        sa.ForeignKeyConstraint(["pack_id"], ["packs.id"], name="fk_pack_ledger_pack_id_packs", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["lesson_id"], ["lessons.id"], name="fk_pack_ledger_lesson_id_lessons", ondelete="SET NULL"
        ),
    )
    op.create_index("ix_pack_ledger_tenant_id", "pack_ledger", ["tenant_id"], unique=False)
    op.create_index("ix_pack_ledger_pack_id", "pack_ledger", ["pack_id"], unique=False)
    op.create_index("ix_pack_ledger_lesson_id", "pack_ledger", ["lesson_id"], unique=False)

    op.create_table(
        "payments",
        _id_col(),
        _created_col(),
        _updated_col(),
        *_tenant_col("payments"),
        sa.Column("lesson_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("pack_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("provider", sa.String(length=32), nullable=False),
        sa.Column("provider_reference", sa.String(length=64), nullable=False),
        sa.Column("provider_payment_id", sa.String(length=128), nullable=True),
        sa.Column("status", payment_status_enum, nullable=False),
        sa.Column("raw_payload", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("checkout_url", sa.String(length=1024), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["lesson_id"], ["lessons.id"], name="fk_payments_lesson_id_lessons", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["pack_id"], ["packs.id"], name="fk_payments_pack_id_packs", ondelete="CASCADE"),
        sa.UniqueConstraint("tenant_id", "provider_reference", name="uq_payments_tenant_reference"),
        sa.CheckConstraint("lesson_id IS NOT NULL OR pack_id IS NOT NULL", name="ck_payments_has_target"),
    )
    op.create_index("ix_payments_tenant_id", "payments", ["tenant_id"], unique=False)
    op.create_index("ix_payments_lesson_id", "payments", ["lesson_id"], unique=False)
    op.create_index("ix_payments_pack_id", "payments", ["pack_id"], unique=False)
    op.create_index("ix_payments_status", "payments", ["status"], unique=False)

    op.create_table(
        "leads",
        _id_col(),
        _created_col(),
        _updated_col(),
        *_tenant_col("leads"),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("objective", sa.Text(), nullable=True),
        sa.Column("status", lead_status_enum, nullable=False),
    )
    op.create_index("ix_leads_tenant_id", "leads", ["tenant_id"], unique=False)
    op.create_index("ix_leads_status", "leads", ["status"], unique=False)

    op.create_table(
        "webhook_logs",
        _id_col(),
        _created_col(),
        _updated_col(),
        *_tenant_col("webhook_logs"),
        sa.Column("provider", sa.String(length=32), nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        sa.Column("idempotency_key", sa.String(length=255), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("processed", sa.Boolean(), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("idempotency_key", name="uq_webhook_logs_idempotency_key"),
    )
    op.create_index("ix_webhook_logs_tenant_id", "webhook_logs", ["tenant_id"], unique=False)

    op.create_table(
        "outbox_jobs",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("queue", sa.String(length=32), nullable=False),
        sa.Column("job_name", sa.String(length=64), nullable=False),
        sa.Column("job_key", sa.String(length=255), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", outbox_status_enum, nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("max_attempts", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("available_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("job_key", name="uq_outbox_jobs_job_key"),
    )
    op.create_index("ix_outbox_jobs_tenant_id", "outbox_jobs", ["tenant_id"], unique=False)
    op.create_index("ix_outbox_jobs_queue", "outbox_jobs", ["queue"], unique=False)
    op.create_index("ix_outbox_jobs_status", "outbox_jobs", ["status"], unique=False)

    op.create_table(
        "job_runs",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("queue", sa.String(length=32), nullable=False),
        sa.Column("job_name", sa.String(length=64), nullable=False),
        sa.Column("job_id", sa.String(length=255), nullable=False),
        sa.Column("status", job_run_status_enum, nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("result", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_job_runs_tenant_id", "job_runs", ["tenant_id"], unique=False)
    op.create_index("ix_job_runs_job_name", "job_runs", ["job_name"], unique=False)
    op.create_index("ix_job_runs_job_id", "job_runs", ["job_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_job_runs_job_id", table_name="job_runs")
    op.drop_index("ix_job_runs_job_name", table_name="job_runs")
    op.drop_index("ix_job_runs_tenant_id", table_name="job_runs")
    op.drop_table("job_runs")

    op.drop_index("ix_outbox_jobs_status", table_name="outbox_jobs")
    op.drop_index("ix_outbox_jobs_queue", table_name="outbox_jobs")
    op.drop_index("ix_outbox_jobs_tenant_id", table_name="outbox_jobs")
    op.drop_table("outbox_jobs")

    op.drop_index("ix_webhook_logs_tenant_id", table_name="webhook_logs")
    op.drop_table("webhook_logs")

    op.drop_index("ix_leads_status", table_name="leads")
    op.drop_index("ix_leads_tenant_id", table_name="leads")
    op.drop_table("leads")

    op.drop_index("ix_payments_status", table_name="payments")
    op.drop_index("ix_payments_pack_id", table_name="payments")
    op.drop_index("ix_payments_lesson_id", table_name="payments")
    op.drop_index("ix_payments_tenant_id", table_name="payments")
    op.drop_table("payments")

    op.drop_index("ix_pack_ledger_lesson_id", table_name="pack_ledger")
    op.drop_index("ix_pack_ledger_pack_id", table_name="pack_ledger")
    op.drop_index("ix_pack_ledger_tenant_id", table_name="pack_ledger")
    op.drop_table("pack_ledger")

    op.drop_index("uq_lessons_tenant_active_start", table_name="lessons")
    op.drop_index("ix_lessons_status", table_name="lessons")
    op.drop_index("ix_lessons_starts_at", table_name="lessons")
    op.drop_index("ix_lessons_pack_id", table_name="lessons")
    op.drop_index("ix_lessons_student_id", table_name="lessons")
    op.drop_index("ix_lessons_tenant_id", table_name="lessons")
    op.drop_table("lessons")

    op.drop_index("ix_packs_student_id", table_name="packs")
    op.drop_index("ix_packs_tenant_id", table_name="packs")
    op.drop_table("packs")

    op.drop_index("ix_blocked_times_starts_at", table_name="blocked_times")
    op.drop_index("ix_blocked_times_tenant_id", table_name="blocked_times")
    op.drop_table("blocked_times")

    op.drop_index("ix_availability_rules_weekday", table_name="availability_rules")
    op.drop_index("ix_availability_rules_tenant_id", table_name="availability_rules")
    op.drop_table("availability_rules")

    op.drop_index("ix_lesson_types_tenant_id", table_name="lesson_types")
    op.drop_table("lesson_types")

    op.drop_index("ix_students_user_id", table_name="students")
    op.drop_index("ix_students_tenant_id", table_name="students")
    op.drop_table("students")

    op.drop_index("ix_users_tenant_id", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    op.drop_table("tenant_settings")

    op.drop_index("ix_tenants_slug", table_name="tenants")
    op.drop_table("tenants")
