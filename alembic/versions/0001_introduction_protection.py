"""introduction protection schema

Revision ID: 0001_introduction_protection
Revises: None
Create Date: 2026-10-18 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_introduction_protection"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
    ]


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("password_hash", sa.String(255)),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column("api_token", sa.String(128), unique=True),
        *_timestamps(),
    )
    op.create_index("ix_users_api_token", "users", ["api_token"])

    op.create_table(
        "employers",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False, unique=True),
        sa.Column("company_name", sa.String(200), nullable=False),
        sa.Column("contact_name", sa.String(120)),
        sa.Column("contact_email", sa.String(254)),
        *_timestamps(),
    )

    op.create_table(
        "candidates",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False, unique=True),
        sa.Column("phone", sa.String(40)),
        sa.Column("linkedin", sa.String(255)),
        *_timestamps(),
    )

    op.create_table(
        "jobs",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("employer_id", sa.Integer, sa.ForeignKey("employers.id"), nullable=False, index=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("salary_min", sa.Integer),
        sa.Column("salary_max", sa.Integer),
        *_timestamps(),
    )

    op.create_table(
        "candidate_introductions",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("employer_id", sa.Integer, sa.ForeignKey("employers.id"), nullable=False, index=True),
        sa.Column("candidate_id", sa.Integer, sa.ForeignKey("candidates.id"), nullable=False, index=True),
        sa.Column("job_id", sa.Integer, sa.ForeignKey("jobs.id")),
        sa.Column("status", sa.String(32), nullable=False, index=True),
        sa.Column("profile_viewed_at", sa.DateTime),
        sa.Column("intro_requested_at", sa.DateTime),
        sa.Column("candidate_responded_at", sa.DateTime),
        sa.Column("candidate_response", sa.String(32)),
        sa.Column("introduced_at", sa.DateTime),
        sa.Column("protection_starts_at", sa.DateTime, nullable=False),
        sa.Column("protection_ends_at", sa.DateTime, nullable=False, index=True),
        sa.Column("profile_views", sa.Integer, nullable=False, server_default="0"),
        sa.Column("resume_downloads", sa.Integer, nullable=False, server_default="0"),
        sa.Column("response_token", sa.String(128), unique=True),
        sa.Column("response_token_expiry", sa.DateTime),
        sa.Column("last_email_sent_at", sa.DateTime),
        sa.Column("email_resend_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("candidate_message", sa.Text),
        sa.Column("expiry_warning_sent_at", sa.DateTime),
        sa.Column("admin_notes", sa.Text),
        *_timestamps(),
        sa.UniqueConstraint("employer_id", "candidate_id", name="uq_introductions_employer_candidate"),
    )

    op.create_table(
        "candidate_check_ins",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("introduction_id", sa.Integer, sa.ForeignKey("candidate_introductions.id"),
                  nullable=False, index=True),
        sa.Column("check_in_number", sa.Integer, nullable=False),
        sa.Column("scheduled_for", sa.DateTime, nullable=False),
        sa.Column("sent_at", sa.DateTime),
        sa.Column("send_attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_send_error", sa.Text),
        sa.Column("response_token", sa.String(128), unique=True),
        sa.Column("response_token_expiry", sa.DateTime),
        sa.Column("responded_at", sa.DateTime),
        sa.Column("response_type", sa.String(20)),
        sa.Column("response_raw", sa.Text),
        sa.Column("response_parsed", sa.JSON),
        sa.Column("previous_response_parsed", sa.JSON),
        sa.Column("risk_level", sa.String(32)),
        sa.Column("risk_reason", sa.Text),
        sa.Column("flagged_for_review", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint("introduction_id", "check_in_number", name="uq_check_ins_intro_number"),
    )

    op.create_table(
        "circumvention_flags",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("introduction_id", sa.Integer, sa.ForeignKey("candidate_introductions.id"),
                  nullable=False, index=True),
        sa.Column("detection_method", sa.String(32), nullable=False),
        sa.Column("evidence", sa.JSON, nullable=False),
        sa.Column("status", sa.String(32), nullable=False, index=True),
        sa.Column("detected_at", sa.DateTime, nullable=False),
        sa.Column("estimated_salary", sa.Numeric(12, 2)),
        sa.Column("fee_percentage", sa.Numeric(5, 2)),
        sa.Column("estimated_fee_owed", sa.Numeric(12, 2)),
        sa.Column("resolved_at", sa.DateTime),
        sa.Column("resolution", sa.String(255)),
        sa.Column("resolution_notes", sa.Text),
        sa.Column("invoice_number", sa.String(40)),
        sa.Column("invoice_sent_at", sa.DateTime),
        sa.Column("invoice_amount", sa.Numeric(12, 2)),
        sa.Column("invoice_due_date", sa.DateTime),
        sa.Column("invoice_paid_at", sa.DateTime),
        *_timestamps(),
    )

    op.create_table(
        "placements",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("candidate_id", sa.Integer, sa.ForeignKey("candidates.id"), nullable=False, index=True),
        sa.Column("employer_id", sa.Integer, sa.ForeignKey("employers.id"), index=True),
        sa.Column("job_title", sa.String(200), nullable=False),
        sa.Column("start_date", sa.DateTime, nullable=False),
        sa.Column("status", sa.String(32), nullable=False, index=True),
        sa.Column("placement_fee", sa.Integer),
        sa.Column("guarantee_period_days", sa.Integer, nullable=False, server_default="90"),
        sa.Column("guarantee_end_date", sa.DateTime, index=True),
        sa.Column("guarantee_warning_sent_at", sa.DateTime),
        *_timestamps(),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("introduction_id", sa.Integer, sa.ForeignKey("candidate_introductions.id"), index=True),
        sa.Column("kind", sa.String(50)),
        sa.Column("sent_to", sa.String(255)),
        sa.Column("subject", sa.String(255)),
        sa.Column("status", sa.String(20)),
        sa.Column("error", sa.Text),
        sa.Column("provider_message_id", sa.String(255)),
        sa.Column("sent_at", sa.DateTime),
        *_timestamps(),
    )

    op.create_table(
        "platform_settings",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("key", sa.String(128), nullable=False, unique=True),
        sa.Column("value", sa.JSON),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        *_timestamps(),
    )


def downgrade():
    for name in ("platform_settings", "notifications", "placements", "circumvention_flags",
                 "candidate_check_ins", "candidate_introductions", "jobs", "candidates",
                 "employers", "users"):
        op.drop_table(name)
