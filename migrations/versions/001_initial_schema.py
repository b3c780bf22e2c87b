"""Initial database schema

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create screening_records table
    op.create_table(
        "screening_records",
        sa.Column("record_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        # Set while the record holds its email; unique per active screening
        sa.Column("active_email", sa.String(320), nullable=True, unique=True),
        sa.Column("provider_name", sa.String(50), nullable=False),
        sa.Column("check_tier", sa.String(20), nullable=False),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("external_report_id", sa.String(255), nullable=True),
        sa.Column("consent", postgresql.JSONB, nullable=False),
        sa.Column("candidate_summary", postgresql.JSONB, nullable=True),
        sa.Column("decision", postgresql.JSONB, nullable=True),
        sa.Column("report_artifact_url", sa.Text, nullable=True),
        sa.Column("error", postgresql.JSONB, nullable=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("profile_created", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("cancel_requested", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("pre_adverse_notice_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("poll_attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("previous_record_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_screening_records_email", "screening_records", ["email"])
    op.create_index("ix_screening_records_status", "screening_records", ["status"])
    op.create_index(
        "idx_screening_records_email_created", "screening_records", ["email", "created_at"]
    )
    op.create_index(
        "idx_screening_records_external_report",
        "screening_records",
        ["provider_name", "external_report_id"],
    )

    # Create user_accounts table
    op.create_table(
        "user_accounts",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(100), nullable=True),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("email_verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    # Create user_profiles table
    op.create_table(
        "user_profiles",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("state", sa.String(2), nullable=True),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("screening_status", sa.String(30), nullable=False),
        sa.Column("screening_record_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["user_id"], ["user_accounts.user_id"], ondelete="CASCADE"),
    )


def downgrade() -> None:
    op.drop_table("user_profiles")
    op.drop_table("user_accounts")
    op.drop_table("screening_records")
