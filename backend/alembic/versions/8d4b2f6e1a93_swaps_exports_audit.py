"""swap requests, schedule exports, audit log

Revision ID: 8d4b2f6e1a93
Revises: 3a9e1c7d5b20
Create Date: 2026-10-05

"""

from alembic import op
import sqlalchemy as sa

revision = "8d4b2f6e1a93"
down_revision = "3a9e1c7d5b20"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "swap_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "from_assignment_id",
            sa.Integer(),
            sa.ForeignKey("shift_assignments.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "to_assignment_id",
            sa.Integer(),
            sa.ForeignKey("shift_assignments.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("requester_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("partner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("manager_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending_partner"),
        sa.Column("decision_reason", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
    )

    op.create_table(
        "schedule_exports",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("schedule_week_id", sa.Integer(), sa.ForeignKey("schedule_weeks.id"), nullable=False, index=True),
        sa.Column("file_id", sa.String(length=255), nullable=False),
        sa.Column("url", sa.String(length=1000), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("meta", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
    )
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity", "entity_id"])


def downgrade():
    op.drop_index("ix_audit_logs_entity", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_table("schedule_exports")
    op.drop_table("swap_requests")
