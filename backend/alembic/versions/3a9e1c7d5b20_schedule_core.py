"""schedule core: users, staff profiles, catalog, weeks, instances, assignments

Revision ID: 3a9e1c7d5b20
Revises:
Create Date: 2026-09-28

"""

from alembic import op
import sqlalchemy as sa

revision = "3a9e1c7d5b20"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("full_name", sa.String(length=128), nullable=True),
        sa.Column("short_name", sa.String(length=64), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("tg_user_id", sa.BigInteger(), nullable=True, unique=True),
        sa.Column("role_key", sa.String(length=32), nullable=False, server_default="staff"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "staff_profiles",
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), primary_key=True),
        sa.Column("staff_type", sa.String(length=20), nullable=False),
        sa.Column("lives_in_accom", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "shift_types",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(length=64), nullable=False, unique=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
    )

    op.create_table(
        "shift_roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=80), nullable=False, unique=True),
        sa.Column("slug", sa.String(length=80), nullable=False, unique=True),
    )

    op.create_table(
        "user_shift_roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("shift_role_id", sa.Integer(), sa.ForeignKey("shift_roles.id"), nullable=False, index=True),
        sa.UniqueConstraint("user_id", "shift_role_id", name="uq_user_shift_role"),
    )

    op.create_table(
        "shift_templates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("shift_type_id", sa.Integer(), sa.ForeignKey("shift_types.id"), nullable=False, index=True),
        sa.Column("name", sa.String(length=160), nullable=False, unique=True),
        sa.Column("default_start_time", sa.Time(), nullable=True),
        sa.Column("default_end_time", sa.Time(), nullable=True),
        sa.Column("default_capacity", sa.Integer(), nullable=True),
        sa.Column("default_roles", sa.JSON(), nullable=True),
        sa.Column("default_meta", sa.JSON(), nullable=True),
        sa.Column("repeat_on", sa.JSON(), nullable=True),
        sa.Column("requires_leader", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("manager_covers_team", sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    op.create_table(
        "schedule_weeks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("iso_week", sa.Integer(), nullable=False),
        sa.Column("tz", sa.String(length=64), nullable=False),
        sa.Column("state", sa.String(length=20), nullable=False, server_default="collecting"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.UniqueConstraint("year", "iso_week", name="uq_schedule_weeks_year_week"),
    )

    op.create_table(
        "shift_instances",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("schedule_week_id", sa.Integer(), sa.ForeignKey("schedule_weeks.id"), nullable=False, index=True),
        sa.Column("shift_type_id", sa.Integer(), sa.ForeignKey("shift_types.id"), nullable=False, index=True),
        sa.Column("shift_template_id", sa.Integer(), sa.ForeignKey("shift_templates.id"), nullable=True, index=True),
        sa.Column("date", sa.Date(), nullable=False, index=True),
        sa.Column("time_start", sa.Time(), nullable=False),
        sa.Column("time_end", sa.Time(), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=True),
        sa.Column("required_roles", sa.JSON(), nullable=True),
        sa.Column("meta", sa.JSON(), nullable=True),
    )

    op.create_table(
        "shift_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("shift_instance_id", sa.Integer(), sa.ForeignKey("shift_instances.id"), nullable=False, index=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("role_in_shift", sa.String(length=80), nullable=False),
        sa.Column("shift_role_id", sa.Integer(), sa.ForeignKey("shift_roles.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
    )

    op.create_table(
        "availabilities",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("schedule_week_id", sa.Integer(), sa.ForeignKey("schedule_weeks.id"), nullable=False, index=True),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("shift_type_id", sa.Integer(), sa.ForeignKey("shift_types.id"), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
    )


def downgrade():
    op.drop_table("availabilities")
    op.drop_table("shift_assignments")
    op.drop_table("shift_instances")
    op.drop_table("schedule_weeks")
    op.drop_table("shift_templates")
    op.drop_table("user_shift_roles")
    op.drop_table("shift_roles")
    op.drop_table("shift_types")
    op.drop_table("staff_profiles")
    op.drop_table("users")
