"""Initial ChapterHub schema: members, points ledger, objectives, activities

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from chapterhub.engine.objectives import taxonomy_check_sql

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "members",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="member"),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_validated", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cotisation_s1", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cotisation_s2", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("strengths", postgresql.JSONB(), nullable=True),
        sa.Column("weaknesses", postgresql.JSONB(), nullable=True),
        sa.Column(
            "advisor_id", sa.String(36),
            sa.ForeignKey("members.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_members_points_desc", "members", ["points"])
    op.create_index("ix_members_advisor", "members", ["advisor_id"])

    op.create_table(
        "points_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "member_id", sa.String(36),
            sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("source_type", sa.String(20), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True),
            nullable=False, server_default=sa.func.now(),
        ),
        sa.CheckConstraint("points <> 0", name="ck_points_history_nonzero"),
        sa.CheckConstraint(
            "source_type IN ('manual', 'activity', 'objective')",
            name="ck_points_history_source",
        ),
    )
    op.create_index("ix_points_history_member_time", "points_history", ["member_id", "created_at"])
    op.create_index("ix_points_history_time", "points_history", ["created_at"])

    op.create_table(
        "objectives",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=True),
        sa.Column("objective_group", sa.String(30), nullable=False),
        sa.Column("action_type", sa.String(30), nullable=False),
        sa.Column("feature", sa.String(30), nullable=False),
        sa.Column("difficulty", sa.String(10), nullable=False),
        sa.Column("privacy", sa.String(10), nullable=True),
        sa.Column("target_roles", postgresql.JSONB(), nullable=True),
        sa.Column("target", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_by", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("target >= 1", name="ck_objectives_target_positive"),
        sa.CheckConstraint("points >= 0", name="ck_objectives_points_nonnegative"),
        sa.CheckConstraint(taxonomy_check_sql(), name="ck_objectives_classification"),
    )

    op.create_table(
        "user_objectives",
        sa.Column(
            "member_id", sa.String(36),
            sa.ForeignKey("members.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "objective_id", sa.Integer(),
            sa.ForeignKey("objectives.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("progress >= 0", name="ck_user_objectives_progress_nonnegative"),
    )

    op.create_table(
        "activities",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("activity_type", sa.String(30), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("activity_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("begins_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("activity_points >= 0", name="ck_activities_points_nonnegative"),
    )

    op.create_table(
        "activity_participants",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "activity_id", sa.Integer(),
            sa.ForeignKey("activities.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "member_id", sa.String(36),
            sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("is_temp", sa.Boolean(), server_default=sa.false()),
        sa.Column("is_interested", sa.Boolean(), server_default=sa.false()),
        sa.Column("rate", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("points_awarded", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("registered_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("activity_id", "member_id", name="uq_activity_participants"),
        sa.CheckConstraint("rate IS NULL OR (rate BETWEEN 1 AND 5)", name="ck_participant_rate"),
    )

    op.create_table(
        "complaints",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "member_id", sa.String(36),
            sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_complaints_status_time", "complaints", ["status", "created_at"])

    op.create_table(
        "admin_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.String(36), nullable=False),
        sa.Column("action_type", sa.String(50), nullable=False),
        sa.Column("target_table", sa.String(50), nullable=False),
        sa.Column("target_id", sa.String(100), nullable=True),
        sa.Column("before_snapshot", postgresql.JSONB(), nullable=True),
        sa.Column("after_snapshot", postgresql.JSONB(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_admin_log_actor_time", "admin_log", ["actor_id", "timestamp"])
    op.create_index("ix_admin_log_target", "admin_log", ["target_table", "target_id", "timestamp"])


def downgrade() -> None:
    op.drop_table("admin_log")
    op.drop_table("complaints")
    op.drop_table("activity_participants")
    op.drop_table("activities")
    op.drop_table("user_objectives")
    op.drop_table("objectives")
    op.drop_table("points_history")
    op.drop_table("members")
