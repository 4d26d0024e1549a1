"""create review engine schema

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19 11:02:41.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

OPEN_PRIVATE = "status IN ('pending', 'locked') AND lesson_id IS NOT NULL"
OPEN_GROUP = "status IN ('pending', 'locked') AND level_id IS NOT NULL"


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "levels",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("formation_id", sa.String(64), nullable=False, index=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
    )
    op.create_table(
        "lessons",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("level_id", sa.String(64), sa.ForeignKey("levels.id"), nullable=False, index=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
    )
    op.create_table(
        "exercises",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("lesson_id", sa.String(64), sa.ForeignKey("lessons.id"), nullable=False, index=True),
        sa.Column("title", sa.String(255), nullable=False),
    )
    op.create_table(
        "promotions",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("level_id", sa.String(64), sa.ForeignKey("levels.id"), nullable=False, index=True),
        sa.Column("name", sa.String(255), nullable=False),
    )
    op.create_table(
        "promotion_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("promotion_id", sa.String(64), sa.ForeignKey("promotions.id"), nullable=False, index=True),
        sa.Column("student_id", sa.String(64), nullable=False, index=True),
        sa.Column("gating_required", sa.Boolean(), nullable=False),
        sa.UniqueConstraint("promotion_id", "student_id", name="uq_promotion_members_student"),
    )
    op.create_table(
        "student_plans",
        sa.Column("student_id", sa.String(64), primary_key=True),
        sa.Column("plan_type", sa.String(50), nullable=False),
        sa.Column("allow_exercises", sa.Boolean(), nullable=False),
    )
    op.create_table(
        "submissions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("exercise_id", sa.String(64), sa.ForeignKey("exercises.id"), nullable=False, index=True),
        sa.Column("student_id", sa.String(64), nullable=False, index=True),
        sa.Column("lesson_id", sa.String(64), sa.ForeignKey("lessons.id"), nullable=True, index=True),
        sa.Column("level_id", sa.String(64), sa.ForeignKey("levels.id"), nullable=True, index=True),
        sa.Column("promotion_id", sa.String(64), sa.ForeignKey("promotions.id"), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("file_reference", sa.String(512), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, index=True),
        sa.Column("lock_owner_id", sa.String(64), nullable=True),
        sa.Column("lock_acquired_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decision_reason", sa.Text(), nullable=True),
        sa.Column("decision_attachment", sa.String(512), nullable=True),
        sa.Column("decided_by", sa.String(64), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("(lesson_id IS NULL) <> (level_id IS NULL)", name="ck_submissions_single_track"),
        sa.CheckConstraint(
            "status IN ('pending', 'locked', 'approved', 'rejected')", name="ck_submissions_status"
        ),
        sa.CheckConstraint(
            "(status = 'locked') = (lock_owner_id IS NOT NULL)", name="ck_submissions_lock_owner"
        ),
    )
    op.create_index(
        "uq_submissions_open_private",
        "submissions",
        ["student_id", "exercise_id"],
        unique=True,
        sqlite_where=sa.text(OPEN_PRIVATE),
        postgresql_where=sa.text(OPEN_PRIVATE),
    )
    op.create_index(
        "uq_submissions_open_group",
        "submissions",
        ["student_id", "exercise_id", "level_id"],
        unique=True,
        sqlite_where=sa.text(OPEN_GROUP),
        postgresql_where=sa.text(OPEN_GROUP),
    )
    op.create_table(
        "submission_decisions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("submission_id", sa.String(36), sa.ForeignKey("submissions.id"), nullable=False, index=True),
        sa.Column("outcome", sa.String(20), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("attachment", sa.String(512), nullable=True),
        sa.Column("teacher_id", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "unlock_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("student_id", sa.String(64), nullable=False, index=True),
        sa.Column("unlocked_lesson_id", sa.String(64), sa.ForeignKey("lessons.id"), nullable=True),
        sa.Column("unlocked_level_id", sa.String(64), sa.ForeignKey("levels.id"), nullable=True),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("cause_submission_id", sa.String(36), sa.ForeignKey("submissions.id"), nullable=False, index=True),
        sa.CheckConstraint(
            "(unlocked_lesson_id IS NULL) <> (unlocked_level_id IS NULL)",
            name="ck_unlock_records_single_target",
        ),
        sa.UniqueConstraint("student_id", "unlocked_lesson_id", name="uq_unlock_records_lesson"),
        sa.UniqueConstraint("student_id", "unlocked_level_id", name="uq_unlock_records_level"),
    )
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("recipient_id", sa.String(64), nullable=False, index=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("unlock_record_id", sa.Integer(), sa.ForeignKey("unlock_records.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("notifications")
    op.drop_table("unlock_records")
    op.drop_table("submission_decisions")
    op.drop_index("uq_submissions_open_group", table_name="submissions")
    op.drop_index("uq_submissions_open_private", table_name="submissions")
    op.drop_table("submissions")
    op.drop_table("student_plans")
    op.drop_table("promotion_members")
    op.drop_table("promotions")
    op.drop_table("exercises")
    op.drop_table("lessons")
    op.drop_table("levels")
