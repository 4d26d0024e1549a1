import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from review_engine.db.base_class import Base

PENDING = "pending"
LOCKED = "locked"
APPROVED = "approved"
REJECTED = "rejected"

OPEN_STATUSES = (PENDING, LOCKED)
TERMINAL_STATUSES = (APPROVED, REJECTED)

_OPEN_PRIVATE = "status IN ('pending', 'locked') AND lesson_id IS NOT NULL"
_OPEN_GROUP = "status IN ('pending', 'locked') AND level_id IS NOT NULL"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Submission(Base):
    __tablename__ = "submissions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    exercise_id: Mapped[str] = mapped_column(ForeignKey("exercises.id"), nullable=False, index=True)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # exactly one of these is set: lesson_id for the private track, level_id for the group track
    lesson_id: Mapped[str | None] = mapped_column(ForeignKey("lessons.id"), index=True)
    level_id: Mapped[str | None] = mapped_column(ForeignKey("levels.id"), index=True)
    promotion_id: Mapped[str | None] = mapped_column(ForeignKey("promotions.id"))

    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    file_reference: Mapped[str | None] = mapped_column(String(512))

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PENDING, index=True)

    lock_owner_id: Mapped[str | None] = mapped_column(String(64))
    lock_acquired_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # decision fields (nullable until decided, cleared on reopen)
    decision_reason: Mapped[str | None] = mapped_column(Text)
    decision_attachment: Mapped[str | None] = mapped_column(String(512))
    decided_by: Mapped[str | None] = mapped_column(String(64))
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "(lesson_id IS NULL) <> (level_id IS NULL)",
            name="ck_submissions_single_track",
        ),
        CheckConstraint(
            "status IN ('pending', 'locked', 'approved', 'rejected')",
            name="ck_submissions_status",
        ),
        CheckConstraint(
            "(status = 'locked') = (lock_owner_id IS NOT NULL)",
            name="ck_submissions_lock_owner",
        ),
        # at most one open submission per student/exercise (per level on the group track)
        Index(
            "uq_submissions_open_private",
            "student_id",
            "exercise_id",
            unique=True,
            sqlite_where=text(_OPEN_PRIVATE),
            postgresql_where=text(_OPEN_PRIVATE),
        ),
        Index(
            "uq_submissions_open_group",
            "student_id",
            "exercise_id",
            "level_id",
            unique=True,
            sqlite_where=text(_OPEN_GROUP),
            postgresql_where=text(_OPEN_GROUP),
        ),
    )

    exercise = relationship("Exercise")
    decisions = relationship(
        "SubmissionDecision",
        back_populates="submission",
        order_by="SubmissionDecision.id",
    )
