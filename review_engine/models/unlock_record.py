from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from review_engine.db.base_class import Base


class UnlockRecord(Base):
    __tablename__ = "unlock_records"

    id: Mapped[int] = mapped_column(primary_key=True)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    unlocked_lesson_id: Mapped[str | None] = mapped_column(ForeignKey("lessons.id"))
    unlocked_level_id: Mapped[str | None] = mapped_column(ForeignKey("levels.id"))
    unlocked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    cause_submission_id: Mapped[str] = mapped_column(
        ForeignKey("submissions.id"), nullable=False, index=True
    )

    __table_args__ = (
        CheckConstraint(
            "(unlocked_lesson_id IS NULL) <> (unlocked_level_id IS NULL)",
            name="ck_unlock_records_single_target",
        ),
        UniqueConstraint("student_id", "unlocked_lesson_id", name="uq_unlock_records_lesson"),
        UniqueConstraint("student_id", "unlocked_level_id", name="uq_unlock_records_level"),
    )
