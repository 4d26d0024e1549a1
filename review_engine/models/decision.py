from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from review_engine.db.base_class import Base

REOPENED = "reopened"


class SubmissionDecision(Base):
    """Append-only log of decisions; the submission row only keeps the latest one."""

    __tablename__ = "submission_decisions"

    id: Mapped[int] = mapped_column(primary_key=True)
    submission_id: Mapped[str] = mapped_column(
        ForeignKey("submissions.id"), nullable=False, index=True
    )
    outcome: Mapped[str] = mapped_column(String(20), nullable=False)  # approved | rejected | reopened
    reason: Mapped[str | None] = mapped_column(Text)
    attachment: Mapped[str | None] = mapped_column(String(512))
    teacher_id: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    submission = relationship("Submission", back_populates="decisions")
