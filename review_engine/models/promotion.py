from sqlalchemy import Boolean, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from review_engine.db.base_class import Base


class Promotion(Base):
    """A cohort of students progressing together through a level (group track)."""

    __tablename__ = "promotions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    level_id: Mapped[str] = mapped_column(ForeignKey("levels.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    members = relationship("PromotionMember", back_populates="promotion")


class PromotionMember(Base):
    __tablename__ = "promotion_members"

    id: Mapped[int] = mapped_column(primary_key=True)
    promotion_id: Mapped[str] = mapped_column(
        ForeignKey("promotions.id"), nullable=False, index=True
    )
    student_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    # members who don't count towards the cohort gate (auditors, late joiners)
    gating_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("promotion_id", "student_id", name="uq_promotion_members_student"),
    )

    promotion = relationship("Promotion", back_populates="members")
