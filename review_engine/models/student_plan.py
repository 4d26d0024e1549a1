from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from review_engine.db.base_class import Base


class StudentPlan(Base):
    __tablename__ = "student_plans"

    student_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    plan_type: Mapped[str] = mapped_column(String(50), nullable=False, default="free")
    allow_exercises: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
