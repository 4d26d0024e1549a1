from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from review_engine.db.base_class import Base


class Level(Base):
    __tablename__ = "levels"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    formation_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)

    lessons = relationship("Lesson", back_populates="level", order_by="Lesson.order_index")
