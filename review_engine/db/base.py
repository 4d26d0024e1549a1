# import every model so Base.metadata knows all tables (used by init_db, alembic and tests)
from review_engine.db.base_class import Base  # noqa: F401
from review_engine.models import (  # noqa: F401
    decision,
    exercise,
    lesson,
    level,
    notification,
    promotion,
    student_plan,
    submission,
    unlock_record,
)
