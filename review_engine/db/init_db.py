from review_engine.db.base import Base
from review_engine.db.session import engine


def init_db() -> None:
    Base.metadata.create_all(bind=engine)
