from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from review_engine.core.config import settings


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        # writers wait for each other instead of failing with "database is locked"
        return {"check_same_thread": False, "timeout": 30}
    return {}


engine = create_engine(
    settings.database_url,
    connect_args=_connect_args(settings.database_url),
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)
