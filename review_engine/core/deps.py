from fastapi import Depends
from sqlalchemy.orm import Session

from review_engine.core.config import settings
from review_engine.db.session import SessionLocal
from review_engine.services.collaborators import (
    AccessControl,
    CohortDirectory,
    PlanAccessControl,
    PromotionCohorts,
)


# every request that needs DB will get a fresh session, and it will always close.
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_access_control(db: Session = Depends(get_db)) -> AccessControl:
    return PlanAccessControl(db)


def get_cohorts(db: Session = Depends(get_db)) -> CohortDirectory:
    return PromotionCohorts(db, policy=settings.cohort_gate_policy)
