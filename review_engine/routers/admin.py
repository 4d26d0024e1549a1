from datetime import timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from review_engine.core.deps import get_db
from review_engine.schemas.review import AdminAction
from review_engine.schemas.submission import SubmissionRead
from review_engine.services import lock_manager

router = APIRouter()


@router.get("/locks", response_model=list[SubmissionRead])
def stale_locks(
    held_longer_than_minutes: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    return lock_manager.stale_locks(db, timedelta(minutes=held_longer_than_minutes))


@router.post("/submissions/{submission_id}/force-release", response_model=SubmissionRead)
def force_release(submission_id: str, payload: AdminAction, db: Session = Depends(get_db)):
    return lock_manager.force_release(db, submission_id, payload.actor_id)
