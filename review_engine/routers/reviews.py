from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from review_engine.core.deps import get_cohorts, get_db
from review_engine.schemas.review import DecisionCreate, DecisionResult, TeacherAction
from review_engine.schemas.submission import SubmissionRead
from review_engine.schemas.unlock import UnlockRecordRead
from review_engine.services import lock_manager, review_state_machine
from review_engine.services.collaborators import CohortDirectory

router = APIRouter(prefix="/submissions/{submission_id}")


@router.post(
    "/lock",
    response_model=SubmissionRead,
    responses={409: {"description": "Being reviewed by another teacher (see owner)"}},
)
def acquire_lock(submission_id: str, payload: TeacherAction, db: Session = Depends(get_db)):
    return lock_manager.acquire(db, submission_id, payload.teacher_id)


@router.post(
    "/release",
    response_model=SubmissionRead,
    responses={403: {"description": "Lock held by someone else"}},
)
def release_lock(submission_id: str, payload: TeacherAction, db: Session = Depends(get_db)):
    return lock_manager.release(db, submission_id, payload.teacher_id)


@router.post(
    "/decision",
    response_model=DecisionResult,
    responses={
        403: {"description": "Caller does not hold the review lock"},
        409: {"description": "Submission already decided"},
        422: {"description": "Rejection without justification"},
    },
)
def decide(
    submission_id: str,
    payload: DecisionCreate,
    db: Session = Depends(get_db),
    cohorts: CohortDirectory = Depends(get_cohorts),
):
    submission, unlocks = review_state_machine.decide(
        db,
        cohorts,
        submission_id,
        payload.teacher_id,
        payload.outcome,
        reason=payload.reason,
        attachment=payload.attachment,
    )
    return DecisionResult(
        submission=SubmissionRead.model_validate(submission),
        unlocks=[UnlockRecordRead.model_validate(u) for u in unlocks],
    )


@router.post(
    "/reopen",
    response_model=SubmissionRead,
    responses={403: {"description": "Only the deciding teacher can reopen"}},
)
def reopen(submission_id: str, payload: TeacherAction, db: Session = Depends(get_db)):
    return review_state_machine.reopen(db, submission_id, payload.teacher_id)


# out-of-band retry when the unlock computation failed after an approval
@router.post("/propagate", response_model=list[UnlockRecordRead])
def retry_propagation(
    submission_id: str,
    db: Session = Depends(get_db),
    cohorts: CohortDirectory = Depends(get_cohorts),
):
    return review_state_machine.retry_propagation(db, cohorts, submission_id)
