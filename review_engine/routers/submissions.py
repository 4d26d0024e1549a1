from typing import Literal, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from review_engine.core.deps import get_access_control, get_cohorts, get_db
from review_engine.schemas.review import DecisionRead
from review_engine.schemas.submission import SubmissionCreate, SubmissionRead, SubmissionUpdate
from review_engine.services import review_state_machine
from review_engine.services.collaborators import AccessControl, CohortDirectory

router = APIRouter()


@router.post(
    "/submissions",
    response_model=SubmissionRead,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"description": "Plan does not allow submitting exercises"},
        404: {"description": "Exercise not found in this lesson/level"},
        409: {"description": "An open submission already exists"},
    },
)
def create_submission(
    payload: SubmissionCreate,
    db: Session = Depends(get_db),
    access: AccessControl = Depends(get_access_control),
    cohorts: CohortDirectory = Depends(get_cohorts),
):
    return review_state_machine.create_submission(
        db,
        access,
        cohorts,
        student_id=payload.student_id,
        exercise_id=payload.exercise_id,
        lesson_id=payload.lesson_id,
        level_id=payload.level_id,
        content=payload.content,
        file_reference=payload.file_reference,
    )


# review queue: teachers poll this to see what is pending / who holds what
@router.get("/submissions", response_model=list[SubmissionRead])
def list_submissions(
    status: Optional[Literal["pending", "locked", "approved", "rejected"]] = None,
    exercise_id: Optional[str] = None,
    student_id: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return review_state_machine.list_submissions(
        db, status=status, exercise_id=exercise_id, student_id=student_id
    )


@router.get("/submissions/{submission_id}", response_model=SubmissionRead)
def get_submission(submission_id: str, db: Session = Depends(get_db)):
    return review_state_machine.get_submission(db, submission_id)


@router.patch("/submissions/{submission_id}", response_model=SubmissionRead)
def update_submission(
    submission_id: str,
    payload: SubmissionUpdate,
    db: Session = Depends(get_db),
):
    return review_state_machine.update_submission(
        db,
        submission_id,
        payload.student_id,
        payload.content,
        payload.file_reference,
    )


@router.get("/submissions/{submission_id}/decisions", response_model=list[DecisionRead])
def decision_history(submission_id: str, db: Session = Depends(get_db)):
    return review_state_machine.decision_history(db, submission_id)
