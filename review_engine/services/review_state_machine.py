"""
Submission lifecycle.

    pending -> locked -> approved | rejected
    locked  -> pending                      (release, see lock_manager)
    approved | rejected -> locked           (reopen, original decider only)

Each transition is one conditional UPDATE; the row is only read afterwards to
explain a refusal.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from review_engine.core.config import settings
from review_engine.core.errors import (
    Conflict,
    Denied,
    Forbidden,
    InvalidState,
    JustificationRequired,
    NotFound,
)
from review_engine.models.decision import SubmissionDecision
from review_engine.models.exercise import Exercise
from review_engine.models.lesson import Lesson
from review_engine.models.submission import (
    APPROVED,
    LOCKED,
    PENDING,
    REJECTED,
    TERMINAL_STATUSES,
    Submission,
)
from review_engine.models.unlock_record import UnlockRecord
from review_engine.services import audience_router, lock_manager, unlock_propagator
from review_engine.services.collaborators import AccessControl, CohortDirectory

logger = logging.getLogger(__name__)


def _commit(db: Session) -> None:
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


def get_submission(db: Session, submission_id: str) -> Submission:
    submission = db.get(Submission, submission_id)
    if not submission:
        raise NotFound("Submission not found")
    return submission


def create_submission(
    db: Session,
    access: AccessControl,
    cohorts: CohortDirectory,
    *,
    student_id: str,
    exercise_id: str,
    lesson_id: str | None = None,
    level_id: str | None = None,
    content: str = "",
    file_reference: str | None = None,
) -> Submission:
    if (lesson_id is None) == (level_id is None):
        raise InvalidState("Exactly one of lesson_id or level_id is required")

    exercise = db.get(Exercise, exercise_id)
    if not exercise:
        raise NotFound("Exercise not found")

    if lesson_id is not None and exercise.lesson_id != lesson_id:
        raise NotFound("Exercise not found in this lesson")
    if level_id is not None:
        lesson = db.get(Lesson, exercise.lesson_id)
        if lesson is None or lesson.level_id != level_id:
            raise NotFound("Exercise not found in this level")

    if not audience_router.can_submit(access, student_id, exercise_id):
        logger.info("Submission by %s for exercise %s denied by plan", student_id, exercise_id)
        raise Denied("Your plan does not allow submitting exercises")

    promotion_id = None
    if level_id is not None:
        promotion_id = audience_router.resolve_promotion(cohorts, level_id, student_id)

    now = datetime.now(timezone.utc)
    submission = Submission(
        exercise_id=exercise_id,
        student_id=student_id,
        lesson_id=lesson_id,
        level_id=level_id,
        promotion_id=promotion_id,
        content=content,
        file_reference=file_reference,
        status=PENDING,
        created_at=now,
        updated_at=now,
    )
    db.add(submission)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("An open submission for this exercise already exists")

    db.refresh(submission)
    logger.info(
        "Submission %s created by %s for exercise %s (%s)",
        submission.id,
        student_id,
        exercise_id,
        "private" if lesson_id else "group",
    )
    return submission


def update_submission(
    db: Session,
    submission_id: str,
    student_id: str,
    content: str,
    file_reference: str | None = None,
) -> Submission:
    """The student edits a submission nobody has started reviewing."""
    values = {"content": content, "updated_at": datetime.now(timezone.utc)}
    if file_reference is not None:
        values["file_reference"] = file_reference

    result = db.execute(
        update(Submission)
        .where(
            Submission.id == submission_id,
            Submission.student_id == student_id,
            Submission.status == PENDING,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        row = db.execute(
            select(Submission.student_id, Submission.status).where(Submission.id == submission_id)
        ).first()
        db.rollback()
        if row is None:
            raise NotFound("Submission not found")
        if row.student_id != student_id:
            raise Forbidden("Only the author can modify this submission")
        raise InvalidState(f"Submission is {row.status} and can no longer be modified")

    _commit(db)
    return db.get(Submission, submission_id, populate_existing=True)


def decide(
    db: Session,
    cohorts: CohortDirectory,
    submission_id: str,
    teacher_id: str,
    outcome: str,
    reason: str | None = None,
    attachment: str | None = None,
) -> tuple[Submission, list[UnlockRecord]]:
    if outcome not in TERMINAL_STATUSES:
        raise InvalidState(f"Unknown outcome {outcome!r}")

    reason = reason.strip() if reason else None
    unjustified = (
        outcome == REJECTED
        and settings.require_rejection_justification
        and not reason
        and not attachment
    )

    now = datetime.now(timezone.utc)
    result = db.execute(
        update(Submission)
        .where(
            Submission.id == submission_id,
            Submission.status == LOCKED,
            Submission.lock_owner_id == teacher_id,
        )
        .values(
            status=outcome,
            decided_by=teacher_id,
            decided_at=now,
            decision_reason=reason or "",
            decision_attachment=attachment,
            lock_owner_id=None,
            lock_acquired_at=None,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        row = db.execute(
            select(Submission.status, Submission.lock_owner_id).where(Submission.id == submission_id)
        ).first()
        db.rollback()
        if row is None:
            raise NotFound("Submission not found")
        if row.status in TERMINAL_STATUSES:
            raise InvalidState(f"Submission already {row.status}, reopen it to change the decision")
        logger.warning(
            "Decision on submission %s refused for %s (status=%s, owner=%s)",
            submission_id,
            teacher_id,
            row.status,
            row.lock_owner_id,
        )
        if row.lock_owner_id:
            raise Forbidden(
                f"Submission is being reviewed by {row.lock_owner_id}",
                owner=row.lock_owner_id,
            )
        raise Forbidden("Take the review lock before deciding")

    # checked once we know the caller holds the lock
    if unjustified:
        db.rollback()
        raise JustificationRequired("A rejection needs a reason, a voice note or an attachment")

    # logged in the same transaction, so the change notifier never sees one without the other
    db.add(
        SubmissionDecision(
            submission_id=submission_id,
            outcome=outcome,
            reason=reason,
            attachment=attachment,
            teacher_id=teacher_id,
            created_at=now,
        )
    )
    _commit(db)
    logger.info("Submission %s %s by %s", submission_id, outcome, teacher_id)

    submission = db.get(Submission, submission_id, populate_existing=True)
    unlocks: list[UnlockRecord] = []
    if outcome == APPROVED:
        unlocks = unlock_propagator.propagate_safely(db, submission, cohorts)
        submission = db.get(Submission, submission_id, populate_existing=True)
    return submission, unlocks


def reopen(db: Session, submission_id: str, teacher_id: str) -> Submission:
    now = datetime.now(timezone.utc)
    if not lock_manager.take_back(db, submission_id, teacher_id, now):
        row = db.execute(
            select(Submission.status, Submission.decided_by, Submission.lock_owner_id).where(
                Submission.id == submission_id
            )
        ).first()
        db.rollback()
        if row is None:
            raise NotFound("Submission not found")
        if row.status not in TERMINAL_STATUSES and row.lock_owner_id == teacher_id:
            raise InvalidState(f"Submission is {row.status}, nothing to reopen")
        logger.warning(
            "Reopen of submission %s refused for %s (status=%s, decided by %s)",
            submission_id,
            teacher_id,
            row.status,
            row.decided_by,
        )
        raise Forbidden("Only the teacher who decided can modify the decision")

    _commit(db)
    logger.info("Submission %s reopened by %s", submission_id, teacher_id)
    return db.get(Submission, submission_id, populate_existing=True)


def decision_history(db: Session, submission_id: str) -> list[SubmissionDecision]:
    get_submission(db, submission_id)
    return list(
        db.execute(
            select(SubmissionDecision)
            .where(SubmissionDecision.submission_id == submission_id)
            .order_by(SubmissionDecision.id.asc())
        ).scalars()
    )


def retry_propagation(db: Session, cohorts: CohortDirectory, submission_id: str) -> list[UnlockRecord]:
    submission = get_submission(db, submission_id)
    if submission.status != APPROVED:
        raise InvalidState(f"Submission is {submission.status}, not approved")
    return unlock_propagator.on_approved(db, submission, cohorts)


def list_submissions(
    db: Session,
    status: str | None = None,
    exercise_id: str | None = None,
    student_id: str | None = None,
) -> list[Submission]:
    query = select(Submission)
    if status:
        query = query.where(Submission.status == status)
    if exercise_id:
        query = query.where(Submission.exercise_id == exercise_id)
    if student_id:
        query = query.where(Submission.student_id == student_id)
    return list(db.execute(query.order_by(Submission.created_at.asc(), Submission.id.asc())).scalars())
