"""
Review locks on submissions.

Every lock change is a conditional ``UPDATE ... WHERE`` whose affected-row count
decides the outcome. When the update touches nothing we read the row only to
explain the refusal to the caller; that read never feeds another write.
"""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from review_engine.core.errors import Conflict, Forbidden, InvalidState, NotFound
from review_engine.models.decision import REOPENED, SubmissionDecision
from review_engine.models.submission import (
    LOCKED,
    PENDING,
    TERMINAL_STATUSES,
    Submission,
)

logger = logging.getLogger(__name__)


def _conditional_update(db: Session, submission_id: str, where, values: dict) -> bool:
    result = db.execute(
        update(Submission)
        .where(Submission.id == submission_id, where)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _snapshot(db: Session, submission_id: str):
    """Read the fields needed to explain a refused update, then end the transaction."""
    row = db.execute(
        select(
            Submission.status,
            Submission.lock_owner_id,
            Submission.decided_by,
            Submission.student_id,
        ).where(Submission.id == submission_id)
    ).first()
    db.rollback()
    if row is None:
        raise NotFound("Submission not found")
    return row


def _commit_and_load(db: Session, submission_id: str) -> Submission:
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    return db.get(Submission, submission_id, populate_existing=True)


def take_back(db: Session, submission_id: str, teacher_id: str, now: datetime) -> bool:
    """
    Move a decided submission back to ``locked`` for the teacher who decided it.

    The decision fields are cleared and a ``reopened`` entry is added to the
    decision log in the same transaction; the caller commits. Returns False
    when the row is not decided by ``teacher_id``.

    The student may have submitted again after a rejection. Re-opening the old
    row would then give them two open submissions for the same exercise, which
    the partial unique index refuses: that is reported as a Conflict.
    """
    try:
        taken = _conditional_update(
            db,
            submission_id,
            and_(
                Submission.status.in_(TERMINAL_STATUSES),
                Submission.decided_by == teacher_id,
            ),
            {
                "status": LOCKED,
                "lock_owner_id": teacher_id,
                "lock_acquired_at": now,
                "decided_by": None,
                "decided_at": None,
                "decision_reason": None,
                "decision_attachment": None,
                "updated_at": now,
            },
        )
    except IntegrityError:
        db.rollback()
        logger.info(
            "Submission %s not reopened for %s: a newer open submission exists",
            submission_id,
            teacher_id,
        )
        raise Conflict("A newer open submission exists for this exercise")

    if taken:
        db.add(
            SubmissionDecision(
                submission_id=submission_id,
                outcome=REOPENED,
                teacher_id=teacher_id,
                created_at=now,
            )
        )
    return taken


def acquire(db: Session, submission_id: str, teacher_id: str) -> Submission:
    now = datetime.now(timezone.utc)
    acquired = _conditional_update(
        db,
        submission_id,
        Submission.status == PENDING,
        {
            "status": LOCKED,
            "lock_owner_id": teacher_id,
            "lock_acquired_at": now,
            "updated_at": now,
        },
    )
    # only the teacher who produced the decision may take a decided submission back
    if not acquired:
        acquired = take_back(db, submission_id, teacher_id, now)
    if not acquired:
        row = _snapshot(db, submission_id)
        if row.status == LOCKED:
            logger.info(
                "Lock on submission %s refused for %s: held by %s",
                submission_id,
                teacher_id,
                row.lock_owner_id,
            )
            raise Conflict(
                f"Submission is being reviewed by {row.lock_owner_id}",
                owner=row.lock_owner_id,
            )
        if row.status in TERMINAL_STATUSES:
            raise InvalidState(f"Submission already {row.status} by {row.decided_by}")
        # released and re-taken between our update and our read
        raise Conflict("Submission lock changed hands, refresh and retry")

    submission = _commit_and_load(db, submission_id)
    logger.info("Submission %s locked by %s", submission_id, teacher_id)
    return submission


def release(db: Session, submission_id: str, teacher_id: str) -> Submission:
    released = _conditional_update(
        db,
        submission_id,
        and_(Submission.status == LOCKED, Submission.lock_owner_id == teacher_id),
        {
            "status": PENDING,
            "lock_owner_id": None,
            "lock_acquired_at": None,
            "updated_at": datetime.now(timezone.utc),
        },
    )

    if not released:
        row = _snapshot(db, submission_id)
        logger.warning(
            "Release of submission %s refused for %s (status=%s, owner=%s)",
            submission_id,
            teacher_id,
            row.status,
            row.lock_owner_id,
        )
        if row.status == LOCKED:
            raise Forbidden(
                f"Submission is being reviewed by {row.lock_owner_id}",
                owner=row.lock_owner_id,
            )
        raise Forbidden("You do not hold the review lock on this submission")

    submission = _commit_and_load(db, submission_id)
    logger.info("Submission %s released by %s", submission_id, teacher_id)
    return submission


def force_release(db: Session, submission_id: str, actor_id: str) -> Submission:
    """
    Administrative override for a lock abandoned by a disconnected teacher.

    Only the lock the administrator looked at is released: if the owner
    changed in between, the caller gets a Conflict and has to look again.
    """
    seen = _snapshot(db, submission_id)
    if seen.status != LOCKED:
        raise InvalidState(f"Submission is {seen.status}, not locked")

    released = _conditional_update(
        db,
        submission_id,
        and_(Submission.status == LOCKED, Submission.lock_owner_id == seen.lock_owner_id),
        {
            "status": PENDING,
            "lock_owner_id": None,
            "lock_acquired_at": None,
            "updated_at": datetime.now(timezone.utc),
        },
    )
    if not released:
        row = _snapshot(db, submission_id)
        raise Conflict("Lock changed hands, refresh and retry", owner=row.lock_owner_id)

    submission = _commit_and_load(db, submission_id)
    logger.warning(
        "Submission %s force-released by %s (was held by %s)",
        submission_id,
        actor_id,
        seen.lock_owner_id,
    )
    return submission


def stale_locks(db: Session, older_than: timedelta) -> list[Submission]:
    cutoff = datetime.now(timezone.utc) - older_than
    return list(
        db.execute(
            select(Submission)
            .where(Submission.status == LOCKED, Submission.lock_acquired_at <= cutoff)
            .order_by(Submission.lock_acquired_at.asc())
        ).scalars()
    )
