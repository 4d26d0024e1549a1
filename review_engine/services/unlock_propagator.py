"""
Turns an approved submission into unlock records.

Private track: once every exercise of the lesson is approved, the next lesson
of the level opens (or the first lesson of the next level when the level is
finished). Group track: once the cohort gate is open for every exercise of the level,
the next level opens for every member the gate lets through.

The decision that triggered us is already committed. Failures here never undo
it; ``propagate_safely`` logs them and a later call (next approval, or the
retry endpoint) recomputes the same unlocks, since writing one is idempotent.
"""
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from review_engine.core.errors import InvalidState, PropagationError
from review_engine.models.exercise import Exercise
from review_engine.models.lesson import Lesson
from review_engine.models.level import Level
from review_engine.models.notification import Notification
from review_engine.models.submission import APPROVED, Submission
from review_engine.models.unlock_record import UnlockRecord
from review_engine.services.audience_router import (
    GroupTrack,
    PrivateTrack,
    recipients_for,
    track_of,
)
from review_engine.services.collaborators import CohortDirectory

logger = logging.getLogger(__name__)

# a concurrent approval may write the same unlock between our check and our insert
MAX_ATTEMPTS = 2


def _next_lesson(db: Session, lesson: Lesson) -> Lesson | None:
    return db.execute(
        select(Lesson)
        .where(Lesson.level_id == lesson.level_id, Lesson.order_index > lesson.order_index)
        .order_by(Lesson.order_index.asc(), Lesson.id.asc())
        .limit(1)
    ).scalars().first()


def _next_level(db: Session, level: Level) -> Level | None:
    return db.execute(
        select(Level)
        .where(Level.formation_id == level.formation_id, Level.order_index > level.order_index)
        .order_by(Level.order_index.asc(), Level.id.asc())
        .limit(1)
    ).scalars().first()


def _first_lesson(db: Session, level: Level) -> Lesson | None:
    return db.execute(
        select(Lesson)
        .where(Lesson.level_id == level.id)
        .order_by(Lesson.order_index.asc(), Lesson.id.asc())
        .limit(1)
    ).scalars().first()


def _lesson_complete(db: Session, submission: Submission, lesson: Lesson) -> bool:
    exercise_ids = set(
        db.execute(select(Exercise.id).where(Exercise.lesson_id == lesson.id)).scalars()
    )
    approved = set(
        db.execute(
            select(Submission.exercise_id).where(
                Submission.student_id == submission.student_id,
                Submission.lesson_id == lesson.id,
                Submission.status == APPROVED,
            )
        ).scalars()
    )
    approved.add(submission.exercise_id)
    return exercise_ids <= approved


def _private_targets(db: Session, submission: Submission, track: PrivateTrack) -> list[tuple]:
    lesson = db.get(Lesson, track.lesson_id)
    if lesson is None:
        raise PropagationError(f"Lesson {track.lesson_id} does not exist")

    if not _lesson_complete(db, submission, lesson):
        logger.info(
            "Lesson %s not complete yet for %s, nothing to unlock",
            lesson.id,
            submission.student_id,
        )
        return []

    nxt = _next_lesson(db, lesson)
    if nxt is None:
        level = db.get(Level, lesson.level_id)
        if level is None:
            raise PropagationError(f"Level {lesson.level_id} of lesson {lesson.id} does not exist")
        next_level = _next_level(db, level)
        if next_level is None:
            logger.info("Student %s finished formation %s", submission.student_id, level.formation_id)
            return []
        nxt = _first_lesson(db, next_level)
        if nxt is None:
            raise PropagationError(f"Level {next_level.id} has no lessons")

    return [(submission.student_id, nxt.id, None)]


def _level_exercises(db: Session, level: Level) -> list[str]:
    return list(
        db.execute(
            select(Exercise.id)
            .join(Lesson, Lesson.id == Exercise.lesson_id)
            .where(Lesson.level_id == level.id)
            .order_by(Lesson.order_index.asc(), Exercise.id.asc())
        ).scalars()
    )


def _level_passed(cohorts: CohortDirectory, level: Level, exercise_ids: list[str], student_id: str) -> bool:
    return all(cohorts.cohort_gate(level.id, exercise_id, student_id) for exercise_id in exercise_ids)


def _group_targets(
    db: Session, submission: Submission, track: GroupTrack, cohorts: CohortDirectory
) -> list[tuple]:
    level = db.get(Level, track.level_id)
    if level is None:
        raise PropagationError(f"Level {track.level_id} does not exist")

    exercise_ids = _level_exercises(db, level)
    if not _level_passed(cohorts, level, exercise_ids, submission.student_id):
        logger.info(
            "Level %s not passed yet for %s (after exercise %s)",
            level.id,
            submission.student_id,
            submission.exercise_id,
        )
        return []

    next_level = _next_level(db, level)
    if next_level is None:
        logger.info("Student %s finished formation %s", submission.student_id, level.formation_id)
        return []

    students = [submission.student_id]
    if track.promotion_id is not None:
        # members the gate lets through now; under a per-student policy the others
        # were already promoted by their own approval and are skipped as duplicates
        for member in cohorts.cohort_members(level.id, track.promotion_id):
            if member not in students and _level_passed(cohorts, level, exercise_ids, member):
                students.append(member)

    return [(student_id, None, next_level.id) for student_id in students]


def _already_unlocked(db: Session, student_id: str, lesson_id: str | None, level_id: str | None) -> bool:
    query = select(UnlockRecord.id).where(UnlockRecord.student_id == student_id)
    if lesson_id is not None:
        query = query.where(UnlockRecord.unlocked_lesson_id == lesson_id)
    else:
        query = query.where(UnlockRecord.unlocked_level_id == level_id)
    return db.execute(query.limit(1)).first() is not None


def _describe(db: Session, record: UnlockRecord) -> tuple[str, str, str]:
    if record.unlocked_lesson_id is not None:
        target = db.get(Lesson, record.unlocked_lesson_id)
        return target.id, "New lesson unlocked", f"lesson \"{target.title}\""
    target = db.get(Level, record.unlocked_level_id)
    return target.id, "New level unlocked", f"level \"{target.title}\""


def _notify(db: Session, records: list[UnlockRecord], cohorts: CohortDirectory) -> None:
    """Congratulate every unlocked student, then tell the rest of the cohort once per target."""
    seen = set()
    described = []
    for record in records:
        target_id, title, what = _describe(db, record)
        described.append((record, target_id, title, what))
        seen.add((record.student_id, target_id))
        db.add(
            Notification(
                recipient_id=record.student_id,
                title=title,
                message=f"Congratulations! The {what} is now available.",
                unlock_record_id=record.id,
            )
        )

    for record, target_id, title, what in described:
        for recipient in recipients_for(db, record, cohorts):
            if (recipient, target_id) in seen:
                continue
            seen.add((recipient, target_id))
            db.add(
                Notification(
                    recipient_id=recipient,
                    title=title,
                    message=f"Student {record.student_id} unlocked the {what}.",
                    unlock_record_id=record.id,
                )
            )


def _apply(db: Session, submission: Submission, cohorts: CohortDirectory) -> list[UnlockRecord]:
    track = track_of(submission)
    if isinstance(track, PrivateTrack):
        targets = _private_targets(db, submission, track)
    else:
        targets = _group_targets(db, submission, track, cohorts)

    records: list[UnlockRecord] = []
    for student_id, lesson_id, level_id in targets:
        if _already_unlocked(db, student_id, lesson_id, level_id):
            continue
        record = UnlockRecord(
            student_id=student_id,
            unlocked_lesson_id=lesson_id,
            unlocked_level_id=level_id,
            cause_submission_id=submission.id,
        )
        db.add(record)
        records.append(record)

    # ids are needed by the notifications
    db.flush()

    _notify(db, records, cohorts)

    db.commit()
    return records


def on_approved(db: Session, submission: Submission, cohorts: CohortDirectory) -> list[UnlockRecord]:
    """Write the unlocks an approval earns. Re-running it for the same submission is a no-op."""
    if submission.status != APPROVED:
        raise InvalidState(f"Submission {submission.id} is {submission.status}, not approved")

    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            records = _apply(db, submission, cohorts)
        except IntegrityError:
            db.rollback()
            if attempt == MAX_ATTEMPTS:
                raise
            logger.info("Unlock for submission %s raced another approval, recomputing", submission.id)
            continue
        except Exception:
            db.rollback()
            raise

        for record in records:
            logger.info(
                "Unlocked %s %s for %s (cause %s)",
                "lesson" if record.unlocked_lesson_id else "level",
                record.unlocked_lesson_id or record.unlocked_level_id,
                record.student_id,
                submission.id,
            )
        return records
    return []


def propagate_safely(db: Session, submission: Submission, cohorts: CohortDirectory) -> list[UnlockRecord]:
    """Run ``on_approved``; a failure is logged and left for a later retry."""
    submission_id = submission.id
    try:
        return on_approved(db, submission, cohorts)
    except Exception:
        logger.exception(
            "Unlock propagation failed for submission %s, decision kept", submission_id
        )
        return []
