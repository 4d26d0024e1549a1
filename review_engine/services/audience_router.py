"""
Audience routing: which track a submission belongs to and who must hear about
its unlocks.

Everything downstream dispatches on the ``Track`` variant returned by
``track_of`` instead of re-checking which foreign key happens to be set.
"""
from dataclasses import dataclass

from sqlalchemy.orm import Session

from review_engine.core.errors import InvalidState
from review_engine.models.submission import Submission
from review_engine.models.unlock_record import UnlockRecord
from review_engine.services.collaborators import AccessControl, CohortDirectory


@dataclass(frozen=True)
class PrivateTrack:
    lesson_id: str


@dataclass(frozen=True)
class GroupTrack:
    level_id: str
    promotion_id: str | None


Track = PrivateTrack | GroupTrack


def track_of(submission: Submission) -> Track:
    has_lesson = submission.lesson_id is not None
    has_level = submission.level_id is not None
    if has_lesson == has_level:
        raise InvalidState(
            f"Submission {submission.id} must reference exactly one of lesson_id/level_id"
        )
    if has_lesson:
        return PrivateTrack(lesson_id=submission.lesson_id)
    return GroupTrack(level_id=submission.level_id, promotion_id=submission.promotion_id)


def recipients_for(db: Session, record: UnlockRecord, cohorts: CohortDirectory) -> list[str]:
    """One recipient for a lesson unlock, the cohort for a level unlock."""
    if record.unlocked_lesson_id is not None:
        return [record.student_id]

    cause = db.get(Submission, record.cause_submission_id)
    if cause is None:
        return [record.student_id]

    track = track_of(cause)
    if not isinstance(track, GroupTrack) or track.promotion_id is None:
        return [record.student_id]

    members = cohorts.cohort_members(track.level_id, track.promotion_id)
    if record.student_id not in members:
        members.append(record.student_id)
    return members


def can_submit(access: AccessControl, student_id: str, exercise_id: str) -> bool:
    return access.can_submit(student_id, exercise_id)


def resolve_promotion(cohorts: CohortDirectory, level_id: str, student_id: str) -> str | None:
    return cohorts.promotion_of(level_id, student_id)
