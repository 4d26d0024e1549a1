"""
Collaborators the engine consults but does not own.

Plan limits and cohort policy live outside the review engine; the engine only
calls them through these two protocols. The default implementations read the
``student_plans`` and ``promotion_members`` tables.
"""
from typing import Literal, Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from review_engine.models.promotion import Promotion, PromotionMember
from review_engine.models.student_plan import StudentPlan
from review_engine.models.submission import APPROVED, Submission


class AccessControl(Protocol):
    def can_submit(self, student_id: str, exercise_id: str) -> bool: ...


class CohortDirectory(Protocol):
    def cohort_gate(self, level_id: str, exercise_id: str, student_id: str) -> bool: ...

    def cohort_members(self, level_id: str, promotion_id: str) -> list[str]: ...

    def promotion_of(self, level_id: str, student_id: str) -> str | None: ...


class PlanAccessControl:
    """Students without a plan row are allowed; a plan may switch exercises off."""

    def __init__(self, db: Session):
        self.db = db

    def can_submit(self, student_id: str, exercise_id: str) -> bool:
        plan = self.db.get(StudentPlan, student_id)
        if plan is None:
            return True
        return bool(plan.allow_exercises)


class PromotionCohorts:
    def __init__(self, db: Session, policy: Literal["student", "cohort"] = "student"):
        self.db = db
        self.policy = policy

    def promotion_of(self, level_id: str, student_id: str) -> str | None:
        return self.db.execute(
            select(Promotion.id)
            .join(PromotionMember, PromotionMember.promotion_id == Promotion.id)
            .where(Promotion.level_id == level_id, PromotionMember.student_id == student_id)
            .order_by(Promotion.id)
        ).scalars().first()

    def cohort_members(self, level_id: str, promotion_id: str) -> list[str]:
        return list(
            self.db.execute(
                select(PromotionMember.student_id)
                .join(Promotion, Promotion.id == PromotionMember.promotion_id)
                .where(Promotion.id == promotion_id, Promotion.level_id == level_id)
                .order_by(PromotionMember.student_id)
            ).scalars()
        )

    def _approved_students(self, level_id: str, exercise_id: str) -> set[str]:
        return set(
            self.db.execute(
                select(Submission.student_id).where(
                    Submission.level_id == level_id,
                    Submission.exercise_id == exercise_id,
                    Submission.status == APPROVED,
                )
            ).scalars()
        )

    def cohort_gate(self, level_id: str, exercise_id: str, student_id: str) -> bool:
        approved = self._approved_students(level_id, exercise_id)
        if student_id not in approved:
            return False
        if self.policy == "student":
            return True

        promotion_id = self.promotion_of(level_id, student_id)
        if promotion_id is None:
            # not in any cohort: nobody else to wait for
            return True

        required = self.db.execute(
            select(func.count(PromotionMember.id)).where(
                PromotionMember.promotion_id == promotion_id,
                PromotionMember.gating_required.is_(True),
            )
        ).scalar() or 0
        approved_required = self.db.execute(
            select(func.count(PromotionMember.id)).where(
                PromotionMember.promotion_id == promotion_id,
                PromotionMember.gating_required.is_(True),
                PromotionMember.student_id.in_(sorted(approved)),
            )
        ).scalar() or 0
        return approved_required == required
