from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from review_engine.schemas.submission import SubmissionRead
from review_engine.schemas.unlock import UnlockRecordRead


class TeacherAction(BaseModel):
    teacher_id: str = Field(min_length=1, max_length=64)


class DecisionCreate(BaseModel):
    teacher_id: str = Field(min_length=1, max_length=64)
    outcome: Literal["approved", "rejected"]
    reason: Optional[str] = None
    # voice note or file accepted instead of a written reason
    attachment: Optional[str] = None


class DecisionResult(BaseModel):
    submission: SubmissionRead
    unlocks: list[UnlockRecordRead] = []


class DecisionRead(BaseModel):
    id: int
    submission_id: str
    outcome: str  # "approved" | "rejected" | "reopened"
    reason: Optional[str] = None
    attachment: Optional[str] = None
    teacher_id: str
    created_at: datetime

    class Config:
        from_attributes = True


class AdminAction(BaseModel):
    actor_id: str = Field(min_length=1, max_length=64)
