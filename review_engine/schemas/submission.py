from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class SubmissionCreate(BaseModel):
    student_id: str = Field(min_length=1, max_length=64)
    exercise_id: str
    lesson_id: Optional[str] = None
    level_id: Optional[str] = None
    content: str = ""
    file_reference: Optional[str] = None

    @model_validator(mode="after")
    def exactly_one_track(self):
        if (self.lesson_id is None) == (self.level_id is None):
            raise ValueError("exactly one of lesson_id or level_id is required")
        return self


class SubmissionUpdate(BaseModel):
    student_id: str
    content: str
    file_reference: Optional[str] = None


class SubmissionRead(BaseModel):
    id: str
    exercise_id: str
    student_id: str
    lesson_id: Optional[str] = None
    level_id: Optional[str] = None
    promotion_id: Optional[str] = None
    content: str
    file_reference: Optional[str] = None

    status: str  # "pending" | "locked" | "approved" | "rejected"
    lock_owner_id: Optional[str] = None
    lock_acquired_at: Optional[datetime] = None

    decision_reason: Optional[str] = None
    decision_attachment: Optional[str] = None
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
