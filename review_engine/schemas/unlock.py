from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UnlockRecordRead(BaseModel):
    id: int
    student_id: str
    unlocked_lesson_id: Optional[str] = None
    unlocked_level_id: Optional[str] = None
    unlocked_at: datetime
    cause_submission_id: str

    class Config:
        from_attributes = True
