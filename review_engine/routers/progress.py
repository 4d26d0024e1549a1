from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from review_engine.core.deps import get_db
from review_engine.models.unlock_record import UnlockRecord
from review_engine.schemas.unlock import UnlockRecordRead

router = APIRouter()


@router.get("/students/{student_id}/unlocks", response_model=list[UnlockRecordRead])
def student_unlocks(student_id: str, db: Session = Depends(get_db)):
    return (
        db.query(UnlockRecord)
        .filter(UnlockRecord.student_id == student_id)
        .order_by(UnlockRecord.unlocked_at.asc(), UnlockRecord.id.asc())
        .all()
    )
