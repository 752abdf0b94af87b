from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from smartlearn.api.deps import get_identity
from smartlearn.db.session import get_db
from smartlearn.schemas.progress import ProgressUpdateIn, ProgressUpdateOut
from smartlearn.services.auth.identity import Identity
from smartlearn.services.progress.service import ProgressService


router = APIRouter(prefix="/api/progress", tags=["progress"])


@router.post("/update", response_model=ProgressUpdateOut)
def update_progress(
    body: ProgressUpdateIn,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return ProgressService(db).record(identity.user_id, body.course_id, body.video_id, body.completed)
