from datetime import datetime

from smartlearn.schemas.common import CamelModel


class ProgressUpdateIn(CamelModel):
    video_id: str
    course_id: str
    completed: bool = False
    watched_seconds: float | None = None
    total_seconds: float | None = None


class VideoProgressOut(CamelModel):
    id: str
    enrollment_id: str
    video_id: str
    completed: bool
    completed_at: datetime | None = None
    watched_at: datetime | None = None


class ProgressUpdateOut(CamelModel):
    success: bool = True
    progress: VideoProgressOut
    credits_awarded: int
    total_credits: int
