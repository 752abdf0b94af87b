"""
ProgressService — per-video completion and the credit sub-ledger.

Credits for a video are awarded exactly once per enrollment: either by the
insert that creates the row already completed, or by the conditional update
completed=false -> true. Whoever wins that write awards the credits.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from smartlearn.core.config import settings
from smartlearn.core.errors import Forbidden, NotFound, ValidationError
from smartlearn.models.course import Video
from smartlearn.models.enrollment import Enrollment, VideoProgress
from smartlearn.models.enums import EnrollmentStatus
from smartlearn.models.user import User

logger = logging.getLogger(__name__)


class ProgressService:
    def __init__(self, db: Session):
        self.db = db

    def _get_progress(self, enrollment_id: str, video_id: str) -> VideoProgress | None:
        return (
            self.db.query(VideoProgress)
            .filter(VideoProgress.enrollment_id == enrollment_id, VideoProgress.video_id == video_id)
            .one_or_none()
        )

    def record(self, student_id: str, course_id: str, video_id: str, completed: bool) -> dict:
        if not video_id or not course_id:
            raise ValidationError("Missing required fields", code="MISSING_FIELDS")
        enrollment = (
            self.db.query(Enrollment)
            .filter(Enrollment.student_id == student_id, Enrollment.course_id == course_id)
            .one_or_none()
        )
        if not enrollment or enrollment.status != EnrollmentStatus.APPROVED.value:
            raise Forbidden("Not enrolled in this course", code="NOT_ENROLLED")
        video = self.db.get(Video, video_id)
        if not video or video.course_id != course_id:
            raise NotFound("Video not found", code="VIDEO_NOT_FOUND")

        now = datetime.now(timezone.utc)
        awarded = False
        progress = self._get_progress(enrollment.id, video_id)
        if progress is None:
            progress = VideoProgress(
                enrollment_id=enrollment.id,
                video_id=video_id,
                completed=completed,
                completed_at=now if completed else None,
                watched_at=now,
            )
            try:
                self.db.add(progress)
                self.db.flush()
                awarded = completed
            except IntegrityError:
                self.db.rollback()
                progress = self._get_progress(enrollment.id, video_id)
                if progress is None:
                    raise

        if not awarded and completed:
            res = self.db.execute(
                update(VideoProgress)
                .where(VideoProgress.id == progress.id, VideoProgress.completed.is_(False))
                .values(completed=True, completed_at=now)
                .execution_options(synchronize_session="fetch")
            )
            awarded = res.rowcount == 1

        progress.watched_at = now
        credits = settings.credits_per_video if awarded else 0
        if credits:
            self.db.execute(
                update(User)
                .where(User.id == student_id)
                .values(credits=User.credits + credits)
                .execution_options(synchronize_session="fetch")
            )
        self.db.commit()
        self.db.refresh(progress)

        student = self.db.get(User, student_id)
        if student is not None:
            self.db.refresh(student)
        if credits:
            logger.info(
                "video_credits_awarded",
                extra={"user_id": student_id, "video_id": video_id, "enrollment_id": enrollment.id},
            )
        return {
            "success": True,
            "progress": progress,
            "credits_awarded": credits,
            "total_credits": student.credits if student else 0,
        }
