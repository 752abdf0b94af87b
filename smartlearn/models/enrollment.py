"""
Enrollment: a student's claim on a course. One row per (student, course).
VideoProgress: per-video completion, one row per (enrollment, video).
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, UniqueConstraint

from smartlearn.db.base import Base
from smartlearn.models.enums import EnrollmentStatus


class Enrollment(Base):
    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_enrollments_student_course"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    student_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(String, ForeignKey("courses.id"), nullable=False, index=True)
    status = Column(String, nullable=False, default=EnrollmentStatus.PENDING.value)  # PENDING / APPROVED / CANCELLED
    payment_method = Column(String, nullable=False)  # manual / online
    requires_delivery = Column(Boolean, nullable=False, default=False)
    receipt_image = Column(String, nullable=True)  # manual requests only
    # Set once, on first approval
    approved_by = Column(String, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    enrolled_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class VideoProgress(Base):
    __tablename__ = "video_progress"
    __table_args__ = (
        UniqueConstraint("enrollment_id", "video_id", name="uq_video_progress_enrollment_video"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    enrollment_id = Column(String, ForeignKey("enrollments.id", ondelete="CASCADE"), nullable=False, index=True)
    video_id = Column(String, ForeignKey("videos.id", ondelete="CASCADE"), nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    watched_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
