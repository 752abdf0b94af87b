"""
CertificateService — completion check, certificate issue, PDF artifact, download links.

The Certificate row is the source of truth and is committed before any
artifact work; rendering/upload failures leave storage_key null and are
repaired by the next download request.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from smartlearn.core.config import settings
from smartlearn.core.errors import ExternalServiceError, Forbidden, NotFound, ValidationError
from smartlearn.models.certificate import Certificate
from smartlearn.models.course import Course, Video
from smartlearn.models.enrollment import Enrollment, VideoProgress
from smartlearn.models.enums import EnrollmentStatus, NotificationType
from smartlearn.models.user import User
from smartlearn.services.auth.identity import Identity
from smartlearn.services.certificates.renderer import CertificateRenderer
from smartlearn.services.notifications.service import NotificationService
from smartlearn.storage.base import BlobStorage
from smartlearn.storage.factory import get_storage
from smartlearn.utils.metrics import (
    best_effort_failures_total,
    certificate_artifacts_total,
    certificates_issued_total,
)
from smartlearn.workers.tasks.email import dispatch_certificate_email

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


def certificate_key(certificate_id: str) -> str:
    return f"certificates/{certificate_id}.pdf"


def certificate_filename(course_title: str) -> str:
    """Certificate-<title>.pdf with every non-alphanumeric character replaced by _."""
    return f"Certificate-{re.sub(r'[^A-Za-z0-9]', '_', course_title or '')}.pdf"


class CertificateService:
    def __init__(
        self,
        db: Session,
        storage: BlobStorage | None = None,
        renderer: CertificateRenderer | None = None,
    ):
        self.db = db
        self._storage = storage
        self.renderer = renderer or CertificateRenderer()

    @property
    def storage(self) -> BlobStorage:
        if self._storage is None:
            self._storage = get_storage()
        return self._storage

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def get_for_pair(self, student_id: str, course_id: str) -> Certificate | None:
        return (
            self.db.query(Certificate)
            .filter(Certificate.student_id == student_id, Certificate.course_id == course_id)
            .one_or_none()
        )

    def check_completion(self, student_id: str, course_id: str) -> dict:
        enrollment = (
            self.db.query(Enrollment)
            .filter(Enrollment.student_id == student_id, Enrollment.course_id == course_id)
            .one_or_none()
        )
        if not enrollment or enrollment.status != EnrollmentStatus.APPROVED.value:
            raise Forbidden("Not enrolled in this course", code="NOT_ENROLLED")

        total = self.db.query(Video).filter(Video.course_id == course_id).count()
        if total == 0:
            raise ValidationError("Course has no videos", code="NO_VIDEOS")
        completed = (
            self.db.query(VideoProgress)
            .join(Video, Video.id == VideoProgress.video_id)
            .filter(
                VideoProgress.enrollment_id == enrollment.id,
                VideoProgress.completed.is_(True),
                Video.course_id == course_id,
            )
            .count()
        )
        if completed < total:
            return {
                "completed": False,
                "message": (
                    f"You have completed {completed} out of {total} videos. "
                    "Complete all videos to get your certificate."
                ),
                "completed_videos": completed,
                "total_videos": total,
            }

        existing = self.get_for_pair(student_id, course_id)
        if existing:
            return {"completed": True, "certificate": existing, "message": "Certificate already exists"}

        certificate, created = self._create(student_id, course_id)
        if not created:
            return {"completed": True, "certificate": certificate, "message": "Certificate already exists"}

        self._issue_effects(certificate)
        return {
            "completed": True,
            "certificate": certificate,
            "message": "Congratulations! You've completed the course and earned your certificate!",
        }

    def _create(self, student_id: str, course_id: str) -> tuple[Certificate, bool]:
        now = datetime.now(timezone.utc)
        certificate = Certificate(
            student_id=student_id,
            course_id=course_id,
            completed_at=now,
            issued_at=now,
        )
        try:
            self.db.add(certificate)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.get_for_pair(student_id, course_id)
            if not existing:
                raise
            return existing, False
        certificates_issued_total.inc()
        logger.info(
            "certificate_issued",
            extra={"certificate_id": certificate.id, "user_id": student_id, "course_id": course_id},
        )
        return certificate, True

    def _issue_effects(self, certificate: Certificate) -> None:
        student = self.db.get(User, certificate.student_id)
        course = self.db.get(Course, certificate.course_id)
        try:
            self.generate_artifact(certificate)
        except ExternalServiceError:
            pass  # logged in generate_artifact; regenerated on first download

        NotificationService(self.db).notify(
            certificate.student_id,
            "Certificate Earned",
            f'Congratulations! You earned a certificate for completing "{course.title}".',
            NotificationType.SUCCESS,
        )

        if not certificate.storage_key or not student or not student.email:
            logger.info("certificate_email_skipped", extra={"certificate_id": certificate.id})
            return
        try:
            url = self.storage.sign(
                certificate.storage_key,
                settings.certificate_email_link_ttl,
                certificate_filename(course.title),
            )
        except Exception:
            best_effort_failures_total.labels(effect="email").inc()
            logger.exception("certificate_email_link_failed", extra={"certificate_id": certificate.id})
            return
        dispatch_certificate_email(
            certificate.id,
            student.email,
            student.display_name,
            course.title,
            url,
        )

    # ------------------------------------------------------------------
    # Artifact
    # ------------------------------------------------------------------

    def generate_artifact(self, certificate: Certificate) -> str:
        """Render, upload and persist storage_key. Raises ExternalServiceError."""
        key = certificate_key(certificate.id)
        try:
            student = self.db.get(User, certificate.student_id)
            course = self.db.get(Course, certificate.course_id)
            pdf = self.renderer.render(
                student.display_name if student else "Student",
                course.title if course else "",
                certificate.id,
                certificate.issued_at,
            )
            self.storage.put(key, pdf, PDF_CONTENT_TYPE)
            self.db.execute(
                update(Certificate)
                .where(Certificate.id == certificate.id)
                .values(storage_key=key)
                .execution_options(synchronize_session="fetch")
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            certificate_artifacts_total.labels(outcome="failed").inc()
            logger.exception(
                "certificate_artifact_failed",
                extra={"certificate_id": certificate.id, "error": str(e)},
            )
            raise ExternalServiceError("Failed to generate certificate", code="CERTIFICATE_GENERATION_FAILED") from e
        certificate_artifacts_total.labels(outcome="ok").inc()
        logger.info("certificate_artifact_stored", extra={"certificate_id": certificate.id})
        return key

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    def get_download(self, certificate_id: str, identity: Identity) -> str:
        """Signed short-lived URL for the certificate PDF."""
        certificate = self.db.get(Certificate, certificate_id)
        if not certificate:
            raise NotFound("Certificate not found", code="CERTIFICATE_NOT_FOUND")
        if certificate.student_id != identity.user_id and not identity.is_admin:
            raise Forbidden("Forbidden")

        if not certificate.storage_key:
            self.generate_artifact(certificate)
            self.db.refresh(certificate)

        course = self.db.get(Course, certificate.course_id)
        try:
            exists = self.storage.head_exists(certificate.storage_key)
        except Exception as e:
            raise ExternalServiceError("Certificate storage unavailable", code="STORAGE_UNAVAILABLE") from e
        if not exists:
            logger.warning("certificate_artifact_missing", extra={"certificate_id": certificate.id})
            raise NotFound("Certificate file not found", code="ArtifactMissing")

        try:
            return self.storage.sign(
                certificate.storage_key,
                settings.certificate_download_ttl,
                certificate_filename(course.title if course else ""),
            )
        except Exception as e:
            raise ExternalServiceError("Failed to create download link", code="STORAGE_UNAVAILABLE") from e

    def list_for_student(self, student_id: str) -> list[Certificate]:
        return (
            self.db.query(Certificate)
            .filter(Certificate.student_id == student_id)
            .order_by(Certificate.issued_at.desc())
            .all()
        )
