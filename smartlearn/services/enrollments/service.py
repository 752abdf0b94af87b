"""
EnrollmentService — lifecycle of a student's claim on a course.

One row per (student, course), enforced by uq_enrollments_student_course.
Status changes are conditional updates (compare-and-swap on the observed
status); nothing here holds an in-process lock.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from smartlearn.core.errors import Conflict, Forbidden, NotFound, ValidationError
from smartlearn.models.course import Course
from smartlearn.models.enrollment import Enrollment
from smartlearn.models.enums import (
    EnrollmentMethod,
    EnrollmentStatus,
    NotificationType,
    PaymentMethod,
    PaymentStatus,
)
from smartlearn.models.payment import Payment
from smartlearn.models.user import User
from smartlearn.services.auth.identity import Identity
from smartlearn.services.enrollments.activation import run_activation_effects
from smartlearn.services.notifications.service import NotificationService
from smartlearn.utils.metrics import enrollment_transitions_total, payments_created_total

logger = logging.getLogger(__name__)

MISSING_ADDRESS_FOR_REQUEST = "Please update your delivery address in Settings before requesting materials"


class EnrollmentService:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, enrollment_id: str) -> Enrollment | None:
        return self.db.get(Enrollment, enrollment_id)

    def get_for_pair(self, student_id: str, course_id: str) -> Enrollment | None:
        return (
            self.db.query(Enrollment)
            .filter(Enrollment.student_id == student_id, Enrollment.course_id == course_id)
            .one_or_none()
        )

    def _get_course(self, course_id: str) -> Course:
        course = self.db.get(Course, course_id)
        if not course:
            raise NotFound("Course not found", code="COURSE_NOT_FOUND")
        return course

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create(
        self,
        student_id: str,
        course_id: str,
        method: EnrollmentMethod,
        requires_delivery: bool,
        receipt_image: str | None = None,
    ) -> Enrollment:
        """
        Return a PENDING enrollment for the pair. Flushes, does not commit.

        Must be the first write of the caller's transaction: a lost unique
        race rolls the session back before re-reading.
        """
        method = EnrollmentMethod(method)
        existing = self.get_for_pair(student_id, course_id)
        if existing:
            return self._reuse(existing, method, requires_delivery, receipt_image)

        enrollment = Enrollment(
            student_id=student_id,
            course_id=course_id,
            status=EnrollmentStatus.PENDING.value,
            payment_method=method.value,
            requires_delivery=requires_delivery,
            receipt_image=receipt_image,
        )
        try:
            self.db.add(enrollment)
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            existing = self.get_for_pair(student_id, course_id)
            if not existing:
                raise
            logger.info(
                "enrollment_create_race_lost",
                extra={"user_id": student_id, "course_id": course_id},
            )
            return self._reuse(existing, method, requires_delivery, receipt_image)

        enrollment_transitions_total.labels(transition="created", source=method.value).inc()
        logger.info(
            "enrollment_created",
            extra={"enrollment_id": enrollment.id, "user_id": student_id, "course_id": course_id},
        )
        return enrollment

    def _reuse(
        self,
        existing: Enrollment,
        method: EnrollmentMethod,
        requires_delivery: bool,
        receipt_image: str | None,
    ) -> Enrollment:
        status = EnrollmentStatus(existing.status)
        if status == EnrollmentStatus.APPROVED:
            raise Conflict("Already enrolled in this course", code="AlreadyApproved")

        if status == EnrollmentStatus.PENDING:
            # Purchase retry: the same online checkout flow may be started again
            if method == EnrollmentMethod.ONLINE and existing.payment_method == EnrollmentMethod.ONLINE.value:
                existing.requires_delivery = requires_delivery
                self.db.flush()
                return existing
            raise Conflict("You already have a pending enrollment request", code="PendingExists")

        res = self.db.execute(
            update(Enrollment)
            .where(
                Enrollment.id == existing.id,
                Enrollment.status == EnrollmentStatus.CANCELLED.value,
            )
            .values(
                status=EnrollmentStatus.PENDING.value,
                payment_method=method.value,
                requires_delivery=requires_delivery,
                receipt_image=receipt_image,
                approved_by=None,
                approved_at=None,
            )
            .execution_options(synchronize_session="fetch")
        )
        if res.rowcount != 1:
            raise Conflict("Enrollment changed concurrently, please retry", code="STALE_STATE")
        enrollment_transitions_total.labels(transition="revived", source=method.value).inc()
        logger.info(
            "enrollment_revived",
            extra={"enrollment_id": existing.id, "old_status": status.value, "new_status": "PENDING"},
        )
        return existing

    def submit_manual_request(
        self,
        student: User,
        course_id: str,
        receipt_image: str,
        requires_delivery: bool = False,
    ) -> Enrollment:
        if not course_id or not (receipt_image or "").strip():
            raise ValidationError("Missing required fields", code="MISSING_FIELDS")
        if requires_delivery and not student.has_delivery_address():
            raise ValidationError(MISSING_ADDRESS_FOR_REQUEST, code="MISSING_ADDRESS")
        course = self._get_course(course_id)

        enrollment = self.create(
            student.id,
            course.id,
            EnrollmentMethod.MANUAL,
            requires_delivery,
            receipt_image=receipt_image,
        )
        payment = Payment(
            student_id=student.id,
            course_id=course.id,
            enrollment_id=enrollment.id,
            amount=course.price,
            currency="LKR",
            status=PaymentStatus.PENDING.value,
            payment_method=PaymentMethod.MANUAL_ATM.value,
        )
        self.db.add(payment)
        self.db.commit()
        self.db.refresh(enrollment)
        payments_created_total.labels(method=PaymentMethod.MANUAL_ATM.value).inc()

        logger.info(
            "manual_enrollment_requested",
            extra={"enrollment_id": enrollment.id, "user_id": student.id, "course_id": course.id},
        )

        message = (
            f"{student.display_name} (Student #{student.student_number or '-'}) has requested "
            f'enrollment for "{course.title}" with payment receipt.'
        )
        if requires_delivery:
            message += " Delivery address provided."
        NotificationService(self.db).notify(
            course.instructor_id,
            "New Manual Enrollment Request",
            message,
            NotificationType.INFO,
        )
        return enrollment

    # ------------------------------------------------------------------
    # Guarded transitions (no commit; callers own the transaction)
    # ------------------------------------------------------------------

    def mark_approved(self, enrollment_id: str, approver_id: str | None = None) -> bool:
        """
        status -> APPROVED unless already APPROVED. approved_at/approved_by are
        only filled when still null. True iff this call made the transition.
        """
        res = self.db.execute(
            update(Enrollment)
            .where(
                Enrollment.id == enrollment_id,
                Enrollment.status != EnrollmentStatus.APPROVED.value,
            )
            .values(
                status=EnrollmentStatus.APPROVED.value,
                approved_by=func.coalesce(Enrollment.approved_by, approver_id),
                approved_at=func.coalesce(Enrollment.approved_at, datetime.now(timezone.utc)),
            )
            .execution_options(synchronize_session="fetch")
        )
        return res.rowcount == 1

    def mark_cancelled(self, enrollment_id: str, *, only_pending: bool) -> bool:
        allowed = [EnrollmentStatus.PENDING.value]
        if not only_pending:
            allowed.append(EnrollmentStatus.APPROVED.value)
        res = self.db.execute(
            update(Enrollment)
            .where(Enrollment.id == enrollment_id, Enrollment.status.in_(allowed))
            .values(status=EnrollmentStatus.CANCELLED.value)
            .execution_options(synchronize_session="fetch")
        )
        return res.rowcount == 1

    # ------------------------------------------------------------------
    # Instructor decisions
    # ------------------------------------------------------------------

    def _get_managed(self, enrollment_id: str, actor: Identity) -> tuple[Enrollment, Course]:
        enrollment = self.get(enrollment_id)
        if not enrollment:
            raise NotFound("Enrollment not found", code="ENROLLMENT_NOT_FOUND")
        course = self._get_course(enrollment.course_id)
        if not actor.can_manage_course(course.instructor_id):
            raise Forbidden("Forbidden")
        return enrollment, course

    def approve(self, enrollment_id: str, actor: Identity) -> Enrollment:
        enrollment, course = self._get_managed(enrollment_id, actor)
        if enrollment.status == EnrollmentStatus.APPROVED.value:
            raise Conflict("Enrollment already approved", code="AlreadyApproved")

        old_status = enrollment.status
        if not self.mark_approved(enrollment.id, actor.user_id):
            self.db.rollback()
            raise Conflict("Enrollment already approved", code="AlreadyApproved")

        # Manual ATM transfer confirmed by the instructor
        self.db.execute(
            update(Payment)
            .where(
                Payment.enrollment_id == enrollment.id,
                Payment.status == PaymentStatus.PENDING.value,
            )
            .values(status=PaymentStatus.COMPLETED.value)
            .execution_options(synchronize_session="fetch")
        )
        self.db.commit()
        self.db.refresh(enrollment)

        enrollment_transitions_total.labels(transition="approved", source="manual").inc()
        logger.info(
            "enrollment_approved",
            extra={
                "enrollment_id": enrollment.id,
                "user_id": actor.user_id,
                "old_status": old_status,
                "new_status": enrollment.status,
            },
        )
        run_activation_effects(self.db, enrollment, paid=False)
        return enrollment

    def reject(self, enrollment_id: str, actor: Identity) -> None:
        """Delete a PENDING request. Its payment stays, unlinked and CANCELLED."""
        enrollment, course = self._get_managed(enrollment_id, actor)
        if enrollment.status == EnrollmentStatus.APPROVED.value:
            raise Conflict("Enrollment already approved", code="AlreadyApproved")
        if enrollment.status != EnrollmentStatus.PENDING.value:
            raise Conflict("Enrollment is not pending", code="NotPending")

        student_id = enrollment.student_id
        self.db.execute(
            update(Payment)
            .where(Payment.enrollment_id == enrollment.id, Payment.status == PaymentStatus.PENDING.value)
            .values(status=PaymentStatus.CANCELLED.value)
            .execution_options(synchronize_session="fetch")
        )
        self.db.execute(
            update(Payment)
            .where(Payment.enrollment_id == enrollment.id)
            .values(enrollment_id=None)
            .execution_options(synchronize_session="fetch")
        )
        res = self.db.execute(
            Enrollment.__table__.delete().where(
                Enrollment.__table__.c.id == enrollment.id,
                Enrollment.__table__.c.status == EnrollmentStatus.PENDING.value,
            )
        )
        if res.rowcount != 1:
            self.db.rollback()
            raise Conflict("Enrollment is not pending", code="NotPending")
        self.db.commit()
        self.db.expunge(enrollment)

        enrollment_transitions_total.labels(transition="rejected", source="manual").inc()
        logger.info(
            "enrollment_rejected",
            extra={"enrollment_id": enrollment_id, "user_id": actor.user_id, "old_status": "PENDING"},
        )
        NotificationService(self.db).notify(
            student_id,
            "Enrollment Rejected",
            f'Your enrollment request for "{course.title}" was rejected. '
            "Please contact the instructor for more information.",
            NotificationType.WARNING,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_pending(self, actor: Identity) -> list[Enrollment]:
        q = (
            self.db.query(Enrollment)
            .join(Course, Course.id == Enrollment.course_id)
            .filter(
                Enrollment.status == EnrollmentStatus.PENDING.value,
                Enrollment.payment_method == EnrollmentMethod.MANUAL.value,
            )
        )
        if not actor.is_admin:
            q = q.filter(Course.instructor_id == actor.user_id)
        return q.order_by(Enrollment.enrolled_at.desc()).all()

    def check(self, student_id: str, course_id: str) -> dict:
        enrollment = self.get_for_pair(student_id, course_id)
        if not enrollment:
            return {"enrolled": False, "status": None, "enrollment_id": None}
        return {
            "enrolled": enrollment.status == EnrollmentStatus.APPROVED.value,
            "status": enrollment.status,
            "enrollment_id": enrollment.id,
        }

    def list_for_student(self, student_id: str) -> list[Enrollment]:
        return (
            self.db.query(Enrollment)
            .filter(Enrollment.student_id == student_id)
            .order_by(Enrollment.enrolled_at.desc())
            .all()
        )
