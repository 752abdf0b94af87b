"""
DeliveryService — physical materials for approved enrollments.

Creation is idempotent: the unique enrollment_id constraint rejects a
duplicate trigger (webhook redelivery, repeated approval effects) and the
duplicate is treated as the steady state, not an error.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from smartlearn.core.errors import Conflict, NotFound, ValidationError
from smartlearn.models.course import Course
from smartlearn.models.delivery import Delivery
from smartlearn.models.enrollment import Enrollment
from smartlearn.models.enums import DeliveryStatus, EnrollmentStatus, NotificationType
from smartlearn.models.user import User
from smartlearn.schemas.deliveries import DeliveryPatch
from smartlearn.services.auth.identity import Identity
from smartlearn.services.notifications.service import NotificationService
from smartlearn.services.patching import apply_patch
from smartlearn.utils.metrics import deliveries_created_total

logger = logging.getLogger(__name__)

FORWARD_ORDER = (
    DeliveryStatus.PENDING,
    DeliveryStatus.PROCESSING,
    DeliveryStatus.SHIPPED,
    DeliveryStatus.DELIVERED,
)
TERMINAL = frozenset({DeliveryStatus.DELIVERED, DeliveryStatus.CANCELLED})

STATUS_MESSAGES = {
    DeliveryStatus.PROCESSING: 'Your course materials for "{title}" are being prepared for shipping.',
    DeliveryStatus.SHIPPED: 'Your course materials for "{title}" have been shipped!',
    DeliveryStatus.DELIVERED: 'Your course materials for "{title}" have been marked as delivered.',
    DeliveryStatus.CANCELLED: 'The delivery of course materials for "{title}" was cancelled. Please contact the instructor.',
}


def can_transition(current: DeliveryStatus | str, target: DeliveryStatus | str) -> bool:
    """
    Forward along PENDING -> PROCESSING -> SHIPPED -> DELIVERED (skipping ahead is allowed),
    CANCELLED from any non-terminal state. Re-entering the current status is allowed (no-op).
    """
    current = DeliveryStatus(current)
    target = DeliveryStatus(target)
    if current == target:
        return True
    if current in TERMINAL:
        return False
    if target == DeliveryStatus.CANCELLED:
        return True
    return FORWARD_ORDER.index(target) > FORWARD_ORDER.index(current)


@dataclass(frozen=True)
class AddressSnapshot:
    full_name: str
    phone: str
    email: str | None
    address_line1: str
    address_line2: str | None
    city: str
    district: str
    postal_code: str | None
    country: str

    @classmethod
    def from_user(cls, user: User) -> "AddressSnapshot":
        return cls(
            full_name=user.name or "Student",
            phone=user.phone or "",
            email=user.email,
            address_line1=user.address_line1 or "",
            address_line2=user.address_line2 or None,
            city=user.city or "",
            district=user.district or "",
            postal_code=user.postal_code or None,
            country=user.country or "Sri Lanka",
        )


class DeliveryService:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Creation (best-effort, after approval commit)
    # ------------------------------------------------------------------

    def get_for_enrollment(self, enrollment_id: str) -> Delivery | None:
        return self.db.query(Delivery).filter(Delivery.enrollment_id == enrollment_id).one_or_none()

    def create(self, enrollment_id: str, snapshot: AddressSnapshot) -> Delivery | None:
        """Insert guarded by unique enrollment_id. Returns None when one already exists."""
        if self.get_for_enrollment(enrollment_id):
            logger.info("delivery_already_exists", extra={"enrollment_id": enrollment_id})
            return None
        delivery = Delivery(
            enrollment_id=enrollment_id,
            status=DeliveryStatus.PENDING.value,
            **asdict(snapshot),
        )
        try:
            self.db.add(delivery)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info("delivery_duplicate_ignored", extra={"enrollment_id": enrollment_id})
            return None
        deliveries_created_total.inc()
        logger.info(
            "delivery_created",
            extra={"enrollment_id": enrollment_id, "delivery_id": delivery.id},
        )
        return delivery

    def dispatch_for_enrollment(self, enrollment: Enrollment, student: User) -> Delivery | None:
        """
        Create the delivery iff the enrollment is APPROVED, asked for materials and
        the student's profile has a complete address right now.
        """
        if enrollment.status != EnrollmentStatus.APPROVED or not enrollment.requires_delivery:
            return None
        if not student.has_delivery_address():
            logger.warning(
                "delivery_missing_address",
                extra={"enrollment_id": enrollment.id, "student_id": student.id},
            )
            return None
        return self.create(enrollment.id, AddressSnapshot.from_user(student))

    # ------------------------------------------------------------------
    # Instructor operations
    # ------------------------------------------------------------------

    def _get_for_actor(self, delivery_id: str, actor: Identity) -> tuple[Delivery, Enrollment, Course]:
        row = (
            self.db.query(Delivery, Enrollment, Course)
            .join(Enrollment, Enrollment.id == Delivery.enrollment_id)
            .join(Course, Course.id == Enrollment.course_id)
            .filter(Delivery.id == delivery_id)
            .one_or_none()
        )
        # Deliveries of other instructors' courses are invisible, not forbidden
        if not row or not actor.can_manage_course(row[2].instructor_id):
            raise NotFound("Delivery not found", code="DELIVERY_NOT_FOUND")
        return row[0], row[1], row[2]

    def update(self, delivery_id: str, patch: DeliveryPatch, actor: Identity) -> Delivery:
        delivery, enrollment, course = self._get_for_actor(delivery_id, actor)
        old_status = DeliveryStatus(delivery.status)
        new_status = patch.status
        status_changed = new_status is not None and new_status != old_status

        if status_changed:
            if not can_transition(old_status, new_status):
                raise ValidationError(
                    f"Cannot move delivery from {old_status.value} to {new_status.value}",
                    code="INVALID_DELIVERY_TRANSITION",
                )
            now = datetime.now(timezone.utc)
            values: dict = {"status": new_status.value}
            if new_status == DeliveryStatus.SHIPPED and delivery.shipped_at is None:
                values["shipped_at"] = now
            if new_status == DeliveryStatus.DELIVERED and delivery.delivered_at is None:
                values["delivered_at"] = now
            res = self.db.execute(
                update(Delivery)
                .where(Delivery.id == delivery.id, Delivery.status == old_status.value)
                .values(**values)
                .execution_options(synchronize_session="fetch")
            )
            if res.rowcount == 0:
                self.db.rollback()
                raise Conflict("Delivery was updated concurrently, reload and retry", code="STALE_DELIVERY")

        apply_patch(delivery, patch, exclude={"status"})
        self.db.commit()
        self.db.refresh(delivery)

        logger.info(
            "delivery_updated",
            extra={
                "delivery_id": delivery.id,
                "old_status": old_status.value,
                "new_status": delivery.status,
            },
        )

        if status_changed:
            message = STATUS_MESSAGES[new_status].format(title=course.title)
            if new_status == DeliveryStatus.SHIPPED and delivery.tracking_number:
                message += f" Tracking: {delivery.tracking_number}"
            NotificationService(self.db).notify(
                enrollment.student_id,
                f"Delivery {new_status.value.capitalize()}",
                message,
                NotificationType.INFO,
            )
        return delivery

    def delete(self, delivery_id: str, actor: Identity) -> None:
        """Remove the delivery and turn off requires_delivery on its enrollment."""
        delivery, enrollment, _ = self._get_for_actor(delivery_id, actor)
        enrollment.requires_delivery = False
        self.db.delete(delivery)
        self.db.commit()
        logger.info(
            "delivery_deleted",
            extra={"delivery_id": delivery_id, "enrollment_id": enrollment.id},
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_for_instructor(
        self,
        actor: Identity,
        status: DeliveryStatus | None = None,
        course_id: str | None = None,
    ) -> tuple[list[Delivery], dict[str, int]]:
        """Deliveries of APPROVED enrollments in the actor's courses, plus counts per status."""
        base = (
            self.db.query(Delivery)
            .join(Enrollment, Enrollment.id == Delivery.enrollment_id)
            .join(Course, Course.id == Enrollment.course_id)
            .filter(Enrollment.status == EnrollmentStatus.APPROVED.value)
        )
        if not actor.is_admin:
            base = base.filter(Course.instructor_id == actor.user_id)

        counts = {s.value: 0 for s in DeliveryStatus}
        grouped = (
            base.with_entities(Delivery.status, func.count(Delivery.id))
            .group_by(Delivery.status)
            .all()
        )
        for value, count in grouped:
            counts[value] = count

        q = base
        if status is not None:
            q = q.filter(Delivery.status == DeliveryStatus(status).value)
        if course_id:
            q = q.filter(Enrollment.course_id == course_id)
        return q.order_by(Delivery.created_at.desc()).all(), counts

    def list_for_student(self, student_id: str) -> list[Delivery]:
        return (
            self.db.query(Delivery)
            .join(Enrollment, Enrollment.id == Delivery.enrollment_id)
            .filter(Enrollment.student_id == student_id)
            .order_by(Delivery.created_at.desc())
            .all()
        )
