"""
Post-commit effects of an enrollment becoming APPROVED.

Called after the Payment/Enrollment transaction has committed, by both the
instructor approval path and the PayHere webhook. Each step is best-effort:
a failure is logged and counted, never raised to the caller.
"""
import logging

from sqlalchemy.orm import Session

from smartlearn.models.course import Course
from smartlearn.models.enrollment import Enrollment
from smartlearn.models.enums import NotificationType
from smartlearn.models.user import User
from smartlearn.services.deliveries.service import DeliveryService
from smartlearn.services.notifications.service import NotificationService
from smartlearn.utils.metrics import best_effort_failures_total

logger = logging.getLogger(__name__)

APPROVED_TITLE = "Enrollment Approved"
APPROVED_MESSAGE = 'Your enrollment request for "{title}" has been approved! You can now access the course.'
PAID_TITLE = "Payment Successful"
PAID_MESSAGE = 'Your payment for "{title}" was successful! You can now access the course.'


def ensure_delivery(db: Session, enrollment: Enrollment) -> None:
    """Create the Delivery if this enrollment qualifies and has none yet."""
    try:
        student = db.get(User, enrollment.student_id)
        if student is None:
            return
        DeliveryService(db).dispatch_for_enrollment(enrollment, student)
    except Exception:
        db.rollback()
        best_effort_failures_total.labels(effect="delivery").inc()
        logger.exception("delivery_dispatch_failed", extra={"enrollment_id": enrollment.id})


def run_activation_effects(db: Session, enrollment: Enrollment, *, paid: bool, notify: bool = True) -> None:
    """
    Delivery dispatch, then the student notification.

    notify=False re-runs only the delivery step (webhook redelivery of an
    already applied success).
    """
    ensure_delivery(db, enrollment)
    if not notify:
        return
    course = db.get(Course, enrollment.course_id)
    course_title = course.title if course else "your course"
    if paid:
        title, message = PAID_TITLE, PAID_MESSAGE.format(title=course_title)
    else:
        title, message = APPROVED_TITLE, APPROVED_MESSAGE.format(title=course_title)
    NotificationService(db).notify(enrollment.student_id, title, message, NotificationType.SUCCESS)
