from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from smartlearn.api.deps import get_identity
from smartlearn.api.routes.certificates import certificate_out
from smartlearn.db.session import get_db
from smartlearn.schemas.certificates import CertificateOut
from smartlearn.schemas.deliveries import DeliveryOut
from smartlearn.schemas.enrollments import EnrollmentOut
from smartlearn.schemas.notifications import MarkReadIn, MarkReadOut, NotificationListOut, NotificationOut
from smartlearn.schemas.common import MessageOut
from smartlearn.schemas.payments import PaymentOut
from smartlearn.services.auth.identity import Identity
from smartlearn.services.certificates.service import CertificateService
from smartlearn.services.deliveries.service import DeliveryService
from smartlearn.services.enrollments.service import EnrollmentService
from smartlearn.services.notifications.service import NotificationService
from smartlearn.services.payments.service import PaymentService


router = APIRouter(prefix="/api/student", tags=["student"])


@router.get("/enrollments", response_model=list[EnrollmentOut])
def my_enrollments(identity: Identity = Depends(get_identity), db: Session = Depends(get_db)):
    return EnrollmentService(db).list_for_student(identity.user_id)


@router.get("/payments", response_model=list[PaymentOut])
def my_payments(identity: Identity = Depends(get_identity), db: Session = Depends(get_db)):
    return PaymentService(db).list_for_student(identity.user_id)


@router.get("/certificates", response_model=list[CertificateOut])
def my_certificates(identity: Identity = Depends(get_identity), db: Session = Depends(get_db)):
    return [certificate_out(c) for c in CertificateService(db).list_for_student(identity.user_id)]


@router.get("/deliveries", response_model=list[DeliveryOut])
def my_deliveries(identity: Identity = Depends(get_identity), db: Session = Depends(get_db)):
    return DeliveryService(db).list_for_student(identity.user_id)


# ----------------------------------------------------------------------
# Notifications
# ----------------------------------------------------------------------

@router.get("/notifications", response_model=NotificationListOut)
def my_notifications(
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> NotificationListOut:
    notifications, unread = NotificationService(db).list(identity.user_id, unread_only)
    return NotificationListOut(
        notifications=[NotificationOut.model_validate(n) for n in notifications],
        unread_count=unread,
    )


@router.put("/notifications", response_model=MarkReadOut)
def mark_notifications_read(
    body: MarkReadIn,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> MarkReadOut:
    updated = NotificationService(db).mark_read(identity.user_id, body.notification_ids)
    return MarkReadOut(message="Notifications marked as read", updated=updated)


@router.delete("/notifications/{notification_id}", response_model=MessageOut)
def delete_notification(
    notification_id: str,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> MessageOut:
    NotificationService(db).delete(identity.user_id, notification_id)
    return MessageOut(message="Notification deleted")
