from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from smartlearn.api.deps import require_instructor
from smartlearn.db.session import get_db
from smartlearn.models.enums import DeliveryStatus
from smartlearn.schemas.common import MessageOut
from smartlearn.schemas.deliveries import DeliveryListOut, DeliveryOut, DeliveryPatch
from smartlearn.schemas.enrollments import EnrollmentEnvelope, EnrollmentOut, PendingEnrollmentsOut
from smartlearn.services.auth.identity import Identity
from smartlearn.services.deliveries.service import DeliveryService
from smartlearn.services.enrollments.service import EnrollmentService


router = APIRouter(prefix="/api/instructor", tags=["instructor"])


# ----------------------------------------------------------------------
# Enrollments
# ----------------------------------------------------------------------

@router.get("/enrollments/pending", response_model=PendingEnrollmentsOut)
def pending_enrollments(
    identity: Identity = Depends(require_instructor),
    db: Session = Depends(get_db),
) -> PendingEnrollmentsOut:
    enrollments = EnrollmentService(db).list_pending(identity)
    return PendingEnrollmentsOut(enrollments=[EnrollmentOut.model_validate(e) for e in enrollments])


@router.post("/enrollments/{enrollment_id}/approve", response_model=EnrollmentEnvelope)
def approve_enrollment(
    enrollment_id: str,
    identity: Identity = Depends(require_instructor),
    db: Session = Depends(get_db),
) -> EnrollmentEnvelope:
    enrollment = EnrollmentService(db).approve(enrollment_id, identity)
    return EnrollmentEnvelope(
        message="Enrollment approved successfully",
        enrollment=EnrollmentOut.model_validate(enrollment),
    )


@router.delete("/enrollments/{enrollment_id}/reject", response_model=MessageOut)
def reject_enrollment(
    enrollment_id: str,
    identity: Identity = Depends(require_instructor),
    db: Session = Depends(get_db),
) -> MessageOut:
    EnrollmentService(db).reject(enrollment_id, identity)
    return MessageOut(message="Enrollment request rejected")


# ----------------------------------------------------------------------
# Deliveries
# ----------------------------------------------------------------------

@router.get("/deliveries", response_model=DeliveryListOut)
def list_deliveries(
    status: DeliveryStatus | None = Query(default=None),
    course_id: str | None = Query(default=None, alias="courseId"),
    identity: Identity = Depends(require_instructor),
    db: Session = Depends(get_db),
) -> DeliveryListOut:
    deliveries, counts = DeliveryService(db).list_for_instructor(identity, status, course_id)
    return DeliveryListOut(
        deliveries=[DeliveryOut.model_validate(d) for d in deliveries],
        counts=counts,
    )


@router.patch("/deliveries/{delivery_id}", response_model=DeliveryOut)
def update_delivery(
    delivery_id: str,
    patch: DeliveryPatch,
    identity: Identity = Depends(require_instructor),
    db: Session = Depends(get_db),
) -> DeliveryOut:
    delivery = DeliveryService(db).update(delivery_id, patch, identity)
    return DeliveryOut.model_validate(delivery)


@router.delete("/deliveries/{delivery_id}", response_model=MessageOut)
def delete_delivery(
    delivery_id: str,
    identity: Identity = Depends(require_instructor),
    db: Session = Depends(get_db),
) -> MessageOut:
    DeliveryService(db).delete(delivery_id, identity)
    return MessageOut(message="Delivery deleted successfully")
