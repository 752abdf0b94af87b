from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from smartlearn.api.deps import get_current_user, get_identity
from smartlearn.db.session import get_db
from smartlearn.models.user import User
from smartlearn.schemas.enrollments import (
    EnrollmentCheckOut,
    EnrollmentEnvelope,
    EnrollmentOut,
    ManualRequestIn,
)
from smartlearn.services.auth.identity import Identity
from smartlearn.services.enrollments.service import EnrollmentService


router = APIRouter(prefix="/api/enrollments", tags=["enrollments"])


@router.post("/manual-request", response_model=EnrollmentEnvelope, status_code=201)
def manual_request(
    body: ManualRequestIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> EnrollmentEnvelope:
    enrollment = EnrollmentService(db).submit_manual_request(
        user,
        body.course_id,
        body.receipt_image,
        body.requires_delivery,
    )
    return EnrollmentEnvelope(
        message="Enrollment request submitted successfully. Waiting for instructor approval.",
        enrollment=EnrollmentOut.model_validate(enrollment),
    )


@router.get("/check", response_model=EnrollmentCheckOut)
def check_enrollment(
    course_id: str = Query(..., alias="courseId"),
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> EnrollmentCheckOut:
    return EnrollmentCheckOut(**EnrollmentService(db).check(identity.user_id, course_id))
