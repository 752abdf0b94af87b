from datetime import datetime

from pydantic import field_validator

from smartlearn.schemas.common import CamelModel


class ManualRequestIn(CamelModel):
    course_id: str
    receipt_image: str
    requires_delivery: bool = False

    @field_validator("course_id", "receipt_image")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v


class EnrollmentOut(CamelModel):
    id: str
    student_id: str
    course_id: str
    status: str
    payment_method: str
    requires_delivery: bool
    approved_by: str | None = None
    approved_at: datetime | None = None
    enrolled_at: datetime | None = None


class EnrollmentEnvelope(CamelModel):
    message: str
    enrollment: EnrollmentOut


class PendingEnrollmentsOut(CamelModel):
    enrollments: list[EnrollmentOut]


class EnrollmentCheckOut(CamelModel):
    enrolled: bool
    status: str | None = None
    enrollment_id: str | None = None
