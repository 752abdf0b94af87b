"""
Shared fixtures: in-memory SQLite, row factories, fake collaborators.

Settings are read at import time, so the required secrets are put in the
environment before anything from smartlearn is imported.
"""
import os

os.environ.setdefault("PAYHERE_MERCHANT_ID", "1211149")
os.environ.setdefault("PAYHERE_MERCHANT_SECRET", "test-merchant-secret")
os.environ.setdefault("IDENTITY_SECRET", "test-identity-secret-0123456789")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PAYHERE_SANDBOX_MODE", "true")

from decimal import Decimal
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import smartlearn.models  # noqa: F401
from smartlearn.db.base import Base
from smartlearn.models.course import Course, Video
from smartlearn.models.enrollment import Enrollment
from smartlearn.models.enums import EnrollmentMethod, EnrollmentStatus, PaymentMethod, PaymentStatus, UserRole
from smartlearn.models.payment import Payment
from smartlearn.models.user import User
from smartlearn.storage.base import BlobStorage

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def no_rate_limit():
    with patch("smartlearn.services.payments.service.check_purchase_rate_limit", return_value=True) as m:
        yield m


@pytest.fixture(autouse=True)
def email_dispatch():
    """Celery is never reached from tests; the dispatch helper is recorded instead."""
    with patch("smartlearn.services.certificates.service.dispatch_certificate_email") as m:
        yield m


class FakeStorage(BlobStorage):
    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.signed: list[tuple[str, int, str | None]] = []

    def put(self, key, content, content_type):
        self.objects[key] = content
        return key

    def sign(self, key, ttl_seconds, filename=None):
        self.signed.append((key, ttl_seconds, filename))
        return f"https://blobs.test/{key}?ttl={ttl_seconds}"

    def head_exists(self, key):
        return key in self.objects


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def renderer():
    r = MagicMock()
    r.render.return_value = b"%PDF-1.4 fake"
    return r


# ----------------------------------------------------------------------
# Row factories
# ----------------------------------------------------------------------

def make_user(db, role=UserRole.STUDENT, with_address=True, **kwargs) -> User:
    uid = kwargs.pop("id", str(uuid4()))
    fields = dict(
        id=uid,
        name="Nimal Perera",
        email=f"{uid}@example.lk",
        role=role.value,
        student_number="S-1001",
    )
    if with_address:
        fields.update(
            phone="0771234567",
            address_line1="12 Temple Road",
            city="Kandy",
            district="Kandy",
            postal_code="20000",
        )
    fields.update(kwargs)
    user = User(**fields)
    db.add(user)
    db.commit()
    return user


def make_course(db, instructor: User, videos: int = 3, price="1500.00", title="Python Basics") -> Course:
    course = Course(title=title, price=Decimal(price), instructor_id=instructor.id)
    db.add(course)
    db.flush()
    for i in range(videos):
        db.add(Video(course_id=course.id, title=f"Lesson {i + 1}", order_index=i))
    db.commit()
    return course


def make_enrollment(db, student: User, course: Course, status=EnrollmentStatus.PENDING,
                    method=EnrollmentMethod.ONLINE, requires_delivery=False) -> Enrollment:
    enrollment = Enrollment(
        student_id=student.id,
        course_id=course.id,
        status=status.value,
        payment_method=method.value,
        requires_delivery=requires_delivery,
    )
    db.add(enrollment)
    db.commit()
    return enrollment


def make_payment(db, student: User, course: Course, enrollment: Enrollment | None = None,
                 status=PaymentStatus.PENDING, order_id=None) -> Payment:
    payment = Payment(
        student_id=student.id,
        course_id=course.id,
        enrollment_id=enrollment.id if enrollment else None,
        order_id=order_id or f"ORDER-{uuid4().hex[:12]}",
        amount=course.price,
        currency="LKR",
        status=status.value,
        payment_method=PaymentMethod.ONLINE.value,
    )
    db.add(payment)
    db.commit()
    return payment


@pytest.fixture
def instructor(db):
    return make_user(db, role=UserRole.INSTRUCTOR, name="Dr. Silva", with_address=False)


@pytest.fixture
def student(db):
    return make_user(db)


@pytest.fixture
def course(db, instructor):
    return make_course(db, instructor)
