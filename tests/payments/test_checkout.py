"""PaymentService: checkout form, verification, rate limit."""
import re

import pytest

from conftest import make_enrollment, make_payment, make_user
from smartlearn.core.config import settings
from smartlearn.core.errors import Conflict, NotFound, RateLimited, ValidationError
from smartlearn.models.enrollment import Enrollment
from smartlearn.models.enums import EnrollmentMethod, EnrollmentStatus, PaymentStatus
from smartlearn.models.payment import Payment
from smartlearn.services.payments.service import PaymentService, new_order_id
from smartlearn.services.payments.signature import sign


def test_order_id_format():
    assert re.fullmatch(r"ORDER-\d{13}-[a-z0-9]{9}", new_order_id())
    assert new_order_id() != new_order_id()


class TestCreateCheckout:
    def test_creates_pending_payment_and_signed_form(self, db, student, course):
        result = PaymentService(db).create_checkout(student, course.id, requires_delivery=True)

        payment = db.get(Payment, result["payment_id"])
        assert payment.status == PaymentStatus.PENDING.value
        assert payment.order_id == result["order_id"]
        enrollment = db.get(Enrollment, payment.enrollment_id)
        assert enrollment.status == EnrollmentStatus.PENDING.value
        assert enrollment.requires_delivery is True

        form = result["pay_here_data"]
        assert form["amount"] == "1500.00"
        assert form["currency"] == "LKR"
        assert form["first_name"] == "Nimal"
        assert form["last_name"] == "Perera"
        assert form["notify_url"].endswith("/api/payhere/notify")
        assert form["hash"] == sign(
            settings.payhere_merchant_id, result["order_id"], "1500.00", "LKR", settings.payhere_merchant_secret
        )
        assert result["sandbox"] is True
        assert result["pay_here_url"] == "https://sandbox.payhere.lk/pay/checkout"

    def test_retry_reuses_online_enrollment(self, db, student, course):
        svc = PaymentService(db)
        first = svc.create_checkout(student, course.id)
        second = svc.create_checkout(student, course.id, requires_delivery=True)

        assert first["order_id"] != second["order_id"]
        assert db.query(Enrollment).count() == 1
        assert db.query(Payment).count() == 2
        assert db.query(Enrollment).one().requires_delivery is True

    def test_missing_address(self, db, course):
        student = make_user(db, with_address=False)
        with pytest.raises(ValidationError) as exc:
            PaymentService(db).create_checkout(student, course.id, requires_delivery=True)
        assert exc.value.code == "MISSING_ADDRESS"
        assert "before ordering materials" in exc.value.message
        assert db.query(Payment).count() == 0

    def test_unknown_course(self, db, student):
        with pytest.raises(NotFound):
            PaymentService(db).create_checkout(student, "nope")

    def test_already_approved(self, db, student, course):
        make_enrollment(db, student, course, status=EnrollmentStatus.APPROVED)
        with pytest.raises(Conflict) as exc:
            PaymentService(db).create_checkout(student, course.id)
        assert exc.value.code == "AlreadyApproved"

    def test_pending_manual_request_blocks_checkout(self, db, student, course):
        make_enrollment(db, student, course, method=EnrollmentMethod.MANUAL)
        with pytest.raises(Conflict) as exc:
            PaymentService(db).create_checkout(student, course.id)
        assert exc.value.code == "PendingExists"

    def test_rate_limited(self, db, student, course, no_rate_limit):
        no_rate_limit.return_value = False
        with pytest.raises(RateLimited):
            PaymentService(db).create_checkout(student, course.id)
        assert db.query(Enrollment).count() == 0


class TestVerifyPayment:
    def test_sandbox_completes_and_approves(self, db, student, course):
        enrollment = make_enrollment(db, student, course)
        payment = make_payment(db, student, course, enrollment)

        result = PaymentService(db).verify_payment(payment.order_id, student.id)

        assert result["message"] == "Payment verified and enrollment activated"
        db.refresh(payment)
        db.refresh(enrollment)
        assert payment.status == PaymentStatus.COMPLETED.value
        assert enrollment.status == EnrollmentStatus.APPROVED.value

    def test_already_completed(self, db, student, course):
        payment = make_payment(db, student, course, status=PaymentStatus.COMPLETED)
        result = PaymentService(db).verify_payment(payment.order_id, student.id)
        assert result == {"message": "Payment already completed"}

    def test_outside_sandbox(self, db, student, course, monkeypatch):
        monkeypatch.setattr(settings, "payhere_sandbox_mode", False)
        payment = make_payment(db, student, course)
        with pytest.raises(ValidationError) as exc:
            PaymentService(db).verify_payment(payment.order_id, student.id)
        assert exc.value.message == "Payment verification pending"
        db.refresh(payment)
        assert payment.status == PaymentStatus.PENDING.value

    def test_other_students_payment(self, db, student, course):
        payment = make_payment(db, student, course)
        other = make_user(db)
        with pytest.raises(NotFound):
            PaymentService(db).verify_payment(payment.order_id, other.id)
