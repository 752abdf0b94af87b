"""HTTP surface: error body shape, auth, form-encoded notify, redirects."""
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from conftest import FakeStorage, TestingSessionLocal, make_enrollment, make_payment
from smartlearn.core.config import settings
from smartlearn.db.session import get_db
from smartlearn.main import app
from smartlearn.models.enums import EnrollmentStatus, PaymentStatus, UserRole
from smartlearn.models.payment import Payment
from smartlearn.services.auth.identity import issue_token
from smartlearn.services.payments.signature import format_amount, sign


@pytest.fixture
def client(db):
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _auth(user, role=UserRole.STUDENT) -> dict:
    return {"Authorization": f"Bearer {issue_token(user.id, role)}"}


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_missing_token(client):
    resp = client.get("/api/student/enrollments")
    assert resp.status_code == 401
    assert resp.json() == {"message": "Unauthorized", "code": "MISSING_TOKEN"}


def test_garbage_token(client):
    resp = client.get("/api/student/enrollments", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    assert resp.json()["code"] == "TOKEN_INVALID"


def test_student_cannot_reach_instructor_routes(client, student):
    resp = client.get("/api/instructor/enrollments/pending", headers=_auth(student))
    assert resp.status_code == 403


def test_body_validation_is_400(client, student):
    resp = client.post("/api/payhere/create-payment", json={}, headers=_auth(student))
    assert resp.status_code == 400
    assert resp.json()["code"] == "VALIDATION_ERROR"


def test_create_payment_camel_case(client, student, course):
    resp = client.post(
        "/api/payhere/create-payment",
        json={"courseId": course.id, "requiresDelivery": True},
        headers=_auth(student),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["orderId"].startswith("ORDER-")
    assert body["payHereData"]["amount"] == "1500.00"
    assert body["payHereData"]["hash"] == sign(
        settings.payhere_merchant_id, body["orderId"], "1500.00", "LKR", settings.payhere_merchant_secret
    )


def test_notify_form_encoded(client, db, student, course):
    enrollment = make_enrollment(db, student, course)
    payment = make_payment(db, student, course, enrollment)
    amount = format_amount(payment.amount)
    form = {
        "merchant_id": settings.payhere_merchant_id,
        "order_id": payment.order_id,
        "payhere_amount": amount,
        "payhere_currency": "LKR",
        "status_code": "2",
        "md5sig": sign(
            settings.payhere_merchant_id, payment.order_id, amount, "LKR",
            settings.payhere_merchant_secret, status_code="2",
        ),
        "payment_id": "320025071234",
        "method": "VISA",
    }

    resp = client.post("/api/payhere/notify", data=form)

    assert resp.status_code == 200
    assert resp.json() == {"message": "Webhook processed successfully"}
    db.expire_all()
    assert db.get(Payment, payment.id).status == PaymentStatus.COMPLETED.value


def test_notify_bad_signature(client, db, student, course):
    payment = make_payment(db, student, course)
    resp = client.post(
        "/api/payhere/notify",
        data={
            "merchant_id": settings.payhere_merchant_id,
            "order_id": payment.order_id,
            "payhere_amount": "1500.00",
            "payhere_currency": "LKR",
            "status_code": "2",
            "md5sig": "0" * 32,
        },
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_SIGNATURE"


def test_enrollment_check(client, db, student, course):
    make_enrollment(db, student, course, status=EnrollmentStatus.APPROVED)
    resp = client.get(f"/api/enrollments/check?courseId={course.id}", headers=_auth(student))
    assert resp.status_code == 200
    assert resp.json()["enrolled"] is True


def test_instructor_approves(client, db, student, course, instructor):
    enrollment = make_enrollment(db, student, course)
    resp = client.post(
        f"/api/instructor/enrollments/{enrollment.id}/approve",
        headers=_auth(instructor, UserRole.INSTRUCTOR),
    )
    assert resp.status_code == 200
    assert resp.json()["message"] == "Enrollment approved successfully"

    again = client.post(
        f"/api/instructor/enrollments/{enrollment.id}/approve",
        headers=_auth(instructor, UserRole.INSTRUCTOR),
    )
    assert again.status_code == 409
    assert again.json()["code"] == "AlreadyApproved"


def test_certificate_download_redirects(client, db, student, course):
    from smartlearn.models.course import Video
    from smartlearn.services.progress.service import ProgressService

    make_enrollment(db, student, course, status=EnrollmentStatus.APPROVED)
    for video in db.query(Video).filter(Video.course_id == course.id):
        ProgressService(db).record(student.id, course.id, video.id, completed=True)

    storage = FakeStorage()
    with patch("smartlearn.services.certificates.service.get_storage", return_value=storage), \
            patch("smartlearn.services.certificates.service.CertificateRenderer") as renderer_cls:
        renderer_cls.return_value.render.return_value = b"%PDF-1.4 fake"
        done = client.post(f"/api/courses/{course.id}/complete", headers=_auth(student))
        assert done.status_code == 200
        certificate = done.json()["certificate"]
        assert certificate["artifactReady"] is True

        resp = client.get(
            f"/api/certificates/{certificate['id']}/download",
            headers=_auth(student),
            follow_redirects=False,
        )

    assert resp.status_code == 302
    assert resp.headers["location"].startswith("https://blobs.test/certificates/")


def test_notifications_listing(client, db, student):
    from smartlearn.services.notifications.service import NotificationService

    NotificationService(db).notify(student.id, "Hello", "World")
    resp = client.get("/api/student/notifications?unreadOnly=true", headers=_auth(student))
    assert resp.status_code == 200
    body = resp.json()
    assert body["unreadCount"] == 1
    assert body["notifications"][0]["title"] == "Hello"
