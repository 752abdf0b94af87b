"""
PaymentService — PayHere checkout and the student-side payment ledger.

Responsibilities:
- create_checkout: enrollment (reused on retry) + PENDING payment + signed form
- verify_payment: explicit confirmation from the return page
- listings
Inbound notify callbacks live in webhook.py.
"""
import logging
import secrets
import string
import time

from sqlalchemy.orm import Session

from smartlearn.core.config import settings
from smartlearn.core.errors import Conflict, NotFound, RateLimited, ValidationError
from smartlearn.models.course import Course
from smartlearn.models.enums import EnrollmentMethod, PaymentMethod, PaymentStatus
from smartlearn.models.payment import Payment
from smartlearn.models.user import User
from smartlearn.services.enrollments.service import EnrollmentService
from smartlearn.services.payments.rate_limit import check_purchase_rate_limit
from smartlearn.services.payments.signature import format_amount, sign, verify
from smartlearn.services.payments.webhook import GatewayStatus, PayHereWebhookService
from smartlearn.utils.metrics import payments_created_total

logger = logging.getLogger(__name__)

MISSING_ADDRESS_FOR_ORDER = "Please update your delivery address in Settings before ordering materials"

_ORDER_ALPHABET = string.ascii_lowercase + string.digits


def new_order_id() -> str:
    """ORDER-<epoch ms>-<9 random base36 chars>."""
    suffix = "".join(secrets.choice(_ORDER_ALPHABET) for _ in range(9))
    return f"ORDER-{int(time.time() * 1000)}-{suffix}"


def sign_checkout(merchant_id: str, order_id: str, amount, currency: str, secret: str) -> str:
    return sign(merchant_id, order_id, amount, currency, secret)


def verify_signature(
    signature: str,
    merchant_id: str,
    order_id: str,
    amount,
    currency: str,
    secret: str,
    status_code: str | None = None,
) -> bool:
    return verify(signature, merchant_id, order_id, amount, currency, secret, status_code)


class PaymentService:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def create_checkout(self, student: User, course_id: str, requires_delivery: bool = False) -> dict:
        if not course_id:
            raise ValidationError("Course ID is required", code="MISSING_COURSE_ID")
        course = self.db.get(Course, course_id)
        if not course:
            raise NotFound("Course not found", code="COURSE_NOT_FOUND")
        if requires_delivery and not student.has_delivery_address():
            raise ValidationError(MISSING_ADDRESS_FOR_ORDER, code="MISSING_ADDRESS")
        if not check_purchase_rate_limit(student.id):
            raise RateLimited("Too many payment attempts, please wait a minute")

        enrollment = EnrollmentService(self.db).create(
            student.id,
            course.id,
            EnrollmentMethod.ONLINE,
            requires_delivery,
        )
        order_id = new_order_id()
        currency = settings.payhere_currency
        payment = Payment(
            student_id=student.id,
            course_id=course.id,
            enrollment_id=enrollment.id,
            order_id=order_id,
            amount=course.price,
            currency=currency,
            status=PaymentStatus.PENDING.value,
            payment_method=PaymentMethod.ONLINE.value,
        )
        self.db.add(payment)
        self.db.commit()
        payments_created_total.labels(method=PaymentMethod.ONLINE.value).inc()
        logger.info(
            "checkout_created",
            extra={
                "order_id": order_id,
                "payment_id": payment.id,
                "enrollment_id": enrollment.id,
                "user_id": student.id,
            },
        )

        merchant_id = settings.payhere_merchant_id
        base_url = settings.public_base_url.rstrip("/")
        name_parts = (student.name or "").split()
        pay_here_data = {
            "sandbox": settings.payhere_sandbox_mode,
            "merchant_id": merchant_id,
            "return_url": f"{base_url}/payment/success?order_id={order_id}",
            "cancel_url": f"{base_url}/courses/{course.id}?payment=cancelled",
            "notify_url": f"{base_url}/api/payhere/notify",
            "order_id": order_id,
            "items": course.title,
            "amount": format_amount(course.price),
            "currency": currency,
            "first_name": name_parts[0] if name_parts else "Student",
            "last_name": name_parts[1] if len(name_parts) > 1 else "",
            "email": student.email,
            "phone": student.phone or "0000000000",
            "address": student.address_line1 or "N/A",
            "city": student.city or "N/A",
            "country": student.country or "Sri Lanka",
            "hash": sign_checkout(
                merchant_id, order_id, course.price, currency, settings.payhere_merchant_secret
            ),
        }
        return {
            "payment_id": payment.id,
            "order_id": order_id,
            "pay_here_data": pay_here_data,
            "sandbox": settings.payhere_sandbox_mode,
            "pay_here_url": settings.payhere_checkout_endpoint,
        }

    # ------------------------------------------------------------------
    # Verification (return page)
    # ------------------------------------------------------------------

    def verify_payment(self, order_id: str, student_id: str) -> dict:
        if not order_id:
            raise ValidationError("Order ID required", code="MISSING_ORDER_ID")
        payment = (
            self.db.query(Payment)
            .filter(Payment.order_id == order_id, Payment.student_id == student_id)
            .one_or_none()
        )
        if not payment:
            raise NotFound("Payment not found", code="PAYMENT_NOT_FOUND")
        if payment.status == PaymentStatus.COMPLETED.value:
            return {"message": "Payment already completed"}
        if not settings.payhere_sandbox_mode:
            raise ValidationError("Payment verification pending", code="VERIFICATION_PENDING")

        # Sandbox has no reliable notify callback: apply the success transition directly
        outcome = PayHereWebhookService(self.db).process(order_id, GatewayStatus.SUCCESS, source="verify")
        if outcome.stale:
            raise Conflict("Payment can no longer be completed", code="STALE_STATE")
        return {"message": "Payment verified and enrollment activated"}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_order_id(self, order_id: str) -> Payment | None:
        return self.db.query(Payment).filter(Payment.order_id == order_id).one_or_none()

    def list_for_student(self, student_id: str) -> list[Payment]:
        return (
            self.db.query(Payment)
            .filter(Payment.student_id == student_id)
            .order_by(Payment.created_at.desc())
            .all()
        )
