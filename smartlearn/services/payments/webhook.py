"""
PayHere notify_url handling.

Delivery is at-least-once and possibly concurrent. Every notification:
1. is authenticated (merchant id + md5sig) before anything is read or written;
2. passes the payment-status transition guard (never regress a payment);
3. writes Payment.status, Enrollment.status and the Payment->Enrollment link
   in one transaction;
4. runs best-effort effects (delivery, notification) after commit.

A lost unique/compare-and-swap race rolls the transaction back and applies
it once more against fresh state.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from smartlearn.core.config import settings
from smartlearn.core.errors import Conflict, GatewayAuthenticityError, NotFound, ValidationError
from smartlearn.models.enrollment import Enrollment
from smartlearn.models.enums import EnrollmentMethod, EnrollmentStatus, PaymentStatus
from smartlearn.models.payment import Payment
from smartlearn.schemas.payments import GatewayNotification
from smartlearn.services.enrollments.activation import run_activation_effects
from smartlearn.services.enrollments.service import EnrollmentService
from smartlearn.services.payments.signature import format_amount, verify
from smartlearn.utils.metrics import enrollment_transitions_total, webhook_notifications_total

logger = logging.getLogger(__name__)


class GatewayStatus(str, Enum):
    SUCCESS = "success"
    PENDING = "pending"
    CANCELLED = "cancelled"
    FAILED = "failed"
    CHARGEDBACK = "chargedback"


_STATUS_CODES = {
    "2": GatewayStatus.SUCCESS,
    "0": GatewayStatus.PENDING,
    "-1": GatewayStatus.CANCELLED,
    "-2": GatewayStatus.FAILED,
    "-3": GatewayStatus.CHARGEDBACK,
}

PAYMENT_STATUS_FOR = {
    GatewayStatus.SUCCESS: PaymentStatus.COMPLETED,
    GatewayStatus.PENDING: PaymentStatus.PENDING,
    GatewayStatus.CANCELLED: PaymentStatus.CANCELLED,
    GatewayStatus.FAILED: PaymentStatus.FAILED,
    GatewayStatus.CHARGEDBACK: PaymentStatus.CHARGEDBACK,
}


def parse_status_code(raw: str | int) -> GatewayStatus:
    """Numeric ("2", "-1", 2) or symbolic ("success", "chargedback") status."""
    value = str(raw).strip().lower()
    if value in _STATUS_CODES:
        return _STATUS_CODES[value]
    try:
        return GatewayStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown payment status code: {raw!r}", code="UNKNOWN_STATUS_CODE")


def payment_transition_allowed(current: PaymentStatus | str, target: PaymentStatus | str) -> bool:
    """
    True when a notification may move a payment from current to target.
    current == target is allowed (idempotent replay).
    """
    current = PaymentStatus(current)
    target = PaymentStatus(target)
    if current == target:
        return True
    if current == PaymentStatus.CHARGEDBACK:
        return False
    if current == PaymentStatus.COMPLETED:
        return target == PaymentStatus.CHARGEDBACK
    if current in (PaymentStatus.CANCELLED, PaymentStatus.FAILED):
        # late success after a cancel/fail notification
        return target == PaymentStatus.COMPLETED
    # PENDING
    return True


class Resolution(str, Enum):
    USE_LINKED = "use_linked"
    LINK_EXISTING = "link_existing"
    CREATE = "create"


@dataclass(frozen=True)
class LinkSnapshot:
    """What the database holds for the payment's (student, course) pair."""

    linked_enrollment_id: str | None
    existing_enrollment_id: str | None


def resolve_enrollment(snapshot: LinkSnapshot) -> Resolution:
    if snapshot.linked_enrollment_id:
        return Resolution.USE_LINKED
    if snapshot.existing_enrollment_id:
        return Resolution.LINK_EXISTING
    return Resolution.CREATE


@dataclass
class WebhookOutcome:
    payment: Payment
    status: GatewayStatus
    enrollment: Enrollment | None = None
    applied: bool = False      # payment status changed by this call
    activated: bool = False    # enrollment moved to APPROVED by this call
    stale: bool = False        # rejected by the transition guard

    @property
    def label(self) -> str:
        if self.stale:
            return "stale"
        return "applied" if self.applied else "noop"


class _LostRace(Exception):
    """Compare-and-swap on Payment.status matched no row."""


class PayHereWebhookService:
    def __init__(self, db: Session):
        self.db = db
        self.enrollments = EnrollmentService(db)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def authenticate(self, notification: GatewayNotification) -> None:
        if notification.merchant_id != settings.payhere_merchant_id:
            self._reject(notification, "invalid_merchant")
            raise GatewayAuthenticityError("Invalid merchant", code="INVALID_MERCHANT")
        status_code = notification.status_code if settings.payhere_notify_sign_status_code else None
        valid = verify(
            notification.md5sig,
            notification.merchant_id,
            notification.order_id,
            notification.payhere_amount,
            notification.payhere_currency,
            settings.payhere_merchant_secret,
            status_code=status_code,
        )
        if not valid:
            self._reject(notification, "invalid_signature")
            raise GatewayAuthenticityError("Invalid hash", code="INVALID_SIGNATURE")

    def _reject(self, notification: GatewayNotification, reason: str) -> None:
        # Unauthenticated input: only known statuses become label values
        try:
            label = parse_status_code(notification.status_code).value
        except ValidationError:
            label = "unknown"
        webhook_notifications_total.labels(status=label, outcome="rejected").inc()
        logger.warning(
            "webhook_rejected",
            extra={
                "order_id": notification.order_id,
                "status_code": notification.status_code,
                "reason": reason,
            },
        )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def handle(self, notification: GatewayNotification) -> WebhookOutcome:
        self.authenticate(notification)
        status = parse_status_code(notification.status_code)
        return self.process(
            notification.order_id,
            status,
            amount=notification.payhere_amount,
            currency=notification.payhere_currency,
            gateway_payment_id=notification.payment_id,
            gateway_method=notification.method,
            status_message=notification.status_message,
        )

    def process(
        self,
        order_id: str,
        status: GatewayStatus,
        *,
        amount: str | None = None,
        currency: str | None = None,
        gateway_payment_id: str | None = None,
        gateway_method: str | None = None,
        status_message: str | None = None,
        source: str = "webhook",
    ) -> WebhookOutcome:
        """Apply a gateway status to the payment identified by order_id."""
        kwargs = dict(
            amount=amount,
            currency=currency,
            gateway_payment_id=gateway_payment_id,
            gateway_method=gateway_method,
            status_message=status_message,
        )
        try:
            outcome = self._apply(order_id, status, **kwargs)
        except (IntegrityError, _LostRace):
            self.db.rollback()
            logger.info("webhook_retry_after_race", extra={"order_id": order_id})
            try:
                outcome = self._apply(order_id, status, **kwargs)
            except _LostRace:
                self.db.rollback()
                raise Conflict("Payment changed concurrently", code="STALE_STATE")

        webhook_notifications_total.labels(status=status.value, outcome=outcome.label).inc()
        logger.info(
            "webhook_processed",
            extra={
                "order_id": order_id,
                "payment_id": outcome.payment.id,
                "enrollment_id": outcome.enrollment.id if outcome.enrollment else None,
                "new_status": outcome.payment.status,
                "action": outcome.label,
                "task": source,
            },
        )
        if outcome.activated:
            enrollment_transitions_total.labels(transition="approved", source=source).inc()

        self._after_commit(outcome)
        return outcome

    # ------------------------------------------------------------------
    # Transaction
    # ------------------------------------------------------------------

    def _apply(
        self,
        order_id: str,
        status: GatewayStatus,
        *,
        amount: str | None,
        currency: str | None,
        gateway_payment_id: str | None,
        gateway_method: str | None,
        status_message: str | None,
    ) -> WebhookOutcome:
        payment = self.db.query(Payment).filter(Payment.order_id == order_id).one_or_none()
        if not payment:
            raise NotFound("Payment not found", code="PAYMENT_NOT_FOUND")
        self._check_amount(payment, amount, currency)

        outcome = WebhookOutcome(payment=payment, status=status)
        current = PaymentStatus(payment.status)
        target = PAYMENT_STATUS_FOR[status]

        if not payment_transition_allowed(current, target):
            outcome.stale = True
            outcome.enrollment = self._linked(payment)
            logger.info(
                "webhook_stale_ignored",
                extra={"order_id": order_id, "old_status": current.value, "new_status": target.value},
            )
            return outcome

        if current == target:
            # Replay: nothing to write, best-effort steps re-run after return
            outcome.enrollment = self._linked(payment)
            return outcome

        values: dict = {"status": target.value}
        if gateway_payment_id:
            values["gateway_payment_id"] = gateway_payment_id
        if gateway_method:
            values["gateway_method"] = gateway_method
        if status_message:
            values["status_message"] = status_message

        if status == GatewayStatus.SUCCESS:
            enrollment, activated = self._approve_enrollment(payment)
            values["enrollment_id"] = enrollment.id
            outcome.enrollment = enrollment
            outcome.activated = activated
        else:
            outcome.enrollment = self._linked(payment)
            if outcome.enrollment and status == GatewayStatus.CANCELLED:
                if self.enrollments.mark_cancelled(outcome.enrollment.id, only_pending=True):
                    enrollment_transitions_total.labels(transition="cancelled", source="webhook").inc()
            elif outcome.enrollment and status == GatewayStatus.CHARGEDBACK:
                if self.enrollments.mark_cancelled(outcome.enrollment.id, only_pending=False):
                    enrollment_transitions_total.labels(transition="chargedback", source="webhook").inc()

        res = self.db.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == current.value)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        if res.rowcount != 1:
            raise _LostRace()
        self.db.commit()
        self.db.refresh(payment)
        if outcome.enrollment is not None:
            self.db.refresh(outcome.enrollment)
        outcome.applied = True
        return outcome

    def _check_amount(self, payment: Payment, amount: str | None, currency: str | None) -> None:
        if amount is None and currency is None:
            return
        try:
            amount_matches = amount is None or format_amount(amount) == format_amount(payment.amount)
        except ValueError:
            amount_matches = False
        currency_matches = currency is None or currency.strip().upper() == (payment.currency or "").upper()
        if not (amount_matches and currency_matches):
            logger.warning(
                "webhook_payment_mismatch",
                extra={"order_id": payment.order_id, "payment_id": payment.id, "reason": f"{amount} {currency}"},
            )
            raise ValidationError("Payment amount or currency does not match", code="PaymentMismatch")

    def _linked(self, payment: Payment) -> Enrollment | None:
        if not payment.enrollment_id:
            return None
        return self.enrollments.get(payment.enrollment_id)

    def _approve_enrollment(self, payment: Payment) -> tuple[Enrollment, bool]:
        linked = self._linked(payment)
        existing = None if linked else self.enrollments.get_for_pair(payment.student_id, payment.course_id)
        snapshot = LinkSnapshot(
            linked_enrollment_id=linked.id if linked else None,
            existing_enrollment_id=existing.id if existing else None,
        )
        resolution = resolve_enrollment(snapshot)

        if resolution == Resolution.CREATE:
            enrollment = Enrollment(
                student_id=payment.student_id,
                course_id=payment.course_id,
                status=EnrollmentStatus.APPROVED.value,
                payment_method=EnrollmentMethod.ONLINE.value,
                requires_delivery=False,
                approved_at=datetime.now(timezone.utc),
            )
            self.db.add(enrollment)
            self.db.flush()  # IntegrityError here -> caller retries, re-read finds the winner
            logger.info(
                "webhook_enrollment_created",
                extra={"order_id": payment.order_id, "enrollment_id": enrollment.id},
            )
            return enrollment, True

        enrollment = linked if resolution == Resolution.USE_LINKED else existing
        activated = self.enrollments.mark_approved(enrollment.id)
        return enrollment, activated

    # ------------------------------------------------------------------
    # Best-effort effects
    # ------------------------------------------------------------------

    def _after_commit(self, outcome: WebhookOutcome) -> None:
        if outcome.status != GatewayStatus.SUCCESS or outcome.stale or outcome.enrollment is None:
            return
        if outcome.enrollment.status != EnrollmentStatus.APPROVED.value:
            return
        run_activation_effects(self.db, outcome.enrollment, paid=True, notify=outcome.applied)
