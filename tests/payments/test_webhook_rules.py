"""Status table, transition guard and enrollment resolution: no database."""
import pytest

from smartlearn.core.errors import ValidationError
from smartlearn.models.enums import PaymentStatus
from smartlearn.services.payments.webhook import (
    PAYMENT_STATUS_FOR,
    GatewayStatus,
    LinkSnapshot,
    Resolution,
    parse_status_code,
    payment_transition_allowed,
    resolve_enrollment,
)


class TestParseStatusCode:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("2", GatewayStatus.SUCCESS),
            (2, GatewayStatus.SUCCESS),
            ("0", GatewayStatus.PENDING),
            ("-1", GatewayStatus.CANCELLED),
            ("-2", GatewayStatus.FAILED),
            ("-3", GatewayStatus.CHARGEDBACK),
            ("success", GatewayStatus.SUCCESS),
            ("ChargedBack", GatewayStatus.CHARGEDBACK),
            (" -1 ", GatewayStatus.CANCELLED),
        ],
    )
    def test_known_codes(self, raw, expected):
        assert parse_status_code(raw) == expected

    @pytest.mark.parametrize("raw", ["1", "-4", "refunded", ""])
    def test_unknown_code(self, raw):
        with pytest.raises(ValidationError):
            parse_status_code(raw)

    def test_payment_status_table(self):
        assert PAYMENT_STATUS_FOR[GatewayStatus.SUCCESS] == PaymentStatus.COMPLETED
        assert PAYMENT_STATUS_FOR[GatewayStatus.CHARGEDBACK] == PaymentStatus.CHARGEDBACK
        assert PAYMENT_STATUS_FOR[GatewayStatus.FAILED] == PaymentStatus.FAILED


class TestTransitionGuard:
    @pytest.mark.parametrize("target", list(PaymentStatus))
    def test_pending_goes_anywhere(self, target):
        assert payment_transition_allowed(PaymentStatus.PENDING, target)

    def test_completed_only_to_chargedback(self):
        assert payment_transition_allowed(PaymentStatus.COMPLETED, PaymentStatus.CHARGEDBACK)
        assert not payment_transition_allowed(PaymentStatus.COMPLETED, PaymentStatus.PENDING)
        assert not payment_transition_allowed(PaymentStatus.COMPLETED, PaymentStatus.FAILED)
        assert not payment_transition_allowed(PaymentStatus.COMPLETED, PaymentStatus.CANCELLED)

    @pytest.mark.parametrize("target", [PaymentStatus.PENDING, PaymentStatus.COMPLETED, PaymentStatus.FAILED])
    def test_chargedback_is_final(self, target):
        assert not payment_transition_allowed(PaymentStatus.CHARGEDBACK, target)

    def test_late_success_after_cancel_or_fail(self):
        assert payment_transition_allowed(PaymentStatus.CANCELLED, PaymentStatus.COMPLETED)
        assert payment_transition_allowed(PaymentStatus.FAILED, "COMPLETED")
        assert not payment_transition_allowed(PaymentStatus.FAILED, PaymentStatus.PENDING)

    def test_same_status_is_replay(self):
        assert payment_transition_allowed("COMPLETED", "COMPLETED")


class TestResolveEnrollment:
    def test_linked_wins(self):
        assert resolve_enrollment(LinkSnapshot("e1", "e2")) == Resolution.USE_LINKED

    def test_existing_pair(self):
        assert resolve_enrollment(LinkSnapshot(None, "e2")) == Resolution.LINK_EXISTING

    def test_create(self):
        assert resolve_enrollment(LinkSnapshot(None, None)) == Resolution.CREATE
