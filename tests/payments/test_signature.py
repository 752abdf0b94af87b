"""PayHere digest: pure functions, no I/O."""
import hashlib
from decimal import Decimal

import pytest

from smartlearn.services.payments.signature import format_amount, sign, verify

MERCHANT = "1211149"
SECRET = "test-merchant-secret"


def _reference(*parts: str) -> str:
    secret_hash = hashlib.md5(SECRET.encode()).hexdigest().upper()
    return hashlib.md5(("".join(parts) + secret_hash).encode()).hexdigest().upper()


class TestFormatAmount:
    @pytest.mark.parametrize(
        "raw,expected",
        [(1500, "1500.00"), ("1500", "1500.00"), (Decimal("99.5"), "99.50"), (10.005, "10.01"), ("0", "0.00")],
    )
    def test_two_decimals(self, raw, expected):
        assert format_amount(raw) == expected

    def test_invalid_amount(self):
        with pytest.raises(ValueError):
            format_amount("abc")


class TestSign:
    def test_checkout_digest_matches_reference(self):
        assert sign(MERCHANT, "ORDER-1", "1500", "LKR", SECRET) == _reference(MERCHANT, "ORDER-1", "1500.00", "LKR")

    def test_notify_digest_includes_status_code(self):
        digest = sign(MERCHANT, "ORDER-1", "1500", "LKR", SECRET, status_code="2")
        assert digest == _reference(MERCHANT, "ORDER-1", "1500.00", "LKR", "2")
        assert digest != sign(MERCHANT, "ORDER-1", "1500", "LKR", SECRET)

    def test_uppercase_hex(self):
        digest = sign(MERCHANT, "ORDER-1", "1500", "LKR", SECRET)
        assert digest == digest.upper()
        assert len(digest) == 32


class TestVerify:
    def test_roundtrip(self):
        digest = sign(MERCHANT, "ORDER-9", "2500.00", "LKR", SECRET, status_code="2")
        assert verify(digest, MERCHANT, "ORDER-9", "2500", "LKR", SECRET, status_code="2")

    def test_lowercase_signature_accepted(self):
        digest = sign(MERCHANT, "ORDER-9", "2500.00", "LKR", SECRET)
        assert verify(digest.lower(), MERCHANT, "ORDER-9", "2500.00", "LKR", SECRET)

    @pytest.mark.parametrize(
        "field,value",
        [("amount", "2500.01"), ("currency", "USD"), ("order_id", "ORDER-10"), ("status_code", "-2")],
    )
    def test_mutated_field_fails(self, field, value):
        args = {"order_id": "ORDER-9", "amount": "2500.00", "currency": "LKR", "status_code": "2"}
        digest = sign(MERCHANT, args["order_id"], args["amount"], args["currency"], SECRET, args["status_code"])
        args[field] = value
        assert not verify(digest, MERCHANT, args["order_id"], args["amount"], args["currency"], SECRET, args["status_code"])

    def test_empty_signature(self):
        assert not verify("", MERCHANT, "ORDER-9", "2500.00", "LKR", SECRET)

    def test_garbage_amount(self):
        assert not verify("ABC", MERCHANT, "ORDER-9", "not-a-number", "LKR", SECRET)
