"""
PayHere request signing. Pure functions, no I/O.

checkout hash = UPPER(md5(merchant_id + order_id + amount_2dp + currency + UPPER(md5(secret))))
notify md5sig = same, with status_code inserted between currency and the secret hash.
"""
from __future__ import annotations

import hashlib
import hmac
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation


def format_amount(amount: Decimal | float | int | str) -> str:
    """Amount with exactly two decimals, as PayHere expects ("1500" -> "1500.00")."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {amount!r}") from exc
    return str(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _md5_upper(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest().upper()


def sign(
    merchant_id: str,
    order_id: str,
    amount: Decimal | float | int | str,
    currency: str,
    secret: str,
    status_code: str | None = None,
) -> str:
    parts = [merchant_id, order_id, format_amount(amount), currency]
    if status_code is not None:
        parts.append(str(status_code))
    parts.append(_md5_upper(secret))
    return _md5_upper("".join(parts))


def verify(
    signature: str,
    merchant_id: str,
    order_id: str,
    amount: Decimal | float | int | str,
    currency: str,
    secret: str,
    status_code: str | None = None,
) -> bool:
    """Constant-time comparison of the expected digest against the received one."""
    if not signature:
        return False
    try:
        expected = sign(merchant_id, order_id, amount, currency, secret, status_code)
    except ValueError:
        return False
    return hmac.compare_digest(expected, signature.strip().upper())
