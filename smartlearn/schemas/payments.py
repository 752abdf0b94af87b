from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict

from smartlearn.schemas.common import CamelModel


class CheckoutIn(CamelModel):
    course_id: str
    requires_delivery: bool = False


class CheckoutOut(CamelModel):
    payment_id: str
    order_id: str
    pay_here_data: dict[str, Any]
    sandbox: bool
    pay_here_url: str


class VerifyPaymentIn(CamelModel):
    order_id: str


class PaymentOut(CamelModel):
    id: str
    course_id: str
    enrollment_id: str | None = None
    order_id: str | None = None
    amount: Decimal
    currency: str
    status: str
    payment_method: str
    gateway_method: str | None = None
    created_at: datetime | None = None


class GatewayNotification(BaseModel):
    """PayHere notify_url form fields, names as posted by the gateway."""

    model_config = ConfigDict(str_strip_whitespace=True)

    merchant_id: str
    order_id: str
    payhere_amount: str
    payhere_currency: str
    status_code: str
    md5sig: str
    payment_id: str | None = None
    method: str | None = None
    status_message: str | None = None
