from fastapi import APIRouter, Depends, Form
from sqlalchemy.orm import Session

from smartlearn.api.deps import get_current_user, get_identity
from smartlearn.db.session import get_db
from smartlearn.models.user import User
from smartlearn.schemas.common import MessageOut
from smartlearn.schemas.payments import CheckoutIn, CheckoutOut, GatewayNotification, VerifyPaymentIn
from smartlearn.services.auth.identity import Identity
from smartlearn.services.payments.service import PaymentService
from smartlearn.services.payments.webhook import PayHereWebhookService


router = APIRouter(prefix="/api/payhere", tags=["payhere"])


@router.post("/create-payment", response_model=CheckoutOut)
def create_payment(
    body: CheckoutIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PaymentService(db).create_checkout(user, body.course_id, body.requires_delivery)


@router.post("/notify", response_model=MessageOut)
def notify(
    merchant_id: str = Form(...),
    order_id: str = Form(...),
    payhere_amount: str = Form(...),
    payhere_currency: str = Form(...),
    status_code: str = Form(...),
    md5sig: str = Form(...),
    payment_id: str | None = Form(default=None),
    method: str | None = Form(default=None),
    status_message: str | None = Form(default=None),
    db: Session = Depends(get_db),
) -> MessageOut:
    """PayHere server-to-server callback (form-encoded, unauthenticated; signed with md5sig)."""
    notification = GatewayNotification(
        merchant_id=merchant_id,
        order_id=order_id,
        payhere_amount=payhere_amount,
        payhere_currency=payhere_currency,
        status_code=status_code,
        md5sig=md5sig,
        payment_id=payment_id,
        method=method,
        status_message=status_message,
    )
    PayHereWebhookService(db).handle(notification)
    return MessageOut(message="Webhook processed successfully")


@router.post("/verify-payment", response_model=MessageOut)
def verify_payment(
    body: VerifyPaymentIn,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> MessageOut:
    return MessageOut(**PaymentService(db).verify_payment(body.order_id, identity.user_id))
