"""
One payment row per gateway order (order_id unique) or manual ATM transfer.
Never deleted; status is driven by the PayHere notify webhook or an explicit verification.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String

from smartlearn.db.base import Base
from smartlearn.models.enums import PaymentStatus


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    student_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(String, ForeignKey("courses.id"), nullable=False, index=True)
    enrollment_id = Column(
        String,
        ForeignKey("enrollments.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    order_id = Column(String, unique=True, nullable=True)     # PayHere order_id; null for manual ATM
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String, nullable=False, default="LKR")
    status = Column(String, nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String, nullable=False)           # online / manual_atm
    gateway_payment_id = Column(String, nullable=True)        # PayHere payment_id
    gateway_method = Column(String, nullable=True)            # VISA / MASTER / ...
    status_message = Column(String, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
