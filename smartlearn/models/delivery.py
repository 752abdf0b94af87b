"""
Delivery: physical materials shipment for one approved enrollment.
Address columns are a snapshot of the student's profile taken at creation and are never edited.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, String, Text

from smartlearn.db.base import Base
from smartlearn.models.enums import DeliveryStatus


class Delivery(Base):
    __tablename__ = "deliveries"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    enrollment_id = Column(
        String,
        ForeignKey("enrollments.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    # Address snapshot
    full_name = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    email = Column(String, nullable=True)
    address_line1 = Column(String, nullable=False)
    address_line2 = Column(String, nullable=True)
    city = Column(String, nullable=False)
    district = Column(String, nullable=False)
    postal_code = Column(String, nullable=True)
    country = Column(String, nullable=False, default="Sri Lanka")

    status = Column(String, nullable=False, default=DeliveryStatus.PENDING.value)
    tracking_number = Column(String, nullable=True)
    courier = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    shipped_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
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
