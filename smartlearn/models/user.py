from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String

from smartlearn.db.base import Base
from smartlearn.models.enums import UserRole


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    name = Column(String, nullable=True)
    email = Column(String, unique=True, nullable=False, index=True)
    role = Column(String, nullable=False, default=UserRole.STUDENT.value)
    student_number = Column(String, nullable=True)
    credits = Column(Integer, nullable=False, default=0)

    # Delivery address (profile; deliveries copy it at creation time)
    phone = Column(String, nullable=True)
    address_line1 = Column(String, nullable=True)
    address_line2 = Column(String, nullable=True)
    city = Column(String, nullable=True)
    district = Column(String, nullable=True)
    postal_code = Column(String, nullable=True)
    country = Column(String, nullable=True, default="Sri Lanka")

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def has_delivery_address(self) -> bool:
        """Phone, first address line, city and district are all required to ship materials."""
        return all(
            (value or "").strip()
            for value in (self.phone, self.address_line1, self.city, self.district)
        )

    @property
    def display_name(self) -> str:
        return self.name or self.email
