from datetime import datetime

from smartlearn.models.enums import DeliveryStatus
from smartlearn.schemas.common import CamelModel


class DeliveryPatch(CamelModel):
    """Instructor edit. Only fields present in the request body are applied."""

    status: DeliveryStatus | None = None
    tracking_number: str | None = None
    courier: str | None = None
    notes: str | None = None


class DeliveryOut(CamelModel):
    id: str
    enrollment_id: str
    full_name: str
    phone: str
    email: str | None = None
    address_line1: str
    address_line2: str | None = None
    city: str
    district: str
    postal_code: str | None = None
    country: str
    status: str
    tracking_number: str | None = None
    courier: str | None = None
    notes: str | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    created_at: datetime | None = None


class DeliveryListOut(CamelModel):
    deliveries: list[DeliveryOut]
    counts: dict[str, int]
