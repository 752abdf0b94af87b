"""
Status vocabularies. Stored as plain strings; the str mixin keeps
comparisons against column values working in both directions.
"""
from enum import Enum


class UserRole(str, Enum):
    STUDENT = "STUDENT"
    INSTRUCTOR = "INSTRUCTOR"
    ADMIN = "ADMIN"


class EnrollmentStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    CANCELLED = "CANCELLED"


class EnrollmentMethod(str, Enum):
    MANUAL = "manual"
    ONLINE = "online"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"
    CHARGEDBACK = "CHARGEDBACK"


class PaymentMethod(str, Enum):
    ONLINE = "online"
    MANUAL_ATM = "manual_atm"


class DeliveryStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class NotificationType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
