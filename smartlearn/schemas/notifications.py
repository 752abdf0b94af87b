from datetime import datetime

from smartlearn.schemas.common import CamelModel


class NotificationOut(CamelModel):
    id: str
    title: str
    message: str
    type: str
    read: bool
    created_at: datetime | None = None


class NotificationListOut(CamelModel):
    notifications: list[NotificationOut]
    unread_count: int


class MarkReadIn(CamelModel):
    notification_ids: list[str] = []


class MarkReadOut(CamelModel):
    message: str
    updated: int
