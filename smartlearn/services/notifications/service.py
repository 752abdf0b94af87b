"""
NotificationService — append-only per-recipient notices.

notify() never raises: a notification that could not be written must not fail
the enrollment/payment/delivery transition that triggered it.
"""
from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from smartlearn.core.errors import NotFound, ValidationError
from smartlearn.models.enums import NotificationType
from smartlearn.models.notification import Notification
from smartlearn.utils.metrics import best_effort_failures_total

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    def notify(
        self,
        recipient_id: str,
        title: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
    ) -> Notification | None:
        """
        Best-effort write. Commits on its own, so call it only after the
        triggering transaction has committed. Returns None on failure.
        """
        try:
            notification = Notification(
                recipient_id=recipient_id,
                title=title,
                message=message,
                type=NotificationType(type).value,
            )
            self.db.add(notification)
            self.db.commit()
            return notification
        except Exception:
            self.db.rollback()
            best_effort_failures_total.labels(effect="notification").inc()
            logger.exception(
                "notification_write_failed",
                extra={"user_id": recipient_id, "action": title},
            )
            return None

    def list(self, recipient_id: str, unread_only: bool = False) -> tuple[list[Notification], int]:
        """Returns (notifications newest first, unread count)."""
        q = self.db.query(Notification).filter(Notification.recipient_id == recipient_id)
        if unread_only:
            q = q.filter(Notification.read.is_(False))
        notifications = q.order_by(Notification.created_at.desc()).all()
        unread = (
            self.db.query(Notification)
            .filter(Notification.recipient_id == recipient_id, Notification.read.is_(False))
            .count()
        )
        return notifications, unread

    def mark_read(self, recipient_id: str, notification_ids: list[str]) -> int:
        if not notification_ids:
            raise ValidationError("No notification IDs provided", code="NO_NOTIFICATION_IDS")
        res = self.db.execute(
            update(Notification)
            .where(
                Notification.id.in_(notification_ids),
                Notification.recipient_id == recipient_id,
            )
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return res.rowcount

    def delete(self, recipient_id: str, notification_id: str) -> Notification:
        notification = (
            self.db.query(Notification)
            .filter(
                Notification.id == notification_id,
                Notification.recipient_id == recipient_id,
            )
            .one_or_none()
        )
        if not notification:
            raise NotFound("Notification not found", code="NOTIFICATION_NOT_FOUND")
        self.db.delete(notification)
        self.db.commit()
        return notification
