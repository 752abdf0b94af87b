"""
Certificate email delivery. Fire-and-forget: a failed send is written to the
email_dead_letter log and never retried.
"""
import logging

from smartlearn.core.celery_app import celery_app
from smartlearn.core.config import settings
from smartlearn.services.email.factory import get_email_sender
from smartlearn.services.email.templates import certificate_email
from smartlearn.utils.metrics import best_effort_failures_total

logger = logging.getLogger("email")


@celery_app.task(bind=True, name="smartlearn.workers.tasks.email.send_certificate_email")
def send_certificate_email(
    self,
    certificate_id: str,
    to: str,
    student_name: str,
    course_title: str,
    download_url: str,
) -> dict:
    message = certificate_email(
        to=to,
        student_name=student_name,
        course_title=course_title,
        download_url=download_url,
        from_name=settings.email_from_name,
    )
    try:
        message_id = get_email_sender().send(message)
    except Exception as e:
        best_effort_failures_total.labels(effect="email").inc()
        logger.exception(
            "email_dead_letter",
            extra={"certificate_id": certificate_id, "recipient": to, "error": str(e), "reason": "send_failed"},
        )
        return {"sent": False, "error": str(e)}
    logger.info(
        "certificate_email_sent",
        extra={"certificate_id": certificate_id, "recipient": to, "message_id": message_id},
    )
    return {"sent": True, "message_id": message_id}


def dispatch_certificate_email(
    certificate_id: str,
    to: str,
    student_name: str,
    course_title: str,
    download_url: str,
) -> bool:
    """Queue the email without blocking the request. False if the broker refused it."""
    try:
        send_certificate_email.delay(certificate_id, to, student_name, course_title, download_url)
        return True
    except Exception as e:
        best_effort_failures_total.labels(effect="email").inc()
        logger.exception(
            "email_dead_letter",
            extra={"certificate_id": certificate_id, "recipient": to, "error": str(e), "reason": "broker_unavailable"},
        )
        return False
