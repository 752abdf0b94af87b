"""
Celery application: broker and result backend from settings.
Tasks are in smartlearn.workers.tasks (email dispatch).
"""
from celery import Celery

from smartlearn.core.config import settings

celery_app = Celery(
    "smartlearn",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "smartlearn.workers.tasks.email",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_time_limit=300,
    result_expires=86400,
    # Certificate emails are fire-and-forget: fail fast when the broker is down
    task_publish_retry=False,
    broker_connection_timeout=2,
)

celery_app.conf.task_routes = {
    "smartlearn.workers.tasks.email.send_certificate_email": {"queue": "email"},
}
