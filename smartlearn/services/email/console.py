"""Console email provider: logs instead of sending. Default for local runs."""
import logging
from uuid import uuid4

from smartlearn.services.email.base import EmailMessage, EmailSender

logger = logging.getLogger(__name__)


class ConsoleEmailSender(EmailSender):
    provider_name = "console"

    def send(self, message: EmailMessage) -> str:
        message_id = f"console-{uuid4()}"
        logger.info(
            "email_console_send",
            extra={"recipient": message.to, "subject": message.subject, "message_id": message_id},
        )
        return message_id
