"""AWS SES email provider (boto3)."""
import logging

import boto3

from smartlearn.core.config import settings
from smartlearn.services.email.base import EmailMessage, EmailSender

logger = logging.getLogger(__name__)


class SESEmailSender(EmailSender):
    provider_name = "ses"

    def __init__(self, client=None):
        self.client = client or boto3.client(
            "ses",
            region_name=settings.ses_region or "us-east-1",
            aws_access_key_id=settings.ses_access_key_id,
            aws_secret_access_key=settings.ses_secret_access_key,
        )

    def send(self, message: EmailMessage) -> str:
        if settings.email_from_name:
            source = f"{settings.email_from_name} <{settings.email_from_address}>"
        else:
            source = settings.email_from_address
        response = self.client.send_email(
            Source=source,
            Destination={"ToAddresses": [message.to]},
            Message={
                "Subject": {"Data": message.subject, "Charset": "UTF-8"},
                "Body": {
                    "Text": {"Data": message.text, "Charset": "UTF-8"},
                    "Html": {"Data": message.html, "Charset": "UTF-8"},
                },
            },
        )
        message_id = response.get("MessageId", "")
        logger.info("email_ses_sent", extra={"recipient": message.to, "message_id": message_id})
        return message_id
