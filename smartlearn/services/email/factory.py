from smartlearn.core.config import settings
from smartlearn.services.email.base import EmailSender


def get_email_sender() -> EmailSender:
    if settings.email_provider == "ses":
        from smartlearn.services.email.ses import SESEmailSender

        return SESEmailSender()
    from smartlearn.services.email.console import ConsoleEmailSender

    return ConsoleEmailSender()
