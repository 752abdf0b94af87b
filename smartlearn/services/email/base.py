from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str
    text: str


class EmailSender(ABC):
    provider_name = "base"

    @abstractmethod
    def send(self, message: EmailMessage) -> str:
        """Send the message; returns the provider message id. Raises on failure."""
        raise NotImplementedError
