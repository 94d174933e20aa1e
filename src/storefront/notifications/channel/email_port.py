"""Email channel port: abstract interface for email dispatch."""

from abc import ABC, abstractmethod


class EmailPort(ABC):
    @abstractmethod
    def send(self, to: str, subject: str, body: str, html_body: str | None = None) -> str:
        """Send an email and return the provider's message id.

        Raises:
            UpstreamDeliveryFailure: the provider rejected or could not accept the message.
        """
        ...
