"""Fake email adapter: keeps sent emails in memory for tests and local runs."""

from uuid import uuid4

from storefront.errors import UpstreamDeliveryFailure
from storefront.notifications.channel.email_port import EmailPort


class FakeEmailAdapter(EmailPort):
    def __init__(self):
        self.sent_emails: list[dict] = []
        self.failure_reason: str | None = None

    def fail_with(self, reason: str = "Email delivery failed"):
        """Make every following send raise ``UpstreamDeliveryFailure``."""
        self.failure_reason = reason

    def send(self, to: str, subject: str, body: str, html_body: str | None = None) -> str:
        if self.failure_reason:
            raise UpstreamDeliveryFailure({"email": [self.failure_reason]})

        message_id = f"email-{uuid4().hex[:12]}"
        self.sent_emails.append(
            {"message_id": message_id, "to": to, "subject": subject, "body": body, "html_body": html_body}
        )
        return message_id

    def reset(self):
        self.sent_emails.clear()
        self.failure_reason = None
