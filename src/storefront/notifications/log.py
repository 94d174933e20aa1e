"""Notification Log: write-once record of every attempted customer message."""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import Boolean, DateTime, Identifier, String, Text

from storefront.domain import storefront


class NotificationChannel(Enum):
    EMAIL = "email"


class DeliveryStatus(Enum):
    SENT = "sent"
    FAILED = "failed"


@storefront.aggregate
class NotificationLog:
    user_id = Identifier()
    order_id = Identifier()
    channel = String(choices=NotificationChannel, default=NotificationChannel.EMAIL.value)
    template = String(required=True, max_length=50)
    recipient = String(max_length=255)
    subject = String(max_length=255)
    status = String(choices=DeliveryStatus, required=True)
    message_id = String(max_length=100)
    error = Text()
    read = Boolean(default=False)
    created_at = DateTime()

    @classmethod
    def record(cls, template, status, **kwargs):
        return cls(template=template, status=status, created_at=datetime.now(UTC), **kwargs)


@storefront.repository(part_of=NotificationLog)
class NotificationLogRepository:
    def for_user(self, user_id) -> list[NotificationLog]:
        return self._dao.query.filter(user_id=str(user_id)).order_by("-created_at").all().items

    def for_order(self, order_id) -> list[NotificationLog]:
        return self._dao.query.filter(order_id=str(order_id)).order_by("created_at").all().items
