"""Best-effort customer notifications.

``notify`` renders a template, hands it to the channel adapter and records a
``NotificationLog`` row with the outcome. Delivery problems end up as a
``failed`` row; they never propagate to the operation that triggered them.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront import config
from storefront.accounts.account import Account
from storefront.errors import UpstreamDeliveryFailure
from storefront.notifications.channel import get_channel
from storefront.notifications.log import DeliveryStatus, NotificationChannel, NotificationLog
from storefront.notifications.templates import get_template

logger = structlog.get_logger(__name__)


def _recipient(user_id) -> str | None:
    if not user_id:
        return None
    try:
        account = current_domain.repository_for(Account).get(str(user_id))
    except ObjectNotFoundError:
        return None
    return account.email


def _send(channel: str, to: str, rendered: dict) -> str:
    return get_channel(channel).send(
        to=to,
        subject=rendered.get("subject", ""),
        body=rendered["body"],
        html_body=rendered.get("html_body"),
    )


def notify(
    template: str,
    user_id=None,
    order_id=None,
    context: dict | None = None,
    channel: str = NotificationChannel.EMAIL.value,
) -> NotificationLog:
    """Send one message and record the attempt; returns the log row."""
    context = {"currency": config.currency(), **(context or {})}
    to = _recipient(user_id)
    rendered = {}
    message_id = None
    error = None

    try:
        rendered = get_template(template).render(context)
        if not to:
            raise UpstreamDeliveryFailure({channel: ["No recipient address on file"]})
        message_id = _send(channel, to, rendered)
    except UpstreamDeliveryFailure as exc:
        error = "; ".join(msg for msgs in exc.messages.values() for msg in msgs)
    except Exception as exc:
        error = str(exc)
        logger.error("notification_dispatch_error", template=template, order_id=str(order_id), error=error)

    status = DeliveryStatus.FAILED.value if error else DeliveryStatus.SENT.value
    log = NotificationLog.record(
        template=template,
        status=status,
        user_id=user_id,
        order_id=order_id,
        channel=channel,
        recipient=to,
        subject=rendered.get("subject"),
        message_id=message_id,
        error=error,
    )
    current_domain.repository_for(NotificationLog).add(log)

    if error:
        logger.warning("notification_failed", template=template, order_id=str(order_id), reason=error)
    else:
        logger.info("notification_sent", template=template, order_id=str(order_id), channel=channel)
    return log
