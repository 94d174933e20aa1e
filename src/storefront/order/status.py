"""Admin-driven order status updates."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.notifications.dispatch import notify
from storefront.order.history import OrderHistory
from storefront.order.order import Order, parse_status

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=30)
    comment = String(max_length=500)
    updated_by = Identifier()
    carrier = String(max_length=100)
    tracking_number = String(max_length=100)


@storefront.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        target = parse_status(command.status)

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        previous = order.status
        order.transition_to(target, changed_by=command.updated_by)
        order.record_tracking(command.carrier, command.tracking_number)
        repo.add(order)

        current_domain.repository_for(OrderHistory).append(
            order.id,
            target.value,
            command.comment or f"Order status updated to {target.value}",
            updated_by=command.updated_by,
        )

        if order.user_id:
            notify(
                f"order_{target.value}",
                user_id=order.user_id,
                order_id=order.id,
                context={"order_number": order.order_number, "status": target.value, "comment": command.comment},
            )

        logger.info("order_status_changed", order_id=str(order.id), previous=previous, status=target.value)
        return {"order_id": str(order.id), "status": order.status}
