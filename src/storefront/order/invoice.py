"""Invoice dispatch: emails the invoice and always logs the attempt."""

from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.notifications.dispatch import notify
from storefront.order.order import Order


@storefront.command(part_of="Order")
class SendInvoice:
    order_id = Identifier(required=True)


@storefront.command_handler(part_of=Order)
class InvoiceHandler:
    @handle(SendInvoice)
    def send_invoice(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        log = notify(
            "invoice",
            user_id=order.user_id,
            order_id=order.id,
            context={
                "order_number": order.order_number,
                "placed_on": order.created_at.strftime("%d %b %Y") if order.created_at else "",
                "items": [item.to_dict() for item in order.items],
                "totals": order.totals.to_dict(),
            },
        )
        return {"order_id": str(order.id), "status": log.status, "error": log.error}
