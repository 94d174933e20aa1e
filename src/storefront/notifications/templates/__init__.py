"""Template registry: maps notification template names to renderers."""

from storefront.notifications.templates.invoice import InvoiceTemplate
from storefront.notifications.templates.order_confirmation import OrderConfirmationTemplate
from storefront.notifications.templates.order_status import OrderStatusTemplate
from storefront.notifications.templates.refund import RefundTemplate
from storefront.notifications.templates.request_update import RequestUpdateTemplate

TEMPLATE_REGISTRY: dict[str, type] = {
    "order_confirmation": OrderConfirmationTemplate,
    "invoice": InvoiceTemplate,
    "return_refunded": RefundTemplate,
}
TEMPLATE_REGISTRY.update(
    {f"order_{status}": OrderStatusTemplate for status in ("confirmed", "processing", "shipped", "delivered", "cancelled")}
)
TEMPLATE_REGISTRY.update(
    {
        f"{kind}_{status}": RequestUpdateTemplate
        for kind, statuses in {
            "return": ("requested", "approved", "rejected"),
            "replacement": ("requested", "approved", "rejected", "shipped", "completed"),
        }.items()
        for status in statuses
    }
)


def get_template(name: str):
    template_cls = TEMPLATE_REGISTRY.get(name)
    if template_cls is None:
        raise ValueError(f"No template registered for notification: {name}")
    return template_cls
