"""Order status update: sent on every admin status change."""

_HEADLINES = {
    "confirmed": "has been confirmed",
    "processing": "is being prepared",
    "shipped": "is on its way",
    "delivered": "has been delivered",
    "cancelled": "has been cancelled",
}


class OrderStatusTemplate:
    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        status = context.get("status", "")
        headline = _HEADLINES.get(status, f"is now {status}")
        body = f"Your order {order_number} {headline}."
        if context.get("comment"):
            body += f"\n\nNote: {context['comment']}"
        return {"subject": f"Order {order_number} {headline}", "body": body}
