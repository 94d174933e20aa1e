"""Order confirmation: sent when an order is placed."""


class OrderConfirmationTemplate:
    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        currency = context.get("currency", "INR")
        grand_total = context.get("grand_total", 0.0)
        return {
            "subject": f"Order {order_number} placed",
            "body": (
                f"Thank you for your order {order_number}.\n\n"
                f"Order Total: {currency} {grand_total:.2f}\n"
                f"Payment: {context.get('payment_method', 'N/A')}\n\n"
                "We'll let you know as soon as it ships."
            ),
        }
