"""Refund issued: sent when a return is refunded."""


class RefundTemplate:
    @staticmethod
    def render(context: dict) -> dict:
        currency = context.get("currency", "INR")
        amount = context.get("amount", 0.0)
        mode = context.get("mode", "wallet")
        return {
            "subject": f"Refund of {currency} {amount:.2f} processed",
            "body": (
                f"A refund of {currency} {amount:.2f} for order {context.get('order_number', 'N/A')} "
                f"has been credited to your {mode}.\n\n"
                f"Transaction: {context.get('transaction_id', 'N/A')}"
            ),
        }
