"""Return/replacement request updates."""


class RequestUpdateTemplate:
    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        kind = context.get("request_type", "return")
        status = context.get("status", "requested")
        body = f"Your {kind} request for order {order_number} is {status}."
        if context.get("comment"):
            body += f"\n\n{context['comment']}"
        return {"subject": f"{kind.capitalize()} request {status} - {order_number}", "body": body}
