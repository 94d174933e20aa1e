"""Invoice email with an HTML line table."""

from html import escape


class InvoiceTemplate:
    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        currency = context.get("currency", "INR")
        totals = context.get("totals", {})
        rows = "".join(
            f"<tr><td>{escape(str(item.get('name') or item.get('product_id')))}</td>"
            f"<td>{item.get('quantity')}</td><td>{item.get('price', 0.0):.2f}</td>"
            f"<td>{item.get('total', 0.0):.2f}</td></tr>"
            for item in context.get("items", [])
        )
        html_body = (
            f"<h2>Invoice {escape(order_number)}</h2>"
            f"<p>Date: {escape(context.get('placed_on', ''))}</p>"
            "<table><tr><th>Item</th><th>Qty</th><th>Price</th><th>Total</th></tr>"
            f"{rows}</table>"
            f"<p>Subtotal: {currency} {totals.get('subtotal', 0.0):.2f}<br>"
            f"Discount: {currency} {totals.get('discount', 0.0):.2f}<br>"
            f"Shipping: {currency} {totals.get('shipping', 0.0):.2f}<br>"
            f"Tax: {currency} {totals.get('tax', 0.0):.2f}<br>"
            f"<strong>Grand Total: {currency} {totals.get('grand_total', 0.0):.2f}</strong></p>"
        )
        return {
            "subject": f"Invoice for order {order_number}",
            "body": f"Invoice for order {order_number}: {currency} {totals.get('grand_total', 0.0):.2f}",
            "html_body": html_body,
        }
