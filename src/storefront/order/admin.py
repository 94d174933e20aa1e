"""Orders created directly by an admin (phone or offline sales).

No cart is involved: the admin supplies the lines, and any total they leave
out is derived from the lines.
"""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.order.history import OrderHistory
from storefront.order.numbering import next_order_number
from storefront.order.order import Order, OrderStatus
from storefront.shared.address import address_from_dict
from storefront.shared.money import round_money, sum_money


@storefront.command(part_of="Order")
class CreateAdminOrder:
    user_id = Identifier()
    items = Text(required=True)  # JSON: [{product_id, variant_id?, name?, quantity, price, total?}]
    payment_method = String(required=True, max_length=30)
    shipping_address = Text(required=True)  # JSON address dict
    billing_address = Text()
    discount = Float(default=0.0)
    shipping = Float(default=0.0)
    tax = Float(default=0.0)
    grand_total = Float()
    notes = Text()
    admin_id = Identifier()


@storefront.command_handler(part_of=Order)
class AdminOrderHandler:
    @handle(CreateAdminOrder)
    def create_order(self, command):
        items = json.loads(command.items)
        for item in items:
            if item.get("quantity", 0) < 1 or item.get("price", -1) < 0:
                raise ValidationError({"items": ["Every item needs a positive quantity and a non-negative price"]})
            item["total"] = round_money(item.get("total") or item["price"] * item["quantity"])

        subtotal = sum_money(item["total"] for item in items)
        discount = round_money(command.discount or 0.0)
        shipping = round_money(command.shipping or 0.0)
        tax = round_money(command.tax or 0.0)
        grand_total = command.grand_total
        if grand_total is None:
            grand_total = max(sum_money([subtotal, -discount, shipping, tax]), 0.0)

        order_number = next_order_number()
        order = Order.place(
            order_number=order_number,
            items=items,
            totals={
                "subtotal": subtotal,
                "discount": discount,
                "shipping": shipping,
                "tax": tax,
                "grand_total": round_money(grand_total),
            },
            payment_method=command.payment_method,
            shipping_address=address_from_dict(json.loads(command.shipping_address)),
            billing_address=address_from_dict(json.loads(command.billing_address)) if command.billing_address else None,
            user_id=command.user_id,
            checkout_key=f"admin:{order_number}",
            notes=command.notes,
        )
        current_domain.repository_for(Order).add(order)
        current_domain.repository_for(OrderHistory).append(
            order.id, OrderStatus.PLACED.value, "Order created by admin", updated_by=command.admin_id
        )
        return {"order_id": str(order.id), "order_number": order.order_number}
