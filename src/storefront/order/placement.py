"""Order Creation Orchestrator: freezes a cart's summary into an Order.

The handler runs inside one Unit of Work: the order, its first history row,
the confirmation notification log and the cleared cart commit together or
not at all.

Checkout happens at most once per cart generation:

* the summary must have been priced from the cart exactly as it is now
  (same generation and content hash), otherwise ``ConflictError``;
* every order carries ``checkout_key = "{cart_id}:{generation}"`` and a key
  that already has an order is refused with ``ConflictError``;
* ``place_order`` serialises submissions for the same cart, so the second of
  two concurrent requests sees the emptied cart and gets ``ConflictError``.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ExpectedVersionError, ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.accounts.account import resolve_address
from storefront.cart.cart import Cart
from storefront.discounts.evaluator import DiscountEvaluator
from storefront.discounts.rules import Coupon
from storefront.domain import storefront
from storefront.errors import ConflictError, EmptyCartError
from storefront.notifications.dispatch import notify
from storefront.order.history import OrderHistory
from storefront.order.numbering import next_order_number
from storefront.order.order import Order, OrderStatus
from storefront.shared.address import address_from_dict
from storefront.shared.locks import keyed_lock
from storefront.summary.summary import OrderSummary

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class PlaceOrder:
    cart_id = Identifier(required=True)
    payment_method = String(required=True, max_length=30)
    user_id = Identifier()
    session_id = String(max_length=255)
    shipping_address = Text()  # JSON address dict
    address_id = Identifier()
    billing_address = Text()  # JSON address dict
    notes = Text()


def _destination(address) -> tuple | None:
    if address is None:
        return None
    return tuple((getattr(address, f) or "").strip().lower() for f in ("country", "state", "pincode"))


@storefront.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        cart_repo = current_domain.repository_for(Cart)
        order_repo = current_domain.repository_for(Order)

        cart = cart_repo.get(command.cart_id)
        cart.assert_accessible(command.user_id, command.session_id)
        summary = current_domain.repository_for(OrderSummary).get(str(cart.id))

        if not cart.items:
            if order_repo.by_checkout_key(f"{cart.id}:{summary.cart_generation}") is not None:
                raise ConflictError({"cart": ["Cart has already been checked out"]})
            raise EmptyCartError(command.cart_id)

        if not summary.matches(cart):
            logger.info(
                "stale_summary_rejected",
                cart_id=str(cart.id),
                summary_generation=summary.cart_generation,
                cart_generation=cart.generation,
            )
            raise ConflictError({"summary": ["Cart changed after the summary was generated, regenerate it"]})

        if order_repo.by_checkout_key(cart.checkout_key) is not None:
            raise ConflictError({"cart": ["Cart has already been checked out"]})

        explicit = json.loads(command.shipping_address) if command.shipping_address else None
        shipping_address = resolve_address(command.user_id, address=explicit, address_id=command.address_id)
        summary_address = address_from_dict(summary.address)
        if shipping_address is None:
            shipping_address = summary_address
        if shipping_address is None:
            raise ValidationError({"shipping_address": ["A shipping address is required"]})
        if _destination(shipping_address) != _destination(summary_address):
            raise ConflictError({"shipping_address": ["Summary was priced for a different destination, regenerate it"]})

        billing_address = address_from_dict(json.loads(command.billing_address)) if command.billing_address else None

        order = Order.place(
            order_number=next_order_number(),
            items=[
                {
                    "product_id": line["product_id"],
                    "variant_id": line.get("variant_id"),
                    "name": line.get("name"),
                    "quantity": line["quantity"],
                    "price": line["unit_price"],
                    "total": line["total"],
                }
                for line in summary.item_list
            ],
            totals={
                "subtotal": summary.subtotal,
                "discount": summary.discount,
                "shipping": summary.shipping,
                "marketplace_fees": summary.marketplace_fees,
                "tax": summary.tax,
                "grand_total": summary.total,
            },
            payment_method=command.payment_method,
            shipping_address=shipping_address,
            billing_address=billing_address,
            user_id=cart.user_id,
            cart_id=str(cart.id),
            checkout_key=cart.checkout_key,
            coupon_code=summary.coupon_code,
            notes=command.notes,
        )
        order_repo.add(order)

        current_domain.repository_for(OrderHistory).append(
            order.id, OrderStatus.PLACED.value, "Order placed successfully", updated_by=command.user_id
        )

        if summary.coupon_code:
            coupon = DiscountEvaluator().find_coupon(summary.coupon_code)
            if coupon is not None:
                coupon.record_use()
                current_domain.repository_for(Coupon).add(coupon)

        if order.user_id:
            notify(
                "order_confirmation",
                user_id=order.user_id,
                order_id=order.id,
                context={
                    "order_number": order.order_number,
                    "grand_total": order.grand_total,
                    "payment_method": order.payment_method,
                },
            )

        cart.clear()
        cart_repo.add(cart)

        logger.info(
            "order_placed",
            order_id=str(order.id),
            order_number=order.order_number,
            cart_id=str(cart.id),
            grand_total=order.grand_total,
        )
        return {"order_id": str(order.id), "order_number": order.order_number}


def place_order(command: PlaceOrder) -> dict:
    """Run checkout for one cart at a time."""
    with keyed_lock(f"checkout:{command.cart_id}"):
        try:
            return current_domain.process(command, asynchronous=False)
        except ExpectedVersionError as exc:
            logger.warning("checkout_conflict", cart_id=str(command.cart_id), error=str(exc))
            raise ConflictError({"cart": ["Cart was modified concurrently, retry"]}) from exc
