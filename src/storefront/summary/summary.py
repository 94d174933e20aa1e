"""Order Summary: the priced preview of a cart that checkout freezes.

One live summary per cart: regenerating overwrites it in place. Each summary
remembers the cart generation and content hash it was priced from.
"""

import json
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.accounts.account import resolve_address
from storefront.cart.cart import Cart
from storefront.domain import storefront
from storefront.errors import EmptyCartError
from storefront.summary.pricing import PricingEngine

logger = structlog.get_logger(__name__)


@storefront.projection
class OrderSummary:
    cart_id = Identifier(identifier=True, required=True)
    user_id = Identifier()
    items = Text()  # JSON: priced line snapshots
    subtotal = Float(default=0.0)
    shipping = Float(default=0.0)
    marketplace_fees = Float(default=0.0)
    discount = Float(default=0.0)
    discount_breakdown = Text()  # JSON: {"coupon": .., "automatic": .., ...}
    coupon_code = String(max_length=50)
    tax = Float(default=0.0)
    total = Float(default=0.0)
    total_items = Integer(default=0)
    shipping_address = Text()  # JSON: address used for the shipping lookup
    cart_generation = Integer(default=0)
    content_hash = String(max_length=64)
    generated_at = DateTime()

    @property
    def item_list(self) -> list[dict]:
        return json.loads(self.items) if self.items else []

    @property
    def address(self) -> dict | None:
        return json.loads(self.shipping_address) if self.shipping_address else None

    def matches(self, cart: Cart) -> bool:
        return self.cart_generation == cart.generation and self.content_hash == cart.content_hash()

    def to_view(self) -> dict:
        return {
            "cart_id": str(self.cart_id),
            "items": self.item_list,
            "subtotal": self.subtotal,
            "shipping": self.shipping,
            "marketplace_fees": self.marketplace_fees,
            "discount": self.discount,
            "discount_breakdown": json.loads(self.discount_breakdown) if self.discount_breakdown else {},
            "coupon_code": self.coupon_code,
            "tax": self.tax,
            "total": self.total,
            "total_items": self.total_items,
            "shipping_address": self.address,
            "cart_generation": self.cart_generation,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
        }


@storefront.command(part_of="Cart")
class GenerateOrderSummary:
    cart_id = Identifier(required=True)
    user_id = Identifier()
    session_id = String(max_length=255)
    shipping_address = Text()  # JSON address dict
    address_id = Identifier()


@storefront.command_handler(part_of=Cart)
class OrderSummaryHandler:
    @handle(GenerateOrderSummary)
    def generate_summary(self, command):
        cart = current_domain.repository_for(Cart).get(command.cart_id)
        cart.assert_accessible(command.user_id, command.session_id)
        if not cart.items:
            raise EmptyCartError(command.cart_id)

        explicit = json.loads(command.shipping_address) if command.shipping_address else None
        address = resolve_address(command.user_id, address=explicit, address_id=command.address_id)

        priced = PricingEngine().price(cart, address)

        repo = current_domain.repository_for(OrderSummary)
        try:
            summary = repo.get(str(cart.id))
        except ObjectNotFoundError:
            summary = OrderSummary(cart_id=str(cart.id))

        summary.user_id = cart.user_id
        summary.items = json.dumps([line.to_dict() for line in priced.lines])
        summary.subtotal = priced.subtotal
        summary.shipping = priced.shipping
        summary.marketplace_fees = priced.marketplace_fees
        summary.discount = priced.discount.total
        summary.discount_breakdown = json.dumps(priced.discount.breakdown())
        summary.coupon_code = priced.discount.coupon_code
        summary.tax = priced.tax
        summary.total = priced.total
        summary.total_items = priced.total_items
        summary.shipping_address = json.dumps(address.to_dict()) if address else None
        summary.cart_generation = cart.generation
        summary.content_hash = cart.content_hash()
        summary.generated_at = datetime.now(UTC)
        repo.add(summary)

        logger.info(
            "order_summary_generated",
            cart_id=str(cart.id),
            generation=cart.generation,
            total=priced.total,
        )
        return summary.to_view()
