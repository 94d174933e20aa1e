"""Bulk price negotiation for business accounts.

    pending → approved | rejected | counter_offer
    counter_offer → accepted | rejected

Approved (or accepted) negotiations rewrite the unit prices of the matching
cart lines; the cart's next summary prices from them.
"""

from datetime import UTC, datetime, timedelta
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text

from storefront import config
from storefront.domain import storefront
from storefront.shared.money import round_money, sum_money


class NegotiationStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COUNTER_OFFER = "counter_offer"
    ACCEPTED = "accepted"


ADMIN_RESPONSES = {NegotiationStatus.APPROVED, NegotiationStatus.REJECTED, NegotiationStatus.COUNTER_OFFER}
CUSTOMER_RESPONSES = {NegotiationStatus.ACCEPTED, NegotiationStatus.REJECTED}
PRICED_STATUSES = {NegotiationStatus.APPROVED, NegotiationStatus.ACCEPTED}


@storefront.entity(part_of="BulkNegotiation")
class NegotiatedProduct:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    product_name = String(max_length=255)
    variant_name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    current_price = Float(required=True, min_value=0.0)
    proposed_price = Float(required=True, min_value=0.0)
    total_amount = Float(required=True, min_value=0.0)


@storefront.aggregate
class BulkNegotiation:
    business_user_id = Identifier(required=True)
    cart_id = Identifier(required=True)
    products = HasMany(NegotiatedProduct)
    total_proposed_amount = Float(default=0.0)
    status = String(choices=NegotiationStatus, default=NegotiationStatus.PENDING.value)
    admin_id = Identifier()
    admin_notes = Text()
    counter_offer_amount = Float()
    responded_at = DateTime()
    expires_at = DateTime()
    created_at = DateTime()

    @classmethod
    def submit(cls, business_user_id, cart_id, products: list[dict]):
        if not products:
            raise ValidationError({"products": ["At least one product is required"]})

        now = datetime.now(UTC)
        negotiation = cls(
            business_user_id=business_user_id,
            cart_id=cart_id,
            status=NegotiationStatus.PENDING.value,
            expires_at=now + timedelta(days=config.negotiation_ttl_days()),
            created_at=now,
        )
        for product in products:
            if product["proposed_price"] <= 0:
                raise ValidationError({"products": ["Proposed price must be positive"]})
            negotiation.add_products(
                NegotiatedProduct(
                    product_id=product["product_id"],
                    variant_id=product.get("variant_id"),
                    product_name=product.get("product_name"),
                    variant_name=product.get("variant_name"),
                    quantity=product["quantity"],
                    current_price=product["current_price"],
                    proposed_price=round_money(product["proposed_price"]),
                    total_amount=round_money(product["proposed_price"] * product["quantity"]),
                )
            )
        negotiation.total_proposed_amount = sum_money(p.total_amount for p in negotiation.products)
        return negotiation

    def is_expired(self, now=None) -> bool:
        if not self.expires_at:
            return False
        expires_at = self.expires_at if self.expires_at.tzinfo else self.expires_at.replace(tzinfo=UTC)
        return (now or datetime.now(UTC)) > expires_at

    def respond(self, response: NegotiationStatus, admin_id=None, counter_offer_amount=None, notes=None):
        """Admin decision on a pending proposal."""
        if response not in ADMIN_RESPONSES:
            raise ValidationError({"status": [f"Admins respond with approved, rejected or counter_offer, not {response.value}"]})
        if self.status != NegotiationStatus.PENDING.value:
            raise ValidationError({"status": [f"Negotiation is already {self.status}"]})
        if self.is_expired():
            raise ValidationError({"status": ["Negotiation has expired"]})
        if response == NegotiationStatus.COUNTER_OFFER:
            if not counter_offer_amount or counter_offer_amount <= 0:
                raise ValidationError({"counter_offer_amount": ["A counter offer needs a positive amount"]})
            self.counter_offer_amount = round_money(counter_offer_amount)

        self.status = response.value
        self.admin_id = admin_id
        self.admin_notes = notes
        self.responded_at = datetime.now(UTC)

    def answer_counter_offer(self, response: NegotiationStatus):
        if response not in CUSTOMER_RESPONSES:
            raise ValidationError({"response": ["Counter offers are accepted or rejected"]})
        if self.status != NegotiationStatus.COUNTER_OFFER.value:
            raise ValidationError({"status": ["There is no counter offer to answer"]})
        self.status = response.value
        self.responded_at = datetime.now(UTC)

    @property
    def is_priced(self) -> bool:
        return NegotiationStatus(self.status) in PRICED_STATUSES

    def unit_price(self, product: NegotiatedProduct) -> float:
        """Agreed unit price; an accepted counter offer scales every proposed price to its total."""
        if self.status == NegotiationStatus.ACCEPTED.value and self.counter_offer_amount and self.total_proposed_amount:
            return round_money(product.proposed_price * self.counter_offer_amount / self.total_proposed_amount)
        return product.proposed_price


def apply_negotiated_pricing(cart, negotiation: BulkNegotiation) -> dict[str, float]:
    """Negotiated unit price per cart item id, for the lines the negotiation covers.

    Pure: the cart is not modified; ``Cart.apply_line_prices`` applies the result.
    """
    if not negotiation.is_priced:
        raise ValidationError({"status": [f"Negotiation is {negotiation.status}, prices are not agreed"]})

    prices = {}
    for item in cart.items:
        product = next(
            (
                p
                for p in negotiation.products
                if str(p.product_id) == str(item.product_id)
                and (not p.variant_id or str(p.variant_id) == str(item.variant_id or ""))
            ),
            None,
        )
        if product is not None:
            prices[str(item.id)] = negotiation.unit_price(product)
    return prices
