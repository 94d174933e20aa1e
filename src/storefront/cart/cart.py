"""Cart aggregate: the mutable working set that checkout turns into an Order.

Every mutation bumps ``generation``. Order summaries record the generation
(and a content hash) they were priced from, so checkout can refuse a summary
that no longer matches the live cart, and each order is keyed to exactly one
cart generation.
"""

import hashlib
import json
from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from storefront.domain import storefront
from storefront.errors import ForbiddenError
from storefront.shared.money import round_money, sum_money


@storefront.entity(part_of="Cart")
class CartItem:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    price = Float(default=0.0)
    final_price = Float(default=0.0)
    shipping_charge = Float(default=0.0)
    negotiated_price = Float()
    negotiation_id = Identifier()
    added_at = DateTime()

    @property
    def unit_price(self) -> float:
        if self.negotiated_price is not None and self.negotiated_price > 0:
            return self.negotiated_price
        return self.final_price or self.price or 0.0

    def matches(self, product_id, variant_id) -> bool:
        return str(self.product_id) == str(product_id) and str(self.variant_id or "") == str(variant_id or "")


@storefront.aggregate
class Cart:
    user_id = Identifier()  # Nullable for guest carts
    session_id = String(max_length=255)  # Guest cart identification
    items = HasMany(CartItem)
    coupon_code = String(max_length=50)
    discount = Float(default=0.0)
    cart_total = Float(default=0.0)
    generation = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, user_id=None, session_id=None):
        if not user_id and not session_id:
            raise ValidationError({"cart": ["A cart belongs to a user or a guest session"]})
        now = datetime.now(UTC)
        return cls(
            user_id=user_id,
            session_id=session_id,
            discount=0.0,
            cart_total=0.0,
            generation=0,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Ownership
    # -------------------------------------------------------------------
    def assert_accessible(self, user_id=None, session_id=None):
        """Carts are private to their user; guest carts to their session."""
        if self.user_id:
            if str(self.user_id) != str(user_id or ""):
                raise ForbiddenError({"cart": ["Cart belongs to another user"]})
        elif not session_id or self.session_id != session_id:
            raise ForbiddenError({"cart": ["Cart belongs to another session"]})

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def find_item(self, item_id) -> CartItem:
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": ["Item not found in cart"]})
        return item

    def add_item(self, product_id, variant_id, quantity, price, final_price, shipping_charge=0.0):
        """Add a line, or top up the quantity of an identical product/variant line."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        existing = next((i for i in self.items if i.matches(product_id, variant_id)), None)
        if existing:
            existing.quantity += quantity
            existing.price = price
            existing.final_price = final_price
            item = existing
        else:
            item = CartItem(
                product_id=product_id,
                variant_id=variant_id,
                quantity=quantity,
                price=price,
                final_price=final_price,
                shipping_charge=shipping_charge or 0.0,
                added_at=datetime.now(UTC),
            )
            self.add_items(item)

        self._touch()
        return item

    def update_item_quantity(self, item_id, quantity):
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        self.find_item(item_id).quantity = quantity
        self._touch()

    def remove_item(self, item_id):
        self.remove_items(self.find_item(item_id))
        self._touch()

    def clear(self):
        """Empty the cart; the cart itself survives checkout for reuse."""
        for item in list(self.items):
            self.remove_items(item)
        self.coupon_code = None
        self.discount = 0.0
        self._touch()

    def merge(self, guest_cart: "Cart"):
        """Fold a guest cart's lines into this cart."""
        for guest_item in guest_cart.items:
            existing = next((i for i in self.items if i.matches(guest_item.product_id, guest_item.variant_id)), None)
            if existing:
                existing.quantity += guest_item.quantity
            else:
                self.add_items(
                    CartItem(
                        product_id=guest_item.product_id,
                        variant_id=guest_item.variant_id,
                        quantity=guest_item.quantity,
                        price=guest_item.price,
                        final_price=guest_item.final_price,
                        shipping_charge=guest_item.shipping_charge,
                        negotiated_price=guest_item.negotiated_price,
                        negotiation_id=guest_item.negotiation_id,
                        added_at=guest_item.added_at or datetime.now(UTC),
                    )
                )
        if not self.coupon_code and guest_cart.coupon_code:
            self.coupon_code = guest_cart.coupon_code
        self._touch()

    # -------------------------------------------------------------------
    # Coupons and negotiated prices
    # -------------------------------------------------------------------
    def apply_coupon(self, coupon_code, amount):
        self.coupon_code = coupon_code
        self.discount = round_money(amount)
        self._touch()

    def remove_coupon(self):
        self.coupon_code = None
        self.discount = 0.0
        self._touch()

    def apply_line_prices(self, line_prices: dict, negotiation_id=None):
        """Set negotiated unit prices, keyed by cart item id."""
        for item in self.items:
            price = line_prices.get(str(item.id))
            if price is None:
                continue
            item.price = price
            item.final_price = price
            item.negotiated_price = price
            item.negotiation_id = negotiation_id
        self._touch()

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    def compute_total(self) -> float:
        lines = sum_money(item.unit_price * item.quantity for item in self.items)
        shipping = sum_money(item.shipping_charge for item in self.items)
        return round_money(max(lines + shipping - (self.discount or 0.0), 0.0))

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    def content_hash(self) -> str:
        """Fingerprint of everything that feeds pricing."""
        lines = sorted(
            [
                str(item.product_id),
                str(item.variant_id or ""),
                item.quantity,
                item.unit_price,
                item.shipping_charge or 0.0,
            ]
            for item in self.items
        )
        payload = json.dumps({"lines": lines, "coupon": self.coupon_code or "", "discount": self.discount or 0.0})
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    @property
    def checkout_key(self) -> str:
        return f"{self.id}:{self.generation}"

    def _touch(self):
        self.cart_total = self.compute_total()
        self.generation = (self.generation or 0) + 1
        self.updated_at = datetime.now(UTC)
