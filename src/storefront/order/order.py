"""Order aggregate: the frozen, auditable record of a checkout.

Items and totals are copied from the order summary at placement and never
recomputed afterwards. Only the status, tracking details and (before
shipping) the delivery address change over the order's life.

Status machine:
    placed → confirmed → processing → shipped → delivered
    cancelled is reachable from every state before delivered.

Forward moves may skip steps (placed → shipped is fine); backward moves,
repeats and anything out of delivered or cancelled are rejected.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from storefront.domain import storefront
from storefront.order.events import OrderPlaced, OrderStatusChanged
from storefront.shared.address import Address
from storefront.shared.money import round_money


class OrderStatus(Enum):
    PLACED = "placed"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    COD = "cod"


_FORWARD_ORDER = [
    OrderStatus.PLACED,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
]
_TERMINAL = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}


def allowed(current: OrderStatus, target: OrderStatus) -> bool:
    """Whether an order may move from ``current`` to ``target``."""
    if current in _TERMINAL:
        return False
    if target == OrderStatus.CANCELLED:
        return True
    return _FORWARD_ORDER.index(target) > _FORWARD_ORDER.index(current)


def parse_status(value) -> OrderStatus:
    try:
        return OrderStatus((value or "").strip().lower())
    except ValueError:
        raise ValidationError(
            {"status": [f"Invalid status '{value}'. Expected one of: {', '.join(s.value for s in OrderStatus)}"]}
        ) from None


@storefront.value_object(part_of="Order")
class OrderTotals:
    """Money frozen at checkout; ``grand_total`` is what the customer owes."""

    subtotal = Float(default=0.0)
    discount = Float(default=0.0)
    shipping = Float(default=0.0)
    marketplace_fees = Float(default=0.0)
    tax = Float(default=0.0)
    grand_total = Float(default=0.0)

    def to_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "shipping": self.shipping,
            "marketplace_fees": self.marketplace_fees,
            "tax": self.tax,
            "grand_total": self.grand_total,
        }


@storefront.entity(part_of="Order")
class OrderItem:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    price = Float(required=True, min_value=0.0)
    total = Float(required=True, min_value=0.0)

    def to_dict(self) -> dict:
        return {
            "product_id": str(self.product_id),
            "variant_id": str(self.variant_id) if self.variant_id else None,
            "name": self.name,
            "quantity": self.quantity,
            "price": self.price,
            "total": self.total,
        }


@storefront.aggregate
class Order:
    order_number = String(required=True, max_length=32, unique=True)
    checkout_key = String(max_length=100, unique=True)  # "{cart_id}:{generation}"
    cart_id = Identifier()
    user_id = Identifier()  # Nullable for guest orders
    items = HasMany(OrderItem)
    payment_method = String(required=True, max_length=30)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    totals = ValueObject(OrderTotals)
    coupon_code = String(max_length=50)
    status = String(choices=OrderStatus, default=OrderStatus.PLACED.value)
    notes = Text()
    carrier = String(max_length=100)
    tracking_number = String(max_length=100)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def place(
        cls,
        order_number,
        items,
        totals: dict,
        payment_method,
        shipping_address: Address | None,
        billing_address: Address | None = None,
        user_id=None,
        cart_id=None,
        checkout_key=None,
        coupon_code=None,
        notes=None,
    ):
        """Create an order from frozen line snapshots and totals."""
        if not items:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = datetime.now(UTC)
        payment_status = PaymentStatus.COD.value if payment_method.lower() == "cod" else PaymentStatus.PENDING.value
        order = cls(
            order_number=order_number,
            checkout_key=checkout_key,
            cart_id=cart_id,
            user_id=user_id,
            payment_method=payment_method,
            payment_status=payment_status,
            shipping_address=shipping_address,
            billing_address=billing_address or shipping_address,
            totals=OrderTotals(**totals),
            coupon_code=coupon_code,
            status=OrderStatus.PLACED.value,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        for item in items:
            order.add_items(
                OrderItem(
                    product_id=item["product_id"],
                    variant_id=item.get("variant_id"),
                    name=item.get("name"),
                    quantity=item["quantity"],
                    price=item["price"],
                    total=item["total"],
                )
            )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                user_id=str(user_id) if user_id else None,
                item_count=len(items),
                grand_total=order.totals.grand_total,
                payment_method=payment_method,
                payment_status=payment_status,
                status=order.status,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def transition_to(self, target: OrderStatus, changed_by=None):
        current = OrderStatus(self.status)
        if not allowed(current, target):
            raise ValidationError({"status": [f"Cannot move order from {current.value} to {target.value}"]})

        now = datetime.now(UTC)
        self.status = target.value
        self.updated_at = now
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=current.value,
                status=target.value,
                changed_by=str(changed_by) if changed_by else None,
                changed_at=now,
            )
        )

    def record_tracking(self, carrier=None, tracking_number=None):
        if carrier:
            self.carrier = carrier
        if tracking_number:
            self.tracking_number = tracking_number
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def is_owned_by(self, user_id) -> bool:
        return bool(self.user_id) and str(self.user_id) == str(user_id)

    @property
    def grand_total(self) -> float:
        return self.totals.grand_total if self.totals else 0.0

    def find_item(self, product_id, variant_id=None) -> OrderItem:
        item = next(
            (
                i
                for i in self.items
                if str(i.product_id) == str(product_id) and str(i.variant_id or "") == str(variant_id or "")
            ),
            None,
        )
        if item is None:
            raise ValidationError({"items": [f"Product {product_id} is not part of this order"]})
        return item

    def item_value(self, product_id, quantity=None, variant_id=None) -> float:
        """Frozen value of ``quantity`` units of one order line."""
        item = self.find_item(product_id, variant_id)
        quantity = item.quantity if quantity is None else quantity
        if quantity > item.quantity:
            raise ValidationError({"items": [f"Only {item.quantity} unit(s) of {product_id} were ordered"]})
        return round_money(item.price * quantity)
