"""Pricing Summary Engine: prices a cart for a destination.

The engine is side-effect free: it reads the cart, the catalogue and the
rule repositories and returns a ``PricedCart``. Persisting the result as an
``OrderSummary`` is the job of the ``GenerateOrderSummary`` handler.

    subtotal = sum(round(unit_price * quantity))
    total    = max(subtotal + shipping + marketplace_fees + tax - discount, 0)

Every component is rounded half-up to cents before it enters the total.
"""

from collections.abc import Callable
from dataclasses import dataclass, field

from storefront import config
from storefront.catalogue.reader import CatalogueReader
from storefront.discounts.evaluator import DiscountEvaluator, DiscountResult
from storefront.shared.money import round_money, sum_money
from storefront.shipping.resolver import ShippingResolver

TaxPolicy = Callable[[float], float]


def flat_rate_tax(rate: float) -> TaxPolicy:
    """Tax as a fixed share of the subtotal."""

    def policy(subtotal: float) -> float:
        return round_money(subtotal * rate)

    return policy


def default_tax_policy() -> TaxPolicy:
    return flat_rate_tax(config.tax_rate())


@dataclass(frozen=True)
class PricedLine:
    item_id: str
    product_id: str
    variant_id: str | None
    quantity: int
    unit_price: float
    line_total: float
    name: str | None = None
    brand: str | None = None
    categories: tuple = ()
    display: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "name": self.name,
            "brand": self.brand,
            "brand_logo": self.display.get("brand_logo"),
            "image": self.display.get("image"),
            "sku": self.display.get("sku"),
            "variant_attributes": self.display.get("variant_attributes", []),
            "stock": self.display.get("stock"),
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "total": self.line_total,
        }


@dataclass(frozen=True)
class PricedCart:
    lines: list[PricedLine]
    subtotal: float
    shipping: float
    marketplace_fees: float
    discount: DiscountResult
    tax: float
    total: float

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self.lines)


def price_lines(cart, reader: CatalogueReader) -> list[PricedLine]:
    lines = []
    for item in cart.items:
        display = reader.display(item.product_id, item.variant_id)
        unit_price = round_money(reader.unit_price(item))
        lines.append(
            PricedLine(
                item_id=str(item.id),
                product_id=str(item.product_id),
                variant_id=str(item.variant_id) if item.variant_id else None,
                quantity=item.quantity,
                unit_price=unit_price,
                line_total=round_money(unit_price * item.quantity),
                name=display.get("name"),
                brand=display.get("brand"),
                categories=tuple(str(c) for c in display.get("categories", [])),
                display=display,
            )
        )
    return lines


class PricingEngine:
    def __init__(
        self,
        tax_policy: TaxPolicy | None = None,
        catalogue: CatalogueReader | None = None,
        shipping: ShippingResolver | None = None,
        discounts: DiscountEvaluator | None = None,
    ):
        self.tax_policy = tax_policy or default_tax_policy()
        self.catalogue = catalogue or CatalogueReader()
        self.shipping = shipping or ShippingResolver()
        self.discounts = discounts or DiscountEvaluator()

    def price(self, cart, address=None) -> PricedCart:
        lines = price_lines(cart, self.catalogue)
        subtotal = sum_money(line.line_total for line in lines)
        shipping = self.shipping.shipping_cost(address, subtotal)
        fees = self.shipping.marketplace_fees(address)
        discount = self.discounts.evaluate(lines, subtotal, cart.coupon_code)
        tax = round_money(self.tax_policy(subtotal))
        total = max(sum_money([subtotal, shipping, fees, tax, -discount.total]), 0.0)
        return PricedCart(
            lines=lines,
            subtotal=subtotal,
            shipping=shipping,
            marketplace_fees=fees,
            discount=discount,
            tax=tax,
            total=total,
        )
