"""Discount Evaluator: what a cart earns from coupons and automatic offers.

Works on priced lines (anything with ``product_id``, ``quantity``,
``unit_price``, ``line_total``, ``brand`` and ``categories``) so it never
reads prices from the cart directly. Components stack:

    coupon + best automatic discount + buy-X-get-Y + combo offers

and the total is capped at the subtotal.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from protean.utils.globals import current_domain

from storefront.discounts.rules import AutoDiscount, BuyXGetY, ComboOffer, Coupon, DiscountType, RuleStatus
from storefront.shared.money import round_money, sum_money

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CouponCheck:
    coupon: Coupon | None
    amount: float = 0.0
    error: str | None = None

    @property
    def valid(self) -> bool:
        return self.error is None and self.coupon is not None


@dataclass(frozen=True)
class DiscountResult:
    coupon: float = 0.0
    automatic: float = 0.0
    buy_x_get_y: float = 0.0
    combo: float = 0.0
    total: float = 0.0
    coupon_code: str | None = None
    coupon_error: str | None = None

    def breakdown(self) -> dict:
        return {
            "coupon": self.coupon,
            "automatic": self.automatic,
            "buy_x_get_y": self.buy_x_get_y,
            "combo": self.combo,
        }


class DiscountEvaluator:
    def __init__(self, now=None):
        self.now = now or datetime.now(UTC)

    def find_coupon(self, code) -> Coupon | None:
        results = current_domain.repository_for(Coupon)._dao.query.filter(code=Coupon.normalize(code)).all().items
        return results[0] if results else None

    def check_coupon(self, code, lines, subtotal: float) -> CouponCheck:
        """Validate ``code`` against the priced lines; the reason is returned, not raised."""
        coupon = self.find_coupon(code)
        if coupon is None:
            return CouponCheck(None, error="Invalid coupon code")
        if not coupon.is_live(self.now):
            return CouponCheck(coupon, error="Coupon is expired or inactive")
        if subtotal < (coupon.min_order_amount or 0):
            return CouponCheck(coupon, error=f"Minimum order amount is {coupon.min_order_amount}")

        eligible = sum_money(line.line_total for line in lines if coupon.covers(line))
        if eligible <= 0:
            return CouponCheck(coupon, error="Coupon does not apply to the items in the cart")
        return CouponCheck(coupon, amount=round_money(coupon.amount_for(eligible)))

    def automatic_discount(self, lines, subtotal: float) -> float:
        """Best-priority live automatic discount that reaches at least one line."""
        rules = current_domain.repository_for(AutoDiscount)._dao.query.all().items
        live = [r for r in rules if r.is_live(self.now) and subtotal >= (r.min_cart_value or 0)]
        for rule in sorted(live, key=lambda r: (-(r.priority or 0), r.title)):
            in_scope = sum_money(line.line_total for line in lines if rule.covers(line))
            if in_scope <= 0:
                continue
            if rule.discount_type == DiscountType.PERCENT.value:
                return round_money(in_scope * rule.value / 100)
            return round_money(min(rule.value, in_scope))
        return 0.0

    def buy_x_get_y_discount(self, lines) -> float:
        rules = current_domain.repository_for(BuyXGetY)._dao.query.all().items
        saving = 0.0
        for rule in rules:
            if not rule.is_live(self.now):
                continue
            bought = sum(line.quantity for line in lines if rule.qualifies(line))
            reward_prices = sorted(
                price for line in lines if rule.rewards(line) for price in [line.unit_price] * line.quantity
            )
            if rule.rewards_from_purchase:
                free_units = (bought // (rule.buy_quantity + rule.get_quantity)) * rule.get_quantity
            else:
                free_units = (bought // rule.buy_quantity) * rule.get_quantity
            saving += sum(rule.unit_saving(price) for price in reward_prices[:free_units])
        return round_money(saving)

    def combo_discount(self, lines) -> float:
        offers = current_domain.repository_for(ComboOffer)._dao.query.filter(status=RuleStatus.ACTIVE.value).all().items
        quantities: dict[str, int] = {}
        prices: dict[str, float] = {}
        for line in lines:
            quantities[line.product_id] = quantities.get(line.product_id, 0) + line.quantity
            prices.setdefault(line.product_id, line.unit_price)

        saving = 0.0
        for offer in offers:
            components = offer.component_list
            if not components:
                continue
            sets = min(quantities.get(str(c["product_id"]), 0) // max(int(c.get("quantity", 1)), 1) for c in components)
            if sets <= 0:
                continue
            regular = sum(prices[str(c["product_id"])] * int(c.get("quantity", 1)) for c in components)
            saving += max(regular - offer.combo_price, 0) * sets
        return round_money(saving)

    def evaluate(self, lines, subtotal: float, coupon_code=None) -> DiscountResult:
        coupon_amount = 0.0
        applied_code = None
        coupon_error = None
        if coupon_code:
            check = self.check_coupon(coupon_code, lines, subtotal)
            if check.valid:
                coupon_amount = check.amount
                applied_code = check.coupon.code
            else:
                coupon_error = check.error
                logger.info("coupon_not_applied", coupon_code=coupon_code, reason=check.error)

        automatic = self.automatic_discount(lines, subtotal)
        bogo = self.buy_x_get_y_discount(lines)
        combo = self.combo_discount(lines)
        total = min(sum_money([coupon_amount, automatic, bogo, combo]), round_money(subtotal))
        return DiscountResult(
            coupon=coupon_amount,
            automatic=automatic,
            buy_x_get_y=bogo,
            combo=combo,
            total=total,
            coupon_code=applied_code,
            coupon_error=coupon_error,
        )
