"""Discount rules: coupons, automatic discounts, buy-X-get-Y and combo offers."""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Integer, String, Text

from storefront.domain import storefront


class DiscountType(Enum):
    FLAT = "flat"
    PERCENT = "percent"


class RuleStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class AutoDiscountScope(Enum):
    ALL = "all"
    PRODUCT = "product"
    CATEGORY = "category"
    BRAND = "brand"


class RewardType(Enum):
    FREE = "free"
    PERCENT = "percent"
    FLAT = "flat"


def _json_list(raw) -> list:
    return json.loads(raw) if raw else []


def _in_window(start, end, now) -> bool:
    if start and now < _aware(start):
        return False
    return not (end and now > _aware(end))


def _aware(moment):
    return moment if moment.tzinfo else moment.replace(tzinfo=UTC)


@storefront.aggregate
class Coupon:
    code = String(required=True, max_length=50, unique=True)
    discount_type = String(choices=DiscountType, default=DiscountType.FLAT.value)
    value = Float(required=True, min_value=0.0)
    min_order_amount = Float(default=0.0)
    max_discount = Float(default=0.0)
    starts_at = DateTime()
    ends_at = DateTime()
    usage_limit = Integer(default=0)  # 0 = unlimited
    used_count = Integer(default=0)
    allowed_products = Text()  # JSON array of product ids
    allowed_categories = Text()  # JSON array of category ids
    allowed_brands = Text()  # JSON array of brand names
    status = String(choices=RuleStatus, default=RuleStatus.ACTIVE.value)

    @invariant.post
    def percent_must_not_exceed_hundred(self):
        if self.discount_type == DiscountType.PERCENT.value and self.value > 100:
            raise ValidationError({"value": ["Percent coupons cannot exceed 100"]})

    @staticmethod
    def normalize(code) -> str:
        return (code or "").strip().upper()

    def is_live(self, now=None) -> bool:
        now = now or datetime.now(UTC)
        if self.status != RuleStatus.ACTIVE.value:
            return False
        if self.usage_limit and (self.used_count or 0) >= self.usage_limit:
            return False
        return _in_window(self.starts_at, self.ends_at, now)

    def is_restricted(self) -> bool:
        return bool(_json_list(self.allowed_products) or _json_list(self.allowed_categories) or _json_list(self.allowed_brands))

    def covers(self, line) -> bool:
        if not self.is_restricted():
            return True
        return (
            line.product_id in _json_list(self.allowed_products)
            or bool(set(line.categories) & set(_json_list(self.allowed_categories)))
            or (line.brand is not None and line.brand in _json_list(self.allowed_brands))
        )

    def amount_for(self, eligible_amount: float) -> float:
        if self.discount_type == DiscountType.PERCENT.value:
            amount = eligible_amount * self.value / 100
            if self.max_discount and self.max_discount > 0:
                amount = min(amount, self.max_discount)
            return amount
        return min(self.value, eligible_amount)

    def record_use(self):
        self.used_count = (self.used_count or 0) + 1


@storefront.aggregate
class AutoDiscount:
    title = String(required=True, max_length=100)
    discount_type = String(choices=DiscountType, default=DiscountType.PERCENT.value)
    value = Float(required=True, min_value=0.0)
    min_cart_value = Float(default=0.0)
    scope = String(choices=AutoDiscountScope, default=AutoDiscountScope.ALL.value)
    scope_ids = Text()  # JSON array: product ids, category ids or brand names
    priority = Integer(default=0)
    starts_at = DateTime()
    ends_at = DateTime()
    status = String(choices=RuleStatus, default=RuleStatus.ACTIVE.value)

    def is_live(self, now=None) -> bool:
        now = now or datetime.now(UTC)
        return self.status == RuleStatus.ACTIVE.value and _in_window(self.starts_at, self.ends_at, now)

    def covers(self, line) -> bool:
        ids = _json_list(self.scope_ids)
        if self.scope == AutoDiscountScope.PRODUCT.value:
            return line.product_id in ids
        if self.scope == AutoDiscountScope.CATEGORY.value:
            return bool(set(line.categories) & set(ids))
        if self.scope == AutoDiscountScope.BRAND.value:
            return line.brand in ids
        return True


@storefront.aggregate
class BuyXGetY:
    title = String(required=True, max_length=100)
    buy_quantity = Integer(required=True, min_value=1)
    buy_products = Text()  # JSON array; empty with empty buy_categories means any product
    buy_categories = Text()
    get_quantity = Integer(required=True, min_value=1)
    get_products = Text()  # JSON array; empty means the reward is taken from the bought items
    reward_type = String(choices=RewardType, default=RewardType.FREE.value)
    reward_value = Float(default=0.0)
    starts_at = DateTime()
    ends_at = DateTime()
    status = String(choices=RuleStatus, default=RuleStatus.ACTIVE.value)

    def is_live(self, now=None) -> bool:
        now = now or datetime.now(UTC)
        return self.status == RuleStatus.ACTIVE.value and _in_window(self.starts_at, self.ends_at, now)

    def qualifies(self, line) -> bool:
        products = _json_list(self.buy_products)
        categories = _json_list(self.buy_categories)
        if not products and not categories:
            return True
        return line.product_id in products or bool(set(line.categories) & set(categories))

    def rewards(self, line) -> bool:
        products = _json_list(self.get_products)
        return line.product_id in products if products else self.qualifies(line)

    @property
    def rewards_from_purchase(self) -> bool:
        return not _json_list(self.get_products)

    def unit_saving(self, unit_price: float) -> float:
        if self.reward_type == RewardType.PERCENT.value:
            return unit_price * min(self.reward_value or 0, 100) / 100
        if self.reward_type == RewardType.FLAT.value:
            return min(self.reward_value or 0, unit_price)
        return unit_price


@storefront.aggregate
class ComboOffer:
    title = String(required=True, max_length=100)
    components = Text(required=True)  # JSON array: [{"product_id": ..., "quantity": n}]
    combo_price = Float(required=True, min_value=0.0)
    status = String(choices=RuleStatus, default=RuleStatus.ACTIVE.value)

    @property
    def component_list(self) -> list[dict]:
        return _json_list(self.components)
