"""Cart coupons: commands and handler.

A coupon stays on the cart only while it qualifies: item changes re-check it
and silently drop it once it stops applying.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.catalogue.reader import CatalogueReader
from storefront.discounts.evaluator import DiscountEvaluator
from storefront.domain import storefront
from storefront.errors import EmptyCartError
from storefront.shared.money import sum_money
from storefront.summary.pricing import price_lines

logger = structlog.get_logger(__name__)


def revalidate_coupon(cart: Cart) -> None:
    """Refresh the cart's coupon discount, dropping the coupon if it no longer applies."""
    if not cart.coupon_code:
        return

    lines = price_lines(cart, CatalogueReader())
    check = DiscountEvaluator().check_coupon(cart.coupon_code, lines, sum_money(line.line_total for line in lines))
    if check.valid:
        if check.amount != cart.discount:
            cart.apply_coupon(check.coupon.code, check.amount)
        return

    logger.info("coupon_removed", cart_id=str(cart.id), coupon_code=cart.coupon_code, reason=check.error)
    cart.remove_coupon()


@storefront.command(part_of="Cart")
class ApplyCoupon:
    cart_id = Identifier(required=True)
    coupon_code = String(required=True, max_length=50)
    user_id = Identifier()
    session_id = String(max_length=255)


@storefront.command(part_of="Cart")
class RemoveCoupon:
    cart_id = Identifier(required=True)
    user_id = Identifier()
    session_id = String(max_length=255)


@storefront.command_handler(part_of=Cart)
class CartCouponHandler:
    @handle(ApplyCoupon)
    def apply_coupon(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.assert_accessible(command.user_id, command.session_id)
        if not cart.items:
            raise EmptyCartError(command.cart_id)

        lines = price_lines(cart, CatalogueReader())
        check = DiscountEvaluator().check_coupon(command.coupon_code, lines, sum_money(line.line_total for line in lines))
        if not check.valid:
            raise ValidationError({"coupon_code": [check.error]})

        cart.apply_coupon(check.coupon.code, check.amount)
        repo.add(cart)
        return {"coupon_code": cart.coupon_code, "discount": cart.discount, "cart_total": cart.cart_total}

    @handle(RemoveCoupon)
    def remove_coupon(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.assert_accessible(command.user_id, command.session_id)
        cart.remove_coupon()
        repo.add(cart)
