"""Application tests for cart commands via domain.process()."""

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError
from storefront.cart.cart import Cart
from storefront.cart.coupons import ApplyCoupon, RemoveCoupon
from storefront.cart.items import AddToCart, RemoveFromCart, UpdateCartQuantity
from storefront.cart.management import ClearCart, CreateCart, MergeGuestCart
from storefront.catalogue.product import ProductStatus
from storefront.discounts.rules import Coupon
from storefront.errors import EmptyCartError, ForbiddenError


def _process(command):
    return current_domain.process(command, asynchronous=False)


def _cart(cart_id):
    return current_domain.repository_for(Cart).get(cart_id)


def _add_coupon(**fields):
    coupon = Coupon(**fields)
    current_domain.repository_for(Coupon).add(coupon)
    return coupon


class TestCreateCart:
    def test_create_cart_for_user(self):
        cart_id = _process(CreateCart(user_id="user-1"))
        assert _cart(cart_id).user_id == "user-1"

    def test_existing_cart_is_reused(self):
        first = _process(CreateCart(user_id="user-1"))
        second = _process(CreateCart(user_id="user-1"))
        assert first == second


class TestCartItems:
    def test_add_item_resolves_catalogue_price(self, make_product):
        product = make_product(price=120.0, final_price=100.0, shipping_cost=5.0)
        cart_id = _process(CreateCart(user_id="user-1"))

        item_id = _process(AddToCart(cart_id=cart_id, product_id=str(product.id), quantity=2, user_id="user-1"))

        item = _cart(cart_id).find_item(item_id)
        assert item.price == 120.0
        assert item.final_price == 100.0
        assert item.shipping_charge == 5.0
        assert _cart(cart_id).cart_total == 205.0

    def test_variant_price_wins(self, make_product):
        product = make_product(price=100.0, variants=[{"sku": "W-RED", "price": 130.0, "attributes": {"Color": "Red"}}])
        variant_id = str(product.variants[0].id)
        cart_id = _process(CreateCart(user_id="user-1"))

        item_id = _process(
            AddToCart(cart_id=cart_id, product_id=str(product.id), variant_id=variant_id, quantity=1, user_id="user-1")
        )

        assert _cart(cart_id).find_item(item_id).final_price == 130.0

    def test_inactive_product_cannot_be_added(self, make_product):
        product = make_product(status=ProductStatus.INACTIVE.value)
        cart_id = _process(CreateCart(user_id="user-1"))
        with pytest.raises(ValidationError):
            _process(AddToCart(cart_id=cart_id, product_id=str(product.id), quantity=1, user_id="user-1"))

    def test_unknown_variant_is_rejected(self, make_product):
        product = make_product()
        cart_id = _process(CreateCart(user_id="user-1"))
        with pytest.raises(ValidationError):
            _process(
                AddToCart(cart_id=cart_id, product_id=str(product.id), variant_id="nope", quantity=1, user_id="user-1")
            )

    def test_update_and_remove(self, make_product):
        product = make_product()
        cart_id = _process(CreateCart(user_id="user-1"))
        item_id = _process(AddToCart(cart_id=cart_id, product_id=str(product.id), quantity=1, user_id="user-1"))

        _process(UpdateCartQuantity(cart_id=cart_id, item_id=item_id, quantity=4, user_id="user-1"))
        assert _cart(cart_id).total_items == 4

        _process(RemoveFromCart(cart_id=cart_id, item_id=item_id, user_id="user-1"))
        assert _cart(cart_id).items == []

    def test_other_user_cannot_touch_cart(self, make_product):
        product = make_product()
        cart_id = _process(CreateCart(user_id="user-1"))
        with pytest.raises(ForbiddenError):
            _process(AddToCart(cart_id=cart_id, product_id=str(product.id), quantity=1, user_id="user-2"))

    def test_guest_cart_is_closed_to_callers_without_its_session(self, make_product):
        product = make_product()
        cart_id = _process(CreateCart(session_id="guest-A"))
        _process(AddToCart(cart_id=cart_id, product_id=str(product.id), quantity=2, session_id="guest-A"))

        with pytest.raises(ForbiddenError):
            _process(AddToCart(cart_id=cart_id, product_id=str(product.id), quantity=2))
        with pytest.raises(ForbiddenError):
            _process(AddToCart(cart_id=cart_id, product_id=str(product.id), quantity=2, user_id="stranger"))

        assert _cart(cart_id).total_items == 2

    def test_clear_cart(self, make_product, make_cart):
        cart_id = make_cart("user-1", [(make_product(), 2)])
        _process(ClearCart(cart_id=cart_id, user_id="user-1"))
        assert _cart(cart_id).items == []


class TestCartCoupons:
    def test_apply_coupon(self, make_product, make_cart):
        _add_coupon(code="SAVE10", discount_type="percent", value=10.0)
        cart_id = make_cart("user-1", [(make_product(price=100.0), 2)])

        result = _process(ApplyCoupon(cart_id=cart_id, coupon_code=" save10 ", user_id="user-1"))

        assert result == {"coupon_code": "SAVE10", "discount": 20.0, "cart_total": 180.0}

    def test_invalid_coupon_is_rejected(self, make_product, make_cart):
        cart_id = make_cart("user-1", [(make_product(), 1)])
        with pytest.raises(ValidationError) as exc:
            _process(ApplyCoupon(cart_id=cart_id, coupon_code="NOPE", user_id="user-1"))
        assert "coupon_code" in exc.value.messages

    def test_coupon_on_empty_cart(self):
        _add_coupon(code="SAVE10", value=10.0)
        cart_id = _process(CreateCart(user_id="user-1"))
        with pytest.raises(EmptyCartError):
            _process(ApplyCoupon(cart_id=cart_id, coupon_code="SAVE10", user_id="user-1"))

    def test_coupon_dropped_when_cart_falls_below_minimum(self, make_product, make_cart):
        _add_coupon(code="BIG", value=50.0, min_order_amount=150.0)
        product = make_product(price=100.0)
        cart_id = make_cart("user-1", [(product, 2)])
        _process(ApplyCoupon(cart_id=cart_id, coupon_code="BIG", user_id="user-1"))

        item_id = str(_cart(cart_id).items[0].id)
        _process(UpdateCartQuantity(cart_id=cart_id, item_id=item_id, quantity=1, user_id="user-1"))

        cart = _cart(cart_id)
        assert cart.coupon_code is None
        assert cart.discount == 0.0

    def test_remove_coupon(self, make_product, make_cart):
        _add_coupon(code="SAVE10", value=10.0)
        cart_id = make_cart("user-1", [(make_product(), 1)])
        _process(ApplyCoupon(cart_id=cart_id, coupon_code="SAVE10", user_id="user-1"))
        _process(RemoveCoupon(cart_id=cart_id, user_id="user-1"))
        assert _cart(cart_id).coupon_code is None


class TestMergeGuestCart:
    def test_guest_cart_merges_into_user_cart(self, make_product):
        product = make_product()
        guest_id = _process(CreateCart(session_id="sess-1"))
        _process(AddToCart(cart_id=guest_id, product_id=str(product.id), quantity=2, session_id="sess-1"))

        cart_id = _process(MergeGuestCart(user_id="user-1", session_id="sess-1"))

        assert _cart(cart_id).total_items == 2
        assert _cart(guest_id).items == []

    def test_missing_guest_cart(self):
        with pytest.raises(ObjectNotFoundError):
            _process(MergeGuestCart(user_id="user-1", session_id="sess-x"))
