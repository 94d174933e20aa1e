"""Application tests for returns, replacements and the refund ledger."""

import json

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from storefront.errors import ConflictError, ForbiddenError
from storefront.notifications.log import NotificationLog
from storefront.order.history import OrderHistory
from storefront.order.order import Order
from storefront.returns.requests import OrderReplacement, OrderReturn, Refund, ReturnStatus
from storefront.returns.workflow import (
    ProcessReplacement,
    ProcessReturn,
    RequestReplacement,
    RequestReturn,
    process_return,
    submit_return,
)


def _owner(order_id):
    return str(current_domain.repository_for(Order).get(order_id).user_id)


def _request_return(order_id, **kwargs):
    fields = {"order_id": order_id, "user_id": _owner(order_id), "reason": "Damaged in transit"}
    fields.update(kwargs)
    return current_domain.process(RequestReturn(**fields), asynchronous=False)


def _refunds():
    return current_domain.repository_for(Refund)._dao.query.all().items


def _product_id(order_id):
    return str(current_domain.repository_for(Order).get(order_id).items[0].product_id)


def _approve(return_id):
    process_return(ProcessReturn(return_id=return_id, status="approved"))


@pytest.fixture()
def variant_order(customer, make_product, make_shipping_rule, summarize, advance_order):
    """A delivered order for one red (130.0) and one blue (80.0) variant of the same product."""
    from storefront.cart.items import AddToCart
    from storefront.cart.management import CreateCart
    from storefront.order.placement import PlaceOrder, place_order

    product = make_product(
        price=100.0,
        variants=[
            {"sku": "W-RED", "price": 130.0, "attributes": {"Color": "Red"}},
            {"sku": "W-BLUE", "price": 80.0, "attributes": {"Color": "Blue"}},
        ],
    )
    make_shipping_rule(shipping_cost=15.0)
    user_id = str(customer.id)
    cart_id = current_domain.process(CreateCart(user_id=user_id), asynchronous=False)
    for variant in product.variants:
        current_domain.process(
            AddToCart(cart_id=cart_id, product_id=str(product.id), variant_id=str(variant.id), quantity=1, user_id=user_id),
            asynchronous=False,
        )
    summarize(cart_id, user_id)
    order_id = place_order(PlaceOrder(cart_id=cart_id, user_id=user_id, payment_method="cod"))["order_id"]
    advance_order(order_id, "confirmed", "processing", "shipped", "delivered")
    return order_id, product


class TestRequestReturn:
    def test_return_on_delivered_order(self, delivered_order):
        return_id = _request_return(delivered_order)

        order_return = current_domain.repository_for(OrderReturn).get(return_id)
        assert order_return.status == ReturnStatus.REQUESTED.value
        assert order_return.item_list[0]["quantity"] == 2

        history = current_domain.repository_for(OrderHistory).for_order(delivered_order)
        assert history[-1].status == "return_requested"
        assert current_domain.repository_for(Order).get(delivered_order).status == "delivered"

    def test_return_on_placed_order_is_rejected(self, placed_order):
        with pytest.raises(ValidationError):
            _request_return(placed_order)
        assert current_domain.repository_for(OrderReturn)._dao.query.all().total == 0

    def test_only_the_owner_can_request(self, delivered_order):
        with pytest.raises(ForbiddenError):
            _request_return(delivered_order, user_id="someone-else")

    def test_cannot_return_more_than_ordered(self, delivered_order):
        product_id = str(current_domain.repository_for(Order).get(delivered_order).items[0].product_id)
        with pytest.raises(ValidationError):
            _request_return(delivered_order, items=json.dumps([{"product_id": product_id, "quantity": 3}]))

    def test_units_under_an_open_return_cannot_be_requested_again(self, delivered_order):
        _request_return(delivered_order)

        with pytest.raises(ValidationError):
            _request_return(delivered_order)
        with pytest.raises(ValidationError):
            _request_return(
                delivered_order, items=json.dumps([{"product_id": _product_id(delivered_order), "quantity": 1}])
            )
        assert len(current_domain.repository_for(OrderReturn).for_order(delivered_order)) == 1

    def test_partial_returns_add_up_to_the_ordered_quantity(self, delivered_order):
        product_id = _product_id(delivered_order)
        _request_return(delivered_order, items=json.dumps([{"product_id": product_id, "quantity": 1}]))

        second_id = _request_return(delivered_order)

        second = current_domain.repository_for(OrderReturn).get(second_id)
        assert second.item_list[0]["quantity"] == 1
        with pytest.raises(ValidationError):
            _request_return(delivered_order)

    def test_repeated_lines_in_one_request_are_counted_together(self, delivered_order):
        product_id = _product_id(delivered_order)
        items = [{"product_id": product_id, "quantity": 1}, {"product_id": product_id, "quantity": 2}]
        with pytest.raises(ValidationError):
            _request_return(delivered_order, items=json.dumps(items))

    def test_rejected_return_frees_its_units(self, delivered_order):
        return_id = _request_return(delivered_order)
        process_return(ProcessReturn(return_id=return_id, status="rejected", comment="Outside policy"))

        again = _request_return(delivered_order)

        assert current_domain.repository_for(OrderReturn).get(again).item_list[0]["quantity"] == 2

    def test_submitted_returns_share_the_order_quota(self, delivered_order):
        command = RequestReturn(order_id=delivered_order, user_id=_owner(delivered_order), reason="Broken")
        submit_return(command)
        with pytest.raises(ValidationError):
            submit_return(command)

    def test_variant_lines_are_returned_separately(self, variant_order):
        order_id, product = variant_order
        red = next(v for v in product.variants if v.sku == "W-RED")

        return_id = _request_return(
            order_id, items=json.dumps([{"product_id": str(product.id), "variant_id": str(red.id), "quantity": 1}])
        )

        items = current_domain.repository_for(OrderReturn).get(return_id).item_list
        assert items == [{"product_id": str(product.id), "variant_id": str(red.id), "quantity": 1, "reason": None}]
        with pytest.raises(ValidationError):
            _request_return(
                order_id,
                items=json.dumps([{"product_id": str(product.id), "variant_id": str(red.id), "quantity": 1}]),
            )

    def test_line_without_variant_does_not_match_variant_lines(self, variant_order):
        order_id, product = variant_order
        with pytest.raises(ValidationError):
            _request_return(order_id, items=json.dumps([{"product_id": str(product.id), "quantity": 1}]))


class TestRefunds:
    def test_approve_then_refund(self, delivered_order):
        return_id = _request_return(delivered_order)
        process_return(ProcessReturn(return_id=return_id, status="approved", admin_id="admin-1"))

        result = process_return(
            ProcessReturn(return_id=return_id, status="refunded", amount=225.0, mode="wallet", admin_id="admin-1")
        )

        assert result == {"return_id": return_id, "status": "refunded"}
        refunds = _refunds()
        assert len(refunds) == 1
        assert refunds[0].amount == 225.0
        assert refunds[0].mode == "wallet"
        assert refunds[0].transaction_id.startswith("RMA")
        order_return = current_domain.repository_for(OrderReturn).get(return_id)
        assert order_return.status == ReturnStatus.REFUNDED.value
        assert order_return.processed_at is not None

    def test_second_refund_conflicts(self, delivered_order):
        return_id = _request_return(delivered_order)
        process_return(ProcessReturn(return_id=return_id, status="approved"))
        process_return(ProcessReturn(return_id=return_id, status="refunded", amount=225.0, mode="wallet"))

        with pytest.raises(ConflictError):
            process_return(ProcessReturn(return_id=return_id, status="refunded", amount=225.0, mode="wallet"))
        assert len(_refunds()) == 1

    def test_amount_defaults_to_returned_lines(self, delivered_order):
        product_id = str(current_domain.repository_for(Order).get(delivered_order).items[0].product_id)
        return_id = _request_return(delivered_order, items=json.dumps([{"product_id": product_id, "quantity": 1}]))
        process_return(ProcessReturn(return_id=return_id, status="approved"))

        process_return(ProcessReturn(return_id=return_id, status="refunded"))

        assert _refunds()[0].amount == 100.0

    def test_amount_cannot_exceed_grand_total(self, delivered_order):
        return_id = _request_return(delivered_order)
        process_return(ProcessReturn(return_id=return_id, status="approved"))
        with pytest.raises(ValidationError):
            process_return(ProcessReturn(return_id=return_id, status="refunded", amount=500.0))
        assert _refunds() == []

    def test_refunds_are_capped_by_what_is_left_of_the_order(self, delivered_order):
        product_id = _product_id(delivered_order)
        first = _request_return(delivered_order, items=json.dumps([{"product_id": product_id, "quantity": 1}]))
        _approve(first)
        process_return(ProcessReturn(return_id=first, status="refunded", amount=200.0))

        second = _request_return(delivered_order, items=json.dumps([{"product_id": product_id, "quantity": 1}]))
        _approve(second)
        with pytest.raises(ValidationError):
            process_return(ProcessReturn(return_id=second, status="refunded"))

        process_return(ProcessReturn(return_id=second, status="refunded", amount=25.0))
        assert sorted(refund.amount for refund in _refunds()) == [25.0, 200.0]
        assert current_domain.repository_for(Refund).refunded_total(delivered_order) == 225.0

    def test_default_amount_uses_the_variant_price(self, variant_order):
        order_id, product = variant_order
        red = next(v for v in product.variants if v.sku == "W-RED")
        return_id = _request_return(
            order_id, items=json.dumps([{"product_id": str(product.id), "variant_id": str(red.id), "quantity": 1}])
        )
        _approve(return_id)

        process_return(ProcessReturn(return_id=return_id, status="refunded"))

        assert _refunds()[0].amount == 130.0

    def test_refund_requires_approval(self, delivered_order):
        return_id = _request_return(delivered_order)
        with pytest.raises(ValidationError):
            process_return(ProcessReturn(return_id=return_id, status="refunded", amount=50.0))
        assert _refunds() == []

    def test_customer_is_notified_of_refund(self, delivered_order):
        return_id = _request_return(delivered_order)
        process_return(ProcessReturn(return_id=return_id, status="approved"))
        process_return(ProcessReturn(return_id=return_id, status="refunded", amount=225.0))

        templates = [log.template for log in current_domain.repository_for(NotificationLog).for_order(delivered_order)]
        assert templates[-3:] == ["return_requested", "return_approved", "return_refunded"]


class TestReplacements:
    def test_full_replacement_flow(self, delivered_order):
        replacement_id = current_domain.process(
            RequestReplacement(order_id=delivered_order, user_id=_owner(delivered_order), reason="Wrong size"),
            asynchronous=False,
        )
        for status in ("approved", "shipped", "completed"):
            current_domain.process(
                ProcessReplacement(replacement_id=replacement_id, status=status, admin_id="admin-1"),
                asynchronous=False,
            )

        replacement = current_domain.repository_for(OrderReplacement).get(replacement_id)
        assert replacement.status == "completed"
        history = [h.status for h in current_domain.repository_for(OrderHistory).for_order(delivered_order)]
        assert history[-4:] == [
            "replacement_requested",
            "replacement_approved",
            "replacement_shipped",
            "replacement_completed",
        ]

    def test_replacement_on_shipped_order_is_rejected(self, placed_order, advance_order):
        advance_order(placed_order, "shipped")
        with pytest.raises(ValidationError):
            current_domain.process(
                RequestReplacement(order_id=placed_order, user_id=_owner(placed_order), reason="Wrong size"),
                asynchronous=False,
            )
