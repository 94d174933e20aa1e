"""Shared BDD fixtures and step definitions for checkout and returns."""

import pytest
from pytest_bdd import given, parsers, when


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def error():
    """Container for the error raised by the last When step."""
    return {"exc": None}


@pytest.fixture()
def products():
    return {}


@pytest.fixture()
def user_id(customer):
    return str(customer.id)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{title}" priced at {price:g}'))
def _(make_product, products, title, price):
    products[title] = make_product(title=title, price=price)


@given(parsers.cfparse("shipping to every destination costs {cost:g}"))
def _(make_shipping_rule, cost):
    make_shipping_rule(shipping_cost=cost)


@given(parsers.cfparse('the customer has {quantity:d} "{title}" in the cart'), target_fixture="cart_id")
def _(make_cart, products, user_id, quantity, title):
    return make_cart(user_id, [(products[title], quantity)])


@given("the customer has requested an order summary", target_fixture="summary")
@when("the customer requests an order summary", target_fixture="summary")
def _(summarize, cart_id, user_id):
    return summarize(cart_id, user_id)


@given("the customer's order has been delivered", target_fixture="order_id")
def _(delivered_order):
    return delivered_order
