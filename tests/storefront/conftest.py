import json

import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    from protean import current_domain
    from storefront.notifications.channel import reset_channels

    with storefront_bed.domain_context():
        yield

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()
    reset_channels()


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------
@pytest.fixture()
def address():
    return {
        "name": "Asha Rao",
        "phone": "9800000000",
        "address_line1": "12 MG Road",
        "city": "Bengaluru",
        "state": "Karnataka",
        "country": "India",
        "pincode": "560001",
    }


@pytest.fixture()
def email_channel():
    from storefront.notifications.channel import get_channel

    return get_channel("email")


@pytest.fixture()
def make_account():
    from protean import current_domain
    from storefront.accounts.account import Account

    def _make(name="Asha Rao", email="asha@example.com", **kwargs):
        account = Account(name=name, email=email, **kwargs)
        current_domain.repository_for(Account).add(account)
        return account

    return _make


@pytest.fixture()
def customer(make_account):
    return make_account()


@pytest.fixture()
def make_product():
    from protean import current_domain
    from storefront.catalogue.product import Product

    def _make(title="Widget", price=100.0, **kwargs):
        product = Product.create(title=title, price=price, **kwargs)
        current_domain.repository_for(Product).add(product)
        return product

    return _make


@pytest.fixture()
def make_shipping_rule():
    from protean import current_domain
    from storefront.shipping.rules import ShippingRule

    def _make(title="Standard", shipping_cost=15.0, postal_codes=None, **kwargs):
        rule = ShippingRule(
            title=title,
            shipping_cost=shipping_cost,
            postal_codes=json.dumps(postal_codes or []),
            **kwargs,
        )
        current_domain.repository_for(ShippingRule).add(rule)
        return rule

    return _make


@pytest.fixture()
def make_cart():
    """Create a cart for ``user_id`` holding ``lines`` of ``(product, quantity)``."""
    from protean import current_domain
    from storefront.cart.items import AddToCart
    from storefront.cart.management import CreateCart

    def _make(user_id, lines=()):
        cart_id = current_domain.process(CreateCart(user_id=user_id), asynchronous=False)
        for product, quantity in lines:
            current_domain.process(
                AddToCart(cart_id=cart_id, product_id=str(product.id), quantity=quantity, user_id=user_id),
                asynchronous=False,
            )
        return cart_id

    return _make


@pytest.fixture()
def summarize(address):
    from protean import current_domain
    from storefront.summary.summary import GenerateOrderSummary

    def _summarize(cart_id, user_id, shipping_address=None):
        command = GenerateOrderSummary(
            cart_id=cart_id,
            user_id=user_id,
            shipping_address=json.dumps(shipping_address or address),
        )
        return current_domain.process(command, asynchronous=False)

    return _summarize


@pytest.fixture()
def checkout(summarize):
    """Summarize and place an order for a prepared cart; returns the placement result."""
    from storefront.order.placement import PlaceOrder, place_order

    def _checkout(cart_id, user_id, payment_method="cod"):
        summarize(cart_id, user_id)
        return place_order(PlaceOrder(cart_id=cart_id, user_id=user_id, payment_method=payment_method))

    return _checkout


@pytest.fixture()
def placed_order(customer, make_product, make_shipping_rule, make_cart, checkout):
    """One order for 2 x 100.0 with 15.0 shipping and 5% tax (grand total 225.0)."""
    product = make_product(price=100.0)
    make_shipping_rule(shipping_cost=15.0)
    cart_id = make_cart(str(customer.id), [(product, 2)])
    result = checkout(cart_id, str(customer.id))
    return result["order_id"]


@pytest.fixture()
def advance_order():
    from protean import current_domain
    from storefront.order.status import UpdateOrderStatus

    def _advance(order_id, *statuses, updated_by="admin-1"):
        for status in statuses:
            current_domain.process(
                UpdateOrderStatus(order_id=order_id, status=status, updated_by=updated_by),
                asynchronous=False,
            )

    return _advance


@pytest.fixture()
def delivered_order(placed_order, advance_order):
    advance_order(placed_order, "confirmed", "processing", "shipped", "delivered")
    return placed_order
