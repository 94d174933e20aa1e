"""Integration tests for the cart → summary → order API flow via TestClient."""

import pytest
from protean import current_domain
from storefront.order.order import Order


@pytest.fixture()
def stocked(make_product, make_shipping_rule):
    make_shipping_rule(shipping_cost=15.0)
    return make_product(price=100.0)


def _cart_with_product(client, headers, product, quantity=2):
    cart_id = client.post("/carts", headers=headers).json()["cart_id"]
    response = client.post(
        f"/carts/{cart_id}/items", json={"product_id": str(product.id), "quantity": quantity}, headers=headers
    )
    assert response.status_code == 201
    return cart_id


def _summarize(client, headers, cart_id, address):
    response = client.post("/orders/summary", json={"cart_id": cart_id, "shipping_address": address}, headers=headers)
    assert response.status_code == 200
    return response.json()


class TestCartAPI:
    def test_create_and_read_cart(self, client, as_user, stocked):
        cart_id = _cart_with_product(client, as_user, stocked)

        response = client.get(f"/carts/{cart_id}", headers=as_user)

        assert response.status_code == 200
        body = response.json()
        assert body["total_items"] == 2
        assert body["cart_total"] == 200.0

    def test_cart_requires_user_or_session(self, client):
        assert client.post("/carts").status_code == 401

    def test_guest_cart_by_session(self, client, stocked):
        headers = {"X-Session-Id": "sess-42"}
        cart_id = _cart_with_product(client, headers, stocked, quantity=1)
        assert client.get(f"/carts/{cart_id}", headers=headers).json()["total_items"] == 1

    def test_guest_cart_is_hidden_from_other_callers(self, client, stocked):
        cart_id = _cart_with_product(client, {"X-Session-Id": "sess-42"}, stocked, quantity=1)
        assert client.get(f"/carts/{cart_id}").status_code == 403
        assert client.get(f"/carts/{cart_id}", headers={"X-User-Id": "intruder"}).status_code == 403

    def test_other_users_cart_is_forbidden(self, client, as_user, stocked):
        cart_id = _cart_with_product(client, as_user, stocked)
        assert client.get(f"/carts/{cart_id}", headers={"X-User-Id": "intruder"}).status_code == 403

    def test_invalid_coupon_is_a_bad_request(self, client, as_user, stocked):
        cart_id = _cart_with_product(client, as_user, stocked)
        response = client.post(f"/carts/{cart_id}/coupon", json={"coupon_code": "NOPE"}, headers=as_user)
        assert response.status_code == 400


class TestCheckoutAPI:
    def test_reference_checkout(self, client, as_user, stocked, address):
        cart_id = _cart_with_product(client, as_user, stocked)
        summary = _summarize(client, as_user, cart_id, address)
        assert summary["total"] == 225.0

        response = client.post("/orders", json={"cart_id": cart_id, "payment_method": "cod"}, headers=as_user)

        assert response.status_code == 201
        order_id = response.json()["order_id"]
        assert current_domain.repository_for(Order).get(order_id).totals.grand_total == 225.0
        assert client.get(f"/carts/{cart_id}", headers=as_user).json()["items"] == []

    def test_double_submit_conflicts(self, client, as_user, stocked, address):
        cart_id = _cart_with_product(client, as_user, stocked)
        _summarize(client, as_user, cart_id, address)
        client.post("/orders", json={"cart_id": cart_id, "payment_method": "cod"}, headers=as_user)

        response = client.post("/orders", json={"cart_id": cart_id, "payment_method": "cod"}, headers=as_user)

        assert response.status_code == 409

    def test_stale_summary_conflicts(self, client, as_user, stocked, address):
        cart_id = _cart_with_product(client, as_user, stocked)
        _summarize(client, as_user, cart_id, address)
        client.post(f"/carts/{cart_id}/items", json={"product_id": str(stocked.id), "quantity": 1}, headers=as_user)

        response = client.post("/orders", json={"cart_id": cart_id, "payment_method": "cod"}, headers=as_user)

        assert response.status_code == 409

    def test_summary_for_missing_cart(self, client, as_user, address):
        response = client.post(
            "/orders/summary", json={"cart_id": "missing", "shipping_address": address}, headers=as_user
        )
        assert response.status_code == 404

    def test_empty_cart_summary(self, client, as_user, address):
        cart_id = client.post("/carts", headers=as_user).json()["cart_id"]
        response = client.post("/orders/summary", json={"cart_id": cart_id, "shipping_address": address}, headers=as_user)
        assert response.status_code == 400
