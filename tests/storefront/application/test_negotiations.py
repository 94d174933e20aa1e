"""Application tests for bulk price negotiation."""

import json

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from storefront.accounts.account import AccountType
from storefront.cart.cart import Cart
from storefront.errors import ForbiddenError
from storefront.negotiation.handlers import (
    ApplyNegotiationToCart,
    RespondToCounterOffer,
    RespondToNegotiation,
    SubmitNegotiation,
)
from storefront.negotiation.negotiation import BulkNegotiation


@pytest.fixture()
def business(make_account):
    return make_account(name="Acme Traders", email="buying@acme.example", account_type=AccountType.BUSINESS.value)


@pytest.fixture()
def negotiable_cart(business, make_product, make_cart):
    product = make_product(title="Crate", price=100.0)
    cart_id = make_cart(str(business.id), [(product, 10)])
    return {"cart_id": cart_id, "product": product, "user_id": str(business.id)}


def _process(command):
    return current_domain.process(command, asynchronous=False)


def _submit(negotiable_cart, proposed_price=80.0):
    return _process(
        SubmitNegotiation(
            business_user_id=negotiable_cart["user_id"],
            cart_id=negotiable_cart["cart_id"],
            products=json.dumps(
                [{"product_id": str(negotiable_cart["product"].id), "quantity": 10, "proposed_price": proposed_price}]
            ),
        )
    )


def _cart(negotiable_cart):
    return current_domain.repository_for(Cart).get(negotiable_cart["cart_id"])


class TestSubmitNegotiation:
    def test_business_account_submits(self, negotiable_cart):
        negotiation_id = _submit(negotiable_cart)

        negotiation = current_domain.repository_for(BulkNegotiation).get(negotiation_id)
        assert negotiation.status == "pending"
        assert negotiation.total_proposed_amount == 800.0
        assert negotiation.products[0].current_price == 100.0
        assert negotiation.products[0].product_name == "Crate"

    def test_regular_account_is_forbidden(self, customer, make_product, make_cart):
        product = make_product()
        cart_id = make_cart(str(customer.id), [(product, 1)])
        with pytest.raises(ForbiddenError):
            _process(
                SubmitNegotiation(
                    business_user_id=str(customer.id),
                    cart_id=cart_id,
                    products=json.dumps([{"product_id": str(product.id), "quantity": 1, "proposed_price": 50.0}]),
                )
            )

    def test_proposed_price_defaults_to_current_price(self, negotiable_cart):
        negotiation_id = _process(
            SubmitNegotiation(
                business_user_id=negotiable_cart["user_id"],
                cart_id=negotiable_cart["cart_id"],
                products=json.dumps([{"product_id": str(negotiable_cart["product"].id), "quantity": 10}]),
            )
        )
        negotiation = current_domain.repository_for(BulkNegotiation).get(negotiation_id)
        assert negotiation.products[0].proposed_price == 100.0

    @pytest.mark.parametrize("proposed_price", [0, 0.0, -5.0])
    def test_zero_or_negative_proposal_is_rejected(self, negotiable_cart, proposed_price):
        with pytest.raises(ValidationError):
            _submit(negotiable_cart, proposed_price=proposed_price)
        assert current_domain.repository_for(BulkNegotiation)._dao.query.all().total == 0


class TestAdminDecision:
    def test_approval_reprices_the_cart(self, negotiable_cart):
        negotiation_id = _submit(negotiable_cart)

        result = _process(RespondToNegotiation(negotiation_id=negotiation_id, status="approved", admin_id="admin-1"))

        assert result["status"] == "approved"
        cart = _cart(negotiable_cart)
        assert cart.items[0].negotiated_price == 80.0
        assert cart.items[0].negotiation_id == negotiation_id
        assert cart.cart_total == 800.0

    def test_rejection_leaves_the_cart_alone(self, negotiable_cart):
        negotiation_id = _submit(negotiable_cart)
        _process(RespondToNegotiation(negotiation_id=negotiation_id, status="rejected"))
        assert _cart(negotiable_cart).items[0].negotiated_price is None

    def test_negotiated_price_flows_into_the_summary(self, negotiable_cart, summarize):
        negotiation_id = _submit(negotiable_cart)
        _process(RespondToNegotiation(negotiation_id=negotiation_id, status="approved"))

        summary = summarize(negotiable_cart["cart_id"], negotiable_cart["user_id"])

        assert summary["subtotal"] == 800.0


class TestCounterOffer:
    def test_accepted_counter_offer_reprices_the_cart(self, negotiable_cart):
        negotiation_id = _submit(negotiable_cart)
        _process(RespondToNegotiation(negotiation_id=negotiation_id, status="counter_offer", counter_offer_amount=900.0))

        result = _process(
            RespondToCounterOffer(
                negotiation_id=negotiation_id, business_user_id=negotiable_cart["user_id"], response="accepted"
            )
        )

        assert result["status"] == "accepted"
        assert _cart(negotiable_cart).items[0].negotiated_price == 90.0

    def test_only_the_proposer_answers(self, negotiable_cart):
        negotiation_id = _submit(negotiable_cart)
        _process(RespondToNegotiation(negotiation_id=negotiation_id, status="counter_offer", counter_offer_amount=900.0))
        with pytest.raises(ForbiddenError):
            _process(RespondToCounterOffer(negotiation_id=negotiation_id, business_user_id="intruder", response="accepted"))

    def test_invalid_response(self, negotiable_cart):
        negotiation_id = _submit(negotiable_cart)
        _process(RespondToNegotiation(negotiation_id=negotiation_id, status="counter_offer", counter_offer_amount=900.0))
        with pytest.raises(ValidationError):
            _process(
                RespondToCounterOffer(
                    negotiation_id=negotiation_id, business_user_id=negotiable_cart["user_id"], response="maybe"
                )
            )


class TestApplyToCart:
    def test_reapply_after_cart_change(self, negotiable_cart):
        negotiation_id = _submit(negotiable_cart)
        _process(RespondToNegotiation(negotiation_id=negotiation_id, status="approved"))

        result = _process(ApplyNegotiationToCart(negotiation_id=negotiation_id, user_id=negotiable_cart["user_id"]))

        assert result == {"cart_id": negotiable_cart["cart_id"], "cart_total": 800.0}

    def test_pending_negotiation_cannot_be_applied(self, negotiable_cart):
        negotiation_id = _submit(negotiable_cart)
        with pytest.raises(ValidationError):
            _process(ApplyNegotiationToCart(negotiation_id=negotiation_id, user_id=negotiable_cart["user_id"]))
