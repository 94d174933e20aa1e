"""Negotiation commands: submit (business user), respond (admin), answer counter offer, apply to cart."""

import json

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.accounts.account import Account
from storefront.cart.cart import Cart
from storefront.cart.coupons import revalidate_coupon
from storefront.catalogue.reader import CatalogueReader
from storefront.domain import storefront
from storefront.errors import ForbiddenError
from storefront.negotiation.negotiation import BulkNegotiation, NegotiationStatus, apply_negotiated_pricing

logger = structlog.get_logger(__name__)


@storefront.command(part_of="BulkNegotiation")
class SubmitNegotiation:
    business_user_id = Identifier(required=True)
    cart_id = Identifier(required=True)
    products = Text(required=True)  # JSON: [{"product_id", "variant_id"?, "quantity", "proposed_price"?}]


@storefront.command(part_of="BulkNegotiation")
class RespondToNegotiation:
    negotiation_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    counter_offer_amount = Float()
    notes = Text()
    admin_id = Identifier()


@storefront.command(part_of="BulkNegotiation")
class RespondToCounterOffer:
    negotiation_id = Identifier(required=True)
    business_user_id = Identifier(required=True)
    response = String(required=True, max_length=20)


@storefront.command(part_of="BulkNegotiation")
class ApplyNegotiationToCart:
    negotiation_id = Identifier(required=True)
    user_id = Identifier(required=True)


def _parse_status(value, field="status") -> NegotiationStatus:
    try:
        return NegotiationStatus((value or "").strip().lower())
    except ValueError:
        raise ValidationError({field: [f"Invalid {field} '{value}'"]}) from None


def _apply_to_cart(negotiation: BulkNegotiation) -> Cart:
    repo = current_domain.repository_for(Cart)
    cart = repo.get(negotiation.cart_id)
    cart.apply_line_prices(apply_negotiated_pricing(cart, negotiation), negotiation_id=str(negotiation.id))
    revalidate_coupon(cart)
    repo.add(cart)
    logger.info("negotiated_prices_applied", negotiation_id=str(negotiation.id), cart_id=str(cart.id))
    return cart


@storefront.repository(part_of=BulkNegotiation)
class BulkNegotiationRepository:
    def for_user(self, user_id) -> list[BulkNegotiation]:
        return self._dao.query.filter(business_user_id=str(user_id)).order_by("-created_at").all().items

    def page(self, page: int = 1, limit: int = 20, **filters):
        page = max(page, 1)
        criteria = {key: str(value) for key, value in filters.items() if value}
        query = self._dao.query.filter(**criteria) if criteria else self._dao.query
        return query.order_by("-created_at").offset((page - 1) * limit).limit(limit).all()


@storefront.command_handler(part_of=BulkNegotiation)
class NegotiationHandler:
    @handle(SubmitNegotiation)
    def submit(self, command):
        try:
            account = current_domain.repository_for(Account).get(command.business_user_id)
        except ObjectNotFoundError:
            raise ForbiddenError({"account": ["Only business accounts can negotiate prices"]}) from None
        if not account.is_business:
            raise ForbiddenError({"account": ["Only business accounts can negotiate prices"]})

        cart = current_domain.repository_for(Cart).get(command.cart_id)
        cart.assert_accessible(command.business_user_id)

        reader = CatalogueReader()
        products = []
        for entry in json.loads(command.products):
            product = reader.product(entry["product_id"])
            if product is None:
                raise ValidationError({"products": [f"Product {entry['product_id']} not found"]})
            variant = product.variant(entry.get("variant_id"))
            current_price = reader.list_price(entry["product_id"], entry.get("variant_id"))
            proposed_price = entry.get("proposed_price")
            products.append(
                {
                    "product_id": entry["product_id"],
                    "variant_id": entry.get("variant_id"),
                    "product_name": product.title,
                    "variant_name": ", ".join(variant.attribute_labels()) if variant is not None else None,
                    "quantity": int(entry.get("quantity", 1)),
                    "current_price": current_price,
                    "proposed_price": current_price if proposed_price is None else float(proposed_price),
                }
            )

        negotiation = BulkNegotiation.submit(command.business_user_id, command.cart_id, products)
        current_domain.repository_for(BulkNegotiation).add(negotiation)
        return str(negotiation.id)

    @handle(RespondToNegotiation)
    def respond(self, command):
        repo = current_domain.repository_for(BulkNegotiation)
        negotiation = repo.get(command.negotiation_id)
        negotiation.respond(
            _parse_status(command.status),
            admin_id=command.admin_id,
            counter_offer_amount=command.counter_offer_amount,
            notes=command.notes,
        )
        repo.add(negotiation)
        if negotiation.is_priced:
            _apply_to_cart(negotiation)
        return {"negotiation_id": str(negotiation.id), "status": negotiation.status}

    @handle(RespondToCounterOffer)
    def answer_counter_offer(self, command):
        repo = current_domain.repository_for(BulkNegotiation)
        negotiation = repo.get(command.negotiation_id)
        if str(negotiation.business_user_id) != str(command.business_user_id):
            raise ForbiddenError({"negotiation": ["Negotiation belongs to another account"]})
        negotiation.answer_counter_offer(_parse_status(command.response, "response"))
        repo.add(negotiation)
        if negotiation.is_priced:
            _apply_to_cart(negotiation)
        return {"negotiation_id": str(negotiation.id), "status": negotiation.status}

    @handle(ApplyNegotiationToCart)
    def apply(self, command):
        negotiation = current_domain.repository_for(BulkNegotiation).get(command.negotiation_id)
        if str(negotiation.business_user_id) != str(command.user_id):
            raise ForbiddenError({"negotiation": ["Negotiation belongs to another account"]})
        cart = _apply_to_cart(negotiation)
        return {"cart_id": str(cart.id), "cart_total": cart.cart_total}
