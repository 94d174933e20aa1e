"""Cart item management: commands and handler.

Prices are taken from the catalogue when a line is added; the cart keeps
them only as a fallback, summaries re-resolve them on every run.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.cart.coupons import revalidate_coupon
from storefront.catalogue.product import ProductStatus
from storefront.catalogue.reader import CatalogueReader
from storefront.domain import storefront


@storefront.command(part_of="Cart")
class AddToCart:
    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    user_id = Identifier()
    session_id = String(max_length=255)


@storefront.command(part_of="Cart")
class UpdateCartQuantity:
    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    user_id = Identifier()
    session_id = String(max_length=255)


@storefront.command(part_of="Cart")
class RemoveFromCart:
    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    user_id = Identifier()
    session_id = String(max_length=255)


@storefront.command_handler(part_of=Cart)
class CartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.assert_accessible(command.user_id, command.session_id)

        reader = CatalogueReader()
        product = reader.product(command.product_id)
        if product is None or product.status != ProductStatus.ACTIVE.value:
            raise ValidationError({"product_id": ["Product is not available"]})
        variant = product.variant(command.variant_id)
        if command.variant_id and variant is None:
            raise ValidationError({"variant_id": ["Variant not found"]})

        list_price = variant.price if variant is not None and variant.price else product.price
        item = cart.add_item(
            product_id=command.product_id,
            variant_id=command.variant_id,
            quantity=command.quantity,
            price=list_price,
            final_price=reader.list_price(command.product_id, command.variant_id),
            shipping_charge=product.shipping_cost,
        )
        revalidate_coupon(cart)
        repo.add(cart)
        return str(item.id)

    @handle(UpdateCartQuantity)
    def update_quantity(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.assert_accessible(command.user_id, command.session_id)
        cart.update_item_quantity(command.item_id, command.quantity)
        revalidate_coupon(cart)
        repo.add(cart)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.assert_accessible(command.user_id, command.session_id)
        cart.remove_item(command.item_id)
        revalidate_coupon(cart)
        repo.add(cart)
