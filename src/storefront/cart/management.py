"""Cart lifecycle: create, clear and merge guest carts."""

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.cart.coupons import revalidate_coupon
from storefront.domain import storefront


@storefront.command(part_of="Cart")
class CreateCart:
    user_id = Identifier()
    session_id = String(max_length=255)


@storefront.command(part_of="Cart")
class ClearCart:
    cart_id = Identifier(required=True)
    user_id = Identifier()
    session_id = String(max_length=255)


@storefront.command(part_of="Cart")
class MergeGuestCart:
    """Move a guest session's cart into the signed-in user's cart."""

    user_id = Identifier(required=True)
    session_id = String(required=True, max_length=255)


@storefront.repository(part_of=Cart)
class CartRepository:
    def for_user(self, user_id) -> Cart | None:
        return self._dao.query.filter(user_id=str(user_id)).all().first

    def for_session(self, session_id) -> Cart | None:
        results = self._dao.query.filter(session_id=session_id).all().items
        return next((c for c in results if not c.user_id), None)


@storefront.command_handler(part_of=Cart)
class CartManagementHandler:
    @handle(CreateCart)
    def create_cart(self, command):
        """Return the caller's existing cart, or open a new one."""
        repo = current_domain.repository_for(Cart)
        existing = repo.for_user(command.user_id) if command.user_id else repo.for_session(command.session_id)
        if existing is not None:
            return str(existing.id)

        cart = Cart.create(user_id=command.user_id, session_id=command.session_id)
        repo.add(cart)
        return str(cart.id)

    @handle(ClearCart)
    def clear_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.assert_accessible(command.user_id, command.session_id)
        cart.clear()
        repo.add(cart)

    @handle(MergeGuestCart)
    def merge_guest_cart(self, command):
        repo = current_domain.repository_for(Cart)
        guest_cart = repo.for_session(command.session_id)
        if guest_cart is None:
            raise ObjectNotFoundError({"session_id": [f"No guest cart for session {command.session_id}"]})
        if not guest_cart.items:
            raise ValidationError({"session_id": ["Guest cart is empty"]})

        cart = repo.for_user(command.user_id)
        if cart is None:
            cart = Cart.create(user_id=command.user_id)
        cart.merge(guest_cart)
        revalidate_coupon(cart)
        guest_cart.clear()

        repo.add(cart)
        repo.add(guest_cart)
        return str(cart.id)
