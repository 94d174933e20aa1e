"""Order listing: newest-first index of orders by user and status."""

from protean.core.projector import on
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.order.events import OrderPlaced, OrderStatusChanged
from storefront.order.order import Order


@storefront.projection
class OrderListing:
    order_id = Identifier(identifier=True, required=True)
    order_number = String(required=True)
    user_id = Identifier()
    status = String(required=True)
    payment_method = String()
    payment_status = String()
    item_count = Integer(default=0)
    grand_total = Float()
    placed_at = DateTime()
    updated_at = DateTime()


@storefront.projector(projector_for=OrderListing, aggregates=[Order])
class OrderListingProjector:
    @on(OrderPlaced)
    def on_order_placed(self, event):
        current_domain.repository_for(OrderListing).add(
            OrderListing(
                order_id=event.order_id,
                order_number=event.order_number,
                user_id=event.user_id,
                status=event.status,
                payment_method=event.payment_method,
                payment_status=event.payment_status,
                item_count=event.item_count,
                grand_total=event.grand_total,
                placed_at=event.placed_at,
                updated_at=event.placed_at,
            )
        )

    @on(OrderStatusChanged)
    def on_status_changed(self, event):
        repo = current_domain.repository_for(OrderListing)
        listing = repo.get(event.order_id)
        listing.status = event.status
        listing.updated_at = event.changed_at
        repo.add(listing)
