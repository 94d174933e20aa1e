"""Domain events for the Order aggregate, consumed by the order listing projection."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    """A cart was checked out into a new order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    user_id = Identifier()
    item_count = Integer(required=True)
    grand_total = Float(required=True)
    payment_method = String()
    payment_status = String()
    status = String(required=True)
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    status = String(required=True)
    changed_by = Identifier()
    changed_at = DateTime(required=True)
