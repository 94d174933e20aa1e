"""Order read model for display.

Joins the frozen order with live catalogue data (name, brand, image, variant
attributes), the customer snapshot and the history timeline. Money always
comes from the order itself; the catalogue only decorates.
"""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.accounts.account import Account
from storefront.catalogue.reader import CatalogueReader
from storefront.errors import ForbiddenError
from storefront.order.history import OrderHistory
from storefront.order.order import Order, OrderStatus
from storefront.projections.order_listing import OrderListing

_TIMELINE = [
    OrderStatus.PLACED,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
]


def _user_snapshot(user_id) -> dict | None:
    if not user_id:
        return None
    try:
        account = current_domain.repository_for(Account).get(str(user_id))
    except ObjectNotFoundError:
        return {"id": str(user_id)}
    return {"id": str(account.id), "name": account.name, "email": account.email, "phone": account.phone}


def status_timeline(order: Order, history: list[OrderHistory]) -> list[dict]:
    """One entry per forward status with the time it was reached, if it was."""
    reached = {}
    for entry in history:
        reached.setdefault(entry.status, entry.created_at)

    if order.status == OrderStatus.CANCELLED.value:
        steps = [s for s in _TIMELINE if s.value in reached] + [OrderStatus.CANCELLED]
    else:
        steps = _TIMELINE
    return [
        {
            "status": step.value,
            "completed": step.value in reached,
            "at": reached[step.value].isoformat() if reached.get(step.value) else None,
        }
        for step in steps
    ]


def build_order_view(order: Order, reader: CatalogueReader | None = None) -> dict:
    reader = reader or CatalogueReader()
    history = current_domain.repository_for(OrderHistory).for_order(order.id)

    items = []
    for item in order.items:
        display = reader.display(item.product_id, item.variant_id)
        items.append(
            {
                **item.to_dict(),
                "name": item.name or display.get("name"),
                "brand": display.get("brand"),
                "brand_logo": display.get("brand_logo"),
                "image": display.get("image"),
                "sku": display.get("sku"),
                "variant_attributes": display.get("variant_attributes", []),
            }
        )

    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "status": order.status,
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "user": _user_snapshot(order.user_id),
        "items": items,
        "totals": order.totals.to_dict(),
        "shipping_address": order.shipping_address.to_dict() if order.shipping_address else None,
        "billing_address": order.billing_address.to_dict() if order.billing_address else None,
        "coupon_code": order.coupon_code,
        "notes": order.notes,
        "carrier": order.carrier,
        "tracking_number": order.tracking_number,
        "history": [
            {
                "status": entry.status,
                "comment": entry.comment,
                "updated_by": str(entry.updated_by) if entry.updated_by else None,
                "created_at": entry.created_at.isoformat() if entry.created_at else None,
            }
            for entry in history
        ],
        "timeline": status_timeline(order, history),
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "updated_at": order.updated_at.isoformat() if order.updated_at else None,
    }


def get_order_view(order_id, user_id=None, is_admin=False) -> dict:
    order = current_domain.repository_for(Order).get(order_id)
    if not is_admin and not order.is_owned_by(user_id):
        raise ForbiddenError({"order_id": ["Order belongs to another user"]})
    return build_order_view(order)


def list_order_views(page: int = 1, limit: int = 20, user_id=None, status=None) -> dict:
    page = max(page, 1)
    criteria = {key: str(value) for key, value in {"user_id": user_id, "status": status}.items() if value}
    query = current_domain.repository_for(OrderListing)._dao.query
    if criteria:
        query = query.filter(**criteria)
    results = query.order_by("-placed_at").offset((page - 1) * limit).limit(limit).all()

    order_repo = current_domain.repository_for(Order)
    reader = CatalogueReader()
    return {
        "orders": [build_order_view(order_repo.get(row.order_id), reader) for row in results.items],
        "page": page,
        "limit": limit,
        "total": results.total,
    }
