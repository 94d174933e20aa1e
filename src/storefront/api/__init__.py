"""Storefront API package."""

from storefront.api.routes import (
    cart_router,
    negotiation_router,
    notification_router,
    order_router,
    refund_router,
)

__all__ = ["cart_router", "order_router", "refund_router", "negotiation_router", "notification_router"]
