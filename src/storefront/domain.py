"""Storefront bounded context: cart, pricing, checkout and the order lifecycle.

A single domain hosts the checkout pipeline and the read-only collaborators
it consumes: catalogue, saved addresses, shipping rules/zones and discount
rules. Carts, summaries and orders are standard CQRS aggregates persisted
through Protean repositories; every write runs inside a Unit of Work.
"""

import structlog
from protean.domain import Domain

storefront = Domain(name="storefront")

logger = structlog.get_logger(__name__)
