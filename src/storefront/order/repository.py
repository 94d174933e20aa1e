"""Order lookups used by checkout and order numbering."""

from storefront.domain import storefront
from storefront.order.order import Order


@storefront.repository(part_of=Order)
class OrderRepository:
    def by_number(self, order_number) -> Order | None:
        return self._dao.query.filter(order_number=order_number).all().first

    def by_checkout_key(self, checkout_key) -> Order | None:
        return self._dao.query.filter(checkout_key=checkout_key).all().first
