"""Order History: append-only audit trail of status changes and lifecycle events."""

from datetime import UTC, datetime

from protean.fields import DateTime, Identifier, String

from storefront.domain import storefront


@storefront.aggregate
class OrderHistory:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=50)
    comment = String(max_length=500)
    updated_by = Identifier()
    created_at = DateTime()


@storefront.repository(part_of=OrderHistory)
class OrderHistoryRepository:
    def append(self, order_id, status, comment=None, updated_by=None) -> OrderHistory:
        entry = OrderHistory(
            order_id=str(order_id),
            status=status,
            comment=comment,
            updated_by=str(updated_by) if updated_by else None,
            created_at=datetime.now(UTC),
        )
        self.add(entry)
        return entry

    def for_order(self, order_id) -> list[OrderHistory]:
        return self._dao.query.filter(order_id=str(order_id)).order_by("created_at").all().items
