"""Post-delivery return and replacement requests, and the refund ledger.

Return:       requested → approved | rejected,  approved → refunded
Replacement:  requested → approved | rejected,  approved → shipped → completed

A Refund is created exactly once, when its return becomes ``refunded``;
``return_id`` is unique in the ledger.
"""

import json
import secrets
import time
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String, Text

from storefront.domain import storefront
from storefront.shared.money import sum_money


class ReturnStatus(Enum):
    REQUESTED = "requested"
    APPROVED = "approved"
    REJECTED = "rejected"
    REFUNDED = "refunded"


class ReplacementStatus(Enum):
    REQUESTED = "requested"
    APPROVED = "approved"
    REJECTED = "rejected"
    SHIPPED = "shipped"
    COMPLETED = "completed"


class Resolution(Enum):
    REFUND = "refund"
    REPLACEMENT = "replacement"


class RefundMode(Enum):
    WALLET = "wallet"
    BANK = "bank"


class RefundStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


RETURN_TRANSITIONS = {
    ReturnStatus.REQUESTED: {ReturnStatus.APPROVED, ReturnStatus.REJECTED},
    ReturnStatus.APPROVED: {ReturnStatus.REFUNDED},
    ReturnStatus.REJECTED: set(),
    ReturnStatus.REFUNDED: set(),
}

REPLACEMENT_TRANSITIONS = {
    ReplacementStatus.REQUESTED: {ReplacementStatus.APPROVED, ReplacementStatus.REJECTED},
    ReplacementStatus.APPROVED: {ReplacementStatus.SHIPPED},
    ReplacementStatus.SHIPPED: {ReplacementStatus.COMPLETED},
    ReplacementStatus.REJECTED: set(),
    ReplacementStatus.COMPLETED: set(),
}


def line_key(product_id, variant_id=None) -> tuple[str, str]:
    return str(product_id), str(variant_id or "")


def parse_choice(enum_cls, value, field="status"):
    try:
        return enum_cls((value or "").strip().lower())
    except ValueError:
        raise ValidationError(
            {field: [f"Invalid {field} '{value}'. Expected one of: {', '.join(s.value for s in enum_cls)}"]}
        ) from None


def _advance(request, transitions, status_enum, target, note=None):
    current = status_enum(request.status)
    if target not in transitions.get(current, set()):
        raise ValidationError({"status": [f"Cannot move request from {current.value} to {target.value}"]})
    now = datetime.now(UTC)
    request.status = target.value
    if note:
        request.admin_note = note
    request.processed_at = now
    request.updated_at = now


@storefront.aggregate
class OrderReturn:
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    items = Text(required=True)  # JSON: [{"product_id", "variant_id", "quantity", "reason"}]
    reason = String(required=True, max_length=500)
    resolution = String(choices=Resolution, default=Resolution.REFUND.value)
    status = String(choices=ReturnStatus, default=ReturnStatus.REQUESTED.value)
    refund_amount = Float()
    admin_note = String(max_length=500)
    processed_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @property
    def item_list(self) -> list[dict]:
        return json.loads(self.items) if self.items else []

    def transition_to(self, target: ReturnStatus, note=None):
        _advance(self, RETURN_TRANSITIONS, ReturnStatus, target, note)

    def mark_refunded(self, amount, note=None):
        self.transition_to(ReturnStatus.REFUNDED, note)
        self.refund_amount = amount


@storefront.repository(part_of=OrderReturn)
class OrderReturnRepository:
    def for_order(self, order_id) -> list[OrderReturn]:
        return self._dao.query.filter(order_id=str(order_id)).all().items

    def units_claimed(self, order_id) -> dict[tuple[str, str], int]:
        """Units per order line already covered by returns that were not rejected."""
        claimed = {}
        for order_return in self.for_order(order_id):
            if order_return.status == ReturnStatus.REJECTED.value:
                continue
            for item in order_return.item_list:
                key = line_key(item["product_id"], item.get("variant_id"))
                claimed[key] = claimed.get(key, 0) + int(item["quantity"])
        return claimed


@storefront.aggregate
class OrderReplacement:
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    items = Text(required=True)  # JSON: [{"product_id", "variant_id", "quantity"}]
    reason = String(required=True, max_length=500)
    status = String(choices=ReplacementStatus, default=ReplacementStatus.REQUESTED.value)
    admin_note = String(max_length=500)
    processed_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @property
    def item_list(self) -> list[dict]:
        return json.loads(self.items) if self.items else []

    def transition_to(self, target: ReplacementStatus, note=None):
        _advance(self, REPLACEMENT_TRANSITIONS, ReplacementStatus, target, note)


def transaction_reference() -> str:
    return f"RMA{int(time.time() * 1000)}{secrets.randbelow(1000):03d}"


@storefront.aggregate
class Refund:
    """Ledger entry for money returned to a customer. Never updated after issue."""

    return_id = Identifier(required=True, unique=True)
    order_id = Identifier(required=True)
    user_id = Identifier()
    mode = String(choices=RefundMode, default=RefundMode.WALLET.value)
    amount = Float(required=True, min_value=0.0)
    transaction_id = String(max_length=50)
    status = String(choices=RefundStatus, default=RefundStatus.COMPLETED.value)
    created_at = DateTime()

    @classmethod
    def issue(cls, order_return: OrderReturn, amount, mode):
        return cls(
            return_id=str(order_return.id),
            order_id=str(order_return.order_id),
            user_id=str(order_return.user_id),
            mode=mode,
            amount=amount,
            transaction_id=transaction_reference(),
            status=RefundStatus.COMPLETED.value,
            created_at=datetime.now(UTC),
        )


@storefront.repository(part_of=Refund)
class RefundRepository:
    def for_return(self, return_id) -> Refund | None:
        return self._dao.query.filter(return_id=str(return_id)).all().first

    def page(self, page: int = 1, limit: int = 20, **filters):
        page = max(page, 1)
        criteria = {key: str(value) for key, value in filters.items() if value}
        query = self._dao.query.filter(**criteria) if criteria else self._dao.query
        return query.order_by("-created_at").offset((page - 1) * limit).limit(limit).all()

    def refunded_total(self, order_id) -> float:
        return sum_money(refund.amount for refund in self._dao.query.filter(order_id=str(order_id)).all().items)
