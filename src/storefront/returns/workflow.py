"""Return/replacement requests (customer) and their processing (admin).

Requests are only accepted on delivered orders owned by the caller. The order
keeps its ``delivered`` status; request events are written to Order History
as ``return_requested``, ``replacement_requested``, ``return_approved`` and so on.
"""

import json
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import ConflictError, ForbiddenError
from storefront.notifications.dispatch import notify
from storefront.order.history import OrderHistory
from storefront.order.order import Order, OrderStatus
from storefront.returns.requests import (
    OrderReplacement,
    OrderReturn,
    Refund,
    RefundMode,
    ReplacementStatus,
    Resolution,
    ReturnStatus,
    line_key,
    parse_choice,
)
from storefront.shared.locks import keyed_lock
from storefront.shared.money import round_money, sum_money

logger = structlog.get_logger(__name__)


@storefront.command(part_of="OrderReturn")
class RequestReturn:
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    items = Text()  # JSON: [{"product_id", "variant_id", "quantity", "reason"}]; all unclaimed units when omitted
    resolution = String(max_length=20, default=Resolution.REFUND.value)


@storefront.command(part_of="OrderReplacement")
class RequestReplacement:
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    items = Text()


@storefront.command(part_of="OrderReturn")
class ProcessReturn:
    return_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    comment = String(max_length=500)
    mode = String(max_length=20)
    amount = Float()
    admin_id = Identifier()


@storefront.command(part_of="OrderReplacement")
class ProcessReplacement:
    replacement_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    comment = String(max_length=500)
    admin_id = Identifier()


def _returnable_order(order_id, user_id) -> Order:
    order = current_domain.repository_for(Order).get(order_id)
    if not order.is_owned_by(user_id):
        raise ForbiddenError({"order_id": ["Order belongs to another user"]})
    if order.status != OrderStatus.DELIVERED.value:
        raise ValidationError({"order_id": [f"Only delivered orders can be returned or replaced (order is {order.status})"]})
    return order


def _requested_items(order: Order, raw_items, with_reason: bool, claimed=None) -> list[dict]:
    """Validate requested lines against the order.

    ``claimed`` maps order lines to units already covered by earlier requests;
    only the remainder of each line can be requested. Without explicit items,
    every remaining unit is requested.
    """
    taken = dict(claimed or {})
    requested = json.loads(raw_items) if raw_items else []
    if not requested:
        for item in order.items:
            remaining = item.quantity - taken.get(line_key(item.product_id, item.variant_id), 0)
            if remaining > 0:
                requested.append(
                    {"product_id": str(item.product_id), "variant_id": item.variant_id, "quantity": remaining}
                )
        if not requested:
            raise ValidationError({"items": ["Every item of this order is already being returned"]})

    items = []
    for entry in requested:
        quantity = int(entry.get("quantity", 1))
        if quantity < 1:
            raise ValidationError({"items": ["Quantity must be at least 1"]})
        line = order.find_item(entry["product_id"], entry.get("variant_id"))
        key = line_key(line.product_id, line.variant_id)
        available = line.quantity - taken.get(key, 0)
        if quantity > available:
            raise ValidationError(
                {"items": [f"Only {max(available, 0)} unit(s) of {line.product_id} can still be returned"]}
            )
        taken[key] = taken.get(key, 0) + quantity

        variant_id = str(line.variant_id) if line.variant_id else None
        item = {"product_id": str(line.product_id), "variant_id": variant_id, "quantity": quantity}
        if with_reason:
            item["reason"] = entry.get("reason")
        items.append(item)
    return items


def _record(order: Order, event: str, comment, updated_by, context=None):
    current_domain.repository_for(OrderHistory).append(order.id, event, comment, updated_by=updated_by)
    notify(
        event,
        user_id=order.user_id,
        order_id=order.id,
        context={"order_number": order.order_number, **(context or {})},
    )


@storefront.command_handler(part_of=OrderReturn)
class ReturnHandler:
    @handle(RequestReturn)
    def request_return(self, command):
        order = _returnable_order(command.order_id, command.user_id)
        resolution = parse_choice(Resolution, command.resolution or Resolution.REFUND.value, "resolution")
        now = datetime.now(UTC)
        order_return = OrderReturn(
            order_id=str(order.id),
            user_id=str(command.user_id),
            items=json.dumps(
                _requested_items(
                    order,
                    command.items,
                    with_reason=True,
                    claimed=current_domain.repository_for(OrderReturn).units_claimed(order.id),
                )
            ),
            reason=command.reason,
            resolution=resolution.value,
            status=ReturnStatus.REQUESTED.value,
            created_at=now,
            updated_at=now,
        )
        current_domain.repository_for(OrderReturn).add(order_return)
        _record(
            order,
            "return_requested",
            command.reason,
            command.user_id,
            {"request_type": "return", "status": ReturnStatus.REQUESTED.value},
        )
        return str(order_return.id)

    @handle(ProcessReturn)
    def process_return(self, command):
        target = parse_choice(ReturnStatus, command.status)

        return_repo = current_domain.repository_for(OrderReturn)
        order_return = return_repo.get(command.return_id)
        order = current_domain.repository_for(Order).get(order_return.order_id)

        context = {"request_type": "return", "status": target.value, "comment": command.comment}
        if target == ReturnStatus.REFUNDED:
            context.update(self._refund(order_return, order, command))
        else:
            order_return.transition_to(target, command.comment)
        return_repo.add(order_return)

        _record(order, f"return_{target.value}", command.comment, command.admin_id, context)
        return {"return_id": str(order_return.id), "status": order_return.status}

    def _refund(self, order_return, order, command) -> dict:
        refund_repo = current_domain.repository_for(Refund)
        if refund_repo.for_return(order_return.id) is not None:
            raise ConflictError({"return_id": ["This return has already been refunded"]})

        mode = parse_choice(RefundMode, command.mode or RefundMode.WALLET.value, "mode")
        if command.amount is None:
            amount = sum_money(
                order.item_value(i["product_id"], i["quantity"], i.get("variant_id")) for i in order_return.item_list
            )
        else:
            amount = round_money(command.amount)
        if amount <= 0:
            raise ValidationError({"amount": ["Refund amount must be positive"]})
        remaining = round_money(order.grand_total - refund_repo.refunded_total(order.id))
        if amount > remaining:
            raise ValidationError(
                {"amount": [f"Refund amount cannot exceed {remaining}, what is left of the order total of {order.grand_total}"]}
            )

        order_return.mark_refunded(amount, command.comment)
        refund = Refund.issue(order_return, amount, mode.value)
        refund_repo.add(refund)

        logger.info(
            "refund_issued",
            return_id=str(order_return.id),
            order_id=str(order.id),
            amount=amount,
            mode=mode.value,
            transaction_id=refund.transaction_id,
        )
        return {"amount": amount, "mode": mode.value, "transaction_id": refund.transaction_id}


@storefront.command_handler(part_of=OrderReplacement)
class ReplacementHandler:
    @handle(RequestReplacement)
    def request_replacement(self, command):
        order = _returnable_order(command.order_id, command.user_id)
        now = datetime.now(UTC)
        replacement = OrderReplacement(
            order_id=str(order.id),
            user_id=str(command.user_id),
            items=json.dumps(_requested_items(order, command.items, with_reason=False)),
            reason=command.reason,
            status=ReplacementStatus.REQUESTED.value,
            created_at=now,
            updated_at=now,
        )
        current_domain.repository_for(OrderReplacement).add(replacement)
        _record(
            order,
            "replacement_requested",
            command.reason,
            command.user_id,
            {"request_type": "replacement", "status": ReplacementStatus.REQUESTED.value},
        )
        return str(replacement.id)

    @handle(ProcessReplacement)
    def process_replacement(self, command):
        target = parse_choice(ReplacementStatus, command.status)
        repo = current_domain.repository_for(OrderReplacement)
        replacement = repo.get(command.replacement_id)
        replacement.transition_to(target, command.comment)
        repo.add(replacement)

        order = current_domain.repository_for(Order).get(replacement.order_id)
        _record(
            order,
            f"replacement_{target.value}",
            command.comment,
            command.admin_id,
            {"request_type": "replacement", "status": target.value, "comment": command.comment},
        )
        return {"replacement_id": str(replacement.id), "status": replacement.status}


def submit_return(command: RequestReturn) -> str:
    """Accept one return per order at a time so units are never claimed twice."""
    with keyed_lock(f"returns:{command.order_id}"):
        return current_domain.process(command, asynchronous=False)


def process_return(command: ProcessReturn) -> dict:
    """Process returns of one order serially so refunds stay within the order total."""
    order_id = current_domain.repository_for(OrderReturn).get(command.return_id).order_id
    with keyed_lock(f"returns:{order_id}"):
        return current_domain.process(command, asynchronous=False)
