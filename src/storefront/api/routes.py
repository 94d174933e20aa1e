"""FastAPI routes for the storefront: carts, checkout, orders, refunds, negotiations."""

import json

from fastapi import APIRouter, Depends, Query
from protean.utils.globals import current_domain

from storefront.api.auth import Principal, current_principal, require_admin, require_user
from storefront.api.schemas import (
    AdminCreateOrderRequest,
    AddToCartRequest,
    AppliedNegotiationResponse,
    ApplyCouponRequest,
    CartIdResponse,
    CartResponse,
    CounterOfferAnswerRequest,
    CouponResponse,
    CreateOrderRequest,
    InvoiceResponse,
    ItemIdResponse,
    NegotiationIdResponse,
    NegotiationListResponse,
    NegotiationResponse,
    NegotiationStatusResponse,
    NotificationListResponse,
    OrderCreatedResponse,
    OrderListResponse,
    OrderStatusResponse,
    OrderSummaryRequest,
    OrderSummaryResponse,
    OrderViewResponse,
    ProcessRequest,
    ProcessResponse,
    RefundListResponse,
    RefundResponse,
    ReplacementRequest,
    RequestIdResponse,
    RequestType,
    RespondNegotiationRequest,
    ReturnRequest,
    StatusResponse,
    SubmitNegotiationRequest,
    UpdateCartQuantityRequest,
    UpdateOrderStatusRequest,
)
from storefront.cart.cart import Cart
from storefront.cart.coupons import ApplyCoupon, RemoveCoupon
from storefront.cart.items import AddToCart, RemoveFromCart, UpdateCartQuantity
from storefront.cart.management import ClearCart, CreateCart, MergeGuestCart
from storefront.errors import ForbiddenError, UnauthorizedError
from storefront.negotiation.handlers import (
    ApplyNegotiationToCart,
    RespondToCounterOffer,
    RespondToNegotiation,
    SubmitNegotiation,
)
from storefront.negotiation.negotiation import BulkNegotiation
from storefront.notifications.log import NotificationLog
from storefront.order.admin import CreateAdminOrder
from storefront.order.invoice import SendInvoice
from storefront.order.placement import PlaceOrder, place_order
from storefront.order.status import UpdateOrderStatus
from storefront.projections.order_view import get_order_view, list_order_views
from storefront.returns.requests import Refund
from storefront.returns.workflow import (
    ProcessReplacement,
    ProcessReturn,
    RequestReplacement,
    RequestReturn,
    process_return,
    submit_return,
)
from storefront.summary.summary import GenerateOrderSummary


def _dump(model) -> str | None:
    return json.dumps(model.model_dump()) if model is not None else None


def _iso(value) -> str | None:
    return value.isoformat() if value else None


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


def _cart_response(cart: Cart) -> CartResponse:
    return CartResponse(
        cart_id=str(cart.id),
        user_id=str(cart.user_id) if cart.user_id else None,
        items=[
            {
                "item_id": str(item.id),
                "product_id": str(item.product_id),
                "variant_id": str(item.variant_id) if item.variant_id else None,
                "quantity": item.quantity,
                "price": item.price,
                "final_price": item.final_price,
                "shipping_charge": item.shipping_charge or 0.0,
                "negotiated_price": item.negotiated_price,
            }
            for item in cart.items
        ],
        coupon_code=cart.coupon_code,
        discount=cart.discount or 0.0,
        cart_total=cart.cart_total or 0.0,
        total_items=cart.total_items,
        generation=cart.generation,
    )


@cart_router.post("", status_code=201, response_model=CartIdResponse)
async def create_cart(principal: Principal = Depends(current_principal)) -> CartIdResponse:
    if not principal.user_id and not principal.session_id:
        raise UnauthorizedError({"user": ["A user or guest session is required"]})
    command = CreateCart(user_id=principal.user_id, session_id=principal.session_id)
    result = current_domain.process(command, asynchronous=False)
    return CartIdResponse(cart_id=result)


@cart_router.post("/merge", response_model=CartIdResponse)
async def merge_guest_cart(principal: Principal = Depends(require_user)) -> CartIdResponse:
    command = MergeGuestCart(user_id=principal.user_id, session_id=principal.session_id)
    result = current_domain.process(command, asynchronous=False)
    return CartIdResponse(cart_id=result)


@cart_router.get("/{cart_id}", response_model=CartResponse)
async def get_cart(cart_id: str, principal: Principal = Depends(current_principal)) -> CartResponse:
    cart = current_domain.repository_for(Cart).get(cart_id)
    cart.assert_accessible(principal.user_id, principal.session_id)
    return _cart_response(cart)


@cart_router.post("/{cart_id}/items", status_code=201, response_model=ItemIdResponse)
async def add_cart_item(
    cart_id: str, body: AddToCartRequest, principal: Principal = Depends(current_principal)
) -> ItemIdResponse:
    command = AddToCart(
        cart_id=cart_id,
        product_id=body.product_id,
        variant_id=body.variant_id,
        quantity=body.quantity,
        user_id=principal.user_id,
        session_id=principal.session_id,
    )
    result = current_domain.process(command, asynchronous=False)
    return ItemIdResponse(item_id=result)


@cart_router.put("/{cart_id}/items/{item_id}", response_model=StatusResponse)
async def update_cart_item_quantity(
    cart_id: str,
    item_id: str,
    body: UpdateCartQuantityRequest,
    principal: Principal = Depends(current_principal),
) -> StatusResponse:
    command = UpdateCartQuantity(
        cart_id=cart_id,
        item_id=item_id,
        quantity=body.quantity,
        user_id=principal.user_id,
        session_id=principal.session_id,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@cart_router.delete("/{cart_id}/items/{item_id}", response_model=StatusResponse)
async def remove_cart_item(
    cart_id: str, item_id: str, principal: Principal = Depends(current_principal)
) -> StatusResponse:
    command = RemoveFromCart(
        cart_id=cart_id,
        item_id=item_id,
        user_id=principal.user_id,
        session_id=principal.session_id,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@cart_router.delete("/{cart_id}/items", response_model=StatusResponse)
async def clear_cart(cart_id: str, principal: Principal = Depends(current_principal)) -> StatusResponse:
    command = ClearCart(cart_id=cart_id, user_id=principal.user_id, session_id=principal.session_id)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@cart_router.post("/{cart_id}/coupon", response_model=CouponResponse)
async def apply_cart_coupon(
    cart_id: str, body: ApplyCouponRequest, principal: Principal = Depends(current_principal)
) -> CouponResponse:
    command = ApplyCoupon(
        cart_id=cart_id,
        coupon_code=body.coupon_code,
        user_id=principal.user_id,
        session_id=principal.session_id,
    )
    result = current_domain.process(command, asynchronous=False)
    return CouponResponse(**result)


@cart_router.delete("/{cart_id}/coupon", response_model=StatusResponse)
async def remove_cart_coupon(cart_id: str, principal: Principal = Depends(current_principal)) -> StatusResponse:
    command = RemoveCoupon(cart_id=cart_id, user_id=principal.user_id, session_id=principal.session_id)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("/summary", response_model=OrderSummaryResponse)
async def generate_order_summary(
    body: OrderSummaryRequest, principal: Principal = Depends(current_principal)
) -> OrderSummaryResponse:
    command = GenerateOrderSummary(
        cart_id=body.cart_id,
        user_id=principal.user_id,
        session_id=principal.session_id,
        shipping_address=_dump(body.shipping_address),
        address_id=body.address_id,
    )
    result = current_domain.process(command, asynchronous=False)
    return OrderSummaryResponse(**result)


@order_router.post("", status_code=201, response_model=OrderCreatedResponse)
async def create_order(
    body: CreateOrderRequest, principal: Principal = Depends(current_principal)
) -> OrderCreatedResponse:
    command = PlaceOrder(
        cart_id=body.cart_id,
        payment_method=body.payment_method,
        user_id=principal.user_id,
        session_id=principal.session_id,
        shipping_address=_dump(body.shipping_address),
        address_id=body.address_id,
        billing_address=_dump(body.billing_address),
        notes=body.notes,
    )
    result = place_order(command)
    return OrderCreatedResponse(**result)


@order_router.get("", response_model=OrderListResponse)
async def list_my_orders(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    status: str | None = None,
    principal: Principal = Depends(require_user),
) -> OrderListResponse:
    result = list_order_views(page=page, limit=limit, user_id=principal.user_id, status=status)
    return OrderListResponse(**result)


@order_router.get("/admin/all", response_model=OrderListResponse)
async def list_all_orders(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    status: str | None = None,
    user_id: str | None = None,
    principal: Principal = Depends(require_admin),
) -> OrderListResponse:
    result = list_order_views(page=page, limit=limit, user_id=user_id, status=status)
    return OrderListResponse(**result)


@order_router.post("/admin", status_code=201, response_model=OrderCreatedResponse)
async def create_admin_order(
    body: AdminCreateOrderRequest, principal: Principal = Depends(require_admin)
) -> OrderCreatedResponse:
    command = CreateAdminOrder(
        user_id=body.user_id,
        items=json.dumps([item.model_dump() for item in body.items]),
        payment_method=body.payment_method,
        shipping_address=_dump(body.shipping_address),
        billing_address=_dump(body.billing_address),
        discount=body.discount,
        shipping=body.shipping,
        tax=body.tax,
        grand_total=body.grand_total,
        notes=body.notes,
        admin_id=principal.user_id,
    )
    result = current_domain.process(command, asynchronous=False)
    return OrderCreatedResponse(**result)


@order_router.put("/admin/{order_id}/status", response_model=OrderStatusResponse)
async def update_order_status(
    order_id: str, body: UpdateOrderStatusRequest, principal: Principal = Depends(require_admin)
) -> OrderStatusResponse:
    command = UpdateOrderStatus(
        order_id=order_id,
        status=body.status,
        comment=body.comment,
        updated_by=principal.user_id,
        carrier=body.carrier,
        tracking_number=body.tracking_number,
    )
    result = current_domain.process(command, asynchronous=False)
    return OrderStatusResponse(**result)


@order_router.post("/admin/{order_id}/invoice/send", response_model=InvoiceResponse)
async def send_invoice(order_id: str, principal: Principal = Depends(require_admin)) -> InvoiceResponse:
    result = current_domain.process(SendInvoice(order_id=order_id), asynchronous=False)
    return InvoiceResponse(**result)


@order_router.put("/admin/{request_type}/{request_id}", response_model=ProcessResponse)
async def process_request(
    request_type: RequestType,
    request_id: str,
    body: ProcessRequest,
    principal: Principal = Depends(require_admin),
) -> ProcessResponse:
    if request_type == RequestType.RETURN:
        result = process_return(
            ProcessReturn(
                return_id=request_id,
                status=body.status,
                comment=body.comment,
                mode=body.mode,
                amount=body.amount,
                admin_id=principal.user_id,
            )
        )
        return ProcessResponse(request_id=result["return_id"], status=result["status"])

    command = ProcessReplacement(
        replacement_id=request_id,
        status=body.status,
        comment=body.comment,
        admin_id=principal.user_id,
    )
    result = current_domain.process(command, asynchronous=False)
    return ProcessResponse(request_id=result["replacement_id"], status=result["status"])


@order_router.post("/return", status_code=201, response_model=RequestIdResponse)
async def request_return(body: ReturnRequest, principal: Principal = Depends(require_user)) -> RequestIdResponse:
    command = RequestReturn(
        order_id=body.order_id,
        user_id=principal.user_id,
        reason=body.reason,
        items=json.dumps([item.model_dump() for item in body.items]) if body.items else None,
        resolution=body.resolution,
    )
    return RequestIdResponse(request_id=submit_return(command))


@order_router.post("/replacement", status_code=201, response_model=RequestIdResponse)
async def request_replacement(
    body: ReplacementRequest, principal: Principal = Depends(require_user)
) -> RequestIdResponse:
    command = RequestReplacement(
        order_id=body.order_id,
        user_id=principal.user_id,
        reason=body.reason,
        items=json.dumps([item.model_dump() for item in body.items]) if body.items else None,
    )
    result = current_domain.process(command, asynchronous=False)
    return RequestIdResponse(request_id=result)


@order_router.get("/{order_id}", response_model=OrderViewResponse)
async def get_order(order_id: str, principal: Principal = Depends(require_user)) -> OrderViewResponse:
    view = get_order_view(order_id, user_id=principal.user_id, is_admin=principal.is_admin)
    return OrderViewResponse(**view)


# ---------------------------------------------------------------------------
# Refund Router
# ---------------------------------------------------------------------------
refund_router = APIRouter(prefix="/refunds", tags=["refunds"])


def _refund_response(refund: Refund) -> RefundResponse:
    return RefundResponse(
        refund_id=str(refund.id),
        return_id=str(refund.return_id),
        order_id=str(refund.order_id),
        user_id=str(refund.user_id) if refund.user_id else None,
        mode=refund.mode,
        amount=refund.amount,
        transaction_id=refund.transaction_id,
        status=refund.status,
        created_at=_iso(refund.created_at),
    )


@refund_router.get("", response_model=RefundListResponse)
async def list_refunds(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    status: str | None = None,
    mode: str | None = None,
    user_id: str | None = None,
    order_id: str | None = None,
    return_id: str | None = None,
    principal: Principal = Depends(require_admin),
) -> RefundListResponse:
    results = current_domain.repository_for(Refund).page(
        page, limit, status=status, mode=mode, user_id=user_id, order_id=order_id, return_id=return_id
    )
    return RefundListResponse(
        refunds=[_refund_response(refund) for refund in results.items],
        page=page,
        limit=limit,
        total=results.total,
    )


@refund_router.get("/{refund_id}", response_model=RefundResponse)
async def get_refund(refund_id: str, principal: Principal = Depends(require_user)) -> RefundResponse:
    refund = current_domain.repository_for(Refund).get(refund_id)
    if not principal.is_admin and str(refund.user_id) != str(principal.user_id):
        raise ForbiddenError({"refund_id": ["Refund belongs to another user"]})
    return _refund_response(refund)


# ---------------------------------------------------------------------------
# Negotiation Router
# ---------------------------------------------------------------------------
negotiation_router = APIRouter(prefix="/negotiations", tags=["negotiations"])


def _negotiation_response(negotiation: BulkNegotiation) -> NegotiationResponse:
    return NegotiationResponse(
        negotiation_id=str(negotiation.id),
        business_user_id=str(negotiation.business_user_id),
        cart_id=str(negotiation.cart_id),
        products=[
            {
                "product_id": str(product.product_id),
                "variant_id": str(product.variant_id) if product.variant_id else None,
                "product_name": product.product_name,
                "variant_name": product.variant_name,
                "quantity": product.quantity,
                "current_price": product.current_price,
                "proposed_price": product.proposed_price,
                "total_amount": product.total_amount,
            }
            for product in negotiation.products
        ],
        total_proposed_amount=negotiation.total_proposed_amount,
        status=negotiation.status,
        counter_offer_amount=negotiation.counter_offer_amount,
        admin_notes=negotiation.admin_notes,
        expires_at=_iso(negotiation.expires_at),
        created_at=_iso(negotiation.created_at),
    )


@negotiation_router.post("", status_code=201, response_model=NegotiationIdResponse)
async def submit_negotiation(
    body: SubmitNegotiationRequest, principal: Principal = Depends(require_user)
) -> NegotiationIdResponse:
    command = SubmitNegotiation(
        business_user_id=principal.user_id,
        cart_id=body.cart_id,
        products=json.dumps([product.model_dump() for product in body.products]),
    )
    result = current_domain.process(command, asynchronous=False)
    return NegotiationIdResponse(negotiation_id=result)


@negotiation_router.get("", response_model=NegotiationListResponse)
async def list_my_negotiations(principal: Principal = Depends(require_user)) -> NegotiationListResponse:
    negotiations = current_domain.repository_for(BulkNegotiation).for_user(principal.user_id)
    return NegotiationListResponse(negotiations=[_negotiation_response(n) for n in negotiations])


@negotiation_router.get("/admin/all", response_model=NegotiationListResponse)
async def list_all_negotiations(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    status: str | None = None,
    principal: Principal = Depends(require_admin),
) -> NegotiationListResponse:
    results = current_domain.repository_for(BulkNegotiation).page(page, limit, status=status)
    return NegotiationListResponse(negotiations=[_negotiation_response(n) for n in results.items])


@negotiation_router.put("/admin/{negotiation_id}/respond", response_model=NegotiationStatusResponse)
async def respond_to_negotiation(
    negotiation_id: str, body: RespondNegotiationRequest, principal: Principal = Depends(require_admin)
) -> NegotiationStatusResponse:
    command = RespondToNegotiation(
        negotiation_id=negotiation_id,
        status=body.status,
        counter_offer_amount=body.counter_offer_amount,
        notes=body.notes,
        admin_id=principal.user_id,
    )
    result = current_domain.process(command, asynchronous=False)
    return NegotiationStatusResponse(**result)


@negotiation_router.get("/{negotiation_id}", response_model=NegotiationResponse)
async def get_negotiation(negotiation_id: str, principal: Principal = Depends(require_user)) -> NegotiationResponse:
    negotiation = current_domain.repository_for(BulkNegotiation).get(negotiation_id)
    if not principal.is_admin and str(negotiation.business_user_id) != str(principal.user_id):
        raise ForbiddenError({"negotiation": ["Negotiation belongs to another account"]})
    return _negotiation_response(negotiation)


@negotiation_router.put("/{negotiation_id}/counter-offer", response_model=NegotiationStatusResponse)
async def answer_counter_offer(
    negotiation_id: str, body: CounterOfferAnswerRequest, principal: Principal = Depends(require_user)
) -> NegotiationStatusResponse:
    command = RespondToCounterOffer(
        negotiation_id=negotiation_id,
        business_user_id=principal.user_id,
        response=body.response,
    )
    result = current_domain.process(command, asynchronous=False)
    return NegotiationStatusResponse(**result)


@negotiation_router.post("/{negotiation_id}/apply", response_model=AppliedNegotiationResponse)
async def apply_negotiation(
    negotiation_id: str, principal: Principal = Depends(require_user)
) -> AppliedNegotiationResponse:
    command = ApplyNegotiationToCart(negotiation_id=negotiation_id, user_id=principal.user_id)
    result = current_domain.process(command, asynchronous=False)
    return AppliedNegotiationResponse(**result)


# ---------------------------------------------------------------------------
# Notification Router
# ---------------------------------------------------------------------------
notification_router = APIRouter(prefix="/notifications", tags=["notifications"])


@notification_router.get("", response_model=NotificationListResponse)
async def list_notifications(principal: Principal = Depends(require_user)) -> NotificationListResponse:
    rows = current_domain.repository_for(NotificationLog).for_user(principal.user_id)
    return NotificationListResponse(
        notifications=[
            {
                "notification_id": str(row.id),
                "template": row.template,
                "channel": row.channel,
                "order_id": str(row.order_id) if row.order_id else None,
                "subject": row.subject,
                "status": row.status,
                "error": row.error,
                "created_at": _iso(row.created_at),
            }
            for row in rows
        ]
    )
