"""Pydantic request/response schemas for the storefront API.

These are external contracts (anti-corruption layer), separate from the
internal Protean commands.
"""

from enum import Enum

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    name: str | None = None
    phone: str | None = None
    address_line1: str
    address_line2: str | None = None
    city: str
    state: str | None = None
    country: str
    pincode: str


class StatusResponse(BaseModel):
    status: str = "ok"


class RequestType(str, Enum):
    RETURN = "return"
    REPLACEMENT = "replacement"


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class CartIdResponse(BaseModel):
    cart_id: str


class AddToCartRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=1, default=1)


class ItemIdResponse(BaseModel):
    item_id: str


class UpdateCartQuantityRequest(BaseModel):
    quantity: int = Field(ge=1)


class ApplyCouponRequest(BaseModel):
    coupon_code: str = Field(min_length=1)


class CouponResponse(BaseModel):
    coupon_code: str
    discount: float
    cart_total: float


class CartItemResponse(BaseModel):
    item_id: str
    product_id: str
    variant_id: str | None = None
    quantity: int
    price: float
    final_price: float
    shipping_charge: float = 0.0
    negotiated_price: float | None = None


class CartResponse(BaseModel):
    cart_id: str
    user_id: str | None = None
    items: list[CartItemResponse]
    coupon_code: str | None = None
    discount: float
    cart_total: float
    total_items: int
    generation: int


# ---------------------------------------------------------------------------
# Summary and checkout
# ---------------------------------------------------------------------------
class OrderSummaryRequest(BaseModel):
    cart_id: str
    shipping_address: AddressSchema | None = None
    address_id: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "cart_id": "0b6c1f1e-2a8f-4d4b-9a57-6f0f3f6a9a10",
                    "shipping_address": {
                        "name": "Asha Rao",
                        "phone": "9800000000",
                        "address_line1": "12 MG Road",
                        "city": "Bengaluru",
                        "state": "Karnataka",
                        "country": "India",
                        "pincode": "560001",
                    },
                }
            ]
        }
    }


class SummaryLineResponse(BaseModel):
    item_id: str | None = None
    product_id: str
    variant_id: str | None = None
    name: str | None = None
    brand: str | None = None
    brand_logo: str | None = None
    image: str | None = None
    sku: str | None = None
    variant_attributes: list[str] = []
    stock: int | None = None
    quantity: int
    unit_price: float
    total: float


class OrderSummaryResponse(BaseModel):
    cart_id: str
    items: list[SummaryLineResponse]
    subtotal: float
    shipping: float
    marketplace_fees: float
    discount: float
    discount_breakdown: dict[str, float] = {}
    coupon_code: str | None = None
    tax: float
    total: float
    total_items: int
    shipping_address: AddressSchema | None = None
    cart_generation: int
    generated_at: str | None = None


class CreateOrderRequest(BaseModel):
    cart_id: str
    payment_method: str = Field(min_length=1)
    shipping_address: AddressSchema | None = None
    address_id: str | None = None
    billing_address: AddressSchema | None = None
    notes: str | None = None


class OrderCreatedResponse(BaseModel):
    order_id: str
    order_number: str


class AdminOrderItemSchema(BaseModel):
    product_id: str
    variant_id: str | None = None
    name: str | None = None
    quantity: int = Field(ge=1)
    price: float = Field(ge=0)
    total: float | None = Field(default=None, ge=0)


class AdminCreateOrderRequest(BaseModel):
    user_id: str | None = None
    items: list[AdminOrderItemSchema] = Field(min_length=1)
    payment_method: str
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    discount: float = Field(default=0.0, ge=0)
    shipping: float = Field(default=0.0, ge=0)
    tax: float = Field(default=0.0, ge=0)
    grand_total: float | None = Field(default=None, ge=0)
    notes: str | None = None


# ---------------------------------------------------------------------------
# Order lifecycle
# ---------------------------------------------------------------------------
class UpdateOrderStatusRequest(BaseModel):
    status: str
    comment: str | None = None
    carrier: str | None = None
    tracking_number: str | None = None


class OrderStatusResponse(BaseModel):
    order_id: str
    status: str


class RequestItemSchema(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=1, default=1)
    reason: str | None = None


class ReturnRequest(BaseModel):
    order_id: str
    reason: str = Field(min_length=1)
    items: list[RequestItemSchema] = []
    resolution: str = "refund"


class ReplacementRequest(BaseModel):
    order_id: str
    reason: str = Field(min_length=1)
    items: list[RequestItemSchema] = []


class RequestIdResponse(BaseModel):
    request_id: str


class ProcessRequest(BaseModel):
    status: str
    comment: str | None = None
    mode: str | None = None
    amount: float | None = None


class ProcessResponse(BaseModel):
    request_id: str
    status: str


class InvoiceResponse(BaseModel):
    order_id: str
    status: str
    error: str | None = None


# ---------------------------------------------------------------------------
# Order views
# ---------------------------------------------------------------------------
class OrderViewItem(BaseModel):
    product_id: str
    variant_id: str | None = None
    name: str | None = None
    brand: str | None = None
    brand_logo: str | None = None
    image: str | None = None
    sku: str | None = None
    variant_attributes: list[str] = []
    quantity: int
    price: float
    total: float


class OrderTotalsSchema(BaseModel):
    subtotal: float
    discount: float
    shipping: float
    marketplace_fees: float = 0.0
    tax: float
    grand_total: float


class HistoryEntrySchema(BaseModel):
    status: str
    comment: str | None = None
    updated_by: str | None = None
    created_at: str | None = None


class TimelineStepSchema(BaseModel):
    status: str
    completed: bool
    at: str | None = None


class OrderViewResponse(BaseModel):
    order_id: str
    order_number: str
    status: str
    payment_method: str
    payment_status: str
    user: dict | None = None
    items: list[OrderViewItem]
    totals: OrderTotalsSchema
    shipping_address: AddressSchema | None = None
    billing_address: AddressSchema | None = None
    coupon_code: str | None = None
    notes: str | None = None
    carrier: str | None = None
    tracking_number: str | None = None
    history: list[HistoryEntrySchema]
    timeline: list[TimelineStepSchema]
    created_at: str | None = None
    updated_at: str | None = None


class OrderListResponse(BaseModel):
    orders: list[OrderViewResponse]
    page: int
    limit: int
    total: int


# ---------------------------------------------------------------------------
# Refunds, negotiations, notifications
# ---------------------------------------------------------------------------
class RefundResponse(BaseModel):
    refund_id: str
    return_id: str
    order_id: str
    user_id: str | None = None
    mode: str
    amount: float
    transaction_id: str | None = None
    status: str
    created_at: str | None = None


class RefundListResponse(BaseModel):
    refunds: list[RefundResponse]
    page: int
    limit: int
    total: int


class NegotiationProductRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=1)
    proposed_price: float | None = Field(default=None, gt=0)


class SubmitNegotiationRequest(BaseModel):
    cart_id: str
    products: list[NegotiationProductRequest] = Field(min_length=1)


class NegotiationIdResponse(BaseModel):
    negotiation_id: str


class RespondNegotiationRequest(BaseModel):
    status: str
    counter_offer_amount: float | None = None
    notes: str | None = None


class CounterOfferAnswerRequest(BaseModel):
    response: str


class NegotiationStatusResponse(BaseModel):
    negotiation_id: str
    status: str


class NegotiatedProductResponse(BaseModel):
    product_id: str
    variant_id: str | None = None
    product_name: str | None = None
    variant_name: str | None = None
    quantity: int
    current_price: float
    proposed_price: float
    total_amount: float


class NegotiationResponse(BaseModel):
    negotiation_id: str
    business_user_id: str
    cart_id: str
    products: list[NegotiatedProductResponse]
    total_proposed_amount: float
    status: str
    counter_offer_amount: float | None = None
    admin_notes: str | None = None
    expires_at: str | None = None
    created_at: str | None = None


class NegotiationListResponse(BaseModel):
    negotiations: list[NegotiationResponse]


class AppliedNegotiationResponse(BaseModel):
    cart_id: str
    cart_total: float


class NotificationResponse(BaseModel):
    notification_id: str
    template: str
    channel: str
    order_id: str | None = None
    subject: str | None = None
    status: str
    error: str | None = None
    created_at: str | None = None


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
