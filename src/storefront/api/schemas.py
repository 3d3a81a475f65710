"""Pydantic request/response schemas for the Storefront API.

These are external contracts, kept separate from the internal Protean
commands. Identity travels in the body (``user_id``, ``acting_user_id``)
because authentication is handled in front of this service.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str


# ---------------------------------------------------------------------------
# Products and stock
# ---------------------------------------------------------------------------
class CreateProductRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    slug: str = Field(min_length=1, max_length=255)
    price: float = Field(ge=0)
    discount_percent: float = Field(default=0.0, ge=0, le=100)
    stock: int = Field(default=0, ge=0)


class AddVariantRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    sku: str | None = None
    price: float | None = Field(default=None, ge=0)
    stock: int = Field(default=0, ge=0)


class AdjustStockRequest(BaseModel):
    new_stock: int = Field(ge=0)
    reason: str = Field(min_length=1, max_length=500)
    acting_user_id: str
    variant_id: str | None = None


class ProductIdResponse(BaseModel):
    product_id: str


class VariantIdResponse(BaseModel):
    variant_id: str


class InventoryLogIdResponse(BaseModel):
    log_id: str


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------
class CreateCouponRequest(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    discount_type: str  # Percentage, Fixed
    discount_value: float = Field(gt=0)
    description: str | None = None
    min_order_amount: float | None = Field(default=None, ge=0)
    max_uses: int | None = Field(default=None, ge=1)
    valid_from: datetime | None = None
    valid_until: datetime | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "code": "WELCOME10",
                    "discount_type": "Percentage",
                    "discount_value": 10,
                    "min_order_amount": 50,
                    "max_uses": 100,
                }
            ]
        }
    }


class ValidateCouponRequest(BaseModel):
    code: str
    order_amount: float = Field(ge=0)


class CouponIdResponse(BaseModel):
    coupon_id: str


class CouponStatusRequest(BaseModel):
    is_active: bool


class CouponStatusResponse(BaseModel):
    coupon_id: str
    is_active: bool


class CouponCheckResponse(BaseModel):
    coupon_id: str
    code: str
    discount_type: str
    discount_value: float
    discount_amount: float
    final_amount: float


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class OrderLineSchema(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=1)


class PlaceOrderRequest(BaseModel):
    user_id: str
    items: list[OrderLineSchema] = Field(min_length=1)
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    shipping_address: str | None = None
    coupon_code: str | None = None
    notes: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "user_id": "user-001",
                    "items": [{"product_id": "prod-001", "quantity": 2}],
                    "customer_name": "Ada Lovelace",
                    "customer_email": "ada@example.com",
                    "shipping_address": "12 Analytical St, London, LDN, E1 6AN, GB",
                    "coupon_code": "WELCOME10",
                }
            ]
        }
    }


class UpdateOrderStatusRequest(BaseModel):
    status: str
    notes: str | None = None
    acting_user_id: str | None = None


class CancelOrderRequest(BaseModel):
    user_id: str | None = None
    reason: str | None = None


class OrderItemResponse(BaseModel):
    id: str
    product_id: str
    variant_id: str | None = None
    product_name: str
    variant_name: str | None = None
    original_price: float
    unit_price: float
    quantity: int


class OrderTrackingResponse(BaseModel):
    status: str
    notes: str | None = None
    created_at: datetime


class OrderResponse(BaseModel):
    id: str
    order_number: str
    user_id: str
    status: str
    subtotal: float
    discount_amount: float
    total_price: float
    currency: str
    coupon_code: str | None = None
    checkout_session_id: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    shipping_address: str | None = None
    items: list[OrderItemResponse]
    tracking: list[OrderTrackingResponse]
    created_at: datetime | None = None


class OrderStatisticsResponse(BaseModel):
    total_orders: int
    pending_orders: int
    processing_orders: int
    paid_orders: int
    shipped_orders: int
    delivered_orders: int
    cancelled_orders: int
    refunded_orders: int
    total_revenue: float


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
class InitiatePaymentRequest(BaseModel):
    method: str  # Card, Regional, Cash_On_Delivery, Paypal, Razorpay
    user_id: str | None = None


class InitiatePaymentResponse(BaseModel):
    payment_id: str
    method: str
    redirect_url: str | None = None
    session_id: str | None = None


class RecordManualPaymentRequest(BaseModel):
    order_id: str
    method: str
    amount: float = Field(gt=0)
    status: str = "Completed"
    transaction_id: str | None = None
    acting_user_id: str | None = None


class PaymentIdResponse(BaseModel):
    payment_id: str


class UpdatePaymentStatusRequest(BaseModel):
    status: str
    refunded_amount: float | None = Field(default=None, ge=0)
    failure_reason: str | None = None
    acting_user_id: str | None = None


class RefundPaymentRequest(BaseModel):
    amount: float = Field(gt=0)
    reason: str | None = None
    acting_user_id: str | None = None


class ReconcileResponse(BaseModel):
    received: bool = True
    outcome: str


# ---------------------------------------------------------------------------
# Shipping
# ---------------------------------------------------------------------------
class AddShippingRequest(BaseModel):
    order_id: str
    carrier: str = Field(min_length=1, max_length=100)
    tracking_number: str = Field(min_length=1, max_length=100)
    estimated_days: int | None = Field(default=None, ge=0)
    notes: str | None = None
    acting_user_id: str | None = None


class UpdateShippingRequest(BaseModel):
    carrier: str | None = None
    tracking_number: str | None = None
    estimated_days: int | None = Field(default=None, ge=0)
    notes: str | None = None
    delivered_at: datetime | None = None
    acting_user_id: str | None = None


class ShippingIdResponse(BaseModel):
    shipping_id: str


class TrackingResponse(BaseModel):
    order_id: str
    order_number: str
    order_status: str
    carrier: str
    tracking_number: str
    shipped_at: datetime | None = None
    estimated_days: int | None = None
    estimated_delivery: datetime | None = None
    delivered_at: datetime | None = None


# ---------------------------------------------------------------------------
# Returns
# ---------------------------------------------------------------------------
class ReturnLineSchema(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=1)
    condition: str = "Unopened"  # Unopened, Like_New, Used, Damaged, Defective
    reason: str | None = None


class RequestReturnRequest(BaseModel):
    order_id: str
    user_id: str
    reason: str = Field(min_length=1, max_length=1000)
    items: list[ReturnLineSchema] = Field(min_length=1)


class UpdateReturnStatusRequest(BaseModel):
    status: str
    admin_notes: str | None = None
    acting_user_id: str | None = None


class CancelReturnBody(BaseModel):
    user_id: str


class ReturnIdResponse(BaseModel):
    return_id: str


class ReturnItemResponse(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int
    condition: str
    unit_price: float
    refund_amount: float


class ReturnResponse(BaseModel):
    id: str
    order_id: str
    status: str
    reason: str
    refund_amount: float
    admin_notes: str | None = None
    items: list[ReturnItemResponse]
    created_at: datetime | None = None
