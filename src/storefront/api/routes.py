"""FastAPI endpoints for the Storefront domain.

Mutations go through Protean commands processed synchronously (with a
bounded retry on optimistic-concurrency conflicts); reads go straight to
the repositories.
"""

import json

from fastapi import APIRouter, Header, Request
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.api.errors import process_with_retry
from storefront.api.schemas import (
    AddShippingRequest,
    AddVariantRequest,
    AdjustStockRequest,
    CancelOrderRequest,
    CancelReturnBody,
    CouponCheckResponse,
    CouponIdResponse,
    CouponStatusRequest,
    CouponStatusResponse,
    CreateCouponRequest,
    CreateProductRequest,
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    InventoryLogIdResponse,
    OrderItemResponse,
    OrderResponse,
    OrderStatisticsResponse,
    OrderTrackingResponse,
    PaymentIdResponse,
    PlaceOrderRequest,
    ProductIdResponse,
    ReconcileResponse,
    RecordManualPaymentRequest,
    RefundPaymentRequest,
    RequestReturnRequest,
    ReturnIdResponse,
    ReturnItemResponse,
    ReturnResponse,
    ShippingIdResponse,
    StatusResponse,
    TrackingResponse,
    UpdateOrderStatusRequest,
    UpdatePaymentStatusRequest,
    UpdateReturnStatusRequest,
    UpdateShippingRequest,
    ValidateCouponRequest,
    VariantIdResponse,
)
from storefront.coupon.management import CreateCoupon, ToggleCouponStatus, check_coupon
from storefront.gateway import get_gateway
from storefront.gateway.port import InboundNotification
from storefront.inventory.adjustment import AdjustStock
from storefront.order.cancellation import CancelOrder
from storefront.order.order import Order
from storefront.order.placement import PlaceOrder
from storefront.order.status import UpdateOrderStatus
from storefront.payment.initiation import InitiatePayment
from storefront.payment.manual import RecordManualPayment, UpdatePaymentStatus
from storefront.payment.reconciliation import ReconcilePayment
from storefront.payment.refund import RefundPayment
from storefront.product.management import AddProductVariant, CreateProduct
from storefront.returns.request import RequestReturn
from storefront.returns.return_request import ReturnRequest
from storefront.returns.review import CancelReturnRequest, UpdateReturnStatus
from storefront.shipping.dispatch import AddShipping, UpdateShipping, track_shipment

product_router = APIRouter(prefix="/products", tags=["products"])
coupon_router = APIRouter(prefix="/coupons", tags=["coupons"])
order_router = APIRouter(prefix="/orders", tags=["orders"])
payment_router = APIRouter(prefix="/payments", tags=["payments"])
shipping_router = APIRouter(prefix="/shipping", tags=["shipping"])
return_router = APIRouter(prefix="/returns", tags=["returns"])


def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        id=str(order.id),
        order_number=order.order_number,
        user_id=str(order.user_id),
        status=order.status,
        subtotal=order.subtotal,
        discount_amount=order.discount_amount,
        total_price=order.total_price,
        currency=order.currency,
        coupon_code=order.coupon_code,
        checkout_session_id=order.checkout_session_id,
        customer_name=order.customer_name,
        customer_email=order.customer_email,
        shipping_address=order.shipping_address,
        items=[
            OrderItemResponse(
                id=str(item.id),
                product_id=str(item.product_id),
                variant_id=str(item.variant_id) if item.variant_id else None,
                product_name=item.product_name,
                variant_name=item.variant_name,
                original_price=item.original_price,
                unit_price=item.unit_price,
                quantity=item.quantity,
            )
            for item in order.items or []
        ],
        tracking=[
            OrderTrackingResponse(status=entry.status, notes=entry.notes, created_at=entry.created_at)
            for entry in order.tracking_history()
        ],
        created_at=order.created_at,
    )


def _return_response(request: ReturnRequest) -> ReturnResponse:
    return ReturnResponse(
        id=str(request.id),
        order_id=str(request.order_id),
        status=request.status,
        reason=request.reason,
        refund_amount=request.refund_amount,
        admin_notes=request.admin_notes,
        items=[
            ReturnItemResponse(
                product_id=str(item.product_id),
                variant_id=str(item.variant_id) if item.variant_id else None,
                quantity=item.quantity,
                condition=item.condition,
                unit_price=item.unit_price,
                refund_amount=item.refund_amount,
            )
            for item in request.items or []
        ],
        created_at=request.created_at,
    )


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------
@product_router.post("", status_code=201, response_model=ProductIdResponse)
async def create_product(body: CreateProductRequest) -> ProductIdResponse:
    command = CreateProduct(**body.model_dump())
    return ProductIdResponse(product_id=process_with_retry(command))


@product_router.post("/{product_id}/variants", status_code=201, response_model=VariantIdResponse)
async def add_variant(product_id: str, body: AddVariantRequest) -> VariantIdResponse:
    command = AddProductVariant(product_id=product_id, **body.model_dump())
    return VariantIdResponse(variant_id=process_with_retry(command))


@product_router.patch("/{product_id}/stock", response_model=InventoryLogIdResponse)
async def adjust_stock(product_id: str, body: AdjustStockRequest) -> InventoryLogIdResponse:
    command = AdjustStock(product_id=product_id, **body.model_dump())
    return InventoryLogIdResponse(log_id=process_with_retry(command))


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------
@coupon_router.post("", status_code=201, response_model=CouponIdResponse)
async def create_coupon(body: CreateCouponRequest) -> CouponIdResponse:
    command = CreateCoupon(**body.model_dump(exclude_none=True))
    return CouponIdResponse(coupon_id=process_with_retry(command))


@coupon_router.post("/validate", response_model=CouponCheckResponse)
async def validate_coupon(body: ValidateCouponRequest) -> CouponCheckResponse:
    """Check a coupon against an order amount without using it up."""
    return CouponCheckResponse(**check_coupon(body.code, body.order_amount))


@coupon_router.patch("/{coupon_id}/status", response_model=CouponStatusResponse)
async def toggle_coupon_status(coupon_id: str, body: CouponStatusRequest) -> CouponStatusResponse:
    command = ToggleCouponStatus(coupon_id=coupon_id, is_active=body.is_active)
    return CouponStatusResponse(coupon_id=coupon_id, is_active=process_with_retry(command))


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
@order_router.post("", status_code=201, response_model=OrderResponse)
async def place_order(body: PlaceOrderRequest) -> OrderResponse:
    """Price the order, reserve stock, redeem the coupon and create the order."""
    command = PlaceOrder(
        user_id=body.user_id,
        items=json.dumps([item.model_dump() for item in body.items]),
        customer_name=body.customer_name,
        customer_email=body.customer_email,
        customer_phone=body.customer_phone,
        shipping_address=body.shipping_address,
        coupon_code=body.coupon_code,
        notes=body.notes,
    )
    order_id = process_with_retry(command)
    return _order_response(current_domain.repository_for(Order).get(order_id))


@order_router.get("/statistics", response_model=OrderStatisticsResponse)
async def order_statistics() -> OrderStatisticsResponse:
    return OrderStatisticsResponse(**current_domain.repository_for(Order).statistics())


@order_router.get("/number/{order_number}", response_model=OrderResponse)
async def get_order_by_number(order_number: str) -> OrderResponse:
    order = current_domain.repository_for(Order).find_by_number(order_number)
    if order is None:
        raise ObjectNotFoundError(f"Order {order_number} not found")
    return _order_response(order)


@order_router.get("/user/{user_id}", response_model=list[OrderResponse])
async def list_user_orders(user_id: str) -> list[OrderResponse]:
    return [_order_response(order) for order in current_domain.repository_for(Order).for_user(user_id)]


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    return _order_response(current_domain.repository_for(Order).get(order_id))


@order_router.patch("/{order_id}/status", response_model=StatusResponse)
async def update_order_status(order_id: str, body: UpdateOrderStatusRequest) -> StatusResponse:
    command = UpdateOrderStatus(order_id=order_id, **body.model_dump())
    return StatusResponse(status=process_with_retry(command))


@order_router.patch("/{order_id}/cancel", response_model=StatusResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest) -> StatusResponse:
    command = CancelOrder(order_id=order_id, user_id=body.user_id, reason=body.reason)
    return StatusResponse(status=process_with_retry(command))


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
@payment_router.post("", status_code=201, response_model=PaymentIdResponse)
async def record_manual_payment(body: RecordManualPaymentRequest) -> PaymentIdResponse:
    """Record a payment received outside the gateways."""
    command = RecordManualPayment(**body.model_dump())
    return PaymentIdResponse(payment_id=process_with_retry(command))


@payment_router.post("/webhook", response_model=ReconcileResponse)
async def card_webhook(
    request: Request,
    stripe_signature: str = Header(default="", alias="Stripe-Signature"),
) -> ReconcileResponse:
    """Card gateway webhook. The raw body is needed to verify the signature."""
    body = await request.body()
    notification = get_gateway("Card").reconcile(InboundNotification(body=body, signature=stripe_signature))
    outcome = process_with_retry(ReconcilePayment.from_notification(notification, method="Card"))
    return ReconcileResponse(outcome=outcome)


@payment_router.get("/ipn", response_model=ReconcileResponse)
async def regional_ipn(request: Request) -> ReconcileResponse:
    """Regional gateway redirect/IPN callback, validated server-side before use."""
    notification = get_gateway("Regional").reconcile(InboundNotification(params=dict(request.query_params)))
    outcome = process_with_retry(ReconcilePayment.from_notification(notification, method="Regional"))
    return ReconcileResponse(outcome=outcome)


@payment_router.post("/{order_id}/initiate", response_model=InitiatePaymentResponse)
async def initiate_payment(order_id: str, body: InitiatePaymentRequest) -> InitiatePaymentResponse:
    command = InitiatePayment(order_id=order_id, method=body.method, user_id=body.user_id)
    return InitiatePaymentResponse(**process_with_retry(command))


@payment_router.patch("/{payment_id}/status", response_model=StatusResponse)
async def update_payment_status(payment_id: str, body: UpdatePaymentStatusRequest) -> StatusResponse:
    command = UpdatePaymentStatus(payment_id=payment_id, **body.model_dump())
    return StatusResponse(status=process_with_retry(command))


@payment_router.patch("/{payment_id}/refund", response_model=StatusResponse)
async def refund_payment(payment_id: str, body: RefundPaymentRequest) -> StatusResponse:
    command = RefundPayment(payment_id=payment_id, **body.model_dump())
    return StatusResponse(status=process_with_retry(command))


# ---------------------------------------------------------------------------
# Shipping
# ---------------------------------------------------------------------------
@shipping_router.post("", status_code=201, response_model=ShippingIdResponse)
async def add_shipping(body: AddShippingRequest) -> ShippingIdResponse:
    command = AddShipping(**body.model_dump())
    return ShippingIdResponse(shipping_id=process_with_retry(command))


@shipping_router.get("/track/{tracking_number}", response_model=TrackingResponse)
async def track(tracking_number: str) -> TrackingResponse:
    return TrackingResponse(**track_shipment(tracking_number))


@shipping_router.patch("/{order_id}", response_model=ShippingIdResponse)
async def update_shipping(order_id: str, body: UpdateShippingRequest) -> ShippingIdResponse:
    command = UpdateShipping(order_id=order_id, **body.model_dump())
    return ShippingIdResponse(shipping_id=process_with_retry(command))


# ---------------------------------------------------------------------------
# Returns
# ---------------------------------------------------------------------------
@return_router.post("", status_code=201, response_model=ReturnIdResponse)
async def request_return(body: RequestReturnRequest) -> ReturnIdResponse:
    command = RequestReturn(
        order_id=body.order_id,
        user_id=body.user_id,
        reason=body.reason,
        items=json.dumps([item.model_dump() for item in body.items]),
    )
    return ReturnIdResponse(return_id=process_with_retry(command))


@return_router.get("/user/{user_id}", response_model=list[ReturnResponse])
async def list_user_returns(user_id: str) -> list[ReturnResponse]:
    return [_return_response(request) for request in current_domain.repository_for(ReturnRequest).for_user(user_id)]


@return_router.patch("/{return_id}/status", response_model=StatusResponse)
async def update_return_status(return_id: str, body: UpdateReturnStatusRequest) -> StatusResponse:
    command = UpdateReturnStatus(return_id=return_id, **body.model_dump())
    return StatusResponse(status=process_with_retry(command))


@return_router.patch("/{return_id}/cancel", response_model=StatusResponse)
async def cancel_return(return_id: str, body: CancelReturnBody) -> StatusResponse:
    command = CancelReturnRequest(return_id=return_id, user_id=body.user_id)
    return StatusResponse(status=process_with_retry(command))
