"""Payment initiation — command and handler.

Reuses the order's open payment (or creates one) and asks the gateway for
the customer's next step. Nothing here touches stock; the order only moves
when the gateway says so up front (cash on delivery starts processing).
"""

from uuid import uuid4

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import InvalidState, PermissionDenied
from storefront.gateway import get_gateway
from storefront.gateway.port import CheckoutLine, CheckoutRequest
from storefront.order.order import PAYABLE_STATES, Order, OrderStatus
from storefront.payment.payment import Payment, PaymentMethod

logger = structlog.get_logger(__name__)


def new_transaction_id(order_number: str) -> str:
    return f"TXN-{order_number}-{uuid4().hex[:10]}"


def checkout_request_for(order: Order, payment: Payment) -> CheckoutRequest:
    lines = tuple(
        CheckoutLine(
            name=f"{item.product_name} ({item.variant_name})" if item.variant_name else item.product_name,
            unit_amount=item.unit_price,
            quantity=item.quantity,
        )
        for item in order.items or []
    )
    return CheckoutRequest(
        order_id=str(order.id),
        order_number=order.order_number,
        payment_id=str(payment.id),
        transaction_id=payment.transaction_id,
        amount=payment.amount,
        currency=payment.currency,
        lines=lines,
        customer_name=order.customer_name,
        customer_email=order.customer_email,
        customer_phone=order.customer_phone,
        shipping_address=order.shipping_address,
    )


@storefront.command(part_of="Payment")
class InitiatePayment:
    """Start (or restart) payment of an order through a gateway."""

    order_id = Identifier(required=True)
    method = String(required=True, choices=PaymentMethod)
    user_id = Identifier()  # When set, only the owner may pay


@storefront.command_handler(part_of=Payment)
class InitiatePaymentHandler:
    @handle(InitiatePayment)
    def initiate_payment(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        if command.user_id and str(order.user_id) != str(command.user_id):
            raise PermissionDenied("You can only pay for your own orders")
        if order.status_enum not in PAYABLE_STATES:
            raise InvalidState(f"Order cannot be paid in its current status: {order.status}")

        gateway = get_gateway(command.method)

        payments = current_domain.repository_for(Payment)
        payment = payments.open_for_order(str(order.id))
        if payment is None:
            payment = Payment.create(
                order_id=str(order.id),
                method=command.method,
                amount=order.total_price,
                currency=order.currency,
                transaction_id=new_transaction_id(order.order_number),
            )
        else:
            payment.switch_method(command.method)
            if not payment.transaction_id:
                payment.record_initiation(new_transaction_id(order.order_number))

        result = gateway.initiate(checkout_request_for(order, payment))

        payment.record_initiation(result.transaction_id, result.gateway_response)
        if result.session_id:
            order.attach_checkout_session(result.session_id)
        if result.order_status == OrderStatus.PROCESSING.value and order.status_enum == OrderStatus.PENDING:
            order.mark_processing("Cash on delivery order confirmed")

        payments.add(payment)
        current_domain.repository_for(Order).add(order)

        logger.info(
            "payment.initiated",
            payment_id=str(payment.id),
            order_id=str(order.id),
            method=payment.method,
            session_id=result.session_id,
        )
        return {
            "payment_id": str(payment.id),
            "method": payment.method,
            "redirect_url": result.redirect_url,
            "session_id": result.session_id,
        }
