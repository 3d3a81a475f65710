"""Admin refund of a payment — command and handler.

A refund that covers the rest of the payment cancels the order and puts its
items back in stock (less anything an approved return already restocked).
A partial refund only leaves a note on the order.
"""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.inventory.ledger import StockLedger
from storefront.order.cancellation import release_order_stock
from storefront.order.order import Order, OrderStatus
from storefront.payment.payment import Payment

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Payment")
class RefundPayment:
    payment_id = Identifier(required=True)
    amount = Float(required=True)
    reason = String(max_length=500)
    acting_user_id = Identifier()


@storefront.command_handler(part_of=Payment)
class RefundPaymentHandler:
    @handle(RefundPayment)
    def refund_payment(self, command):
        payments = current_domain.repository_for(Payment)
        payment = payments.get(command.payment_id)
        order = current_domain.repository_for(Order).get(str(payment.order_id))

        amount = round(command.amount, 2)
        reason = command.reason or "Refund issued"
        fully_refunded = payment.refund(amount)

        if fully_refunded and order.status_enum not in (OrderStatus.CANCELLED, OrderStatus.REFUNDED):
            ledger = StockLedger()
            release_order_stock(ledger, order, reason=f"Refund: {reason}", user_id=command.acting_user_id)
            order.cancel_for_refund(reason)
            ledger.save()
        elif not fully_refunded:
            order.add_note(f"Partial refund of ${amount:.2f} processed")

        payments.add(payment)
        current_domain.repository_for(Order).add(order)

        logger.info(
            "payment.refund_issued",
            payment_id=str(payment.id),
            order_id=str(order.id),
            amount=amount,
            refunded_total=payment.refunded_amount,
            fully_refunded=fully_refunded,
            acting_user_id=command.acting_user_id,
        )
        return payment.status
