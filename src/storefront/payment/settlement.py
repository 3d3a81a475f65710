"""Payment completion procedure shared by the reconciler and operator actions.

Stock was already taken when the order was placed, so completing a payment
confirms that reservation and leaves stock counters untouched. The procedure
marks the payment completed, moves a payable order to PAID and issues the
invoice, and it is a no-op for a payment that is already settled. Running it
twice for the same real-world payment therefore changes nothing the second
time.
"""

import structlog
from protean.utils.globals import current_domain

from storefront.invoice.invoice import Invoice
from storefront.order.order import PAYABLE_STATES, Order
from storefront.payment.payment import Payment

logger = structlog.get_logger(__name__)


def complete_payment(
    payment: Payment,
    order: Order,
    gateway_response: dict | None = None,
    transaction_id: str | None = None,
    gateway_reference: str | None = None,
) -> bool:
    """Complete ``payment`` and persist the payment, the order and the invoice.

    Returns False, with nothing written, when the payment was already settled.
    """
    if payment.is_settled:
        logger.info(
            "payment.completion.duplicate",
            payment_id=str(payment.id),
            order_id=str(order.id),
            status=payment.status,
        )
        return False

    payment.complete(gateway_response=gateway_response, transaction_id=transaction_id)

    if order.status_enum in PAYABLE_STATES:
        order.mark_paid()
    else:
        # Money arrived for an order that can no longer be paid (typically
        # cancelled). Keep the order as is and leave a trail for a refund.
        order.add_note(f"Payment {payment.id} received while order was {order.status}; refund required")
        logger.warning(
            "payment.completed_for_closed_order",
            payment_id=str(payment.id),
            order_id=str(order.id),
            order_status=order.status,
        )

    invoices = current_domain.repository_for(Invoice)
    if invoices.find_by_payment(str(payment.id)) is None:
        invoices.add(
            Invoice.issue(
                order_id=str(order.id),
                order_number=order.order_number,
                payment_id=str(payment.id),
                amount=payment.amount,
                currency=payment.currency,
                gateway_reference=gateway_reference,
            )
        )

    current_domain.repository_for(Payment).add(payment)
    current_domain.repository_for(Order).add(order)

    logger.info(
        "payment.completed",
        payment_id=str(payment.id),
        order_id=str(order.id),
        order_number=order.order_number,
        amount=payment.amount,
        method=payment.method,
    )
    return True
