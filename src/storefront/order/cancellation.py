"""Order cancellation — command, handler and the stock release it shares with refunds."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import InvalidState, PermissionDenied
from storefront.inventory.ledger import StockLedger
from storefront.order.order import Order, OrderStatus
from storefront.payment.payment import Payment
from storefront.returns.return_request import ReturnRequest

logger = structlog.get_logger(__name__)

PAID_ORDER_MESSAGE = (
    "Order cannot be cancelled because payment has been completed. Please request a refund instead."
)


def release_order_stock(ledger: StockLedger, order: Order, reason: str, user_id: str | None = None) -> None:
    """Put every order item back in stock, minus what approved returns already restocked."""
    restocked = current_domain.repository_for(ReturnRequest).restocked_quantities(str(order.id))
    for item in order.items or []:
        quantity = item.quantity - restocked.get(str(item.id), 0)
        if quantity <= 0:
            continue
        ledger.restore(
            product_id=str(item.product_id),
            variant_id=str(item.variant_id) if item.variant_id else None,
            quantity=quantity,
            reason=reason,
            reference_id=str(order.id),
            user_id=user_id,
        )


def cancel_order(order: Order, reason: str | None = None, acting_user_id: str | None = None) -> None:
    """Cancel a PENDING/PROCESSING order that has no completed payment.

    Stock for every item is restored and open payments are cancelled. All
    writes join the caller's Unit of Work.
    """
    payments = current_domain.repository_for(Payment)
    order_payments = payments.for_order(str(order.id))
    closed = order.status_enum in (OrderStatus.CANCELLED, OrderStatus.REFUNDED)
    if not closed and any(payment.is_settled for payment in order_payments):
        raise InvalidState(PAID_ORDER_MESSAGE)

    order.assert_cancellable()

    ledger = StockLedger()
    release_order_stock(ledger, order, reason=f"Order cancelled: {reason}" if reason else "Order cancelled")
    order.cancel(reason=reason)

    for payment in order_payments:
        if payment.is_open:
            payment.cancel()
            payments.add(payment)

    ledger.save()
    current_domain.repository_for(Order).add(order)

    logger.info(
        "order.cancelled",
        order_id=str(order.id),
        order_number=order.order_number,
        reason=reason,
        acting_user_id=acting_user_id,
    )


@storefront.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    user_id = Identifier()  # When set, only the owner may cancel
    reason = String(max_length=500)


@storefront.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        if command.user_id and str(order.user_id) != str(command.user_id):
            raise PermissionDenied("You can only cancel your own orders")

        cancel_order(order, reason=command.reason, acting_user_id=command.user_id)
        return order.status
