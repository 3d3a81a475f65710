"""Operator status update — command and handler.

Operators may move an order to any status. Cancelling through this path
runs the regular cancellation so stock and payments stay consistent.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import InvalidState
from storefront.order.cancellation import cancel_order
from storefront.order.order import Order, OrderStatus

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=50)
    notes = String(max_length=1000)
    acting_user_id = Identifier()


@storefront.command_handler(part_of=Order)
class UpdateOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        try:
            new_status = OrderStatus(command.status)
        except ValueError:
            raise InvalidState(f"Unknown order status: {command.status}") from None

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if new_status == OrderStatus.CANCELLED:
            cancel_order(order, reason=command.notes, acting_user_id=command.acting_user_id)
            return order.status

        previous = order.status
        order.change_status(new_status, command.notes)
        repo.add(order)

        logger.info(
            "order.status_updated",
            order_id=str(order.id),
            previous_status=previous,
            new_status=order.status,
            acting_user_id=command.acting_user_id,
        )
        return order.status
