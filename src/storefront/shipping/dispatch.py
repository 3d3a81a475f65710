"""Shipping — commands, handler and tracking lookup."""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import InvalidState
from storefront.order.order import Order, OrderStatus
from storefront.shipping.shipping import ShippingRecord

logger = structlog.get_logger(__name__)

_SHIPPABLE_STATES = {OrderStatus.PAID, OrderStatus.PROCESSING}


@storefront.command(part_of="ShippingRecord")
class AddShipping:
    order_id = Identifier(required=True)
    carrier = String(required=True, max_length=100)
    tracking_number = String(required=True, max_length=100)
    estimated_days = Integer(min_value=0)
    notes = Text()
    acting_user_id = Identifier()


@storefront.command(part_of="ShippingRecord")
class UpdateShipping:
    order_id = Identifier(required=True)
    carrier = String(max_length=100)
    tracking_number = String(max_length=100)
    estimated_days = Integer(min_value=0)
    notes = Text()
    delivered_at = DateTime()
    acting_user_id = Identifier()


@storefront.command_handler(part_of=ShippingRecord)
class ShippingHandler:
    @handle(AddShipping)
    def add_shipping(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        if order.status_enum not in _SHIPPABLE_STATES:
            raise InvalidState(f"Order cannot be shipped in its current status: {order.status}")

        repo = current_domain.repository_for(ShippingRecord)
        if repo.for_order(str(order.id)) is not None:
            raise InvalidState("Shipping information already exists for this order")
        if repo.find_by_tracking_number(command.tracking_number) is not None:
            raise ValidationError({"tracking_number": ["Tracking number is already in use"]})

        record = ShippingRecord.ship(
            order_id=str(order.id),
            carrier=command.carrier,
            tracking_number=command.tracking_number,
            estimated_days=command.estimated_days,
            notes=command.notes,
        )
        order.change_status(
            OrderStatus.SHIPPED,
            f"Order shipped via {command.carrier} with tracking #{command.tracking_number}",
        )

        repo.add(record)
        current_domain.repository_for(Order).add(order)

        logger.info(
            "order.shipped",
            order_id=str(order.id),
            carrier=record.carrier,
            tracking_number=record.tracking_number,
            acting_user_id=command.acting_user_id,
        )
        return str(record.id)

    @handle(UpdateShipping)
    def update_shipping(self, command):
        repo = current_domain.repository_for(ShippingRecord)
        record = repo.for_order(command.order_id)
        if record is None:
            raise ObjectNotFoundError(f"No shipping information for order {command.order_id}")

        record.revise(
            carrier=command.carrier,
            tracking_number=command.tracking_number,
            estimated_days=command.estimated_days,
            notes=command.notes,
        )

        if command.delivered_at:
            order = current_domain.repository_for(Order).get(command.order_id)
            if order.status_enum != OrderStatus.SHIPPED:
                raise InvalidState(f"Order cannot be delivered in its current status: {order.status}")
            record.mark_delivered(command.delivered_at)
            order.change_status(OrderStatus.DELIVERED, "Order delivered successfully")
            current_domain.repository_for(Order).add(order)
            logger.info("order.delivered", order_id=str(order.id), delivered_at=str(command.delivered_at))

        repo.add(record)
        return str(record.id)


def track_shipment(tracking_number: str) -> dict:
    """Shipment details and current order status for a tracking number."""
    record = current_domain.repository_for(ShippingRecord).find_by_tracking_number(tracking_number)
    if record is None:
        raise ObjectNotFoundError(f"No shipment with tracking number {tracking_number}")
    order = current_domain.repository_for(Order).get(str(record.order_id))

    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "order_status": order.status,
        "carrier": record.carrier,
        "tracking_number": record.tracking_number,
        "shipped_at": record.shipped_at,
        "estimated_days": record.estimated_days,
        "estimated_delivery": record.estimated_delivery,
        "delivered_at": record.delivered_at,
    }
