"""Return request creation — command and handler.

A customer may ask to return items of one of their delivered orders within
the return window, once per order. Each requested line must match an item
of the order (by product and variant), and the lines for one item together
may not exceed what was bought.
The refund for a line is its unit price times quantity, scaled by the
condition the goods are in.
"""

import json
from datetime import UTC, datetime, timedelta

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.config import get_settings
from storefront.domain import storefront
from storefront.errors import PermissionDenied, ReturnAlreadyExists, ReturnNotEligible
from storefront.order.order import Order, OrderItem, OrderStatus
from storefront.returns.return_request import ItemCondition, ReturnItem, ReturnRequest, item_refund

logger = structlog.get_logger(__name__)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def assert_within_window(order: Order, now: datetime | None = None) -> None:
    window = timedelta(days=get_settings().return_window_days)
    now = now or datetime.now(UTC)
    if now - _aware(order.created_at) > window:
        raise ReturnNotEligible(f"Return window of {window.days} days has expired for this order")


def _match_item(order: Order, product_id: str, variant_id: str | None) -> OrderItem:
    for item in order.items or []:
        same_variant = (str(item.variant_id) if item.variant_id else None) == variant_id
        if str(item.product_id) == product_id and same_variant:
            return item
    raise ReturnNotEligible(f"Product {product_id} is not part of this order")


def build_return_items(order: Order, lines: list[dict]) -> list[ReturnItem]:
    if not lines:
        raise ValidationError({"items": ["At least one item is required"]})

    items = []
    requested: dict[str, int] = {}
    for line in lines:
        if not isinstance(line, dict) or not line.get("product_id"):
            raise ValidationError({"items": ["Each item needs a product_id"]})
        quantity = line.get("quantity")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise ValidationError({"items": ["Each item needs a whole quantity of at least 1"]})
        try:
            condition = ItemCondition(line.get("condition", ItemCondition.UNOPENED.value))
        except ValueError:
            raise ValidationError({"items": [f"Unknown item condition: {line.get('condition')}"]}) from None

        variant_id = str(line["variant_id"]) if line.get("variant_id") else None
        order_item = _match_item(order, str(line["product_id"]), variant_id)
        # Lines for the same order item count against one purchased quantity
        total = requested.get(str(order_item.id), 0) + quantity
        if total > order_item.quantity:
            raise ReturnNotEligible(
                f"Cannot return {total} of {order_item.product_name}; only {order_item.quantity} purchased"
            )
        requested[str(order_item.id)] = total

        items.append(
            ReturnItem(
                order_item_id=str(order_item.id),
                product_id=str(order_item.product_id),
                variant_id=variant_id,
                quantity=quantity,
                condition=condition.value,
                unit_price=order_item.unit_price,
                refund_amount=item_refund(order_item.unit_price, quantity, condition),
                reason=line.get("reason"),
            )
        )
    return items


@storefront.command(part_of="ReturnRequest")
class RequestReturn:
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    reason = String(required=True, max_length=1000)
    items = Text(required=True)  # JSON: list of {product_id, variant_id?, quantity, condition, reason?}


@storefront.command_handler(part_of=ReturnRequest)
class RequestReturnHandler:
    @handle(RequestReturn)
    def request_return(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        if str(order.user_id) != str(command.user_id):
            raise PermissionDenied("You can only return items from your own orders")
        if order.status_enum != OrderStatus.DELIVERED:
            raise ReturnNotEligible("Only delivered orders can be returned")
        assert_within_window(order)

        repo = current_domain.repository_for(ReturnRequest)
        if repo.find_for_order_and_user(str(order.id), str(command.user_id)) is not None:
            raise ReturnAlreadyExists("A return request already exists for this order")

        lines = json.loads(command.items) if isinstance(command.items, str) else command.items
        if not isinstance(lines, list):
            raise ValidationError({"items": ["Items must be a list"]})

        request = ReturnRequest.open(
            order_id=str(order.id),
            user_id=str(command.user_id),
            reason=command.reason,
            items=build_return_items(order, lines),
        )
        repo.add(request)

        logger.info(
            "return.requested",
            return_id=str(request.id),
            order_id=str(order.id),
            user_id=command.user_id,
            refund_amount=request.refund_amount,
        )
        return str(request.id)
