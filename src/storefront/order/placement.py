"""Order placement — command and handler.

Pricing, stock reservation, coupon redemption and the order itself are
written in the handler's single Unit of Work. Any failure (a line over
available stock, an ineligible coupon) aborts all of it.
"""

import json
import secrets
import time

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.config import get_settings
from storefront.coupon.coupon import Coupon
from storefront.domain import storefront
from storefront.errors import InvalidState
from storefront.inventory.ledger import StockLedger
from storefront.order.order import Order
from storefront.order.pricing import LineRequest, quote_order

logger = structlog.get_logger(__name__)

ORDER_NUMBER_ATTEMPTS = 5


def generate_order_number() -> str:
    """``ORD-<last 8 digits of epoch millis>-<3 random digits>``."""
    millis = str(int(time.time() * 1000))[-8:]
    return f"ORD-{millis}-{secrets.randbelow(1000):03d}"


def allocate_order_number() -> str:
    repo = current_domain.repository_for(Order)
    for _ in range(ORDER_NUMBER_ATTEMPTS):
        candidate = generate_order_number()
        if repo.find_by_number(candidate) is None:
            return candidate
    raise InvalidState("Could not allocate a unique order number, please retry")


@storefront.command(part_of="Order")
class PlaceOrder:
    user_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {product_id, variant_id?, quantity}
    customer_name = String(max_length=255)
    customer_email = String(max_length=255)
    customer_phone = String(max_length=50)
    shipping_address = Text()
    coupon_code = String(max_length=50)
    notes = Text()


@storefront.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        items_data = json.loads(command.items) if isinstance(command.items, str) else command.items
        if not isinstance(items_data, list):
            raise ValidationError({"items": ["Items must be a list"]})
        requests = [LineRequest.from_dict(item) for item in items_data]

        ledger = StockLedger()
        quote = quote_order(ledger, requests, coupon_code=command.coupon_code)

        order = Order.place(
            order_number=allocate_order_number(),
            user_id=command.user_id,
            quote=quote,
            customer_name=command.customer_name,
            customer_email=command.customer_email,
            customer_phone=command.customer_phone,
            shipping_address=command.shipping_address,
            currency=get_settings().currency,
            notes=command.notes,
        )

        for line in quote.lines:
            ledger.decrement(
                product_id=line.product_id,
                variant_id=line.variant_id,
                quantity=line.quantity,
                reason="Order placement",
                reference_id=str(order.id),
                user_id=command.user_id,
            )
        ledger.save()

        if quote.coupon is not None:
            quote.coupon.redeem()
            current_domain.repository_for(Coupon).add(quote.coupon)

        current_domain.repository_for(Order).add(order)

        logger.info(
            "order.placed",
            order_id=str(order.id),
            order_number=order.order_number,
            user_id=command.user_id,
            total_price=order.total_price,
            coupon_code=order.coupon_code,
        )
        return str(order.id)
