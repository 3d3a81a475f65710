"""Order aggregate with OrderItem and OrderTracking entities.

Items and the customer snapshot are written once at placement. Status moves
through the lifecycle below and every change appends an OrderTracking row,
the order's audit trail.

Lifecycle:
    PENDING → PROCESSING → PAID → SHIPPED → DELIVERED
    PENDING/PROCESSING → CANCELLED
    PAID/... → REFUNDED
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text

from storefront.domain import storefront
from storefront.errors import InvalidState
from storefront.order.events import OrderCancelled, OrderPlaced, OrderStatusChanged
from storefront.order.pricing import Quote


class OrderStatus(Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    PAID = "Paid"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


_CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.PROCESSING}

# States in which a completed payment moves the order to PAID
PAYABLE_STATES = {OrderStatus.PENDING, OrderStatus.PROCESSING}


@storefront.entity(part_of="Order")
class OrderItem:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    product_name = String(required=True, max_length=255)
    product_slug = String(max_length=255)
    variant_name = String(max_length=100)
    original_price = Float(required=True)
    unit_price = Float(required=True)
    quantity = Integer(required=True, min_value=1)


@storefront.entity(part_of="Order")
class OrderTracking:
    status = String(required=True, max_length=50)
    notes = String(max_length=1000)
    created_at = DateTime(required=True)


@storefront.aggregate
class Order:
    order_number = String(required=True, max_length=50, unique=True)
    user_id = Identifier(required=True)
    customer_name = String(max_length=255)
    customer_email = String(max_length=255)
    customer_phone = String(max_length=50)
    shipping_address = Text()
    subtotal = Float(default=0.0)
    discount_amount = Float(default=0.0)
    total_price = Float(default=0.0)
    currency = String(max_length=3, default="USD")
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    coupon_id = Identifier()
    coupon_code = String(max_length=50)
    checkout_session_id = String(max_length=255)
    notes = Text()
    items = HasMany(OrderItem)
    tracking = HasMany(OrderTracking)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def place(
        cls,
        order_number: str,
        user_id: str,
        quote: Quote,
        customer_name: str | None = None,
        customer_email: str | None = None,
        customer_phone: str | None = None,
        shipping_address: str | None = None,
        currency: str = "USD",
        notes: str | None = None,
    ):
        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            user_id=user_id,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone,
            shipping_address=shipping_address,
            subtotal=quote.subtotal,
            discount_amount=quote.discount_amount,
            total_price=quote.total_price,
            currency=currency,
            coupon_id=str(quote.coupon.id) if quote.coupon else None,
            coupon_code=quote.coupon.code if quote.coupon else None,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        for line in quote.lines:
            order.add_items(
                OrderItem(
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                    product_name=line.product_name,
                    product_slug=line.product_slug,
                    variant_name=line.variant_name,
                    original_price=line.base_price,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                )
            )
        order._track(OrderStatus.PENDING.value, "Order created", now)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                user_id=user_id,
                subtotal=order.subtotal,
                discount_amount=order.discount_amount,
                total_price=order.total_price,
                coupon_code=order.coupon_code,
                placed_at=now,
            )
        )
        return order

    def _track(self, status: str, notes: str | None, at: datetime) -> None:
        self.add_tracking(OrderTracking(status=status, notes=notes, created_at=at))

    @property
    def status_enum(self) -> OrderStatus:
        return OrderStatus(self.status)

    def tracking_history(self) -> list[OrderTracking]:
        return sorted(self.tracking or [], key=lambda entry: entry.created_at)

    def change_status(self, new_status: OrderStatus, notes: str | None = None) -> None:
        """Move to ``new_status`` and record it in the tracking history.

        No transition rules are applied here; callers gate the transitions
        that have business rules attached.
        """
        now = datetime.now(UTC)
        previous = self.status
        notes = notes or f"Order status changed to {new_status.value}"

        self.status = new_status.value
        self.updated_at = now
        self._track(new_status.value, notes, now)
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=previous,
                new_status=new_status.value,
                notes=notes,
                changed_at=now,
            )
        )

    def add_note(self, notes: str) -> None:
        """Append a tracking entry without changing status."""
        now = datetime.now(UTC)
        self.updated_at = now
        self._track(self.status, notes, now)

    def attach_checkout_session(self, session_id: str) -> None:
        self.checkout_session_id = session_id
        self.updated_at = datetime.now(UTC)

    @property
    def is_cancellable(self) -> bool:
        return self.status_enum in _CANCELLABLE_STATES

    def assert_cancellable(self) -> None:
        if not self.is_cancellable:
            raise InvalidState(f"Order cannot be cancelled in its current status: {self.status}")

    def cancel(self, reason: str | None = None, notes: str | None = None) -> None:
        self.assert_cancellable()
        self._close(reason, notes or "Order cancelled")

    def cancel_for_refund(self, reason: str) -> None:
        """Cancel because the payment was fully refunded, from any open state."""
        if self.status_enum in (OrderStatus.CANCELLED, OrderStatus.REFUNDED):
            raise InvalidState(f"Order is already {self.status}")
        self._close(reason, f"Order cancelled due to refund: {reason}")

    def _close(self, reason: str | None, notes: str) -> None:
        self.change_status(OrderStatus.CANCELLED, notes)
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason=reason,
                cancelled_at=self.updated_at,
            )
        )

    def mark_processing(self, notes: str | None = None) -> None:
        self.change_status(OrderStatus.PROCESSING, notes)

    def mark_paid(self) -> None:
        self.change_status(OrderStatus.PAID, "Payment completed successfully")

    def mark_refunded(self, notes: str) -> None:
        self.change_status(OrderStatus.REFUNDED, notes)
