"""Domain events raised by the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    order_id = Identifier(required=True)
    order_number = String(required=True)
    user_id = Identifier(required=True)
    subtotal = Float(required=True)
    discount_amount = Float(required=True)
    total_price = Float(required=True)
    coupon_code = String()
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderStatusChanged:
    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    notes = String()
    changed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderCancelled:
    order_id = Identifier(required=True)
    reason = String()
    cancelled_at = DateTime(required=True)
