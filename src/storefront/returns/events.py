"""Domain events raised by the ReturnRequest aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from storefront.domain import storefront


@storefront.event(part_of="ReturnRequest")
class ReturnRequested:
    return_id = Identifier(required=True)
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    refund_amount = Float(required=True)
    requested_at = DateTime(required=True)


@storefront.event(part_of="ReturnRequest")
class ReturnStatusChanged:
    return_id = Identifier(required=True)
    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)
