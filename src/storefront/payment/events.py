"""Domain events raised by the Payment aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, String

from storefront.domain import storefront


@storefront.event(part_of="Payment")
class PaymentCompleted:
    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    method = String(required=True)
    amount = Float(required=True)
    currency = String(max_length=3)
    transaction_id = String()
    paid_at = DateTime(required=True)


@storefront.event(part_of="Payment")
class PaymentFailed:
    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    reason = String()
    failed_at = DateTime(required=True)


@storefront.event(part_of="Payment")
class PaymentRefunded:
    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    refund_amount = Float(required=True)
    refunded_total = Float(required=True)
    fully_refunded = Boolean(default=False)
    refunded_at = DateTime(required=True)
