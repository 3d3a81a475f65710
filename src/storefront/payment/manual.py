"""Operator payment actions — manual payments and status overrides."""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import InvalidState
from storefront.order.order import Order, OrderStatus
from storefront.payment.initiation import new_transaction_id
from storefront.payment.payment import Payment, PaymentMethod, PaymentStatus
from storefront.payment.settlement import complete_payment

logger = structlog.get_logger(__name__)

_MANUAL_STATUSES = (PaymentStatus.COMPLETED.value, PaymentStatus.PENDING.value)


@storefront.command(part_of="Payment")
class RecordManualPayment:
    """Record money received outside any gateway (bank transfer, cash)."""

    order_id = Identifier(required=True)
    method = String(required=True, choices=PaymentMethod)
    amount = Float(required=True)
    status = String(max_length=50, default=PaymentStatus.COMPLETED.value)
    transaction_id = String(max_length=255)
    acting_user_id = Identifier()


@storefront.command(part_of="Payment")
class UpdatePaymentStatus:
    """Operator override of a payment's status."""

    payment_id = Identifier(required=True)
    status = String(required=True, choices=PaymentStatus)
    refunded_amount = Float()
    failure_reason = String(max_length=500)
    acting_user_id = Identifier()


@storefront.command_handler(part_of=Payment)
class PaymentAdministrationHandler:
    @handle(RecordManualPayment)
    def record_manual_payment(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)

        amount = round(command.amount, 2)
        if amount <= 0:
            raise ValidationError({"amount": ["Amount must be greater than zero"]})
        if amount > order.total_price:
            raise ValidationError({"amount": ["Amount cannot exceed the order total"]})
        status = command.status or PaymentStatus.COMPLETED.value
        if status not in _MANUAL_STATUSES:
            raise ValidationError({"status": ["Manual payments are either Completed or Pending"]})

        payment = Payment.create(
            order_id=str(order.id),
            method=command.method,
            amount=amount,
            currency=order.currency,
            transaction_id=command.transaction_id or new_transaction_id(order.order_number),
        )
        if status == PaymentStatus.COMPLETED.value:
            complete_payment(payment, order, gateway_response={"source": "manual", "recorded_by": command.acting_user_id})
        else:
            current_domain.repository_for(Payment).add(payment)

        logger.info(
            "payment.manual_recorded",
            payment_id=str(payment.id),
            order_id=str(order.id),
            amount=amount,
            status=payment.status,
            acting_user_id=command.acting_user_id,
        )
        return str(payment.id)

    @handle(UpdatePaymentStatus)
    def update_payment_status(self, command):
        payments = current_domain.repository_for(Payment)
        payment = payments.get(command.payment_id)
        order = current_domain.repository_for(Order).get(str(payment.order_id))
        target = PaymentStatus(command.status)
        refunded_amount = command.refunded_amount
        if refunded_amount is None and target == PaymentStatus.REFUNDED:
            refunded_amount = payment.amount

        if target == PaymentStatus.COMPLETED:
            complete_payment(payment, order, gateway_response={"source": "operator", "updated_by": command.acting_user_id})
        elif refunded_amount is not None:
            if target not in (PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED):
                raise InvalidState("A refunded amount can only be set with a refund status")
            if payment.record_refunded_total(refunded_amount):
                if order.status_enum not in (OrderStatus.CANCELLED, OrderStatus.REFUNDED):
                    order.mark_refunded("Payment marked as refunded")
                    current_domain.repository_for(Order).add(order)
            payments.add(payment)
        elif target == PaymentStatus.FAILED:
            payment.fail(command.failure_reason or "Marked as failed by operator")
            payments.add(payment)
        elif target == PaymentStatus.CANCELLED:
            payment.cancel()
            payments.add(payment)
        else:
            raise InvalidState(f"Payment status cannot be set to {target.value} directly")

        logger.info(
            "payment.status_updated",
            payment_id=str(payment.id),
            status=payment.status,
            acting_user_id=command.acting_user_id,
        )
        return payment.status
