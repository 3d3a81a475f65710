"""Webhook/callback reconciler — command and handler.

Gateway adapters turn whatever they receive into a ``GatewayNotification``;
the HTTP layer forwards it here as a ``ReconcilePayment`` command. The
handler finds the payment the notification is about and converges payment
and order state in one Unit of Work.

Gateways retry deliveries they think failed, so nothing here raises for a
notification that is well-formed but cannot be acted on. The handler
returns an outcome string instead:

- ``completed`` / ``failed`` / ``refunded``: state changed
- ``duplicate``: the change had already been applied
- ``unmatched``: no payment could be found
- ``rejected``: the reported amount does not match the payment
- ``ignored``: nothing to do for this kind of notification
"""

import json

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.gateway.port import GatewayNotification, NotificationKind
from storefront.order.order import Order, OrderStatus
from storefront.payment.payment import REFUNDABLE_STATUSES, Payment
from storefront.payment.settlement import complete_payment

logger = structlog.get_logger(__name__)

AMOUNT_TOLERANCE = 0.01


@storefront.command(part_of="Payment")
class ReconcilePayment:
    """A normalized gateway notification to apply."""

    kind = String(required=True, choices=NotificationKind)
    method = String(max_length=50)
    event_type = String(max_length=100)
    session_id = String(max_length=255)
    transaction_id = String(max_length=255)
    payment_id = Identifier()
    order_id = Identifier()
    amount = Float()
    refunded_amount = Float()
    failure_reason = String(max_length=500)
    gateway_reference = String(max_length=255)
    gateway_response = Text()  # JSON object

    @classmethod
    def from_notification(cls, notification: GatewayNotification, method: str):
        return cls(
            kind=notification.kind.value,
            method=method,
            event_type=notification.event_type,
            session_id=notification.session_id,
            transaction_id=notification.transaction_id,
            payment_id=notification.payment_id,
            order_id=notification.order_id,
            amount=notification.amount,
            refunded_amount=notification.refunded_amount,
            failure_reason=notification.failure_reason,
            gateway_reference=notification.gateway_reference,
            gateway_response=json.dumps(notification.gateway_response, default=str),
        )


@storefront.command_handler(part_of=Payment)
class ReconcilePaymentHandler:
    @handle(ReconcilePayment)
    def reconcile(self, command):
        kind = NotificationKind(command.kind)
        if kind == NotificationKind.UNHANDLED:
            logger.info("payment.reconcile.ignored", event_type=command.event_type, method=command.method)
            return "ignored"

        payment = self._locate(command)
        if payment is None:
            logger.warning(
                "payment.reconcile.unmatched",
                kind=command.kind,
                event_type=command.event_type,
                session_id=command.session_id,
                transaction_id=command.transaction_id,
                payment_id=command.payment_id,
                order_id=command.order_id,
            )
            return "unmatched"

        order = current_domain.repository_for(Order).get(str(payment.order_id))
        gateway_response = json.loads(command.gateway_response) if command.gateway_response else None

        if kind == NotificationKind.COMPLETED:
            return self._completed(command, payment, order, gateway_response)
        if kind == NotificationKind.FAILED:
            return self._failed(command, payment, gateway_response)
        return self._refunded(command, payment, order)

    def _locate(self, command) -> Payment | None:
        payments = current_domain.repository_for(Payment)

        # The session stored on the order is the primary key for card webhooks
        if command.session_id:
            order = current_domain.repository_for(Order).find_by_checkout_session(command.session_id)
            if order is not None:
                payment = payments.open_for_order(str(order.id)) or payments.latest_for_order(str(order.id))
                if payment is not None:
                    return payment

        if command.transaction_id:
            payment = payments.find_by_transaction(command.transaction_id)
            if payment is not None:
                return payment

        if command.payment_id:
            try:
                return payments.get(command.payment_id)
            except ObjectNotFoundError:
                pass

        if command.order_id:
            return payments.open_for_order(command.order_id) or payments.latest_for_order(command.order_id)
        return None

    def _completed(self, command, payment: Payment, order: Order, gateway_response: dict | None) -> str:
        if command.amount is not None and abs(command.amount - payment.amount) > AMOUNT_TOLERANCE:
            logger.warning(
                "payment.reconcile.amount_mismatch",
                payment_id=str(payment.id),
                expected=payment.amount,
                reported=command.amount,
            )
            return "rejected"

        completed = complete_payment(
            payment,
            order,
            gateway_response=gateway_response,
            transaction_id=command.transaction_id,
            gateway_reference=command.gateway_reference or command.session_id,
        )
        return "completed" if completed else "duplicate"

    def _failed(self, command, payment: Payment, gateway_response: dict | None) -> str:
        if not payment.is_open:
            logger.info(
                "payment.reconcile.failure_ignored",
                payment_id=str(payment.id),
                status=payment.status,
            )
            return "ignored"

        reason = command.failure_reason or "Payment failed"
        payment.fail(reason, gateway_response=gateway_response)
        current_domain.repository_for(Payment).add(payment)

        logger.info("payment.failed", payment_id=str(payment.id), order_id=str(payment.order_id), reason=reason)
        return "failed"

    def _refunded(self, command, payment: Payment, order: Order) -> str:
        if command.refunded_amount is None or payment.status_enum not in REFUNDABLE_STATUSES:
            logger.info(
                "payment.reconcile.refund_ignored",
                payment_id=str(payment.id),
                status=payment.status,
                refunded_amount=command.refunded_amount,
            )
            return "ignored"

        if round(command.refunded_amount, 2) <= round(payment.refunded_amount or 0.0, 2):
            logger.info("payment.reconcile.duplicate_refund", payment_id=str(payment.id))
            return "duplicate"

        fully_refunded = payment.record_refunded_total(command.refunded_amount)
        if fully_refunded and order.status_enum not in (OrderStatus.CANCELLED, OrderStatus.REFUNDED):
            order.mark_refunded("Payment fully refunded by the gateway")
        else:
            order.add_note(f"Refund of ${payment.refunded_amount:.2f} reported by the gateway")

        current_domain.repository_for(Payment).add(payment)
        current_domain.repository_for(Order).add(order)

        logger.info(
            "payment.refunded",
            payment_id=str(payment.id),
            order_id=str(order.id),
            refunded_amount=payment.refunded_amount,
            fully_refunded=fully_refunded,
        )
        return "refunded"
