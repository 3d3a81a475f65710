"""Payment aggregate — one attempt at moving money for an order.

An order may have several payments (retries create new rows). Only the
reconciler, the refund handler and operator overrides mutate a payment, and
no payment is ever deleted.

State Machine:
    PENDING/PROCESSING → COMPLETED | FAILED | CANCELLED
    FAILED/CANCELLED → COMPLETED (late success reported by the gateway)
    COMPLETED → PARTIALLY_REFUNDED → REFUNDED
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, Identifier, String, Text

from storefront.domain import storefront
from storefront.errors import InvalidState
from storefront.payment.events import PaymentCompleted, PaymentFailed, PaymentRefunded

# Refunds within a cent of the remaining amount count as full refunds
_CENT = 0.005


class PaymentStatus(Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"
    PARTIALLY_REFUNDED = "Partially_Refunded"
    REFUNDED = "Refunded"


class PaymentMethod(Enum):
    CARD = "Card"
    REGIONAL = "Regional"
    CASH_ON_DELIVERY = "Cash_On_Delivery"
    PAYPAL = "Paypal"
    RAZORPAY = "Razorpay"


_VALID_TRANSITIONS = {
    PaymentStatus.PENDING: {
        PaymentStatus.PROCESSING,
        PaymentStatus.COMPLETED,
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
    },
    PaymentStatus.PROCESSING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.CANCELLED},
    PaymentStatus.FAILED: {PaymentStatus.COMPLETED},
    PaymentStatus.CANCELLED: {PaymentStatus.COMPLETED},
    PaymentStatus.COMPLETED: {PaymentStatus.PARTIALLY_REFUNDED, PaymentStatus.REFUNDED},
    PaymentStatus.PARTIALLY_REFUNDED: {PaymentStatus.PARTIALLY_REFUNDED, PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),  # Terminal
}

OPEN_STATUSES = {PaymentStatus.PENDING, PaymentStatus.PROCESSING}

# Money has been captured for these, whatever has been refunded since
SETTLED_STATUSES = {PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_REFUNDED, PaymentStatus.REFUNDED}

REFUNDABLE_STATUSES = {PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_REFUNDED}


@storefront.aggregate
class Payment:
    order_id = Identifier(required=True)
    method = String(required=True, choices=PaymentMethod)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="USD")
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    transaction_id = String(max_length=255)
    gateway_response = Text()
    refunded_amount = Float(default=0.0)
    refunded_at = DateTime()
    paid_at = DateTime()
    failure_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, order_id: str, method: str, amount: float, currency: str = "USD", transaction_id: str | None = None):
        now = datetime.now(UTC)
        return cls(
            order_id=order_id,
            method=method,
            amount=round(amount, 2),
            currency=currency,
            transaction_id=transaction_id,
            created_at=now,
            updated_at=now,
        )

    @property
    def status_enum(self) -> PaymentStatus:
        return PaymentStatus(self.status)

    @property
    def is_open(self) -> bool:
        return self.status_enum in OPEN_STATUSES

    @property
    def is_settled(self) -> bool:
        return self.status_enum in SETTLED_STATUSES

    @property
    def refundable_amount(self) -> float:
        return round(self.amount - (self.refunded_amount or 0.0), 2)

    @property
    def response(self) -> dict:
        return json.loads(self.gateway_response) if self.gateway_response else {}

    def _assert_can_transition(self, target_status: PaymentStatus) -> None:
        current = self.status_enum
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidState(f"Cannot transition payment from {current.value} to {target_status.value}")

    def _store_response(self, gateway_response: dict | None) -> None:
        if gateway_response:
            self.gateway_response = json.dumps(gateway_response, default=str)

    def switch_method(self, method: str) -> None:
        if not self.is_open:
            raise InvalidState(f"Cannot change the method of a {self.status} payment")
        self.method = method
        self.updated_at = datetime.now(UTC)

    def record_initiation(self, transaction_id: str | None, gateway_response: dict | None = None) -> None:
        if transaction_id:
            self.transaction_id = transaction_id
        self._store_response(gateway_response)
        self.updated_at = datetime.now(UTC)

    def complete(self, gateway_response: dict | None = None, transaction_id: str | None = None) -> None:
        self._assert_can_transition(PaymentStatus.COMPLETED)
        now = datetime.now(UTC)
        self.status = PaymentStatus.COMPLETED.value
        self.paid_at = now
        self.failure_reason = None
        if transaction_id:
            self.transaction_id = transaction_id
        self._store_response(gateway_response)
        self.updated_at = now

        self.raise_(
            PaymentCompleted(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                method=self.method,
                amount=self.amount,
                currency=self.currency,
                transaction_id=self.transaction_id,
                paid_at=now,
            )
        )

    def fail(self, reason: str, gateway_response: dict | None = None) -> None:
        self._assert_can_transition(PaymentStatus.FAILED)
        now = datetime.now(UTC)
        self.status = PaymentStatus.FAILED.value
        self.failure_reason = reason
        self._store_response(gateway_response)
        self.updated_at = now

        self.raise_(
            PaymentFailed(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                reason=reason,
                failed_at=now,
            )
        )

    def cancel(self) -> None:
        self._assert_can_transition(PaymentStatus.CANCELLED)
        self.status = PaymentStatus.CANCELLED.value
        self.updated_at = datetime.now(UTC)

    def refund(self, amount: float) -> bool:
        """Refund ``amount`` on top of what was already refunded.

        Returns True when the payment ends up fully refunded.
        """
        if self.status_enum not in REFUNDABLE_STATUSES:
            raise InvalidState("Refunds are only possible for completed or partially refunded payments")
        if amount <= 0:
            raise InvalidState("Refund amount must be greater than zero")
        if amount > self.refundable_amount + _CENT:
            raise InvalidState(
                f"Refund amount ({amount:.2f}) exceeds the refundable balance ({self.refundable_amount:.2f})"
            )
        return self.record_refunded_total((self.refunded_amount or 0.0) + amount)

    def record_refunded_total(self, total: float) -> bool:
        """Set the cumulative refunded amount reported for this payment.

        Returns True when the payment ends up fully refunded.
        """
        total = round(min(total, self.amount), 2)
        fully_refunded = total >= self.amount - _CENT
        target = PaymentStatus.REFUNDED if fully_refunded else PaymentStatus.PARTIALLY_REFUNDED
        self._assert_can_transition(target)

        now = datetime.now(UTC)
        refund_amount = round(total - (self.refunded_amount or 0.0), 2)
        self.refunded_amount = total
        self.refunded_at = now
        self.status = target.value
        self.updated_at = now

        self.raise_(
            PaymentRefunded(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                refund_amount=refund_amount,
                refunded_total=total,
                fully_refunded=fully_refunded,
                refunded_at=now,
            )
        )
        return fully_refunded


@storefront.repository(part_of=Payment)
class PaymentRepository:
    def for_order(self, order_id: str) -> list[Payment]:
        payments = self._dao.query.filter(order_id=order_id).all().items
        return sorted(payments, key=lambda payment: payment.created_at)

    def open_for_order(self, order_id: str) -> Payment | None:
        return next((p for p in reversed(self.for_order(order_id)) if p.is_open), None)

    def latest_for_order(self, order_id: str) -> Payment | None:
        payments = self.for_order(order_id)
        return payments[-1] if payments else None

    def find_by_transaction(self, transaction_id: str) -> Payment | None:
        return self._dao.query.filter(transaction_id=transaction_id).all().first
