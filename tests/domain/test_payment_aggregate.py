"""Tests for the Payment aggregate state machine and refund arithmetic."""

import pytest
from storefront.errors import InvalidState
from storefront.payment.events import PaymentCompleted, PaymentFailed, PaymentRefunded
from storefront.payment.payment import Payment, PaymentStatus


def _make_payment(**overrides):
    defaults = {
        "order_id": "ord-001",
        "method": "Card",
        "amount": 100.0,
        "transaction_id": "TXN-ORD-1",
    }
    defaults.update(overrides)
    return Payment.create(**defaults)


def _completed_payment(**overrides):
    payment = _make_payment(**overrides)
    payment.complete()
    payment._events.clear()
    return payment


class TestPaymentCreation:
    def test_create_starts_pending(self):
        payment = _make_payment()
        assert payment.status == PaymentStatus.PENDING.value
        assert payment.is_open

    def test_create_rounds_amount(self):
        payment = _make_payment(amount=10.123)
        assert payment.amount == 10.12

    def test_create_defaults_refunded_amount(self):
        assert _make_payment().refunded_amount == 0.0


class TestPaymentCompletion:
    def test_complete_sets_paid_at_and_status(self):
        payment = _make_payment()
        payment.complete(gateway_response={"id": "cs_1"}, transaction_id="pi_1")
        assert payment.status == PaymentStatus.COMPLETED.value
        assert payment.paid_at is not None
        assert payment.transaction_id == "pi_1"
        assert payment.response == {"id": "cs_1"}

    def test_complete_raises_event(self):
        payment = _make_payment()
        payment.complete()
        events = [e for e in payment._events if isinstance(e, PaymentCompleted)]
        assert len(events) == 1
        assert events[0].amount == 100.0

    def test_cannot_complete_twice(self):
        payment = _completed_payment()
        with pytest.raises(InvalidState):
            payment.complete()

    def test_failed_payment_can_complete_late(self):
        payment = _make_payment()
        payment.fail("Card declined")
        payment.complete()
        assert payment.status == PaymentStatus.COMPLETED.value
        assert payment.failure_reason is None


class TestPaymentFailure:
    def test_fail_records_reason(self):
        payment = _make_payment()
        payment.fail("Card declined")
        assert payment.status == PaymentStatus.FAILED.value
        assert payment.failure_reason == "Card declined"
        assert any(isinstance(e, PaymentFailed) for e in payment._events)

    def test_completed_payment_cannot_fail(self):
        payment = _completed_payment()
        with pytest.raises(InvalidState):
            payment.fail("late failure")

    def test_cancel_open_payment(self):
        payment = _make_payment()
        payment.cancel()
        assert payment.status == PaymentStatus.CANCELLED.value


class TestPaymentRefunds:
    def test_partial_refund(self):
        payment = _completed_payment()
        assert payment.refund(40.0) is False
        assert payment.status == PaymentStatus.PARTIALLY_REFUNDED.value
        assert payment.refunded_amount == 40.0
        assert payment.refundable_amount == 60.0

    def test_refunds_accumulate_to_full(self):
        payment = _completed_payment()
        payment.refund(40.0)
        assert payment.refund(60.0) is True
        assert payment.status == PaymentStatus.REFUNDED.value
        assert payment.refunded_at is not None

    def test_refund_event_carries_totals(self):
        payment = _completed_payment()
        payment.refund(25.0)
        event = next(e for e in payment._events if isinstance(e, PaymentRefunded))
        assert event.refund_amount == 25.0
        assert event.refunded_total == 25.0
        assert event.fully_refunded is False

    def test_refund_beyond_balance_rejected(self):
        payment = _completed_payment()
        payment.refund(80.0)
        with pytest.raises(InvalidState):
            payment.refund(30.0)

    def test_refund_must_be_positive(self):
        payment = _completed_payment()
        with pytest.raises(InvalidState):
            payment.refund(0)

    def test_pending_payment_cannot_be_refunded(self):
        with pytest.raises(InvalidState):
            _make_payment().refund(10.0)

    def test_refunded_total_within_a_cent_is_full(self):
        payment = _completed_payment(amount=19.99)
        assert payment.record_refunded_total(19.986) is True
        assert payment.status == PaymentStatus.REFUNDED.value
