"""Application tests for manual payments and operator status overrides."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from storefront.errors import InvalidState
from storefront.invoice.invoice import Invoice
from storefront.order.order import Order, OrderStatus
from storefront.payment.manual import RecordManualPayment, UpdatePaymentStatus
from storefront.payment.payment import Payment, PaymentStatus


def _record(order_id, amount, **kwargs):
    return current_domain.process(
        RecordManualPayment(order_id=order_id, method=kwargs.pop("method", "Cash_On_Delivery"), amount=amount, **kwargs),
        asynchronous=False,
    )


def _update(payment_id, status, **kwargs):
    return current_domain.process(UpdatePaymentStatus(payment_id=payment_id, status=status, **kwargs), asynchronous=False)


class TestRecordManualPayment:
    def test_completed_manual_payment_settles_order(self, make_product, place_order):
        order_id = place_order([(make_product(price=30.0), 1)])
        payment_id = _record(order_id, 30.0)

        payment = current_domain.repository_for(Payment).get(payment_id)
        assert payment.status == PaymentStatus.COMPLETED.value
        assert current_domain.repository_for(Order).get(order_id).status == OrderStatus.PAID.value
        assert len(current_domain.repository_for(Invoice).for_order(order_id)) == 1

    def test_pending_manual_payment(self, make_product, place_order):
        order_id = place_order([(make_product(price=30.0), 1)])
        payment_id = _record(order_id, 30.0, status="Pending")
        assert current_domain.repository_for(Payment).get(payment_id).status == PaymentStatus.PENDING.value
        assert current_domain.repository_for(Order).get(order_id).status == OrderStatus.PENDING.value

    def test_amount_cannot_exceed_order_total(self, make_product, place_order):
        order_id = place_order([(make_product(price=30.0), 1)])
        with pytest.raises(ValidationError):
            _record(order_id, 31.0)

    def test_other_statuses_rejected(self, make_product, place_order):
        order_id = place_order([(make_product(price=30.0), 1)])
        with pytest.raises(ValidationError):
            _record(order_id, 30.0, status="Refunded")


class TestUpdatePaymentStatus:
    def test_completed_is_idempotent(self, make_product, place_order):
        order_id = place_order([(make_product(price=30.0), 1)])
        payment_id = _record(order_id, 30.0, status="Pending")

        assert _update(payment_id, "Completed") == "Completed"
        assert _update(payment_id, "Completed") == "Completed"
        assert len(current_domain.repository_for(Invoice).for_order(order_id)) == 1

    def test_refunded_amount_below_total_is_partial(self, make_product, place_order):
        order_id = place_order([(make_product(price=30.0), 1)])
        payment_id = _record(order_id, 30.0)
        assert _update(payment_id, "Refunded", refunded_amount=10.0) == PaymentStatus.PARTIALLY_REFUNDED.value

    def test_refunded_without_amount_is_full(self, make_product, place_order):
        order_id = place_order([(make_product(price=30.0), 1)])
        payment_id = _record(order_id, 30.0)
        assert _update(payment_id, "Refunded") == PaymentStatus.REFUNDED.value
        assert current_domain.repository_for(Order).get(order_id).status == OrderStatus.REFUNDED.value

    def test_failed_stores_reason(self, make_product, place_order):
        order_id = place_order([(make_product(price=30.0), 1)])
        payment_id = _record(order_id, 30.0, status="Pending")
        _update(payment_id, "Failed", failure_reason="Bounced cheque")
        assert current_domain.repository_for(Payment).get(payment_id).failure_reason == "Bounced cheque"

    def test_pending_cannot_be_forced(self, make_product, place_order):
        order_id = place_order([(make_product(price=30.0), 1)])
        payment_id = _record(order_id, 30.0)
        with pytest.raises(InvalidState):
            _update(payment_id, "Pending")
