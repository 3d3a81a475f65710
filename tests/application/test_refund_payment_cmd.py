"""Application tests for admin refunds and their cascade to order and stock."""

import pytest
from protean import current_domain
from storefront.errors import InvalidState
from storefront.inventory.log import ChangeType, InventoryLog
from storefront.order.order import Order, OrderStatus
from storefront.payment.payment import Payment, PaymentStatus
from storefront.payment.refund import RefundPayment
from storefront.product.product import Product


def _refund(payment_id, amount, reason="Customer request"):
    return current_domain.process(
        RefundPayment(payment_id=payment_id, amount=amount, reason=reason, acting_user_id="admin-1"),
        asynchronous=False,
    )


class TestFullRefund:
    def test_full_refund_cancels_order_and_restores_stock(self, make_product, place_order, pay_order):
        p1 = make_product(price=10.0, stock=10)
        order_id = place_order([(p1, 2)])
        payment_id, _ = pay_order(order_id)
        assert current_domain.repository_for(Product).get(p1).stock == 8

        assert _refund(payment_id, 20.0) == PaymentStatus.REFUNDED.value

        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.CANCELLED.value
        assert order.tracking_history()[-1].notes == "Order cancelled due to refund: Customer request"
        assert current_domain.repository_for(Product).get(p1).stock == 10

        restores = [
            log
            for log in current_domain.repository_for(InventoryLog).for_reference(order_id)
            if log.change_type == ChangeType.RETURN.value
        ]
        assert [log.change_quantity for log in restores] == [2]

    def test_partials_adding_up_to_full(self, make_product, place_order, pay_order):
        p1 = make_product(price=10.0, stock=10)
        order_id = place_order([(p1, 2)])
        payment_id, _ = pay_order(order_id)

        assert _refund(payment_id, 5.0) == PaymentStatus.PARTIALLY_REFUNDED.value
        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.PAID.value
        assert order.tracking_history()[-1].notes == "Partial refund of $5.00 processed"

        assert _refund(payment_id, 15.0) == PaymentStatus.REFUNDED.value
        assert current_domain.repository_for(Order).get(order_id).status == OrderStatus.CANCELLED.value
        assert current_domain.repository_for(Product).get(p1).stock == 10


class TestRefundValidation:
    def test_over_refund_rejected(self, make_product, place_order, pay_order):
        order_id = place_order([(make_product(price=10.0), 1)])
        payment_id, _ = pay_order(order_id)
        with pytest.raises(InvalidState):
            _refund(payment_id, 10.5)
        payment = current_domain.repository_for(Payment).get(payment_id)
        assert payment.refunded_amount == 0.0

    def test_pending_payment_cannot_be_refunded(self, make_product, place_order, card_gateway):
        from storefront.payment.initiation import InitiatePayment

        order_id = place_order([(make_product(), 1)])
        started = current_domain.process(InitiatePayment(order_id=order_id, method="Card"), asynchronous=False)
        with pytest.raises(InvalidState):
            _refund(started["payment_id"], 1.0)

    def test_refund_after_full_refund_rejected(self, make_product, place_order, pay_order):
        order_id = place_order([(make_product(price=10.0), 1)])
        payment_id, _ = pay_order(order_id)
        _refund(payment_id, 10.0)
        with pytest.raises(InvalidState):
            _refund(payment_id, 1.0)
