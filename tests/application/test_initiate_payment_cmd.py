"""Application tests for payment initiation through the gateway registry."""

import pytest
from protean import current_domain
from storefront.errors import GatewayError, GatewayNotImplemented, InvalidState, PermissionDenied
from storefront.order.cancellation import CancelOrder
from storefront.order.order import Order, OrderStatus
from storefront.payment.initiation import InitiatePayment
from storefront.payment.payment import Payment, PaymentStatus
from storefront.product.product import Product


def _initiate(order_id, method="Card", **kwargs):
    return current_domain.process(InitiatePayment(order_id=order_id, method=method, **kwargs), asynchronous=False)


class TestCardInitiation:
    def test_creates_pending_payment_and_stores_session(self, make_product, place_order, card_gateway):
        order_id = place_order([(make_product(price=12.5), 2)])
        result = _initiate(order_id)

        assert result["redirect_url"].startswith("https://gateway.test/checkout/")
        payment = current_domain.repository_for(Payment).get(result["payment_id"])
        assert payment.status == PaymentStatus.PENDING.value
        assert payment.amount == 25.0
        assert payment.transaction_id.startswith("TXN-")

        order = current_domain.repository_for(Order).get(order_id)
        assert order.checkout_session_id == result["session_id"]
        assert order.status == OrderStatus.PENDING.value

    def test_checkout_lines_come_from_order_items(self, make_product, place_order, card_gateway):
        order_id = place_order([(make_product(name="A"), 1), (make_product(name="B"), 3)])
        _initiate(order_id)
        assert card_gateway.calls[-1]["lines"] == 2

    def test_reuses_open_payment(self, make_product, place_order, card_gateway):
        order_id = place_order([(make_product(), 1)])
        first = _initiate(order_id)
        second = _initiate(order_id)

        assert first["payment_id"] == second["payment_id"]
        assert len(current_domain.repository_for(Payment).for_order(order_id)) == 1

    def test_initiation_does_not_touch_stock(self, make_product, place_order, card_gateway):
        p1 = make_product(stock=5)
        order_id = place_order([(p1, 2)])
        _initiate(order_id)
        assert current_domain.repository_for(Product).get(p1).stock == 3

    def test_gateway_failure_writes_nothing(self, make_product, place_order, card_gateway):
        order_id = place_order([(make_product(), 1)])
        card_gateway.configure(should_succeed=False, failure_reason="Gateway down")

        with pytest.raises(GatewayError):
            _initiate(order_id)
        assert current_domain.repository_for(Payment).for_order(order_id) == []

    def test_owner_check(self, make_product, place_order, card_gateway):
        order_id = place_order([(make_product(), 1)], user_id="owner")
        with pytest.raises(PermissionDenied):
            _initiate(order_id, user_id="intruder")

    def test_cancelled_order_cannot_be_paid(self, make_product, place_order, card_gateway):
        order_id = place_order([(make_product(), 1)])
        current_domain.process(CancelOrder(order_id=order_id), asynchronous=False)
        with pytest.raises(InvalidState):
            _initiate(order_id)


class TestOtherMethods:
    def test_cash_on_delivery_moves_order_to_processing(self, make_product, place_order):
        order_id = place_order([(make_product(), 1)])
        result = _initiate(order_id, method="Cash_On_Delivery")

        assert result["redirect_url"] is None
        payment = current_domain.repository_for(Payment).get(result["payment_id"])
        assert payment.status == PaymentStatus.PENDING.value
        assert payment.method == "Cash_On_Delivery"
        assert current_domain.repository_for(Order).get(order_id).status == OrderStatus.PROCESSING.value

    def test_switching_method_keeps_one_payment(self, make_product, place_order, card_gateway):
        order_id = place_order([(make_product(), 1)])
        first = _initiate(order_id)
        second = _initiate(order_id, method="Cash_On_Delivery")
        assert first["payment_id"] == second["payment_id"]
        assert second["method"] == "Cash_On_Delivery"

    @pytest.mark.parametrize("method", ["Paypal", "Razorpay"])
    def test_unsupported_gateways(self, make_product, place_order, method):
        order_id = place_order([(make_product(), 1)])
        with pytest.raises(GatewayNotImplemented):
            _initiate(order_id, method=method)
