"""Regional hosted-page gateway adapter over a mocked HTTP transport."""

import httpx
import pytest
from protean import current_domain
from storefront.errors import GatewayError, InvalidPayment
from storefront.gateway import register_gateway
from storefront.gateway.port import CheckoutLine, CheckoutRequest, InboundNotification, NotificationKind
from storefront.gateway.regional import RegionalGateway, address_parts
from storefront.order.order import Order, OrderStatus
from storefront.payment.payment import Payment, PaymentStatus

PAYMENT_API = "https://gw.test/gwprocess/v4/api.php"
VALIDATION_API = "https://gw.test/validator/api/validationserverAPI.php"


def _gateway(handler) -> RegionalGateway:
    return RegionalGateway(
        store_id="store-1",
        store_password="secret",
        payment_api=PAYMENT_API,
        validation_api=VALIDATION_API,
        success_url="https://shop.test/success",
        fail_url="https://shop.test/fail",
        cancel_url="https://shop.test/cancel",
        ipn_url="https://api.shop.test/payments/ipn",
        transport=httpx.MockTransport(handler),
    )


def _checkout(transaction_id="TXN-1", amount=30.0, order_id="ord-1") -> CheckoutRequest:
    return CheckoutRequest(
        order_id=order_id,
        order_number="ORD-12345678-001",
        payment_id="pay-1",
        transaction_id=transaction_id,
        amount=amount,
        currency="BDT",
        lines=(CheckoutLine(name="Lamp", unit_amount=15.0, quantity=2),),
        customer_name="Ada Lovelace",
        shipping_address="Dhaka, Dhaka Division, 1207, BD",
    )


def _gateway_backend(validation_status="VALID", amount="30.00", tran_id=None):
    """A fake gateway: sessions always open, validations answer ``validation_status``.

    Without ``tran_id`` the validation record carries none.
    """
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("api.php"):
            return httpx.Response(
                200,
                json={"status": "SUCCESS", "sessionkey": "SK1", "GatewayPageURL": "https://gw.test/pay/SK1"},
            )
        return httpx.Response(
            200,
            json={
                "status": validation_status,
                "tran_id": tran_id,
                "val_id": request.url.params["val_id"],
                "amount": amount,
                "bank_tran_id": "BANK-1",
            },
        )

    return handler, seen


class TestAddressParts:
    def test_full_address(self):
        assert address_parts("Dhaka, Dhaka Division, 1207, BD") == ("Dhaka", "Dhaka Division", "1207", "BD")

    def test_missing_parts_fall_back(self):
        assert address_parts("Dhaka") == ("Dhaka", "State", "1000", "US")
        assert address_parts(None) == ("City", "State", "1000", "US")


class TestInitiate:
    def test_posts_merchant_payload(self):
        handler, seen = _gateway_backend()
        result = _gateway(handler).initiate(_checkout())

        assert result.redirect_url == "https://gw.test/pay/SK1"
        assert result.session_id == "SK1"
        assert result.transaction_id == "TXN-1"

        form = dict(httpx.QueryParams(seen[0].content.decode()))
        assert form["total_amount"] == "30.00"
        assert form["tran_id"] == "TXN-1"
        assert form["ipn_url"] == "https://api.shop.test/payments/ipn"
        assert form["cus_city"] == "Dhaka"
        assert form["cus_postcode"] == "1207"

    def test_rejected_session(self):
        gateway = _gateway(lambda request: httpx.Response(200, json={"status": "FAILED", "failedreason": "Bad store"}))
        with pytest.raises(GatewayError) as exc:
            gateway.initiate(_checkout())
        assert "Bad store" in exc.value.message
        assert exc.value.retryable is False

    def test_server_error_is_retryable(self):
        gateway = _gateway(lambda request: httpx.Response(503))
        with pytest.raises(GatewayError) as exc:
            gateway.initiate(_checkout())
        assert exc.value.retryable is True

    def test_timeout_is_retryable(self):
        def handler(request):
            raise httpx.ConnectTimeout("slow", request=request)

        with pytest.raises(GatewayError) as exc:
            _gateway(handler).initiate(_checkout())
        assert exc.value.retryable is True

    def test_non_json_answer(self):
        gateway = _gateway(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
        with pytest.raises(GatewayError):
            gateway.initiate(_checkout())


class TestReconcile:
    @pytest.mark.parametrize("status", ["VALID", "VALIDATED"])
    def test_validated_callback_completes(self, status):
        handler, _ = _gateway_backend(validation_status=status, tran_id="TXN-1")
        notification = _gateway(handler).reconcile(
            InboundNotification(params={"tran_id": "TXN-1", "val_id": "V1", "status": "VALID", "amount": "30.00"})
        )
        assert notification.kind == NotificationKind.COMPLETED
        assert notification.amount == 30.0
        assert notification.gateway_reference == "BANK-1"

    def test_invalid_validation_rejected(self):
        handler, _ = _gateway_backend(validation_status="INVALID_TRANSACTION", tran_id="TXN-1")
        with pytest.raises(InvalidPayment):
            _gateway(handler).reconcile(InboundNotification(params={"tran_id": "TXN-1", "val_id": "V1"}))

    def test_validation_for_another_transaction_rejected(self):
        handler, _ = _gateway_backend(tran_id="TXN-OTHER")
        with pytest.raises(InvalidPayment):
            _gateway(handler).reconcile(InboundNotification(params={"tran_id": "TXN-1", "val_id": "V1"}))

    def test_failed_callback_needs_no_validation(self):
        handler, seen = _gateway_backend()
        notification = _gateway(handler).reconcile(
            InboundNotification(params={"tran_id": "TXN-1", "status": "FAILED", "error": "Insufficient funds"})
        )
        assert notification.kind == NotificationKind.FAILED
        assert notification.failure_reason == "Insufficient funds"
        assert seen == []

    def test_missing_transaction_id(self):
        handler, _ = _gateway_backend()
        with pytest.raises(InvalidPayment):
            _gateway(handler).reconcile(InboundNotification(params={"val_id": "V1"}))

    def test_missing_validation_id(self):
        handler, _ = _gateway_backend()
        with pytest.raises(InvalidPayment):
            _gateway(handler).reconcile(InboundNotification(params={"tran_id": "TXN-1", "status": "VALID"}))


class TestIpnOverHttp:
    def test_ipn_completes_order(self, client, make_product, place_order):
        handler, _ = _gateway_backend(amount="30.00")
        register_gateway("Regional", _gateway(handler))
        order_id = place_order([(make_product(price=15.0), 2)])
        started = client.post(f"/payments/{order_id}/initiate", json={"method": "Regional"}).json()

        payment = current_domain.repository_for(Payment).get(started["payment_id"])
        params = {"tran_id": payment.transaction_id, "val_id": "V1", "status": "VALID", "amount": "30.00"}

        response = client.get("/payments/ipn", params=params)
        assert response.status_code == 200
        assert response.json()["outcome"] == "completed"
        assert current_domain.repository_for(Order).get(order_id).status == OrderStatus.PAID.value
        payment = current_domain.repository_for(Payment).get(started["payment_id"])
        assert payment.status == PaymentStatus.COMPLETED.value

    def test_ipn_amount_mismatch_is_rejected_not_completed(self, client, make_product, place_order):
        handler, _ = _gateway_backend(amount="1.00")
        register_gateway("Regional", _gateway(handler))
        order_id = place_order([(make_product(price=15.0), 2)])
        started = client.post(f"/payments/{order_id}/initiate", json={"method": "Regional"}).json()
        payment = current_domain.repository_for(Payment).get(started["payment_id"])

        response = client.get("/payments/ipn", params={"tran_id": payment.transaction_id, "val_id": "V1"})
        assert response.status_code == 200
        assert response.json()["outcome"] == "rejected"
        assert current_domain.repository_for(Order).get(order_id).status == OrderStatus.PENDING.value

    def test_ipn_failed_validation_is_400(self, client):
        handler, _ = _gateway_backend(validation_status="INVALID_TRANSACTION")
        register_gateway("Regional", _gateway(handler))
        response = client.get("/payments/ipn", params={"tran_id": "TXN-X", "val_id": "V1"})
        assert response.status_code == 400
