"""Payment gateway registry.

``get_gateway(method)`` returns the adapter for a payment method, building it
from settings on first use:

- ``Card`` → CardGateway (Stripe Checkout)
- ``Regional`` → RegionalGateway (hosted page + server-side validation)
- ``Cash_On_Delivery`` → CashOnDeliveryGateway
- ``Paypal`` / ``Razorpay`` → UnsupportedGateway

With ``PAYMENT_GATEWAY_ADAPTER=fake`` (the default) the card and regional
methods get a FakeGateway instead, so nothing leaves the process.
"""

from storefront.config import get_settings
from storefront.errors import GatewayNotImplemented
from storefront.gateway.port import PaymentGateway

_gateways: dict[str, PaymentGateway] = {}

_UNSUPPORTED_METHODS = ("Paypal", "Razorpay")


def _build(method: str) -> PaymentGateway:
    settings = get_settings()

    if method == "Cash_On_Delivery":
        from storefront.gateway.offline import CashOnDeliveryGateway

        return CashOnDeliveryGateway()

    if method in _UNSUPPORTED_METHODS:
        from storefront.gateway.offline import UnsupportedGateway

        return UnsupportedGateway(method)

    if method in ("Card", "Regional") and settings.gateway_adapter == "fake":
        from storefront.gateway.fake_adapter import FakeGateway

        return FakeGateway(method)

    if method == "Card":
        from storefront.gateway.card import CardGateway

        return CardGateway(
            secret_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            success_url=settings.frontend_success_url,
            cancel_url=settings.frontend_cancel_url,
            timeout=settings.gateway_timeout_seconds,
        )

    if method == "Regional":
        from storefront.gateway.regional import RegionalGateway

        return RegionalGateway(
            store_id=settings.ssl_store_id,
            store_password=settings.ssl_store_password,
            payment_api=settings.ssl_payment_api,
            validation_api=settings.ssl_validation_api,
            success_url=settings.ssl_success_url or settings.frontend_success_url,
            fail_url=settings.ssl_fail_url or settings.frontend_cancel_url,
            cancel_url=settings.ssl_cancel_url or settings.frontend_cancel_url,
            ipn_url=f"{settings.backend_url}/payments/ipn",
            timeout=settings.gateway_timeout_seconds,
        )

    raise GatewayNotImplemented(method)


def get_gateway(method: str) -> PaymentGateway:
    """Return the adapter registered for ``method``, building the default one if needed."""
    if method not in _gateways:
        _gateways[method] = _build(method)
    return _gateways[method]


def register_gateway(method: str, gateway: PaymentGateway) -> None:
    """Override the adapter for ``method`` (useful for tests)."""
    _gateways[method] = gateway


def reset_gateways() -> None:
    """Forget every adapter; the next lookup rebuilds from settings."""
    _gateways.clear()
