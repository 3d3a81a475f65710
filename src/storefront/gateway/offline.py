"""Gateways that never talk to a remote service: cash on delivery and placeholders."""

from storefront.errors import GatewayNotImplemented
from storefront.gateway.port import (
    CheckoutRequest,
    GatewayNotification,
    InboundNotification,
    InitiationResult,
    NotificationKind,
    PaymentGateway,
)


class CashOnDeliveryGateway(PaymentGateway):
    """Payment stays pending until the courier collects; the order starts processing."""

    method = "Cash_On_Delivery"

    def initiate(self, checkout: CheckoutRequest) -> InitiationResult:
        return InitiationResult(
            transaction_id=checkout.transaction_id,
            order_status="Processing",
            gateway_response={"method": self.method, "amount_due": checkout.amount},
        )

    def reconcile(self, inbound: InboundNotification) -> GatewayNotification:
        return GatewayNotification(kind=NotificationKind.UNHANDLED, event_type="cash_on_delivery")


class UnsupportedGateway(PaymentGateway):
    """Placeholder for gateways that are offered but not integrated yet."""

    def __init__(self, method: str) -> None:
        self.method = method

    def initiate(self, checkout: CheckoutRequest) -> InitiationResult:
        raise GatewayNotImplemented(self.method)

    def reconcile(self, inbound: InboundNotification) -> GatewayNotification:
        raise GatewayNotImplemented(self.method)
