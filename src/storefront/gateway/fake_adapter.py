"""Configurable fake payment gateway for development and testing.

Stands in for the card and regional gateways without any external calls:

- ``initiate`` returns a fake hosted-page URL (or fails when configured to);
- ``reconcile`` accepts either a JSON body signed with ``test-signature``
  carrying the notification fields directly, or redirect query parameters
  validated against ``validation_status``.
"""

import json
from dataclasses import fields
from uuid import uuid4

from storefront.errors import GatewayError, InvalidPayment
from storefront.gateway.port import (
    CheckoutRequest,
    GatewayNotification,
    InboundNotification,
    InitiationResult,
    NotificationKind,
    PaymentGateway,
)

TEST_SIGNATURE = "test-signature"

_NOTIFICATION_FIELDS = {f.name for f in fields(GatewayNotification)} - {"kind", "gateway_response"}


class FakeGateway(PaymentGateway):
    def __init__(self, method: str = "Card") -> None:
        self.method = method
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.validation_status: str = "VALID"
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool,
        failure_reason: str = "Card declined",
        validation_status: str = "VALID",
    ) -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.validation_status = validation_status

    def initiate(self, checkout: CheckoutRequest) -> InitiationResult:
        self.calls.append(
            {
                "method": "initiate",
                "order_id": checkout.order_id,
                "payment_id": checkout.payment_id,
                "amount": checkout.amount,
                "lines": len(checkout.lines),
            }
        )
        if not self.should_succeed:
            raise GatewayError(self.failure_reason)

        session_id = f"fake_sess_{uuid4().hex[:12]}"
        return InitiationResult(
            redirect_url=f"https://gateway.test/checkout/{session_id}",
            session_id=session_id,
            transaction_id=checkout.transaction_id,
            gateway_response={"id": session_id, "status": "open", "amount_total": checkout.amount},
        )

    def validate(self, val_id: str) -> str:
        self.calls.append({"method": "validate", "val_id": val_id})
        return self.validation_status

    def reconcile(self, inbound: InboundNotification) -> GatewayNotification:
        self.calls.append({"method": "reconcile", "has_body": bool(inbound.body)})
        if inbound.body:
            return self._from_body(inbound)
        return self._from_params(inbound.params)

    def _from_body(self, inbound: InboundNotification) -> GatewayNotification:
        if inbound.signature != TEST_SIGNATURE:
            raise InvalidPayment("Invalid webhook signature")
        try:
            data = json.loads(inbound.body)
            kind = NotificationKind(data.pop("kind"))
        except (ValueError, KeyError, TypeError, AttributeError):
            raise InvalidPayment("Malformed webhook payload") from None
        values = {key: value for key, value in data.items() if key in _NOTIFICATION_FIELDS}
        return GatewayNotification(kind=kind, gateway_response=dict(data), **values)

    def _from_params(self, params) -> GatewayNotification:
        transaction_id = params.get("tran_id")
        if not transaction_id:
            raise InvalidPayment("Missing transaction id in gateway callback")

        status = (params.get("status") or "").upper()
        if status in ("FAILED", "CANCELLED"):
            return GatewayNotification(
                kind=NotificationKind.FAILED,
                transaction_id=transaction_id,
                failure_reason=f"Payment {status.lower()} at gateway",
            )

        if self.validate(params.get("val_id", "")) not in ("VALID", "VALIDATED"):
            raise InvalidPayment("Payment validation failed")
        return GatewayNotification(
            kind=NotificationKind.COMPLETED,
            transaction_id=transaction_id,
            amount=float(params["amount"]) if params.get("amount") else None,
            gateway_reference=params.get("bank_tran_id"),
            gateway_response=dict(params),
        )
