"""Card gateway adapter backed by Stripe Checkout.

``initiate`` creates a hosted Checkout Session; ``reconcile`` verifies the
``Stripe-Signature`` header and maps the webhook event types we act on to
gateway-neutral notifications.
"""

import json

import stripe
import structlog

from storefront.errors import GatewayError, InvalidPayment
from storefront.gateway.normalize import from_minor_units, to_minor_units, to_plain
from storefront.gateway.port import (
    CheckoutLine,
    CheckoutRequest,
    GatewayNotification,
    InboundNotification,
    InitiationResult,
    NotificationKind,
    PaymentGateway,
)

logger = structlog.get_logger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 300
DEFAULT_TIMEOUT_SECONDS = 10.0


def _metadata(obj: dict) -> dict:
    return obj.get("metadata") or {}


class CardGateway(PaymentGateway):
    method = "Card"

    def __init__(
        self,
        secret_key: str,
        webhook_secret: str,
        success_url: str,
        cancel_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.success_url = success_url
        self.cancel_url = cancel_url
        self.timeout = timeout
        # The module-level Stripe API sends every request through this client
        self.http_client = stripe.RequestsClient(timeout=timeout)
        stripe.default_http_client = self.http_client
        self._handlers = {
            "checkout.session.completed": self._session_completed,
            "checkout.session.async_payment_succeeded": self._session_paid,
            "checkout.session.async_payment_failed": self._session_failed,
            "checkout.session.expired": self._session_failed,
            "payment_intent.payment_failed": self._intent_failed,
            "charge.refunded": self._charge_refunded,
        }

    # -------------------------------------------------------------------
    # Initiation
    # -------------------------------------------------------------------
    @staticmethod
    def line_items(checkout: CheckoutRequest) -> list[dict]:
        """Stripe line items for the order, in minor units.

        When an order-level discount makes item prices disagree with the
        amount due, a single line for the whole order is charged instead.
        """
        lines = checkout.lines
        lines_total = round(sum(line.unit_amount * line.quantity for line in lines), 2)
        if abs(lines_total - checkout.amount) > 0.005:
            lines = (CheckoutLine(name=f"Order {checkout.order_number}", unit_amount=checkout.amount, quantity=1),)

        return [
            {
                "price_data": {
                    "currency": checkout.currency.lower(),
                    "product_data": {"name": line.name},
                    "unit_amount": to_minor_units(line.unit_amount),
                },
                "quantity": line.quantity,
            }
            for line in lines
        ]

    def initiate(self, checkout: CheckoutRequest) -> InitiationResult:
        metadata = {
            "orderId": checkout.order_id,
            "paymentId": checkout.payment_id,
            "orderNumber": checkout.order_number,
        }
        try:
            session = stripe.checkout.Session.create(
                api_key=self.secret_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=self.line_items(checkout),
                success_url=f"{self.success_url}?orderId={checkout.order_id}&session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{self.cancel_url}?orderId={checkout.order_id}",
                customer_email=checkout.customer_email or None,
                client_reference_id=checkout.order_id,
                metadata=metadata,
                payment_intent_data={"metadata": metadata},
            )
        except stripe.StripeError as exc:
            retryable = isinstance(exc, stripe.APIConnectionError | stripe.RateLimitError)
            logger.error(
                "gateway.card.session_failed",
                order_id=checkout.order_id,
                error=str(exc),
                retryable=retryable,
            )
            raise GatewayError(f"Card gateway error: {exc}", retryable=retryable) from exc

        return InitiationResult(
            redirect_url=session.url,
            session_id=session.id,
            gateway_response=to_plain(session),
        )

    # -------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------
    def reconcile(self, inbound: InboundNotification) -> GatewayNotification:
        try:
            payload = inbound.body.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                payload,
                inbound.signature,
                self.webhook_secret,
                tolerance=SIGNATURE_TOLERANCE_SECONDS,
            )
        except UnicodeDecodeError:
            raise InvalidPayment("Malformed webhook payload") from None
        except stripe.SignatureVerificationError as exc:
            logger.warning("gateway.card.bad_signature", error=str(exc))
            raise InvalidPayment("Invalid webhook signature") from exc

        try:
            event = json.loads(payload)
            event_type = event["type"]
            obj = event["data"]["object"]
        except (ValueError, KeyError, TypeError):
            raise InvalidPayment("Malformed webhook payload") from None

        handler = self._handlers.get(event_type)
        if handler is None:
            logger.info("gateway.card.unhandled_event", event_type=event_type, event_id=event.get("id"))
            return GatewayNotification(kind=NotificationKind.UNHANDLED, event_type=event_type, event_id=event.get("id"))
        return handler(event, obj)

    def _session_completed(self, event: dict, obj: dict) -> GatewayNotification:
        if obj.get("payment_status") != "paid":
            logger.info("gateway.card.session_unpaid", session_id=obj.get("id"), payment_status=obj.get("payment_status"))
            return GatewayNotification(kind=NotificationKind.UNHANDLED, event_type=event["type"], event_id=event.get("id"))
        return self._session_paid(event, obj)

    def _session_paid(self, event: dict, obj: dict) -> GatewayNotification:
        metadata = _metadata(obj)
        return GatewayNotification(
            kind=NotificationKind.COMPLETED,
            event_type=event["type"],
            event_id=event.get("id"),
            session_id=obj.get("id"),
            transaction_id=obj.get("payment_intent"),
            payment_id=metadata.get("paymentId"),
            order_id=metadata.get("orderId") or obj.get("client_reference_id"),
            amount=from_minor_units(obj.get("amount_total")),
            gateway_reference=obj.get("invoice") or obj.get("id"),
            gateway_response=to_plain(obj),
        )

    def _session_failed(self, event: dict, obj: dict) -> GatewayNotification:
        metadata = _metadata(obj)
        reason = "Checkout session expired" if event["type"] == "checkout.session.expired" else "Payment failed"
        return GatewayNotification(
            kind=NotificationKind.FAILED,
            event_type=event["type"],
            event_id=event.get("id"),
            session_id=obj.get("id"),
            transaction_id=obj.get("payment_intent"),
            payment_id=metadata.get("paymentId"),
            order_id=metadata.get("orderId") or obj.get("client_reference_id"),
            failure_reason=reason,
            gateway_response=to_plain(obj),
        )

    def _intent_failed(self, event: dict, obj: dict) -> GatewayNotification:
        error = obj.get("last_payment_error") or {}
        return GatewayNotification(
            kind=NotificationKind.FAILED,
            event_type=event["type"],
            event_id=event.get("id"),
            transaction_id=obj.get("id"),
            payment_id=_metadata(obj).get("paymentId"),
            order_id=_metadata(obj).get("orderId"),
            failure_reason=error.get("message") or "Payment failed",
            gateway_response=to_plain(obj),
        )

    def _charge_refunded(self, event: dict, obj: dict) -> GatewayNotification:
        return GatewayNotification(
            kind=NotificationKind.REFUNDED,
            event_type=event["type"],
            event_id=event.get("id"),
            transaction_id=obj.get("payment_intent"),
            payment_id=_metadata(obj).get("paymentId"),
            order_id=_metadata(obj).get("orderId"),
            refunded_amount=from_minor_units(obj.get("amount_refunded")),
            gateway_response=to_plain(obj, keys=("id", "object", "amount", "amount_refunded", "currency", "refunded")),
        )
