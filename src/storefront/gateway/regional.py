"""Regional redirect gateway adapter (SSLCommerz-style hosted payment page).

Sessions are created by POSTing a form-encoded merchant payload; the gateway
later redirects the customer (and calls our IPN URL) with query parameters
that must be checked against its validation API before they are trusted.
"""

from collections.abc import Mapping

import httpx
import structlog

from storefront.errors import GatewayError, InvalidPayment
from storefront.gateway.normalize import to_plain
from storefront.gateway.port import (
    CheckoutRequest,
    GatewayNotification,
    InboundNotification,
    InitiationResult,
    NotificationKind,
    PaymentGateway,
)

logger = structlog.get_logger(__name__)

VALID_STATUSES = ("VALID", "VALIDATED")
FAILED_CALLBACK_STATUSES = ("FAILED", "CANCELLED")

VALIDATION_KEYS = (
    "status",
    "tran_id",
    "val_id",
    "amount",
    "store_amount",
    "currency",
    "bank_tran_id",
    "card_type",
    "tran_date",
    "risk_level",
)

_ADDRESS_DEFAULTS = ("City", "State", "1000", "US")


def address_parts(address: str | None) -> tuple[str, str, str, str]:
    """Split ``"city, state, postcode, country"`` filling blanks with defaults."""
    parts = [part.strip() for part in (address or "").split(",")]
    return tuple(
        parts[index] if index < len(parts) and parts[index] else default
        for index, default in enumerate(_ADDRESS_DEFAULTS)
    )


class RegionalGateway(PaymentGateway):
    method = "Regional"

    def __init__(
        self,
        store_id: str,
        store_password: str,
        payment_api: str,
        validation_api: str,
        success_url: str,
        fail_url: str,
        cancel_url: str,
        ipn_url: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.store_id = store_id
        self.store_password = store_password
        self.payment_api = payment_api
        self.validation_api = validation_api
        self.success_url = success_url
        self.fail_url = fail_url
        self.cancel_url = cancel_url
        self.ipn_url = ipn_url
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def build_payload(self, checkout: CheckoutRequest) -> dict:
        city, state, postcode, country = address_parts(checkout.shipping_address)
        address = checkout.shipping_address or "N/A"
        return {
            "store_id": self.store_id,
            "store_passwd": self.store_password,
            "total_amount": f"{checkout.amount:.2f}",
            "currency": checkout.currency,
            "tran_id": checkout.transaction_id,
            "success_url": self.success_url,
            "fail_url": self.fail_url,
            "cancel_url": self.cancel_url,
            "ipn_url": self.ipn_url,
            "shipping_method": "N/A",
            "product_name": f"Order {checkout.order_number}",
            "product_category": "General",
            "product_profile": "general",
            "value_a": checkout.order_id,
            "value_b": checkout.payment_id,
            "cus_name": checkout.customer_name or "N/A",
            "cus_email": checkout.customer_email or "N/A",
            "cus_add1": address,
            "cus_add2": "N/A",
            "cus_city": city,
            "cus_state": state,
            "cus_postcode": postcode,
            "cus_country": country,
            "cus_phone": checkout.customer_phone or "N/A",
            "cus_fax": "N/A",
            "ship_name": checkout.customer_name or "N/A",
            "ship_add1": address,
            "ship_add2": "N/A",
            "ship_city": city,
            "ship_state": state,
            "ship_postcode": postcode,
            "ship_country": country,
        }

    def initiate(self, checkout: CheckoutRequest) -> InitiationResult:
        data = self._request("POST", self.payment_api, data=self.build_payload(checkout))
        redirect_url = data.get("GatewayPageURL")
        if data.get("status") != "SUCCESS" or not redirect_url:
            reason = data.get("failedreason") or "no payment page returned"
            logger.error("gateway.regional.session_failed", order_id=checkout.order_id, reason=reason)
            raise GatewayError(f"Regional gateway rejected the session: {reason}")

        return InitiationResult(
            redirect_url=redirect_url,
            session_id=data.get("sessionkey"),
            transaction_id=checkout.transaction_id,
            gateway_response=to_plain(data, keys=("status", "sessionkey", "GatewayPageURL")),
        )

    def validation(self, val_id: str) -> dict:
        """Full validation record for ``val_id`` from the gateway's server-side API."""
        return self._request(
            "GET",
            self.validation_api,
            params={
                "val_id": val_id,
                "store_id": self.store_id,
                "store_passwd": self.store_password,
                "format": "json",
            },
        )

    def validate(self, val_id: str) -> str:
        return str(self.validation(val_id).get("status", "")).upper()

    def reconcile(self, inbound: InboundNotification) -> GatewayNotification:
        params: Mapping[str, str] = inbound.params
        transaction_id = params.get("tran_id")
        if not transaction_id:
            raise InvalidPayment("Missing transaction id in gateway callback")

        status = (params.get("status") or "").upper()
        if status in FAILED_CALLBACK_STATUSES:
            return GatewayNotification(
                kind=NotificationKind.FAILED,
                event_type=status,
                transaction_id=transaction_id,
                failure_reason=params.get("error") or f"Payment {status.lower()} at gateway",
                gateway_response=dict(params),
            )

        val_id = params.get("val_id")
        if not val_id:
            raise InvalidPayment("Missing validation id in gateway callback")

        record = self.validation(val_id)
        validated_status = str(record.get("status", "")).upper()
        if validated_status not in VALID_STATUSES:
            logger.warning("gateway.regional.validation_rejected", tran_id=transaction_id, status=validated_status)
            raise InvalidPayment("Payment validation failed")
        if record.get("tran_id") and record["tran_id"] != transaction_id:
            raise InvalidPayment("Validated transaction does not match the callback")

        amount = record.get("amount") or params.get("amount")
        return GatewayNotification(
            kind=NotificationKind.COMPLETED,
            event_type=validated_status,
            event_id=val_id,
            transaction_id=transaction_id,
            amount=round(float(amount), 2) if amount else None,
            gateway_reference=record.get("bank_tran_id") or params.get("bank_tran_id"),
            gateway_response=to_plain(record, keys=VALIDATION_KEYS),
        )

    def _request(self, method: str, url: str, **kwargs) -> dict:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as exc:
            logger.error("gateway.regional.timeout", url=url)
            raise GatewayError("Regional gateway timed out", retryable=True) from exc
        except httpx.HTTPStatusError as exc:
            code = exc.response.status_code
            logger.error("gateway.regional.http_error", url=url, status_code=code)
            raise GatewayError(f"Regional gateway answered HTTP {code}", retryable=code >= 500) from exc
        except httpx.TransportError as exc:
            logger.error("gateway.regional.unreachable", url=url, error=str(exc))
            raise GatewayError("Regional gateway is unreachable", retryable=True) from exc
        except ValueError as exc:
            raise GatewayError("Regional gateway returned an unexpected payload") from exc

        if not isinstance(data, dict):
            raise GatewayError("Regional gateway returned an unexpected payload")
        return data
