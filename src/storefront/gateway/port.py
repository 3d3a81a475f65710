"""Payment gateway port (abstract interface).

Every gateway exposes the same pair of capabilities:

- ``initiate`` starts a payment for an order and says where to send the
  customer;
- ``reconcile`` turns whatever the gateway sends back (a signed webhook body
  or redirect query parameters) into a ``GatewayNotification``.

The reconciler only ever sees ``GatewayNotification`` values, so its
transactional logic does not depend on any gateway's envelope format.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class CheckoutLine:
    name: str
    unit_amount: float
    quantity: int


@dataclass(frozen=True)
class CheckoutRequest:
    """Everything a gateway may need to start a payment."""

    order_id: str
    order_number: str
    payment_id: str
    transaction_id: str
    amount: float
    currency: str
    lines: tuple[CheckoutLine, ...]
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    shipping_address: str | None = None


@dataclass(frozen=True)
class InitiationResult:
    redirect_url: str | None = None
    session_id: str | None = None
    transaction_id: str | None = None
    order_status: str | None = None  # Order status to apply right away, if any
    gateway_response: dict = field(default_factory=dict)


class NotificationKind(Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    UNHANDLED = "unhandled"


@dataclass(frozen=True)
class InboundNotification:
    """Raw notification as received over HTTP."""

    body: bytes = b""
    signature: str = ""
    params: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class GatewayNotification:
    kind: NotificationKind
    event_type: str = ""
    event_id: str | None = None
    session_id: str | None = None
    transaction_id: str | None = None
    payment_id: str | None = None
    order_id: str | None = None
    amount: float | None = None
    refunded_amount: float | None = None
    failure_reason: str | None = None
    gateway_reference: str | None = None
    gateway_response: dict = field(default_factory=dict)


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    method: str = ""

    @abstractmethod
    def initiate(self, checkout: CheckoutRequest) -> InitiationResult:
        """Start a payment for ``checkout``."""
        ...

    @abstractmethod
    def reconcile(self, inbound: InboundNotification) -> GatewayNotification:
        """Verify and normalize a notification sent by the gateway."""
        ...
