"""Invoice aggregate — issued exactly once per completed payment."""

import time
from datetime import UTC, datetime

from protean.fields import DateTime, Float, Identifier, String

from storefront.domain import storefront


def invoice_number_for(order_number: str) -> str:
    return f"INV-{order_number}-{int(time.time() * 1000)}"


@storefront.aggregate
class Invoice:
    order_id = Identifier(required=True)
    payment_id = Identifier(required=True, unique=True)
    invoice_number = String(required=True, max_length=80, unique=True)
    amount = Float(required=True)
    currency = String(max_length=3, default="USD")
    gateway_reference = String(max_length=500)
    issued_at = DateTime()

    @classmethod
    def issue(
        cls,
        order_id: str,
        order_number: str,
        payment_id: str,
        amount: float,
        currency: str = "USD",
        gateway_reference: str | None = None,
    ):
        return cls(
            order_id=order_id,
            payment_id=payment_id,
            invoice_number=invoice_number_for(order_number),
            amount=amount,
            currency=currency,
            gateway_reference=gateway_reference,
            issued_at=datetime.now(UTC),
        )


@storefront.repository(part_of=Invoice)
class InvoiceRepository:
    def find_by_payment(self, payment_id: str) -> Invoice | None:
        return self._dao.query.filter(payment_id=payment_id).all().first

    def for_order(self, order_id: str) -> list[Invoice]:
        return self._dao.query.filter(order_id=order_id).all().items
