"""ShippingRecord aggregate — one shipment per order.

The carrier owns tracking state; this record only keeps what the operator
entered when handing the parcel over, and the delivery date once known.
"""

from datetime import UTC, datetime, timedelta

from protean.fields import DateTime, Identifier, Integer, String, Text

from storefront.domain import storefront


@storefront.aggregate
class ShippingRecord:
    order_id = Identifier(required=True, unique=True)
    carrier = String(required=True, max_length=100)
    tracking_number = String(required=True, max_length=100, unique=True)
    estimated_days = Integer(min_value=0)
    notes = Text()
    shipped_at = DateTime()
    delivered_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def ship(cls, order_id: str, carrier: str, tracking_number: str, estimated_days: int | None = None, notes=None):
        now = datetime.now(UTC)
        return cls(
            order_id=order_id,
            carrier=carrier,
            tracking_number=tracking_number,
            estimated_days=estimated_days,
            notes=notes,
            shipped_at=now,
            created_at=now,
            updated_at=now,
        )

    @property
    def estimated_delivery(self) -> datetime | None:
        if self.shipped_at is None or self.estimated_days is None:
            return None
        return self.shipped_at + timedelta(days=self.estimated_days)

    def revise(
        self,
        carrier: str | None = None,
        tracking_number: str | None = None,
        estimated_days: int | None = None,
        notes: str | None = None,
    ) -> None:
        if carrier:
            self.carrier = carrier
        if tracking_number:
            self.tracking_number = tracking_number
        if estimated_days is not None:
            self.estimated_days = estimated_days
        if notes:
            self.notes = notes
        self.updated_at = datetime.now(UTC)

    def mark_delivered(self, delivered_at: datetime) -> None:
        self.delivered_at = delivered_at
        self.updated_at = datetime.now(UTC)


@storefront.repository(part_of=ShippingRecord)
class ShippingRecordRepository:
    def for_order(self, order_id: str) -> ShippingRecord | None:
        return self._dao.query.filter(order_id=order_id).all().first

    def find_by_tracking_number(self, tracking_number: str) -> ShippingRecord | None:
        return self._dao.query.filter(tracking_number=tracking_number).all().first
