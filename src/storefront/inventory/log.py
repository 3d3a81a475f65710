"""InventoryLog aggregate — append-only audit trail of stock changes.

One row per mutation of a product or variant stock counter, scoped to the
product and carrying the id of the order or return that caused it. Rows are
written once and never updated.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


class ChangeType(Enum):
    STOCK_OUT = "Stock_Out"
    ADJUSTMENT = "Adjustment"
    RETURN = "Return"


@storefront.aggregate
class InventoryLog:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    change_type = String(required=True, choices=ChangeType)
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    change_quantity = Integer(required=True)
    reason = String(max_length=500)
    reference_id = Identifier()
    user_id = Identifier()
    created_at = DateTime()

    @classmethod
    def record(
        cls,
        product_id: str,
        change_type: ChangeType,
        previous_stock: int,
        new_stock: int,
        reason: str,
        variant_id: str | None = None,
        reference_id: str | None = None,
        user_id: str | None = None,
    ):
        return cls(
            product_id=product_id,
            variant_id=variant_id,
            change_type=change_type.value,
            previous_stock=previous_stock,
            new_stock=new_stock,
            change_quantity=new_stock - previous_stock,
            reason=reason,
            reference_id=reference_id,
            user_id=user_id,
            created_at=datetime.now(UTC),
        )


@storefront.repository(part_of=InventoryLog)
class InventoryLogRepository:
    def for_reference(self, reference_id: str) -> list[InventoryLog]:
        return self._dao.query.filter(reference_id=reference_id).all().items

    def for_product(self, product_id: str) -> list[InventoryLog]:
        return self._dao.query.filter(product_id=product_id).all().items

    def returned_quantities(self, reference_id: str) -> dict[tuple[str, str | None], int]:
        """Units put back in stock under ``reference_id``, keyed by (product id, variant id)."""
        quantities: dict[tuple[str, str | None], int] = {}
        for entry in self.for_reference(reference_id):
            if entry.change_type != ChangeType.RETURN.value or entry.change_quantity <= 0:
                continue
            key = (str(entry.product_id), str(entry.variant_id) if entry.variant_id else None)
            quantities[key] = quantities.get(key, 0) + entry.change_quantity
        return quantities
