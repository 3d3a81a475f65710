"""Inventory ledger — the only code path that changes stock counters.

A ledger lives for one command handler. It loads each product once, so a
second line for the same product sees the first line's decrement, and it
queues one InventoryLog row per change. ``save()`` hands products and log
rows to the handler's Unit of Work; the availability checks and the writes
therefore commit or abort together.
"""

import structlog
from protean.utils.globals import current_domain

from storefront.errors import InsufficientStock
from storefront.inventory.log import ChangeType, InventoryLog
from storefront.product.product import Product

logger = structlog.get_logger(__name__)


class StockLedger:
    def __init__(self) -> None:
        self._products: dict[str, Product] = {}
        self._entries: list[InventoryLog] = []

    @property
    def entries(self) -> list[InventoryLog]:
        return list(self._entries)

    def product(self, product_id: str) -> Product:
        key = str(product_id)
        if key not in self._products:
            self._products[key] = current_domain.repository_for(Product).get(key)
        return self._products[key]

    def available(self, product_id: str, variant_id: str | None = None) -> int:
        return self.product(product_id).available_stock(variant_id)

    def decrement(
        self,
        product_id: str,
        quantity: int,
        reason: str,
        reference_id: str | None = None,
        variant_id: str | None = None,
        user_id: str | None = None,
    ) -> InventoryLog:
        product = self.product(product_id)
        current = product.available_stock(variant_id)
        if quantity > current:
            raise InsufficientStock(f"Insufficient stock for product: {product.name}")

        return self._write(
            product,
            variant_id,
            current - quantity,
            ChangeType.STOCK_OUT,
            reason,
            reference_id,
            user_id,
        )

    def restore(
        self,
        product_id: str,
        quantity: int,
        reason: str,
        reference_id: str | None = None,
        variant_id: str | None = None,
        user_id: str | None = None,
        change_type: ChangeType = ChangeType.RETURN,
    ) -> InventoryLog:
        product = self.product(product_id)
        current = product.available_stock(variant_id)
        return self._write(
            product,
            variant_id,
            current + quantity,
            change_type,
            reason,
            reference_id,
            user_id,
        )

    def adjust(
        self,
        product_id: str,
        new_stock: int,
        reason: str,
        user_id: str | None = None,
        variant_id: str | None = None,
    ) -> InventoryLog:
        """Set an absolute stock level, attributing the change to an operator."""
        product = self.product(product_id)
        return self._write(
            product,
            variant_id,
            new_stock,
            ChangeType.ADJUSTMENT,
            reason,
            None,
            user_id,
        )

    def save(self) -> None:
        products = current_domain.repository_for(Product)
        for product in self._products.values():
            products.add(product)

        logs = current_domain.repository_for(InventoryLog)
        for entry in self._entries:
            logs.add(entry)
        self._entries = []

    def _write(self, product, variant_id, new_stock, change_type, reason, reference_id, user_id) -> InventoryLog:
        previous = product.set_stock(new_stock, variant_id)
        entry = InventoryLog.record(
            product_id=str(product.id),
            variant_id=variant_id,
            change_type=change_type,
            previous_stock=previous,
            new_stock=new_stock,
            reason=reason,
            reference_id=reference_id,
            user_id=user_id,
        )
        self._entries.append(entry)
        logger.info(
            "inventory.stock_changed",
            product_id=str(product.id),
            variant_id=variant_id,
            change_type=change_type.value,
            previous_stock=previous,
            new_stock=new_stock,
            reference_id=reference_id,
        )
        return entry
