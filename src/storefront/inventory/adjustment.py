"""Manual stock adjustment — command and handler."""

from protean import handle
from protean.fields import Identifier, Integer, String

from storefront.domain import storefront
from storefront.inventory.ledger import StockLedger
from storefront.inventory.log import InventoryLog


@storefront.command(part_of="InventoryLog")
class AdjustStock:
    """Set the stock of a product or variant to an absolute value."""

    product_id = Identifier(required=True)
    variant_id = Identifier()
    new_stock = Integer(required=True, min_value=0)
    reason = String(max_length=500, default="Manual stock adjustment")
    acting_user_id = Identifier(required=True)


@storefront.command_handler(part_of=InventoryLog)
class AdjustStockHandler:
    @handle(AdjustStock)
    def adjust_stock(self, command):
        ledger = StockLedger()
        entry = ledger.adjust(
            product_id=command.product_id,
            variant_id=command.variant_id,
            new_stock=command.new_stock,
            reason=command.reason or "Manual stock adjustment",
            user_id=command.acting_user_id,
        )
        ledger.save()
        return str(entry.id)
