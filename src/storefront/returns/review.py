"""Operator review of return requests, and withdrawal by the requester.

Approval puts the returned goods back in stock right away, one ``Return``
inventory log per item computed from live stock. Units a full refund has
already released for the order are not put back twice. Later steps (pickup,
refund, completion) only move the request along its state machine.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import InvalidState, PermissionDenied
from storefront.inventory.ledger import StockLedger
from storefront.inventory.log import InventoryLog
from storefront.returns.return_request import ReturnRequest, ReturnStatus

logger = structlog.get_logger(__name__)


@storefront.command(part_of="ReturnRequest")
class UpdateReturnStatus:
    return_id = Identifier(required=True)
    status = String(required=True, max_length=50)
    admin_notes = Text()
    acting_user_id = Identifier()


@storefront.command(part_of="ReturnRequest")
class CancelReturnRequest:
    return_id = Identifier(required=True)
    user_id = Identifier(required=True)


@storefront.command_handler(part_of=ReturnRequest)
class ReturnReviewHandler:
    @handle(UpdateReturnStatus)
    def update_status(self, command):
        try:
            target = ReturnStatus(command.status)
        except ValueError:
            raise InvalidState(f"Unknown return status: {command.status}") from None

        repo = current_domain.repository_for(ReturnRequest)
        request = repo.get(command.return_id)
        request.transition_to(target, acting_user_id=command.acting_user_id, notes=command.admin_notes)

        if target == ReturnStatus.APPROVED:
            self._restock(request, command.acting_user_id)

        repo.add(request)

        logger.info(
            "return.status_changed",
            return_id=str(request.id),
            order_id=str(request.order_id),
            status=request.status,
            acting_user_id=command.acting_user_id,
        )
        return request.status

    @staticmethod
    def _restock(request: ReturnRequest, acting_user_id: str | None) -> None:
        """Put the returned items back in stock, minus units the order already released.

        A full refund restores the whole order under the order's id, so a
        return approved after it has nothing left to put back.
        """
        released = current_domain.repository_for(InventoryLog).returned_quantities(str(request.order_id))
        ledger = StockLedger()
        for item in request.items or []:
            variant_id = str(item.variant_id) if item.variant_id else None
            key = (str(item.product_id), variant_id)
            covered = min(released.get(key, 0), item.quantity)
            released[key] = released.get(key, 0) - covered
            if covered:
                logger.info(
                    "return.restock_skipped",
                    return_id=str(request.id),
                    product_id=str(item.product_id),
                    quantity=covered,
                )
            if item.quantity > covered:
                ledger.restore(
                    product_id=str(item.product_id),
                    variant_id=variant_id,
                    quantity=item.quantity - covered,
                    reason=f"Return approved: {request.reason}",
                    reference_id=str(request.id),
                    user_id=acting_user_id,
                )
        ledger.save()

    @handle(CancelReturnRequest)
    def cancel_request(self, command):
        repo = current_domain.repository_for(ReturnRequest)
        request = repo.get(command.return_id)
        if str(request.user_id) != str(command.user_id):
            raise PermissionDenied("You can only cancel your own return requests")

        request.withdraw()
        repo.add(request)

        logger.info("return.cancelled", return_id=str(request.id), user_id=command.user_id)
        return request.status
