"""ReturnRequest aggregate with ReturnItem entity.

One request per (order, user). Each item snapshots its condition and the
refund computed from it at request time.

State Machine:
    REQUESTED → APPROVED | REJECTED
    APPROVED → PICKUP_SCHEDULED → PICKUP_COMPLETED → REFUND_PROCESSED → COMPLETED
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text

from storefront.domain import storefront
from storefront.errors import InvalidState
from storefront.returns.events import ReturnRequested, ReturnStatusChanged


class ReturnStatus(Enum):
    REQUESTED = "Requested"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    PICKUP_SCHEDULED = "Pickup_Scheduled"
    PICKUP_COMPLETED = "Pickup_Completed"
    REFUND_PROCESSED = "Refund_Processed"
    COMPLETED = "Completed"


class ItemCondition(Enum):
    UNOPENED = "Unopened"
    LIKE_NEW = "Like_New"
    USED = "Used"
    DAMAGED = "Damaged"
    DEFECTIVE = "Defective"


# Defective goods are refunded in full: the fault is ours, not the customer's.
CONDITION_FACTORS = {
    ItemCondition.UNOPENED: 1.0,
    ItemCondition.LIKE_NEW: 1.0,
    ItemCondition.DEFECTIVE: 1.0,
    ItemCondition.USED: 0.5,
    ItemCondition.DAMAGED: 0.3,
}

_VALID_TRANSITIONS = {
    ReturnStatus.REQUESTED: {ReturnStatus.APPROVED, ReturnStatus.REJECTED},
    ReturnStatus.APPROVED: {ReturnStatus.PICKUP_SCHEDULED},
    ReturnStatus.PICKUP_SCHEDULED: {ReturnStatus.PICKUP_COMPLETED},
    ReturnStatus.PICKUP_COMPLETED: {ReturnStatus.REFUND_PROCESSED},
    ReturnStatus.REFUND_PROCESSED: {ReturnStatus.COMPLETED},
    ReturnStatus.REJECTED: set(),  # Terminal
    ReturnStatus.COMPLETED: set(),  # Terminal
}

# Statuses in which the returned goods are back in stock
RESTOCKED_STATUSES = {
    ReturnStatus.APPROVED,
    ReturnStatus.PICKUP_SCHEDULED,
    ReturnStatus.PICKUP_COMPLETED,
    ReturnStatus.REFUND_PROCESSED,
    ReturnStatus.COMPLETED,
}


def item_refund(unit_price: float, quantity: int, condition: ItemCondition) -> float:
    return round(unit_price * quantity * CONDITION_FACTORS[condition], 2)


@storefront.entity(part_of="ReturnRequest")
class ReturnItem:
    order_item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    condition = String(required=True, choices=ItemCondition)
    unit_price = Float(required=True)
    refund_amount = Float(required=True)
    reason = String(max_length=500)


@storefront.aggregate
class ReturnRequest:
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    reason = String(required=True, max_length=1000)
    status = String(choices=ReturnStatus, default=ReturnStatus.REQUESTED.value)
    refund_amount = Float(default=0.0)
    admin_notes = Text()
    approved_by = Identifier()
    approved_at = DateTime()
    processed_at = DateTime()
    items = HasMany(ReturnItem)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def open(cls, order_id: str, user_id: str, reason: str, items: list[ReturnItem]):
        now = datetime.now(UTC)
        request = cls(
            order_id=order_id,
            user_id=user_id,
            reason=reason,
            refund_amount=round(sum(item.refund_amount for item in items), 2),
            created_at=now,
            updated_at=now,
        )
        for item in items:
            request.add_items(item)

        request.raise_(
            ReturnRequested(
                return_id=str(request.id),
                order_id=order_id,
                user_id=user_id,
                refund_amount=request.refund_amount,
                requested_at=now,
            )
        )
        return request

    @property
    def status_enum(self) -> ReturnStatus:
        return ReturnStatus(self.status)

    @property
    def is_restocked(self) -> bool:
        return self.status_enum in RESTOCKED_STATUSES

    def transition_to(self, target: ReturnStatus, acting_user_id: str | None = None, notes: str | None = None) -> None:
        current = self.status_enum
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidState(f"Cannot move return from {current.value} to {target.value}")

        now = datetime.now(UTC)
        self.status = target.value
        self.updated_at = now
        if notes:
            self.admin_notes = notes
        if target == ReturnStatus.APPROVED:
            self.approved_by = acting_user_id
            self.approved_at = now
        elif target == ReturnStatus.REFUND_PROCESSED:
            self.processed_at = now

        self.raise_(
            ReturnStatusChanged(
                return_id=str(self.id),
                order_id=str(self.order_id),
                previous_status=current.value,
                new_status=target.value,
                changed_at=now,
            )
        )

    def withdraw(self) -> None:
        """Requester cancels the request while it is still waiting for review."""
        if self.status_enum != ReturnStatus.REQUESTED:
            raise InvalidState("Only requested returns can be cancelled")
        now = datetime.now(UTC)
        self.transition_to(ReturnStatus.REJECTED, notes=f"Cancelled by user on {now.isoformat()}")


@storefront.repository(part_of=ReturnRequest)
class ReturnRequestRepository:
    def find_for_order_and_user(self, order_id: str, user_id: str) -> ReturnRequest | None:
        return self._dao.query.filter(order_id=order_id, user_id=user_id).all().first

    def for_order(self, order_id: str) -> list[ReturnRequest]:
        return self._dao.query.filter(order_id=order_id).all().items

    def for_user(self, user_id: str) -> list[ReturnRequest]:
        requests = self._dao.query.filter(user_id=user_id).all().items
        return sorted(requests, key=lambda request: request.created_at, reverse=True)

    def restocked_quantities(self, order_id: str) -> dict[str, int]:
        """Quantities already put back in stock by approved returns, keyed by order item id."""
        quantities: dict[str, int] = {}
        for request in self.for_order(order_id):
            if not request.is_restocked:
                continue
            for item in request.items or []:
                key = str(item.order_item_id)
                quantities[key] = quantities.get(key, 0) + item.quantity
        return quantities
