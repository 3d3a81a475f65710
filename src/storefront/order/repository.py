"""Order lookups and dashboard statistics."""

from collections.abc import Iterator

from storefront.domain import storefront
from storefront.order.order import Order, OrderStatus

_PAGE_SIZE = 100


@storefront.repository(part_of=Order)
class OrderRepository:
    def find_by_number(self, order_number: str) -> Order | None:
        return self._dao.query.filter(order_number=order_number).all().first

    def find_by_checkout_session(self, session_id: str) -> Order | None:
        return self._dao.query.filter(checkout_session_id=session_id).all().first

    def for_user(self, user_id: str) -> list[Order]:
        orders = list(self._iterate(user_id=user_id))
        return sorted(orders, key=lambda order: order.created_at, reverse=True)

    def count_by_status(self, status: OrderStatus) -> int:
        return self._dao.query.filter(status=status.value).all().total

    def statistics(self) -> dict:
        stats = {"total_orders": self._dao.query.all().total}
        for status in OrderStatus:
            stats[f"{status.value.lower()}_orders"] = self.count_by_status(status)
        stats["total_revenue"] = round(
            sum(order.total_price or 0.0 for order in self._iterate() if order.status != OrderStatus.CANCELLED.value),
            2,
        )
        return stats

    def _iterate(self, **filters) -> Iterator[Order]:
        offset = 0
        while True:
            query = self._dao.query.filter(**filters) if filters else self._dao.query
            page = query.offset(offset).limit(_PAGE_SIZE).all()
            yield from page.items
            if not page.has_next:
                break
            offset += _PAGE_SIZE
