"""Repository for the Order aggregate."""

from ordering.domain import ordering
from ordering.order.order import Order, OrderStatus


@ordering.repository(part_of=Order)
class OrderRepository:
    def find_by_status(self, status: OrderStatus) -> list[Order]:
        return self._dao.query.filter(status=status.value).limit(None).all().items

    def find_by_tracking_number(self, tracking_number: str) -> Order | None:
        orders = self._dao.query.filter(tracking_number=tracking_number).all().items
        return orders[0] if orders else None

    def find_for_user(self, user_id) -> list[Order]:
        return self._dao.query.filter(user_id=str(user_id)).order_by("-created_at").limit(None).all().items

    def find_awaiting_cart_conversion(self) -> list[Order]:
        return self._dao.query.filter(cart_conversion_pending=True).limit(None).all().items

    def find_owing_stock_release(self) -> list[Order]:
        candidates = self._dao.query.filter(stock_reserved=True).limit(None).all().items
        return [order for order in candidates if order.owes_stock_release]
