"""Loading orders on behalf of a caller."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.errors import NotOwned, OrderNotFound
from ordering.order.order import Order


def load_order(order_id) -> Order:
    try:
        return current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError:
        raise OrderNotFound({"order_id": [f"Order {order_id} not found"]}) from None


def load_owned_order(order_id, user_id=None, is_admin=False) -> Order:
    """Load an order the caller owns. Admins may load any order."""
    order = load_order(order_id)
    if not is_admin and not order.is_owned_by(user_id):
        raise NotOwned({"order_id": ["Order does not belong to the current user"]})
    return order
