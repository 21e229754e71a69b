"""Order cancellation and refund - commands and handler.

Cancelling gives the order's reserved stock back to the inventory service.
A failed release does not block the cancellation.
"""

import structlog
from protean import handle
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.access import load_order, load_owned_order
from ordering.order.order import Order
from ordering.order.stock import release_order_stock

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    requested_by = Identifier()
    is_admin = Boolean(default=False)
    reason = String(max_length=500)


@ordering.command(part_of="Order")
class RefundOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)


@ordering.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        order = load_owned_order(command.order_id, command.requested_by, command.is_admin)
        order.cancel(
            reason=command.reason,
            cancelled_by="admin" if command.is_admin else "customer",
        )
        release_order_stock(order)
        current_domain.repository_for(Order).add(order)
        logger.info("Cancelled order", order_id=str(order.id), reason=order.latest_history_entry.reason)

    @handle(RefundOrder)
    def refund_order(self, command):
        order = load_order(command.order_id)
        order.refund(reason=command.reason or "Order refunded")
        current_domain.repository_for(Order).add(order)
