"""Administrative status updates - command and handler.

Lets an admin or seller move an order along any edge of the status graph,
optionally recording a tracking number on the way.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.config import setting
from ordering.domain import ordering
from ordering.order.access import load_order
from ordering.order.order import Order
from ordering.order.stock import release_order_stock

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=50)
    reason = String(max_length=500)
    tracking_number = String(max_length=255)


@ordering.command_handler(part_of=Order)
class UpdateOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        order = load_order(command.order_id)
        previous = order.status
        changed = order.update_status(
            command.status,
            reason=command.reason,
            tracking_number=command.tracking_number,
            return_window_days=setting("order_return_window_days"),
        )
        release_order_stock(order)
        current_domain.repository_for(Order).add(order)

        if changed:
            logger.info(
                "Order status updated",
                order_id=str(order.id),
                previous_status=previous,
                new_status=order.status,
            )
        return changed
