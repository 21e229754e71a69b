"""Order returns - command and handler."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.config import setting
from ordering.domain import ordering
from ordering.order.access import load_owned_order
from ordering.order.order import Order


@ordering.command(part_of="Order")
class RequestReturn:
    order_id = Identifier(required=True)
    requested_by = Identifier(required=True)
    reason = String(max_length=500)


@ordering.command_handler(part_of=Order)
class RequestReturnHandler:
    @handle(RequestReturn)
    def request_return(self, command):
        order = load_owned_order(command.order_id, command.requested_by)
        order.request_return(
            reason=command.reason,
            window_days=setting("order_return_window_days"),
        )
        current_domain.repository_for(Order).add(order)
