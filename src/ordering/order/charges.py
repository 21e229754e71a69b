"""Order charge adjustments - command and handler."""

from protean import handle
from protean.fields import Float, Identifier
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.access import load_order
from ordering.order.order import Order


@ordering.command(part_of="Order")
class UpdateOrderCharges:
    order_id = Identifier(required=True)
    shipping_cost = Float(min_value=0.0)
    tax_amount = Float(min_value=0.0)
    discount_amount = Float(min_value=0.0)


@ordering.command_handler(part_of=Order)
class UpdateOrderChargesHandler:
    @handle(UpdateOrderCharges)
    def update_order_charges(self, command):
        order = load_order(command.order_id)
        order.update_charges(
            shipping_cost=command.shipping_cost,
            tax_amount=command.tax_amount,
            discount_amount=command.discount_amount,
        )
        current_domain.repository_for(Order).add(order)
        return order.final_amount
