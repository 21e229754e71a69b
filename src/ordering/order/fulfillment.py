"""Order fulfillment - commands and handler.

Seller and admin driven steps between confirmation and delivery.
"""

from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.access import load_order
from ordering.order.order import Order


@ordering.command(part_of="Order")
class MarkProcessing:
    order_id = Identifier(required=True)


@ordering.command(part_of="Order")
class ShipOrder:
    order_id = Identifier(required=True)
    tracking_number = String(max_length=255)
    estimated_delivery_date = DateTime()


@ordering.command(part_of="Order")
class MarkOutForDelivery:
    order_id = Identifier(required=True)


@ordering.command(part_of="Order")
class DeliverOrder:
    order_id = Identifier(required=True)
    actual_delivery_date = DateTime()  # Optional: defaults to now


@ordering.command_handler(part_of=Order)
class FulfillmentHandler:
    @handle(MarkProcessing)
    def mark_processing(self, command):
        order = load_order(command.order_id)
        order.mark_processing()
        current_domain.repository_for(Order).add(order)

    @handle(ShipOrder)
    def ship_order(self, command):
        order = load_order(command.order_id)
        order.ship(
            tracking_number=command.tracking_number,
            estimated_delivery_date=command.estimated_delivery_date,
        )
        current_domain.repository_for(Order).add(order)

    @handle(MarkOutForDelivery)
    def mark_out_for_delivery(self, command):
        order = load_order(command.order_id)
        order.mark_out_for_delivery()
        current_domain.repository_for(Order).add(order)

    @handle(DeliverOrder)
    def deliver_order(self, command):
        order = load_order(command.order_id)
        order.deliver(actual_delivery_date=command.actual_delivery_date)
        current_domain.repository_for(Order).add(order)
