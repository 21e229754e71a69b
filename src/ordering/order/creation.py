"""Order creation - commands and handler.

``CreateOrder`` persists an order from an already validated cart snapshot;
the checkout orchestrator gathers the snapshot and reserves stock first.
``RecordCartConversion`` clears the order's pending-conversion flag once the
source cart has acknowledged the checkout.
"""

import json

import structlog
from protean import handle
from protean.fields import Boolean, Float, Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.config import setting
from ordering.domain import ordering
from ordering.order.access import load_order
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


def _decode(value):
    return json.loads(value) if isinstance(value, str) else value


@ordering.command(part_of="Order")
class CreateOrder:
    user_id = Identifier(required=True)
    source_cart_id = Identifier()
    items = Text(required=True)  # JSON: list of item snapshot dicts
    shipping_address = Text(required=True)  # JSON: address dict
    billing_address = Text()  # JSON: address dict, defaults to shipping
    payment_method = String(max_length=50)
    shipping_cost = Float(default=0.0, min_value=0.0)
    tax_amount = Float(default=0.0, min_value=0.0)
    discount_amount = Float(default=0.0, min_value=0.0)
    notes = Text()
    customer = Text()  # JSON: {name, email, phone}
    stock_reserved = Boolean(default=False)


@ordering.command(part_of="Order")
class RecordCartConversion:
    order_id = Identifier(required=True)


@ordering.command_handler(part_of=Order)
class CreateOrderHandler:
    @handle(CreateOrder)
    def create_order(self, command):
        order = Order.create(
            user_id=command.user_id,
            items_data=_decode(command.items),
            shipping_address=_decode(command.shipping_address),
            billing_address=_decode(command.billing_address) if command.billing_address else None,
            payment_method=command.payment_method,
            shipping_cost=command.shipping_cost or 0.0,
            tax_amount=command.tax_amount or 0.0,
            discount_amount=command.discount_amount or 0.0,
            notes=command.notes,
            customer=_decode(command.customer) if command.customer else None,
            source_cart_id=command.source_cart_id,
            stock_reserved=bool(command.stock_reserved),
            estimated_delivery_days=setting("order_estimated_delivery_days"),
        )
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Created order",
            order_id=str(order.id),
            user_id=command.user_id,
            cart_id=command.source_cart_id,
            final_amount=order.final_amount,
        )
        return str(order.id)

    @handle(RecordCartConversion)
    def record_cart_conversion(self, command):
        order = load_order(command.order_id)
        order.mark_cart_conversion_recorded()
        current_domain.repository_for(Order).add(order)
