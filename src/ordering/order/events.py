"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderCreated:
    """A pending order was created from a cart at checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    source_cart_id = Identifier()
    item_count = Integer(required=True)
    final_amount = Float(required=True)
    payment_method = String()
    created_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    """The order moved to a new status; mirrors the history entry appended."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    reason = Text()
    sequence = Integer(required=True)
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderShipped:
    __version__ = 1

    order_id = Identifier(required=True)
    tracking_number = String()
    estimated_delivery_date = DateTime()
    shipped_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    order_id = Identifier(required=True)
    delivered_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = Text(required=True)
    cancelled_by = String()
    cancelled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class ReturnRequested:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = Text(required=True)
    requested_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderChargesUpdated:
    __version__ = 1

    order_id = Identifier(required=True)
    shipping_cost = Float(required=True)
    tax_amount = Float(required=True)
    discount_amount = Float(required=True)
    final_amount = Float(required=True)


@ordering.event(part_of="Order")
class PaymentStatusUpdated:
    """The payment collaborator reported a new payment state."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    transaction_id = String()
    updated_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStockReleased:
    __version__ = 1

    order_id = Identifier(required=True)
    released_at = DateTime(required=True)


@ordering.event(part_of="Order")
class CartConversionRecorded:
    """The source cart acknowledged the conversion, possibly after retries."""

    __version__ = 1

    order_id = Identifier(required=True)
    cart_id = Identifier(required=True)
    recorded_at = DateTime(required=True)
