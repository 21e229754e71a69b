"""Releasing the stock an order reserved at checkout."""

import structlog

from ordering.inventory.reservation import release_items
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


def release_order_stock(order: Order) -> bool:
    """Give back a cancelled order's reservation, best effort.

    Lines the inventory service could not take back stay recorded on the
    order for the reconciliation job. Returns True when nothing is owed.
    """
    if not order.owes_stock_release:
        return not order.stock_reserved

    failed = release_items(order.stock_lines())
    order.record_stock_release(failed)
    if failed:
        logger.warning(
            "Stock release deferred",
            order_id=str(order.id),
            unreleased=[line.item_id for line in failed],
        )
        return False

    logger.info("Released order stock", order_id=str(order.id))
    return True
