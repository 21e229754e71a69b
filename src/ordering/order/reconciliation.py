"""Order reconciliation - command and handler for the scheduled retry job.

Two checkout side effects are allowed to fail without undoing the order:
telling the source cart it was converted, and giving back the stock of a
cancelled order. Both leave a marker on the order; this job retries them.
Running it repeatedly is safe.
"""

import structlog
from protean import handle
from protean.fields import DateTime
from protean.utils.globals import current_domain

from ordering.checkout.cart_client import get_cart_client
from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.stock import release_order_stock
from ordering.utils.time import as_utc, utcnow

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class ReconcileOrders:
    as_of = DateTime()  # Optional: defaults to now


@ordering.command_handler(part_of=Order)
class ReconcileOrdersHandler:
    @handle(ReconcileOrders)
    def reconcile_orders(self, command):
        now = as_utc(command.as_of) or utcnow()
        repo = current_domain.repository_for(Order)
        client = get_cart_client()

        conversions = 0
        for order in repo.find_awaiting_cart_conversion():
            try:
                client.mark_converted(str(order.source_cart_id), str(order.id))
            except Exception as exc:
                logger.warning(
                    "Cart conversion still failing",
                    order_id=str(order.id),
                    cart_id=str(order.source_cart_id),
                    error=str(exc),
                )
                continue
            order.mark_cart_conversion_recorded(now)
            repo.add(order)
            conversions += 1

        releases = 0
        for order in repo.find_owing_stock_release():
            if release_order_stock(order):
                releases += 1
            repo.add(order)

        logger.info("Order reconciliation complete", cart_conversions=conversions, stock_releases=releases)
        return {"cart_conversions": conversions, "stock_releases": releases}
