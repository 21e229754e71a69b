"""Automatic status updates - command and handler for the scheduled sweep.

Triggered periodically by an external scheduler via ``manage.py
auto-cancel-orders`` or the maintenance API. Orders left pending beyond the
timeout are cancelled and their reserved stock released.
"""

from datetime import timedelta

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import DateTime, Integer
from protean.utils.globals import current_domain

from ordering.config import setting
from ordering.domain import ordering
from ordering.order.order import Order, OrderStatus
from ordering.order.stock import release_order_stock
from ordering.utils.time import as_utc, utcnow

logger = structlog.get_logger(__name__)

AUTO_CANCEL_REASON = "Auto-cancelled due to timeout"


@ordering.command(part_of="Order")
class ProcessAutomaticStatusUpdates:
    """Cancel orders pending longer than the timeout."""

    timeout_hours = Integer(min_value=1)
    as_of = DateTime()  # Optional: defaults to now


@ordering.command_handler(part_of=Order)
class ProcessAutomaticStatusUpdatesHandler:
    @handle(ProcessAutomaticStatusUpdates)
    def process_automatic_status_updates(self, command):
        as_of = as_utc(command.as_of) or utcnow()
        timeout_hours = command.timeout_hours or setting("order_pending_timeout_hours")
        cutoff = as_of - timedelta(hours=timeout_hours)
        repo = current_domain.repository_for(Order)

        logger.info("Checking for stale pending orders", cutoff=cutoff.isoformat(), timeout_hours=timeout_hours)

        stale = [
            order
            for order in repo.find_by_status(OrderStatus.PENDING)
            if order.created_at and as_utc(order.created_at) < cutoff
        ]
        if not stale:
            logger.info("No stale pending orders found")
            return 0

        cancelled_count = 0
        for order in stale:
            try:
                order.cancel(reason=AUTO_CANCEL_REASON, cancelled_by="system", now=as_of)
                release_order_stock(order)
                repo.add(order)
                cancelled_count += 1
                logger.info(
                    "Auto-cancelled pending order",
                    order_id=str(order.id),
                    created_at=str(order.created_at),
                )
            except (ValidationError, InvalidOperationError) as exc:
                logger.warning("Failed to auto-cancel order", order_id=str(order.id), error=str(exc))

        logger.info("Automatic status updates complete", cancelled_count=cancelled_count)
        return cancelled_count
