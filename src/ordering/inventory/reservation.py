"""Stock reservation across several items.

The item service reserves one item at a time. ``reserve_items`` makes a
multi-item reservation all-or-nothing from the caller's point of view: when a
line is refused or the service fails part-way, every line already reserved is
released again (newest first) before the error propagates.

Retried ``reserve`` calls carry no idempotency key, so a timeout after the
service applied the decrement can still leak stock.
"""

import structlog

from ordering.errors import DependencyUnavailable, StockUnavailable
from ordering.inventory import get_gateway
from ordering.inventory.port import StockLine

logger = structlog.get_logger(__name__)


def reserve_items(lines: list[StockLine]) -> list[StockLine]:
    """Reserve every line or none of them. Returns the reserved lines."""
    gateway = get_gateway()
    reserved: list[StockLine] = []

    for line in lines:
        try:
            accepted = gateway.reserve(line.item_id, line.quantity)
        except Exception:
            _compensate(reserved)
            raise

        if not accepted:
            _compensate(reserved)
            raise StockUnavailable(line.item_id, line.quantity)

        reserved.append(line)

    logger.info("Reserved stock", lines=len(reserved))
    return reserved


def release_items(lines: list[StockLine]) -> list[StockLine]:
    """Release every line, best effort. Returns the lines that could not be released."""
    gateway = get_gateway()
    failed: list[StockLine] = []

    for line in lines:
        try:
            gateway.release(line.item_id, line.quantity)
        except DependencyUnavailable as exc:
            logger.warning(
                "Failed to release stock",
                item_id=line.item_id,
                quantity=line.quantity,
                error=str(exc),
            )
            failed.append(line)

    return failed


def _compensate(reserved: list[StockLine]) -> None:
    if not reserved:
        return
    failed = release_items(list(reversed(reserved)))
    if failed:
        logger.error(
            "Compensating release incomplete",
            unreleased=[(line.item_id, line.quantity) for line in failed],
        )
