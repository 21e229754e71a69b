"""Expired cart cleanup - command and handler for the scheduled sweep.

Triggered by an external scheduler (cron, K8s CronJob) through
``manage.py cleanup-carts`` or the maintenance API. Active carts past their
expiry are marked expired; closed carts (expired, abandoned or converted)
whose last change is older than the retention window are deleted.
"""

from datetime import timedelta

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import DateTime, Integer
from protean.utils.globals import current_domain

from ordering.cart.cart import CartStatus, ShoppingCart
from ordering.config import setting
from ordering.domain import ordering
from ordering.utils.time import as_utc, utcnow

logger = structlog.get_logger(__name__)

_CLOSED_STATUSES = (CartStatus.EXPIRED, CartStatus.ABANDONED, CartStatus.CONVERTED)


@ordering.command(part_of="ShoppingCart")
class CleanupExpiredCarts:
    retention_days = Integer(min_value=0)
    as_of = DateTime()  # Optional: defaults to now


@ordering.command_handler(part_of=ShoppingCart)
class CleanupExpiredCartsHandler:
    @handle(CleanupExpiredCarts)
    def cleanup_expired_carts(self, command):
        as_of = as_utc(command.as_of) or utcnow()
        retention_days = command.retention_days
        if retention_days is None:
            retention_days = setting("cart_retention_days")
        cutoff = as_of - timedelta(days=retention_days)
        repo = current_domain.repository_for(ShoppingCart)

        logger.info("Cleaning up carts", as_of=as_of.isoformat(), retention_days=retention_days)

        expired = 0
        for cart in repo.find_by_status(CartStatus.ACTIVE):
            if not cart.is_expired(as_of):
                continue
            try:
                cart.expire(as_of)
                repo.add(cart)
                expired += 1
            except (ValidationError, InvalidOperationError) as exc:
                logger.warning("Failed to expire cart", cart_id=str(cart.id), error=str(exc))

        deleted = 0
        for status in _CLOSED_STATUSES:
            for cart in repo.find_by_status(status):
                if cart.updated_at and as_utc(cart.updated_at) < cutoff:
                    repo.purge(cart)
                    deleted += 1

        logger.info("Cart cleanup complete", expired=expired, deleted=deleted)
        return {"expired": expired, "deleted": deleted}
