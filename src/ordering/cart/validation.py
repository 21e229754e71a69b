"""Cart validation - re-check every line against the inventory service.

Lines whose item disappeared, went inactive or has no stock are removed,
quantities above the available stock are clamped, and changed prices are
refreshed. When the service fails for a single line, the
``cart_validation_on_error`` setting decides what happens:

    keep    leave the line untouched and carry on (default)
    remove  drop the line
    fail    abort with ``DependencyUnavailable``
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart
from ordering.cart.management import get_or_create_cart
from ordering.config import setting
from ordering.domain import ordering
from ordering.errors import DependencyUnavailable
from ordering.inventory import get_gateway

logger = structlog.get_logger(__name__)

_POLICIES = ("keep", "remove", "fail")


@ordering.command(part_of="ShoppingCart")
class ValidateCart:
    user_id = Identifier()
    session_id = String(max_length=255)


@ordering.command_handler(part_of=ShoppingCart)
class ValidateCartHandler:
    @handle(ValidateCart)
    def validate_cart(self, command):
        policy = setting("cart_validation_on_error")
        if policy not in _POLICIES:
            raise ValidationError({"cart_validation_on_error": [f"Unknown policy {policy!r}"]})

        cart = get_or_create_cart(user_id=command.user_id, session_id=command.session_id)
        gateway = get_gateway()
        changes = 0

        for line in list(cart.items):
            try:
                catalogue_item = gateway.get_item(str(line.item_id))
                available = gateway.check_availability(str(line.item_id)) if catalogue_item else 0
            except DependencyUnavailable as exc:
                if policy == "fail":
                    raise
                logger.warning(
                    "Could not validate cart line",
                    cart_id=str(cart.id),
                    item_id=str(line.item_id),
                    policy=policy,
                    error=str(exc),
                )
                if policy == "remove":
                    cart.remove_item(line.id)
                    changes += 1
                continue

            if catalogue_item is None or catalogue_item.status != "ACTIVE" or available <= 0:
                cart.remove_item(line.id)
                changes += 1
                logger.info("Removed unavailable item from cart", cart_id=str(cart.id), item_id=str(line.item_id))
                continue

            if line.quantity > available:
                cart.update_item_quantity(line.id, available)
                changes += 1

            if abs(line.price - catalogue_item.price) > 0.001:
                cart.update_item_price(line.id, catalogue_item.price)
                changes += 1

        if changes:
            current_domain.repository_for(ShoppingCart).add(cart)
        logger.info("Validated cart", cart_id=str(cart.id), changes=changes)
        return changes
