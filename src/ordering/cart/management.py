"""Cart management - commands and handler.

Covers fetching (and lazily opening) the owner's cart, clearing it,
extending its expiry, and the checkout notification that marks it
converted.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart, owner_key_for
from ordering.cart.repository import owner_lock
from ordering.config import setting
from ordering.domain import ordering
from ordering.utils.time import utcnow

logger = structlog.get_logger(__name__)


def get_or_create_cart(user_id=None, session_id=None, now=None) -> ShoppingCart:
    """Return the owner's active cart, opening a new one when needed.

    A stored cart past its expiry is marked expired and replaced by a fresh
    empty cart. Every successful fetch pushes the expiry forward.
    """
    now = now or utcnow()
    days = setting("cart_expiration_days")
    repo = current_domain.repository_for(ShoppingCart)

    with owner_lock(owner_key_for(user_id, session_id)):
        cart = repo.find_active_for(user_id=user_id, session_id=session_id)

        if cart is not None and cart.is_expired(now):
            cart.expire(now)
            repo.add(cart)
            logger.info("Expired stale cart", cart_id=str(cart.id))
            cart = None

        if cart is None:
            cart = ShoppingCart.create(
                user_id=user_id,
                session_id=session_id,
                expiration_days=days,
                now=now,
            )
            logger.info(
                "Opened new cart",
                cart_id=str(cart.id),
                user_id=user_id,
                guest=cart.is_guest,
            )
        else:
            cart.extend_expiration(days, now)

        repo.add(cart)
    return cart


@ordering.command(part_of="ShoppingCart")
class GetOrCreateCart:
    """Fetch the owner's active cart, creating it on first access."""

    user_id = Identifier()
    session_id = String(max_length=255)


@ordering.command(part_of="ShoppingCart")
class ClearCart:
    user_id = Identifier()
    session_id = String(max_length=255)


@ordering.command(part_of="ShoppingCart")
class ExtendCartExpiration:
    user_id = Identifier()
    session_id = String(max_length=255)
    days = Integer(default=7, min_value=1)


@ordering.command(part_of="ShoppingCart")
class MarkCartConverted:
    """Checkout notification: the cart produced an order."""

    cart_id = Identifier(required=True)
    order_id = Identifier()


@ordering.command_handler(part_of=ShoppingCart)
class ManageCartHandler:
    @handle(GetOrCreateCart)
    def get_or_create(self, command):
        cart = get_or_create_cart(user_id=command.user_id, session_id=command.session_id)
        return str(cart.id)

    @handle(ClearCart)
    def clear_cart(self, command):
        cart = get_or_create_cart(user_id=command.user_id, session_id=command.session_id)
        cart.clear()
        current_domain.repository_for(ShoppingCart).add(cart)
        logger.info("Cleared cart", cart_id=str(cart.id))
        return str(cart.id)

    @handle(ExtendCartExpiration)
    def extend_expiration(self, command):
        cart = get_or_create_cart(user_id=command.user_id, session_id=command.session_id)
        cart.extend_expiration(command.days or setting("cart_expiration_days"))
        current_domain.repository_for(ShoppingCart).add(cart)
        return str(cart.id)

    @handle(MarkCartConverted)
    def mark_converted(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        try:
            cart = repo.get(command.cart_id)
        except ObjectNotFoundError:
            logger.info("Converted cart already purged", cart_id=command.cart_id)
            return False

        if not cart.mark_converted(order_id=command.order_id):
            return False

        repo.add(cart)
        logger.info("Marked cart as converted", cart_id=str(cart.id), order_id=command.order_id)
        return True
