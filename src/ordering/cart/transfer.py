"""Guest cart transfer - command and handler.

Runs when a guest signs in. The guest cart is either handed to the user
unchanged (the user had no active cart) or folded into the user's cart and
deleted. Running the transfer again finds no guest cart and simply returns
the user's cart.
"""

from contextlib import ExitStack

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart, owner_key_for
from ordering.cart.management import get_or_create_cart
from ordering.cart.repository import owner_lock
from ordering.config import setting
from ordering.domain import ordering
from ordering.utils.time import utcnow

logger = structlog.get_logger(__name__)


@ordering.command(part_of="ShoppingCart")
class TransferGuestCart:
    session_id = String(required=True, max_length=255)
    user_id = Identifier(required=True)


@ordering.command_handler(part_of=ShoppingCart)
class TransferGuestCartHandler:
    @handle(TransferGuestCart)
    def transfer_guest_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        now = utcnow()
        keys = sorted(
            [
                owner_key_for(session_id=command.session_id),
                owner_key_for(user_id=command.user_id),
            ]
        )

        with ExitStack() as locks:
            for key in keys:
                locks.enter_context(owner_lock(key))

            guest_cart = repo.find_active_for(session_id=command.session_id)
            if guest_cart is None:
                logger.info("No guest cart to transfer", session_id=command.session_id)
            else:
                user_cart = repo.find_active_for(user_id=command.user_id)
                if user_cart is not None and user_cart.is_expired(now):
                    user_cart.expire(now)
                    repo.add(user_cart)
                    user_cart = None

                if user_cart is None:
                    guest_cart.assign_to_user(command.user_id, now)
                    guest_cart.extend_expiration(setting("cart_expiration_days"), now)
                    repo.add(guest_cart)
                    logger.info(
                        "Transferred guest cart",
                        cart_id=str(guest_cart.id),
                        user_id=command.user_id,
                    )
                    return str(guest_cart.id)

                user_cart.merge_from(guest_cart, now)
                repo.add(user_cart)
                repo.purge(guest_cart)
                logger.info(
                    "Merged guest cart into user cart",
                    cart_id=str(user_cart.id),
                    guest_cart_id=str(guest_cart.id),
                    items_merged=len(guest_cart.items),
                )
                return str(user_cart.id)

        return str(get_or_create_cart(user_id=command.user_id, now=now).id)
