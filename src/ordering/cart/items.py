"""Cart item management - commands and handler.

Stock is checked against the inventory service before any line changes:
for a merged line the check covers the merged total, for an update the new
quantity.
"""

import structlog
from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart
from ordering.cart.management import get_or_create_cart
from ordering.config import setting
from ordering.domain import ordering
from ordering.errors import CartItemNotFound, ItemNotFound, NotOwned, StockUnavailable
from ordering.inventory import get_gateway

logger = structlog.get_logger(__name__)


def ensure_stock(item_id, quantity):
    available = get_gateway().check_availability(str(item_id))
    if quantity > available:
        raise StockUnavailable(str(item_id), quantity, available)


def owned_cart_for_line(cart_item_id, user_id=None, session_id=None) -> ShoppingCart:
    """Locate the active cart holding a line and check it belongs to the caller."""
    cart = current_domain.repository_for(ShoppingCart).find_holding_item(
        cart_item_id, user_id=user_id, session_id=session_id
    )
    if cart is None:
        raise CartItemNotFound({"cart_item_id": [f"Cart item {cart_item_id} not found"]})
    if not cart.belongs_to(user_id=user_id, session_id=session_id):
        raise NotOwned({"cart_item_id": ["Cart item does not belong to the current cart"]})
    return cart


@ordering.command(part_of="ShoppingCart")
class AddToCart:
    user_id = Identifier()
    session_id = String(max_length=255)
    item_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    variant_attributes = String(max_length=1000)


@ordering.command(part_of="ShoppingCart")
class UpdateCartItem:
    user_id = Identifier()
    session_id = String(max_length=255)
    cart_item_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@ordering.command(part_of="ShoppingCart")
class RemoveFromCart:
    user_id = Identifier()
    session_id = String(max_length=255)
    cart_item_id = Identifier(required=True)


@ordering.command_handler(part_of=ShoppingCart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        catalogue_item = get_gateway().get_item(str(command.item_id))
        if catalogue_item is None:
            raise ItemNotFound({"item_id": [f"Item {command.item_id} not found"]})

        cart = get_or_create_cart(user_id=command.user_id, session_id=command.session_id)
        variant = command.variant_attributes or ""

        max_items = setting("cart_max_items")
        cart.ensure_room_for(command.item_id, variant, max_items)

        existing = cart.find_item(command.item_id, variant)
        requested_total = command.quantity + (existing.quantity if existing else 0)
        ensure_stock(command.item_id, requested_total)

        line = cart.add_item(
            catalogue_item,
            command.quantity,
            variant_attributes=variant,
            max_items=max_items,
        )
        current_domain.repository_for(ShoppingCart).add(cart)

        logger.info(
            "Added item to cart",
            cart_id=str(cart.id),
            item_id=str(command.item_id),
            quantity=command.quantity,
            line_quantity=line.quantity,
        )
        return str(cart.id)

    @handle(UpdateCartItem)
    def update_cart_item(self, command):
        cart = owned_cart_for_line(command.cart_item_id, command.user_id, command.session_id)
        line = cart.get_item(command.cart_item_id)
        ensure_stock(line.item_id, command.quantity)

        cart.update_item_quantity(command.cart_item_id, command.quantity)
        current_domain.repository_for(ShoppingCart).add(cart)
        return str(cart.id)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        cart = owned_cart_for_line(command.cart_item_id, command.user_id, command.session_id)
        cart.remove_item(command.cart_item_id)
        current_domain.repository_for(ShoppingCart).add(cart)
        logger.info("Removed item from cart", cart_id=str(cart.id), cart_item_id=command.cart_item_id)
        return str(cart.id)
