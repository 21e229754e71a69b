"""Domain events for the ShoppingCart aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="ShoppingCart")
class CartCreated:
    """A new active cart was opened for a user or a guest session."""

    __version__ = 1

    cart_id = Identifier(required=True)
    user_id = Identifier()
    session_id = String()
    expires_at = DateTime()


@ordering.event(part_of="ShoppingCart")
class CartItemAdded:
    """An item was added to the cart, or merged into an existing line."""

    __version__ = 1

    cart_id = Identifier(required=True)
    cart_item_id = Identifier(required=True)
    item_id = Identifier(required=True)
    variant_attributes = String()
    quantity = Integer(required=True)
    line_quantity = Integer(required=True)
    price = Float(required=True)


@ordering.event(part_of="ShoppingCart")
class CartQuantityUpdated:
    __version__ = 1

    cart_id = Identifier(required=True)
    cart_item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@ordering.event(part_of="ShoppingCart")
class CartItemPriceRefreshed:
    """Validation found a different catalogue price for a cart line."""

    __version__ = 1

    cart_id = Identifier(required=True)
    cart_item_id = Identifier(required=True)
    previous_price = Float(required=True)
    new_price = Float(required=True)


@ordering.event(part_of="ShoppingCart")
class CartItemRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    cart_item_id = Identifier(required=True)
    item_id = Identifier(required=True)


@ordering.event(part_of="ShoppingCart")
class CartCleared:
    __version__ = 1

    cart_id = Identifier(required=True)
    removed_items = Integer(required=True)


@ordering.event(part_of="ShoppingCart")
class CartsMerged:
    """A guest cart's lines were folded into a registered user's cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    source_cart_id = Identifier(required=True)
    items_merged_count = Integer(required=True)


@ordering.event(part_of="ShoppingCart")
class CartTransferred:
    """A guest cart was handed over to a registered user as-is."""

    __version__ = 1

    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
    previous_session_id = String()


@ordering.event(part_of="ShoppingCart")
class CartExpirationExtended:
    __version__ = 1

    cart_id = Identifier(required=True)
    expires_at = DateTime(required=True)


@ordering.event(part_of="ShoppingCart")
class CartExpired:
    __version__ = 1

    cart_id = Identifier(required=True)
    expired_at = DateTime(required=True)


@ordering.event(part_of="ShoppingCart")
class CartConverted:
    """Checkout produced an order from this cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    user_id = Identifier()
    order_id = Identifier()
    converted_at = DateTime(required=True)
