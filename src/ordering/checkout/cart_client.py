"""Cart service client used by checkout.

Checkout reads carts and reports conversions through this contract rather
than touching the cart aggregate directly, so the cart store can live in
another service. ``LocalCartClient`` serves both calls from this process.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart
from ordering.cart.management import MarkCartConverted


@dataclass(frozen=True)
class CartLine:
    item_id: str
    item_name: str
    price: float
    quantity: int
    subtotal: float
    variant_attributes: str = ""
    item_description: str | None = None
    seller_id: str | None = None
    seller_name: str | None = None
    image_url: str | None = None
    category: str | None = None


@dataclass(frozen=True)
class CartSnapshot:
    cart_id: str
    user_id: str | None
    session_id: str | None
    status: str
    total_amount: float
    lines: tuple[CartLine, ...]


class CartClient(ABC):
    @abstractmethod
    def get_cart(self, cart_id: str) -> CartSnapshot | None:
        """Return the cart, or None when it does not exist."""
        ...

    @abstractmethod
    def mark_converted(self, cart_id: str, order_id: str) -> None:
        """Tell the cart store checkout succeeded. Idempotent.

        Raises ``CartServiceUnavailable`` when the store cannot be reached.
        """
        ...


class LocalCartClient(CartClient):
    def get_cart(self, cart_id: str) -> CartSnapshot | None:
        try:
            cart = current_domain.repository_for(ShoppingCart).get(cart_id)
        except ObjectNotFoundError:
            return None

        return CartSnapshot(
            cart_id=str(cart.id),
            user_id=str(cart.user_id) if cart.user_id else None,
            session_id=cart.session_id,
            status=cart.status,
            total_amount=cart.total_amount,
            lines=tuple(
                CartLine(
                    item_id=str(item.item_id),
                    item_name=item.item_name or str(item.item_id),
                    price=item.price,
                    quantity=item.quantity,
                    subtotal=item.subtotal,
                    variant_attributes=item.variant_attributes or "",
                    item_description=item.item_description,
                    seller_id=str(item.seller_id) if item.seller_id else None,
                    seller_name=item.seller_name,
                    image_url=item.item_image_url,
                    category=item.category,
                )
                for item in cart.items
            ),
        )

    def mark_converted(self, cart_id: str, order_id: str) -> None:
        current_domain.process(
            MarkCartConverted(cart_id=cart_id, order_id=order_id),
            asynchronous=False,
        )


_current_client: CartClient | None = None


def get_cart_client() -> CartClient:
    global _current_client
    if _current_client is None:
        _current_client = LocalCartClient()
    return _current_client


def set_cart_client(client: CartClient) -> None:
    global _current_client
    _current_client = client


def reset_cart_client() -> None:
    global _current_client
    _current_client = None
