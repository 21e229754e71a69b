"""Checkout orchestration - turns a user's cart into a pending order.

Steps, in order:

    1. Read the cart through the cart client and check it: it must exist,
       belong to the buyer, still be active and hold at least one item.
    2. Reserve stock for every line. The reservation is all-or-nothing;
       see ``ordering.inventory.reservation``.
    3. Persist the order (``CreateOrder``). If that fails the reservation is
       released before the error propagates.
    4. Tell the cart store the cart was converted. This step is best
       effort: on failure the order keeps ``cart_conversion_pending`` and
       ``ReconcileOrders`` retries later. The order is never rolled back.
"""

import json

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.cart.cart import CartStatus
from ordering.checkout.cart_client import CartClient, CartSnapshot, get_cart_client
from ordering.errors import CartEmpty, CartNotFound, NotOwned
from ordering.inventory.port import StockLine
from ordering.inventory.reservation import release_items, reserve_items
from ordering.order.creation import CreateOrder, RecordCartConversion

logger = structlog.get_logger(__name__)


class CheckoutOrchestrator:
    def __init__(self, cart_client: CartClient | None = None) -> None:
        self._cart_client = cart_client

    @property
    def cart_client(self) -> CartClient:
        return self._cart_client or get_cart_client()

    def create_order_from_cart(
        self,
        user_id,
        cart_id,
        shipping_address: dict,
        billing_address: dict | None = None,
        payment_method: str | None = None,
        shipping_cost: float = 0.0,
        tax_amount: float = 0.0,
        discount_amount: float = 0.0,
        notes: str | None = None,
        customer: dict | None = None,
    ) -> str:
        """Create a pending order from the cart. Returns the order id."""
        cart = self._checked_cart(user_id, cart_id)

        reserved = reserve_items([StockLine(item_id=line.item_id, quantity=line.quantity) for line in cart.lines])
        try:
            order_id = current_domain.process(
                CreateOrder(
                    user_id=user_id,
                    source_cart_id=cart.cart_id,
                    items=json.dumps([_item_snapshot(line) for line in cart.lines]),
                    shipping_address=json.dumps(shipping_address),
                    billing_address=json.dumps(billing_address) if billing_address else None,
                    payment_method=payment_method,
                    shipping_cost=shipping_cost,
                    tax_amount=tax_amount,
                    discount_amount=discount_amount,
                    notes=notes,
                    customer=json.dumps(customer) if customer else None,
                    stock_reserved=True,
                ),
                asynchronous=False,
            )
        except Exception:
            logger.warning("Order creation failed, releasing reservation", cart_id=cart.cart_id)
            release_items(reserved)
            raise

        self._notify_cart_converted(cart.cart_id, order_id)
        return order_id

    def _checked_cart(self, user_id, cart_id) -> CartSnapshot:
        cart = self.cart_client.get_cart(str(cart_id))
        if cart is None:
            raise CartNotFound({"cart_id": [f"Cart {cart_id} not found"]})
        if not cart.user_id or str(cart.user_id) != str(user_id):
            raise NotOwned({"cart_id": ["Cart does not belong to the current user"]})
        if cart.status != CartStatus.ACTIVE.value:
            raise ValidationError({"cart_id": [f"Cart is {cart.status} and cannot be checked out"]})
        if not cart.lines:
            raise CartEmpty({"cart_id": ["Cannot create an order from an empty cart"]})
        return cart

    def _notify_cart_converted(self, cart_id, order_id) -> None:
        try:
            self.cart_client.mark_converted(cart_id, order_id)
        except Exception as exc:
            logger.warning(
                "Cart conversion notification failed, left for reconciliation",
                cart_id=cart_id,
                order_id=order_id,
                error=str(exc),
            )
            return

        current_domain.process(RecordCartConversion(order_id=order_id), asynchronous=False)


def _item_snapshot(line) -> dict:
    return {
        "item_id": line.item_id,
        "item_name": line.item_name,
        "item_description": line.item_description,
        "price": line.price,
        "quantity": line.quantity,
        "seller_id": line.seller_id,
        "seller_name": line.seller_name,
        "image_url": line.image_url,
        "category": line.category,
        "variant_attributes": line.variant_attributes,
    }
