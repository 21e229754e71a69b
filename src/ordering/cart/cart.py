"""Shopping Cart aggregate (CQRS) - the pre-order collection of items.

A cart belongs to exactly one owner: a registered user or a guest session.
Each line keeps a snapshot of the item's price and display data taken when
it was added; validation refreshes that snapshot against the catalogue.

Totals are derived data. Every mutating method recomputes them inside an
``atomic_change`` block, and a post-invariant rejects any state where they
disagree with the lines.

``owner_key`` is the storage-level guard for "one active cart per owner":
it is ``user:<id>`` or ``session:<id>`` while the cart is active and a
per-cart ``closed:<id>`` value afterwards, and it is declared unique.
"""

from datetime import datetime, timedelta
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text

from ordering.cart.events import (
    CartCleared,
    CartConverted,
    CartCreated,
    CartExpirationExtended,
    CartExpired,
    CartItemAdded,
    CartItemPriceRefreshed,
    CartItemRemoved,
    CartQuantityUpdated,
    CartsMerged,
    CartTransferred,
)
from ordering.domain import ordering
from ordering.errors import CartFull, CartItemNotFound
from ordering.utils.time import as_utc, utcnow


class CartStatus(Enum):
    ACTIVE = "Active"
    EXPIRED = "Expired"
    CONVERTED = "Converted"
    ABANDONED = "Abandoned"


def owner_key_for(user_id=None, session_id=None) -> str:
    """Storage key identifying the owner of an active cart."""
    if user_id:
        return f"user:{user_id}"
    if session_id:
        return f"session:{session_id}"
    raise ValidationError({"owner": ["A user id or a session id is required"]})


def _money(value) -> float:
    return round(float(value or 0.0), 2)


@ordering.entity(part_of="ShoppingCart")
class CartItem:
    item_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    price = Float(required=True, min_value=0.0)
    variant_attributes = String(max_length=1000, default="")
    subtotal = Float(default=0.0)
    item_name = String(max_length=255)
    item_description = Text()
    item_image_url = String(max_length=500)
    category = String(max_length=100)
    seller_id = Identifier()
    seller_name = String(max_length=255)
    added_at = DateTime()

    def matches(self, item_id, variant_attributes) -> bool:
        return str(self.item_id) == str(item_id) and (self.variant_attributes or "") == (variant_attributes or "")


@ordering.aggregate
class ShoppingCart:
    user_id = Identifier()
    session_id = String(max_length=255)
    owner_key = String(max_length=300, unique=True)
    status = String(choices=CartStatus, default=CartStatus.ACTIVE.value)
    items = HasMany(CartItem)
    total_amount = Float(default=0.0)
    total_items = Integer(default=0)
    expires_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def totals_must_match_items(self):
        expected_amount = _money(sum(item.subtotal or 0.0 for item in self.items))
        expected_items = sum(item.quantity for item in self.items)
        if abs((self.total_amount or 0.0) - expected_amount) > 0.005 or (self.total_items or 0) != expected_items:
            raise ValidationError({"totals": ["Cart totals must equal the sum of its items"]})

    @invariant.post
    def must_have_exactly_one_owner(self):
        if bool(self.user_id) == bool(self.session_id):
            raise ValidationError({"owner": ["A cart is owned by either a user or a guest session"]})

    @invariant.post
    def item_keys_must_be_unique(self):
        keys = [(str(i.item_id), i.variant_attributes or "") for i in self.items]
        if len(keys) != len(set(keys)):
            raise ValidationError({"items": ["An item and variant can appear only once per cart"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, user_id=None, session_id=None, expiration_days=7, now=None):
        now = now or utcnow()
        owner_key = owner_key_for(user_id, session_id)
        cart = cls(
            user_id=user_id or None,
            session_id=None if user_id else session_id,
            owner_key=owner_key,
            status=CartStatus.ACTIVE.value,
            total_amount=0.0,
            total_items=0,
            expires_at=now + timedelta(days=expiration_days),
            created_at=now,
            updated_at=now,
        )
        cart.raise_(
            CartCreated(
                cart_id=str(cart.id),
                user_id=str(cart.user_id) if cart.user_id else None,
                session_id=cart.session_id,
                expires_at=cart.expires_at,
            )
        )
        return cart

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_guest(self) -> bool:
        return bool(self.session_id) and not self.user_id

    @property
    def is_active(self) -> bool:
        return self.status == CartStatus.ACTIVE.value

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or utcnow()
        return self.expires_at is not None and now > as_utc(self.expires_at)

    def belongs_to(self, user_id=None, session_id=None) -> bool:
        if user_id:
            return str(self.user_id) == str(user_id)
        return bool(session_id) and self.session_id == session_id and not self.user_id

    def find_item(self, item_id, variant_attributes=""):
        return next((i for i in self.items if i.matches(item_id, variant_attributes)), None)

    def has_item(self, cart_item_id) -> bool:
        return any(str(i.id) == str(cart_item_id) for i in self.items)

    def get_item(self, cart_item_id) -> CartItem:
        item = next((i for i in self.items if str(i.id) == str(cart_item_id)), None)
        if item is None:
            raise CartItemNotFound({"cart_item_id": [f"Cart item {cart_item_id} not found"]})
        return item

    def ensure_room_for(self, item_id, variant_attributes="", max_items=50):
        """Raise CartFull when a new distinct line would exceed ``max_items``."""
        if self.find_item(item_id, variant_attributes or "") is None and len(self.items) >= max_items:
            raise CartFull({"items": [f"Cart cannot hold more than {max_items} different items"]})

    def summary(self) -> dict:
        return {
            "total_items": self.total_items or 0,
            "total_amount": self.total_amount or 0.0,
            "item_count": len(self.items),
            "is_empty": not self.items,
        }

    # -------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------
    def _assert_active(self, action):
        if not self.is_active:
            raise ValidationError({"status": [f"Cannot {action}: cart is {self.status}"]})

    def _recalculate_totals(self):
        for item in self.items:
            item.subtotal = _money(item.price * item.quantity)
        self.total_amount = _money(sum(item.subtotal for item in self.items))
        self.total_items = sum(item.quantity for item in self.items)

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, catalogue_item, quantity, variant_attributes="", max_items=50, now=None):
        """Add ``quantity`` of a catalogue item, merging with a matching line.

        New lines copy price, name, seller and display data from the
        catalogue item as it is right now.
        """
        self._assert_active("add items")
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        variant_attributes = variant_attributes or ""
        now = now or utcnow()
        existing = self.find_item(catalogue_item.item_id, variant_attributes)

        self.ensure_room_for(catalogue_item.item_id, variant_attributes, max_items)

        with atomic_change(self):
            if existing is not None:
                existing.quantity += quantity
                line = existing
            else:
                line = CartItem(
                    item_id=catalogue_item.item_id,
                    quantity=quantity,
                    price=catalogue_item.price,
                    variant_attributes=variant_attributes,
                    item_name=catalogue_item.name,
                    item_description=catalogue_item.description,
                    item_image_url=catalogue_item.image_url,
                    category=catalogue_item.category,
                    seller_id=catalogue_item.seller_id,
                    seller_name=catalogue_item.seller_name,
                    added_at=now,
                )
                self.add_items(line)
            self._recalculate_totals()
            self.updated_at = now

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                cart_item_id=str(line.id),
                item_id=str(line.item_id),
                variant_attributes=variant_attributes,
                quantity=quantity,
                line_quantity=line.quantity,
                price=line.price,
            )
        )
        return line

    def update_item_quantity(self, cart_item_id, quantity, now=None):
        self._assert_active("update items")
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        item = self.get_item(cart_item_id)
        previous_quantity = item.quantity
        now = now or utcnow()

        with atomic_change(self):
            item.quantity = quantity
            self._recalculate_totals()
            self.updated_at = now

        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                cart_item_id=str(item.id),
                previous_quantity=previous_quantity,
                new_quantity=quantity,
            )
        )

    def update_item_price(self, cart_item_id, price, now=None):
        self._assert_active("update prices")
        item = self.get_item(cart_item_id)
        previous_price = item.price

        with atomic_change(self):
            item.price = price
            self._recalculate_totals()
            self.updated_at = now or utcnow()

        self.raise_(
            CartItemPriceRefreshed(
                cart_id=str(self.id),
                cart_item_id=str(item.id),
                previous_price=previous_price,
                new_price=price,
            )
        )

    def remove_item(self, cart_item_id, now=None):
        self._assert_active("remove items")
        item = self.get_item(cart_item_id)

        with atomic_change(self):
            self.remove_items(item)
            self._recalculate_totals()
            self.updated_at = now or utcnow()

        self.raise_(
            CartItemRemoved(
                cart_id=str(self.id),
                cart_item_id=str(cart_item_id),
                item_id=str(item.item_id),
            )
        )

    def clear(self, now=None):
        self._assert_active("clear cart")
        removed = len(self.items)

        with atomic_change(self):
            for item in list(self.items):
                self.remove_items(item)
            self._recalculate_totals()
            self.updated_at = now or utcnow()

        self.raise_(CartCleared(cart_id=str(self.id), removed_items=removed))

    # -------------------------------------------------------------------
    # Guest cart transfer
    # -------------------------------------------------------------------
    def merge_from(self, guest_cart, now=None):
        """Fold a guest cart's lines into this cart.

        Lines with the same (item, variant) have their quantities summed;
        other lines are copied with their original snapshot and timestamp.
        """
        self._assert_active("merge carts")
        now = now or utcnow()

        with atomic_change(self):
            for guest_item in guest_cart.items:
                existing = self.find_item(guest_item.item_id, guest_item.variant_attributes)
                if existing is not None:
                    existing.quantity += guest_item.quantity
                else:
                    self.add_items(
                        CartItem(
                            item_id=guest_item.item_id,
                            quantity=guest_item.quantity,
                            price=guest_item.price,
                            variant_attributes=guest_item.variant_attributes or "",
                            item_name=guest_item.item_name,
                            item_description=guest_item.item_description,
                            item_image_url=guest_item.item_image_url,
                            category=guest_item.category,
                            seller_id=guest_item.seller_id,
                            seller_name=guest_item.seller_name,
                            added_at=guest_item.added_at or now,
                        )
                    )
            self._recalculate_totals()
            self.updated_at = now

        self.raise_(
            CartsMerged(
                cart_id=str(self.id),
                source_cart_id=str(guest_cart.id),
                items_merged_count=len(guest_cart.items),
            )
        )

    def assign_to_user(self, user_id, now=None):
        """Hand a guest cart over to a registered user unchanged."""
        self._assert_active("transfer cart")
        previous_session_id = self.session_id

        with atomic_change(self):
            self.user_id = user_id
            self.session_id = None
            self.owner_key = owner_key_for(user_id=user_id)
            self.updated_at = now or utcnow()

        self.raise_(
            CartTransferred(
                cart_id=str(self.id),
                user_id=str(user_id),
                previous_session_id=previous_session_id,
            )
        )

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def extend_expiration(self, days, now=None):
        """Push the expiry to ``days`` from now. Never shortens it."""
        self._assert_active("extend expiration")
        if days < 1:
            raise ValidationError({"days": ["Extension must be at least one day"]})

        now = now or utcnow()
        new_expiry = now + timedelta(days=days)
        current = as_utc(self.expires_at)
        if current is not None and current >= new_expiry:
            return

        self.expires_at = new_expiry
        self.updated_at = now
        self.raise_(CartExpirationExtended(cart_id=str(self.id), expires_at=new_expiry))

    def _close(self, status, now):
        with atomic_change(self):
            self.status = status.value
            self.owner_key = f"closed:{self.id}"
            self.updated_at = now

    def expire(self, now=None):
        self._assert_active("expire cart")
        now = now or utcnow()
        self._close(CartStatus.EXPIRED, now)
        self.raise_(CartExpired(cart_id=str(self.id), expired_at=now))

    def mark_converted(self, order_id=None, now=None) -> bool:
        """Record that checkout produced an order. Returns False when already converted."""
        if self.status == CartStatus.CONVERTED.value:
            return False

        now = now or utcnow()
        self._close(CartStatus.CONVERTED, now)
        self.raise_(
            CartConverted(
                cart_id=str(self.id),
                user_id=str(self.user_id) if self.user_id else None,
                order_id=str(order_id) if order_id else None,
                converted_at=now,
            )
        )
        return True
