"""Application tests for cart commands: fetching, adding, updating and removing lines."""

import gc
from datetime import UTC, datetime, timedelta

import pytest
from ordering.cart.cart import CartStatus, ShoppingCart
from ordering.cart.items import AddToCart, RemoveFromCart, UpdateCartItem
from ordering.cart.management import ClearCart, ExtendCartExpiration, GetOrCreateCart, get_or_create_cart
from ordering.cart.repository import _owner_locks, owner_lock
from ordering.errors import CartFull, CartItemNotFound, InventoryUnavailable, ItemNotFound, NotOwned, StockUnavailable
from protean import current_domain


def _cart(cart_id):
    return current_domain.repository_for(ShoppingCart).get(cart_id)


def _add(item_id="item-1", quantity=1, user_id="user-1", session_id=None, variant=None):
    return current_domain.process(
        AddToCart(
            user_id=user_id,
            session_id=session_id,
            item_id=item_id,
            quantity=quantity,
            variant_attributes=variant,
        ),
        asynchronous=False,
    )


class TestGetOrCreateCart:
    def test_creates_cart_on_first_access(self):
        cart_id = current_domain.process(GetOrCreateCart(user_id="user-1"), asynchronous=False)

        cart = _cart(cart_id)
        assert cart.user_id == "user-1"
        assert cart.status == CartStatus.ACTIVE.value

    def test_returns_same_cart(self):
        first = current_domain.process(GetOrCreateCart(user_id="user-1"), asynchronous=False)
        second = current_domain.process(GetOrCreateCart(user_id="user-1"), asynchronous=False)
        assert first == second

    def test_guest_and_user_carts_are_separate(self):
        guest = current_domain.process(GetOrCreateCart(session_id="sess-1"), asynchronous=False)
        user = current_domain.process(GetOrCreateCart(user_id="user-1"), asynchronous=False)
        assert guest != user

    def test_expired_cart_is_replaced(self):
        start = datetime.now(UTC) - timedelta(days=10)
        stale = get_or_create_cart(user_id="user-1", now=start)

        fresh = get_or_create_cart(user_id="user-1")

        assert fresh.id != stale.id
        assert fresh.items == []
        assert _cart(stale.id).status == CartStatus.EXPIRED.value

    def test_fetch_extends_expiry(self):
        start = datetime.now(UTC) - timedelta(days=3)
        cart = get_or_create_cart(user_id="user-1", now=start)
        original_expiry = cart.expires_at

        refreshed = get_or_create_cart(user_id="user-1")

        assert refreshed.id == cart.id
        assert refreshed.expires_at > original_expiry

    def test_owner_locks_are_released(self):
        for n in range(20):
            get_or_create_cart(session_id=f"one-off-{n}")
        with owner_lock("user:user-1"):
            assert "user:user-1" in _owner_locks
        gc.collect()

        assert not any(key.startswith("session:one-off-") for key in _owner_locks)
        assert "user:user-1" not in _owner_locks

    def test_single_active_cart_per_owner(self):
        for _ in range(3):
            current_domain.process(GetOrCreateCart(user_id="user-1"), asynchronous=False)

        active = current_domain.repository_for(ShoppingCart).find_by_status(CartStatus.ACTIVE)
        assert len([c for c in active if c.user_id == "user-1"]) == 1


class TestAddToCart:
    def test_add_item(self):
        cart_id = _add("item-1", 2)

        cart = _cart(cart_id)
        assert cart.total_items == 2
        assert cart.total_amount == 100.0
        assert cart.items[0].item_name == "Mechanical Keyboard"
        assert cart.items[0].seller_name == "KeyCo"

    def test_repeat_add_merges(self):
        _add("item-1", 2)
        cart_id = _add("item-1", 3)

        cart = _cart(cart_id)
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 5

    def test_unknown_item(self):
        with pytest.raises(ItemNotFound):
            _add("item-404")

    def test_stock_checked_against_merged_quantity(self, inventory):
        inventory.set_stock("item-1", 5)
        _add("item-1", 3)

        with pytest.raises(StockUnavailable):
            _add("item-1", 3)

        cart = current_domain.repository_for(ShoppingCart).find_active_for(user_id="user-1")
        assert cart.items[0].quantity == 3

    def test_stock_unavailable_leaves_cart_unchanged(self, inventory):
        inventory.set_stock("item-2", 1)
        with pytest.raises(StockUnavailable):
            _add("item-2", 2)

    def test_distinct_line_limit(self, override_setting):
        override_setting(cart_max_items=2)
        _add("item-1")
        _add("item-2")

        with pytest.raises(CartFull):
            _add("item-3")

    def test_full_cart_is_reported_before_stock(self, override_setting):
        override_setting(cart_max_items=2)
        _add("item-1")
        _add("item-2")

        with pytest.raises(CartFull):
            _add("item-3", 4)

    def test_inventory_outage_surfaces(self, inventory):
        inventory.fail_for("item-1")
        with pytest.raises(InventoryUnavailable):
            _add("item-1")

    def test_guest_add(self):
        cart_id = _add("item-2", 1, user_id=None, session_id="sess-1")
        assert _cart(cart_id).session_id == "sess-1"


class TestUpdateAndRemove:
    def test_update_quantity(self):
        cart_id = _add("item-1", 1)
        line_id = _cart(cart_id).items[0].id

        current_domain.process(UpdateCartItem(user_id="user-1", cart_item_id=line_id, quantity=4), asynchronous=False)

        cart = _cart(cart_id)
        assert cart.items[0].quantity == 4
        assert cart.total_amount == 200.0

    def test_update_beyond_stock(self):
        cart_id = _add("item-3", 1)
        line_id = _cart(cart_id).items[0].id

        with pytest.raises(StockUnavailable):
            current_domain.process(
                UpdateCartItem(user_id="user-1", cart_item_id=line_id, quantity=4),
                asynchronous=False,
            )

    def test_update_other_owners_line(self):
        cart_id = _add("item-1", 1, user_id="user-1")
        line_id = _cart(cart_id).items[0].id

        with pytest.raises(NotOwned):
            current_domain.process(
                UpdateCartItem(user_id="user-2", cart_item_id=line_id, quantity=2),
                asynchronous=False,
            )

    def test_lines_found_among_many_carts(self):
        line_ids = {}
        for n in range(105):
            session_id = f"sess-{n}"
            cart_id = _add("item-1", 1, user_id=None, session_id=session_id)
            line_ids[session_id] = _cart(cart_id).items[0].id

        for session_id in ("sess-0", "sess-104"):
            current_domain.process(
                UpdateCartItem(session_id=session_id, cart_item_id=line_ids[session_id], quantity=2),
                asynchronous=False,
            )
            assert current_domain.repository_for(ShoppingCart).find_active_for(session_id=session_id).total_items == 2

        with pytest.raises(NotOwned):
            current_domain.process(
                UpdateCartItem(user_id="user-9", cart_item_id=line_ids["sess-104"], quantity=2),
                asynchronous=False,
            )

    def test_update_unknown_line(self):
        with pytest.raises(CartItemNotFound):
            current_domain.process(
                UpdateCartItem(user_id="user-1", cart_item_id="missing", quantity=2),
                asynchronous=False,
            )

    def test_remove_line(self):
        _add("item-1", 1)
        cart_id = _add("item-2", 2)
        line_id = next(i.id for i in _cart(cart_id).items if i.item_id == "item-1")

        current_domain.process(RemoveFromCart(user_id="user-1", cart_item_id=line_id), asynchronous=False)

        cart = _cart(cart_id)
        assert len(cart.items) == 1
        assert cart.total_amount == 20.0

    def test_remove_from_guest_cart_by_other_session(self):
        cart_id = _add("item-1", 1, user_id=None, session_id="sess-1")
        line_id = _cart(cart_id).items[0].id

        with pytest.raises(NotOwned):
            current_domain.process(RemoveFromCart(session_id="sess-2", cart_item_id=line_id), asynchronous=False)


class TestClearAndExtend:
    def test_clear_cart(self):
        _add("item-1", 1)
        cart_id = current_domain.process(ClearCart(user_id="user-1"), asynchronous=False)

        cart = _cart(cart_id)
        assert cart.items == []
        assert cart.total_amount == 0.0
        assert cart.status == CartStatus.ACTIVE.value

    def test_extend_expiration(self):
        cart_id = current_domain.process(GetOrCreateCart(user_id="user-1"), asynchronous=False)
        before = _cart(cart_id).expires_at

        current_domain.process(ExtendCartExpiration(user_id="user-1", days=14), asynchronous=False)

        assert _cart(cart_id).expires_at > before
