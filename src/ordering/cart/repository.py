"""Repository for the ShoppingCart aggregate."""

import threading
import weakref
from contextlib import contextmanager

from ordering.cart.cart import CartStatus, ShoppingCart, owner_key_for
from ordering.domain import ordering

_registry_lock = threading.Lock()
# Entries disappear once no caller holds the lock for that key.
_owner_locks: "weakref.WeakValueDictionary[str, _OwnerLock]" = weakref.WeakValueDictionary()


class _OwnerLock:
    def __init__(self) -> None:
        self._lock = threading.Lock()

    def __enter__(self):
        return self._lock.__enter__()

    def __exit__(self, *exc_info):
        return self._lock.__exit__(*exc_info)


@contextmanager
def owner_lock(owner_key: str):
    """Serialize cart creation and hand-over for one owner key."""
    with _registry_lock:
        lock = _owner_locks.get(owner_key)
        if lock is None:
            lock = _OwnerLock()
            _owner_locks[owner_key] = lock
    with lock:
        yield


@ordering.repository(part_of=ShoppingCart)
class ShoppingCartRepository:
    def find_active_for(self, user_id=None, session_id=None) -> ShoppingCart | None:
        """The owner's active cart, expired or not, or None."""
        key = owner_key_for(user_id, session_id)
        carts = self._dao.query.filter(owner_key=key).all().items
        return carts[0] if carts else None

    def find_holding_item(self, cart_item_id, user_id=None, session_id=None) -> ShoppingCart | None:
        """The active cart that contains the given cart line, if any.

        The caller's own cart is checked first; other active carts are only
        scanned when the line is not there.
        """
        if user_id or session_id:
            own = self.find_active_for(user_id=user_id, session_id=session_id)
            if own is not None and own.has_item(cart_item_id):
                return own

        for cart in self.find_by_status(CartStatus.ACTIVE):
            if cart.has_item(cart_item_id):
                return cart
        return None

    def find_by_status(self, status: CartStatus) -> list[ShoppingCart]:
        return self._dao.query.filter(status=status.value).limit(None).all().items

    def purge(self, cart: ShoppingCart) -> None:
        self._dao.delete(cart)
