"""In-process inventory gateway for development and testing.

Holds a small catalogue in memory. ``reserve`` checks and decrements under a
single lock, so concurrent reservations can never drive stock below zero.
Item ids passed to ``fail_for`` raise ``InventoryUnavailable`` to simulate an
outage of the item service.
"""

import threading
from dataclasses import replace

from ordering.errors import InventoryUnavailable
from ordering.inventory.port import CatalogueItem, InventoryGateway


class FakeInventoryGateway(InventoryGateway):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, CatalogueItem] = {}
        self._stock: dict[str, int] = {}
        self._failing: set[str] = set()
        self._failing_releases: set[str] = set()
        self.calls: list[dict] = []

    # -------------------------------------------------------------------
    # Test / dev configuration
    # -------------------------------------------------------------------
    def add_item(self, item_id: str, name: str, price: float, stock: int = 0, **details) -> CatalogueItem:
        item = CatalogueItem(item_id=str(item_id), name=name, price=price, **details)
        with self._lock:
            self._items[item.item_id] = item
            self._stock[item.item_id] = stock
        return item

    def set_price(self, item_id: str, price: float) -> None:
        with self._lock:
            self._items[str(item_id)] = replace(self._items[str(item_id)], price=price)

    def set_stock(self, item_id: str, stock: int) -> None:
        with self._lock:
            self._stock[str(item_id)] = stock

    def remove_item(self, item_id: str) -> None:
        with self._lock:
            self._items.pop(str(item_id), None)
            self._stock.pop(str(item_id), None)

    def fail_for(self, *item_ids: str, releases_only: bool = False) -> None:
        target = self._failing_releases if releases_only else self._failing
        target.update(str(i) for i in item_ids)

    def recover(self) -> None:
        self._failing.clear()
        self._failing_releases.clear()

    def stock_of(self, item_id: str) -> int:
        return self._stock.get(str(item_id), 0)

    # -------------------------------------------------------------------
    # InventoryGateway
    # -------------------------------------------------------------------
    def _record(self, method: str, item_id: str, **kwargs) -> None:
        self.calls.append({"method": method, "item_id": str(item_id), **kwargs})
        if str(item_id) in self._failing:
            raise InventoryUnavailable(f"item service timed out for {item_id}")

    def get_item(self, item_id: str) -> CatalogueItem | None:
        self._record("get_item", item_id)
        return self._items.get(str(item_id))

    def check_availability(self, item_id: str) -> int:
        self._record("check_availability", item_id)
        if str(item_id) not in self._items:
            return 0
        return self._stock.get(str(item_id), 0)

    def reserve(self, item_id: str, quantity: int) -> bool:
        self._record("reserve", item_id, quantity=quantity)
        with self._lock:
            available = self._stock.get(str(item_id), 0)
            if str(item_id) not in self._items or available < quantity:
                return False
            self._stock[str(item_id)] = available - quantity
            return True

    def release(self, item_id: str, quantity: int) -> None:
        self._record("release", item_id, quantity=quantity)
        if str(item_id) in self._failing_releases:
            raise InventoryUnavailable(f"release failed for {item_id}")
        with self._lock:
            self._stock[str(item_id)] = self._stock.get(str(item_id), 0) + quantity
