"""Inventory gateway port (abstract interface).

The item service owns products and stock. Carts and orders only talk to it
through this contract, so the in-process fake and the HTTP client are
interchangeable.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class CatalogueItem:
    """Item data as the inventory service reports it at call time."""

    item_id: str
    name: str
    price: float
    seller_id: str | None = None
    seller_name: str | None = None
    description: str | None = None
    image_url: str | None = None
    category: str | None = None
    status: str = "ACTIVE"


@dataclass(frozen=True)
class StockLine:
    """One (item, quantity) pair to reserve or release."""

    item_id: str
    quantity: int


class InventoryGateway(ABC):
    """Abstract inventory service interface.

    Every method raises ``InventoryUnavailable`` when the service cannot be
    reached or answers with a server error.
    """

    @abstractmethod
    def get_item(self, item_id: str) -> CatalogueItem | None:
        """Return the item, or None when it does not exist."""
        ...

    @abstractmethod
    def check_availability(self, item_id: str) -> int:
        """Return the quantity currently available for sale."""
        ...

    @abstractmethod
    def reserve(self, item_id: str, quantity: int) -> bool:
        """Atomically decrement stock if sufficient. False means nothing changed."""
        ...

    @abstractmethod
    def release(self, item_id: str, quantity: int) -> None:
        """Return previously reserved stock."""
        ...
